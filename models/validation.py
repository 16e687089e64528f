"""Structural validation and overlap detection for badge templates."""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from models.badge_template import (
    ELEMENT_TYPES, FIELD_TYPES, ORIENTATIONS, UNITS, Element, Template,
)

# Element types whose content is derived from the registration record
DATA_BOUND_TYPES = ("text", "category", "qrCode")


@dataclass
class ValidationIssue:
    # "missing_field", "invalid_type", "invalid_field_type", "duplicate_id",
    # "invalid_value"
    code: str
    message: str
    element_id: Optional[str] = None
    field: Optional[str] = None

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message,
                "elementId": self.element_id, "field": self.field}


@dataclass
class OverlapWarning:
    """Advisory only: two sized elements share some area."""
    first_id: str
    second_id: str

    @property
    def message(self) -> str:
        return f"Elements '{self.first_id}' and '{self.second_id}' overlap"

    def to_dict(self) -> dict:
        return {"first": self.first_id, "second": self.second_id, "message": self.message}


@dataclass
class ValidationReport:
    issues: List[ValidationIssue] = field(default_factory=list)
    warnings: List[OverlapWarning] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.issues

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "issues": [i.to_dict() for i in self.issues],
            "warnings": [w.to_dict() for w in self.warnings],
        }


def element_overlaps(a: Element, b: Element) -> bool:
    """Axis-aligned rectangle intersection; edges touching do not overlap."""
    if a.size is None or b.size is None or a.position is None or b.position is None:
        return False
    return (
        a.position.x < b.position.x + b.size.width
        and a.position.x + a.size.width > b.position.x
        and a.position.y < b.position.y + b.size.height
        and a.position.y + a.size.height > b.position.y
    )


def overlapping_pairs(elements: Sequence[Element]) -> List[Tuple[Element, Element]]:
    pairs = []
    for i, a in enumerate(elements):
        if a.size is None:
            continue
        for b in elements[i + 1:]:
            if element_overlaps(a, b):
                pairs.append((a, b))
    return pairs


def _positive(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def validate(template: Template) -> ValidationReport:
    """Check badge geometry, element shape, known types, bindings and id uniqueness.

    Issues make the template unsavable; overlap warnings never do.
    """
    report = ValidationReport()
    if template.unit not in UNITS:
        report.issues.append(ValidationIssue(
            "invalid_value", f"Unit '{template.unit}' is not valid", field="unit",
        ))
    if template.orientation not in ORIENTATIONS:
        report.issues.append(ValidationIssue(
            "invalid_value", f"Orientation '{template.orientation}' is not valid",
            field="orientation",
        ))
    if not all(_positive(v) for v in (template.size.width, template.size.height)):
        report.issues.append(ValidationIssue(
            "invalid_value", "Badge width and height must be positive", field="size",
        ))

    seen = set()
    duplicates = []

    for index, el in enumerate(template.elements):
        label = el.id or f"#{index}"
        missing = []
        if not el.id:
            missing.append("id")
        if not el.type:
            missing.append("type")
        if el.position is None:
            missing.append("position")
        if not el.field_type and el.type in DATA_BOUND_TYPES:
            missing.append("fieldType")
        for name in missing:
            report.issues.append(ValidationIssue(
                "missing_field", f"Element {label} is missing '{name}'",
                element_id=el.id or None, field=name,
            ))

        if el.type and el.type not in ELEMENT_TYPES:
            report.issues.append(ValidationIssue(
                "invalid_type", f"Element type '{el.type}' is not valid",
                element_id=el.id or None, field="type",
            ))
        if el.field_type and el.field_type not in FIELD_TYPES:
            report.issues.append(ValidationIssue(
                "invalid_field_type", f"Element fieldType '{el.field_type}' is not valid",
                element_id=el.id or None, field="fieldType",
            ))

        if el.id:
            if el.id in seen and el.id not in duplicates:
                duplicates.append(el.id)
            seen.add(el.id)

    for dup in duplicates:
        report.issues.append(ValidationIssue(
            "duplicate_id", f"Duplicate element ids found: '{dup}'",
            element_id=dup, field="id",
        ))

    for a, b in overlapping_pairs(template.elements):
        report.warnings.append(OverlapWarning(a.id, b.id))

    return report
