"""Pure element mutations.

Each function returns a ``Mutation`` holding the new template together with
the selection that is valid for it, and never modifies its input. Rejected
changes raise ``ValidationError`` before anything is built.
"""

import logging
import math
import uuid
from dataclasses import dataclass, field, replace
from typing import List, Optional

from models.badge_template import (
    FIELD_TYPES, Element, Position, Size, Template,
    default_badge_template, element_defaults,
)
from models.validation import OverlapWarning, element_overlaps
from designer.errors import ValidationError

logger = logging.getLogger("OnsiteAtlas.designer.mutator")

NEW_ELEMENT_POSITION = (50, 50)

PATCH_KEYS = {"content", "fieldType", "position", "size", "style"}

# style key -> (predicate, message shown when it fails)
STYLE_RULES = {
    "fontSize": (lambda v: v > 0, "Font size must be positive."),
    "borderWidth": (lambda v: v >= 0, "Border width cannot be negative."),
    "borderRadius": (lambda v: v >= 0, "Border radius cannot be negative."),
    "padding": (lambda v: v >= 0, "Padding cannot be negative."),
    "opacity": (lambda v: 0 <= v <= 1, "Opacity must be between 0 and 1."),
}


@dataclass
class Mutation:
    template: Template
    selected_id: Optional[str] = None
    warnings: List[OverlapWarning] = field(default_factory=list)


def _is_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _require_number(value, name: str) -> None:
    if not _is_number(value):
        raise ValidationError(f"{name} must be a number.")


def check_patch(patch: dict) -> None:
    """Raise ValidationError naming the first offending field in ``patch``."""
    if not isinstance(patch, dict):
        raise ValidationError("Element update must be an object.")
    unknown = sorted(set(patch) - PATCH_KEYS)
    if unknown:
        raise ValidationError(f"Unknown element properties: {', '.join(unknown)}")

    size = patch.get("size")
    if "size" in patch:
        if not isinstance(size, dict):
            raise ValidationError("size must be an object.")
        for key, label in (("width", "Width"), ("height", "Height")):
            if key in size:
                _require_number(size[key], label)
                if size[key] <= 0:
                    raise ValidationError(f"{label} must be positive.")

    position = patch.get("position")
    if "position" in patch:
        if not isinstance(position, dict):
            raise ValidationError("position must be an object.")
        for key in ("x", "y"):
            if key in position:
                _require_number(position[key], f"position.{key}")
                if position[key] < 0:
                    raise ValidationError(f"position.{key} cannot be negative.")

    style = patch.get("style")
    if "style" in patch:
        if not isinstance(style, dict):
            raise ValidationError("style must be an object.")
        for key, (ok, message) in STYLE_RULES.items():
            if key in style:
                _require_number(style[key], key)
                if not ok(style[key]):
                    raise ValidationError(message)

    if "fieldType" in patch and patch["fieldType"] not in FIELD_TYPES:
        raise ValidationError(f"Element fieldType '{patch['fieldType']}' is not valid.")
    if "content" in patch and not isinstance(patch["content"], str):
        raise ValidationError("content must be text.")


def _apply_patch(element: Element, patch: dict) -> Element:
    changes = {}
    if "content" in patch:
        changes["content"] = patch["content"]
    if "fieldType" in patch:
        changes["field_type"] = patch["fieldType"]
    if "position" in patch:
        base = element.position.to_dict() if element.position else {}
        changes["position"] = Position.from_dict({**base, **patch["position"]})
    if "size" in patch:
        base = element.size.to_dict() if element.size else {}
        changes["size"] = Size.from_dict({**base, **patch["size"]})
    # Style is always copied so the new element never aliases the old one
    changes["style"] = {**element.style, **(patch.get("style") or {})}
    return replace(element, **changes)


def new_element_id(template: Template) -> str:
    taken = set(template.element_ids())
    while True:
        candidate = str(uuid.uuid4())[:8]
        if candidate not in taken:
            return candidate


def update_element(template: Template, element_id: str, patch: dict,
                   selected_id: Optional[str] = None) -> Mutation:
    """Shallow-merge ``patch`` into one element; the patch wins on collisions."""
    target = template.find_element(element_id)
    if target is None:
        raise ValidationError(f"Element '{element_id}' not found.")
    check_patch(patch)
    if target.size is None and "size" in patch:
        missing = [key for key in ("width", "height") if key not in patch["size"]]
        if missing:
            raise ValidationError(
                f"size.{missing[0]} is required for an element without a size."
            )

    updated = _apply_patch(target, patch)
    elements = [updated if el is target else el for el in template.elements]
    return Mutation(replace(template, elements=elements), element_id)


def add_element(template: Template, element_type: str,
                selected_id: Optional[str] = None) -> Mutation:
    """Append a new element with type defaults; overlaps are only reported."""
    defaults = element_defaults(element_type)
    if defaults is None:
        raise ValidationError(f"Unknown element type '{element_type}'.")

    style = dict(defaults["style"])
    style["zIndex"] = len(template.elements) + 1
    element = Element(
        id=new_element_id(template),
        type=element_type,
        field_type=defaults["field_type"],
        content=defaults["content"],
        position=Position(*NEW_ELEMENT_POSITION),
        size=defaults["size"],
        style=style,
    )

    warnings = [OverlapWarning(element.id, other.id)
                for other in template.elements if element_overlaps(element, other)]
    if warnings:
        logger.warning("New %s element %s overlaps %d existing element(s)",
                       element_type, element.id, len(warnings))

    new_template = replace(template, elements=list(template.elements) + [element])
    return Mutation(new_template, element.id, warnings)


def remove_element(template: Template, element_id: str,
                   selected_id: Optional[str] = None) -> Mutation:
    if template.find_element(element_id) is None:
        raise ValidationError(f"Element '{element_id}' not found.")
    elements = [el for el in template.elements if el.id != element_id]
    selection = None if selected_id == element_id else selected_id
    return Mutation(replace(template, elements=elements), selection)


def replace_template(template: Template, new_template: Template,
                     selected_id: Optional[str] = None) -> Mutation:
    """Bulk replace, e.g. loading a template from the library."""
    selection = selected_id if new_template.find_element(selected_id or "") else None
    return Mutation(new_template.clone(), selection)


def apply_default_elements(template: Template,
                           selected_id: Optional[str] = None) -> Mutation:
    """Swap in the standard element set, orientation, background and print settings."""
    default = default_badge_template()
    suffix = str(uuid.uuid4())[:8]
    elements = [replace(el, id=f"{el.id}-{suffix}") for el in default.elements]
    new_template = replace(
        template,
        elements=elements,
        orientation=default.orientation,
        background=default.background,
        print_settings=default.print_settings,
    )
    return Mutation(new_template, None)
