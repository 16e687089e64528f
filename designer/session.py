"""Designer session: the one owner of template, history, selection and drag state."""

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, List, Optional, Tuple

from models.badge_template import Element, Template, resolve_defaults
from models.validation import OverlapWarning, ValidationReport, validate
from designer import mutator
from designer.drag import DragController
from designer.errors import ValidationError
from designer.history import HistoryStack

if TYPE_CHECKING:
    from services.templates import TemplateService

logger = logging.getLogger("OnsiteAtlas.designer.session")


class DesignerSession:
    """Holds the template being edited.

    Every committed edit goes through a mutator and pushes exactly one
    history entry. Drag moves bypass history until the pointer is released.
    """

    def __init__(self, template: Optional[Template] = None):
        self.template: Template = resolve_defaults(template or Template())
        self.template_id: Optional[str] = self.template.id
        self.history = HistoryStack()
        self.history.reset(self.template)
        self.selected_id: Optional[str] = None
        self.warnings: List[OverlapWarning] = []
        self.drag = DragController(self)
        self._load_token = 0

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    @property
    def selected_element(self) -> Optional[Element]:
        if self.selected_id is None:
            return None
        return self.template.find_element(self.selected_id)

    def select(self, element_id: Optional[str]) -> None:
        if element_id is not None and self.template.find_element(element_id) is None:
            raise ValidationError(f"Element '{element_id}' not found.")
        self.selected_id = element_id

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def _commit(self, mutation: mutator.Mutation) -> mutator.Mutation:
        self.template = mutation.template
        self.selected_id = mutation.selected_id
        self.warnings = mutation.warnings
        self.history.push(self.template)
        return mutation

    def add_element(self, element_type: str) -> mutator.Mutation:
        return self._commit(mutator.add_element(self.template, element_type, self.selected_id))

    def update_element(self, element_id: str, patch: dict) -> mutator.Mutation:
        return self._commit(
            mutator.update_element(self.template, element_id, patch, self.selected_id)
        )

    def remove_element(self, element_id: str) -> mutator.Mutation:
        return self._commit(
            mutator.remove_element(self.template, element_id, self.selected_id)
        )

    def apply_default_elements(self) -> mutator.Mutation:
        return self._commit(mutator.apply_default_elements(self.template, self.selected_id))

    def replace_template(self, template: Template) -> mutator.Mutation:
        return self._commit(
            mutator.replace_template(self.template, resolve_defaults(template),
                                     self.selected_id)
        )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def _restore(self, snapshot: Optional[Template]) -> Optional[Template]:
        if snapshot is None:
            return None
        self.drag.cancel()
        self.template = snapshot
        if self.selected_id and snapshot.find_element(self.selected_id) is None:
            self.selected_id = None
        self.warnings = []
        return self.template

    def undo(self) -> Optional[Template]:
        """Return the restored template, or None if there was nothing to undo."""
        return self._restore(self.history.undo())

    def redo(self) -> Optional[Template]:
        return self._restore(self.history.redo())

    # ------------------------------------------------------------------
    # Validation and persistence
    # ------------------------------------------------------------------

    def validate(self) -> ValidationReport:
        return validate(self.template)

    def begin_load(self) -> int:
        """Start a load; only the newest token's result will be applied."""
        self._load_token += 1
        return self._load_token

    def finish_load(self, token: int, template: Template) -> bool:
        if token != self._load_token:
            logger.info("Discarding stale template load (token %d, latest %d)",
                        token, self._load_token)
            return False
        self.drag.cancel()
        self.template = resolve_defaults(template)
        self.template_id = template.id
        self.history.reset(self.template)
        self.selected_id = None
        self.warnings = []
        return True

    def load(self, service: "TemplateService", template_id: str) -> bool:
        token = self.begin_load()
        template = service.get(template_id)
        return self.finish_load(token, template)

    def prepare_save(self) -> Tuple[Optional[str], Template]:
        """Validate and snapshot the template for a save made outside any lock."""
        report = self.validate()
        if not report.valid:
            raise ValidationError(report.issues[0].message, report.issues)
        for warning in report.warnings:
            logger.warning(warning.message)
        return self.template_id, self.template.clone()

    def finish_save(self, template_id: Optional[str], saved: Template) -> Template:
        """Adopt the backend id unless another template was loaded meanwhile."""
        if self.template_id == template_id:
            self.template_id = saved.id or self.template_id
            self.template = replace(self.template, id=self.template_id)
        logger.info("Saved badge template %s", saved.id or template_id)
        return saved

    def save(self, service: "TemplateService") -> Template:
        """Validate, then create or update; state is unchanged if either fails."""
        template_id, snapshot = self.prepare_save()
        if template_id:
            saved = service.update(template_id, snapshot)
        else:
            saved = service.create(snapshot)
        return self.finish_save(template_id, saved)
