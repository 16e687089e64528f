"""Tests for designer.session.DesignerSession."""

from unittest.mock import MagicMock

import pytest

from models.badge_template import Element, Position, Template
from designer.errors import ExternalServiceError, ValidationError
from designer.session import DesignerSession
from services.templates import TemplateService


# ── Edits and history ────────────────────────────────────────────────

class TestSessionEdits:
    def test_new_session_has_one_history_entry(self):
        session = DesignerSession()
        assert len(session.history) == 1
        assert not session.history.can_undo

    def test_undo_redo_round_trip(self, small_template):
        session = DesignerSession(small_template)
        start = session.template.to_dict()
        session.add_element("shape")
        session.update_element("title", {"content": "Welcome"})
        after = session.template.to_dict()

        session.undo()
        session.undo()
        assert session.template.to_dict() == start
        session.redo()
        session.redo()
        assert session.template.to_dict() == after

    def test_undo_clears_stale_selection(self, small_template):
        session = DesignerSession(small_template)
        session.add_element("image")
        assert session.selected_id is not None
        session.undo()
        assert session.selected_id is None

    def test_rejected_edit_pushes_nothing(self, small_template):
        session = DesignerSession(small_template)
        with pytest.raises(ValidationError):
            session.update_element("title", {"style": {"opacity": 1.5}})
        assert len(session.history) == 1
        assert session.template.find_element("title").style["opacity"] == 1

    def test_remove_clears_selection(self, small_template):
        session = DesignerSession(small_template)
        session.select("title")
        session.remove_element("title")
        assert session.selected_id is None

    def test_select_unknown(self, small_template):
        session = DesignerSession(small_template)
        with pytest.raises(ValidationError):
            session.select("ghost")

    def test_overlap_warnings_exposed(self, small_template):
        session = DesignerSession(small_template)
        session.update_element("title", {"size": {"height": 60}})
        session.add_element("text")
        assert len(session.warnings) == 1


# ── Loading and saving ───────────────────────────────────────────────

class TestSessionPersistence:
    def test_stale_load_is_discarded(self):
        session = DesignerSession()
        first = session.begin_load()
        second = session.begin_load()
        assert session.finish_load(second, Template(id="b", name="B"))
        assert not session.finish_load(first, Template(id="a", name="A"))
        assert session.template.name == "B"
        assert session.template_id == "b"

    def test_load_resets_history(self, small_template):
        service = MagicMock(spec=TemplateService)
        service.get.return_value = Template(id="t9", name="Loaded")
        session = DesignerSession(small_template)
        session.add_element("shape")
        assert session.load(service, "t9")
        service.get.assert_called_once_with("t9")
        assert len(session.history) == 1
        assert session.selected_id is None

    def test_save_creates_then_updates(self, small_template):
        service = MagicMock(spec=TemplateService)
        service.create.return_value = Template(id="new1")
        service.update.return_value = Template(id="new1")
        session = DesignerSession(small_template)

        session.save(service)
        assert session.template_id == "new1"
        service.create.assert_called_once()

        session.undo()
        session.save(service)
        service.update.assert_called_once()
        assert service.update.call_args[0][0] == "new1"
        assert service.create.call_count == 1

    def test_invalid_template_is_not_saved(self):
        service = MagicMock(spec=TemplateService)
        dupes = Template(elements=[
            Element(id="a", type="shape", position=Position(0, 0)),
            Element(id="a", type="shape", position=Position(9, 9)),
        ])
        session = DesignerSession(dupes)
        with pytest.raises(ValidationError, match="Duplicate element ids"):
            session.save(service)
        service.create.assert_not_called()

    def test_service_failure_leaves_state(self, small_template):
        service = MagicMock(spec=TemplateService)
        service.create.side_effect = ExternalServiceError("down", status=503)
        session = DesignerSession(small_template)
        with pytest.raises(ExternalServiceError):
            session.save(service)
        assert session.template_id is None
