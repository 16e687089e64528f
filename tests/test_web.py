"""Tests for the Flask designer API in web.app."""

import io
import json
from unittest.mock import MagicMock, patch

import pytest

from models.badge_template import Template
from models.registration import RegistrationRecord
from services.events import EventService
from services.registrations import RegistrationPage, RegistrationService
from services.templates import TemplateService
from designer.errors import ExternalServiceError
from web.app import app, run_export
from web.state import state


@pytest.fixture
def client(small_template):
    state.reset_session()
    state.session.replace_template(small_template)
    state.event_id = "ev1"
    state.registrations = {}
    state.export_tasks = {}
    state.templates = MagicMock(spec=TemplateService)
    state.registration_service = MagicMock(spec=RegistrationService)
    state.events = MagicMock(spec=EventService)
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c


# ── Template editing ─────────────────────────────────────────────────

class TestTemplateRoutes:
    def test_get_template(self, client):
        data = client.get("/api/template").get_json()
        assert data["template"]["elements"][0]["id"] == "title"
        assert data["selectedId"] is None

    def test_add_update_undo(self, client):
        resp = client.post("/api/elements", json={"type": "shape"})
        assert resp.status_code == 201
        new_id = resp.get_json()["selectedId"]

        resp = client.put(f"/api/elements/{new_id}", json={"style": {"opacity": 0.5}})
        assert resp.status_code == 200

        data = client.post("/api/undo").get_json()
        el = [e for e in data["template"]["elements"] if e["id"] == new_id][0]
        assert el["style"]["opacity"] == 1
        assert data["canRedo"] is True

    def test_invalid_patch_is_400(self, client):
        resp = client.put("/api/elements/title", json={"style": {"opacity": 1.5}})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Opacity must be between 0 and 1."

    def test_delete_element(self, client):
        assert client.delete("/api/elements/title").status_code == 200
        assert state.session.template.elements == []

    def test_validate(self, client):
        assert client.post("/api/template/validate").get_json()["valid"] is True

    def test_cross_origin_rejected(self, client):
        resp = client.post("/api/undo", headers={"Origin": "http://evil.example"})
        assert resp.status_code == 403

    def test_upload_and_download(self, client):
        payload = json.dumps({"name": "Uploaded", "elements": []}).encode()
        resp = client.post("/api/upload-template",
                           data={"file": (io.BytesIO(payload), "t.json")},
                           content_type="multipart/form-data")
        assert resp.status_code == 200
        downloaded = json.loads(client.get("/api/download-template").data)
        assert downloaded["name"] == "Uploaded"

    def test_upload_rejects_bad_json(self, client):
        resp = client.post("/api/upload-template",
                           data={"file": (io.BytesIO(b"{nope"), "t.json")},
                           content_type="multipart/form-data")
        assert resp.status_code == 400


# ── Drag and preview ─────────────────────────────────────────────────

class TestDragAndPreview:
    def test_drag_round_trip(self, client):
        client.post("/api/drag/start", json={"elementId": "title", "x": 0, "y": 0})
        client.post("/api/drag/move", json={"x": 500, "y": 5})
        data = client.post("/api/drag/end").get_json()
        assert data["committed"] is True
        title = data["template"]["elements"][0]
        assert title["position"] == {"x": 200, "y": 15}

    def test_preview_png(self, client):
        resp = client.get("/api/preview?scale=0.5")
        assert resp.status_code == 200
        assert resp.mimetype == "image/png"
        assert resp.data[:8] == b"\x89PNG\r\n\x1a\n"

    def test_preview_tree_fit(self, client):
        tree = client.get("/api/preview/tree?fit=150x600").get_json()
        assert tree["width"] == 150
        assert tree["children"][-1]["text"] == "Preview"

    def test_bad_scale(self, client):
        assert client.get("/api/preview?scale=big").status_code == 400


# ── Backend-backed routes ────────────────────────────────────────────

class TestLibraryAndPrinting:
    def test_save_template(self, client):
        state.templates.create.return_value = Template(id="saved1")
        data = client.post("/api/templates/save").get_json()
        assert data["templateId"] == "saved1"

    def test_backend_failure_is_502(self, client):
        state.templates.list.side_effect = ExternalServiceError("down")
        resp = client.get("/api/templates")
        assert resp.status_code == 502
        assert resp.get_json()["error"] == "down"

    def test_list_registrations_remembers_page(self, client, registration):
        state.registration_service.list.return_value = RegistrationPage(
            items=[registration], page=1, page_size=100, total=1)
        data = client.get("/api/registrations?search=ada").get_json()
        assert data["total"] == 1
        assert state.find_registration("abc123") is registration
        args = state.registration_service.list.call_args.args
        assert args[0] == "ev1"
        assert args[1] == {"search": "ada"}

    def test_print_view_marks_printed(self, client, registration):
        state.remember_registrations([registration])
        resp = client.get("/api/print-view/abc123")
        assert resp.status_code == 200
        assert b"window.print()" in resp.data
        state.registration_service.mark_badge_printed.assert_called_once_with("ev1", "abc123")

    def test_print_view_unknown(self, client):
        assert client.get("/api/print-view/missing").status_code == 404

    def test_batch_over_cap(self, client):
        ids = [f"r{i}" for i in range(101)]
        state.remember_registrations([RegistrationRecord(record_id=i) for i in ids])
        resp = client.post("/api/export-pdf", json={"registrationIds": ids})
        assert resp.status_code == 400
        assert "up to 100" in resp.get_json()["error"]
        assert state.export_tasks == {}

    def test_batch_export_task(self, client, registration):
        state.remember_registrations([registration])
        resp = client.post("/api/export-pdf", json={"registrationIds": ["abc123"]})
        assert resp.status_code == 202
        task_id = resp.get_json()["task_id"]
        assert task_id in state.export_tasks


# ── Robustness ───────────────────────────────────────────────────────

MALFORMED_TEMPLATE = {
    "name": "Imported",
    "size": {"width": 3, "height": 3},
    "unit": "in",
    "elements": [{
        "id": "n", "type": "text", "fieldType": "name",
        "position": {"x": 0, "y": 10}, "size": {"width": 200, "height": 40},
        "style": {"fontSize": "16px", "borderRadius": "round"},
    }],
}


class TestRobustness:
    def test_preview_survives_css_style_strings(self, client):
        assert client.put("/api/template", json=MALFORMED_TEMPLATE).status_code == 200
        style = state.session.template.elements[0].style
        assert style["fontSize"] == 16
        assert "borderRadius" not in style
        resp = client.get("/api/preview")
        assert resp.status_code == 200
        assert resp.mimetype == "image/png"

    def test_batch_with_imported_template_finishes(self, client, registration, tmp_path):
        client.put("/api/template", json=MALFORMED_TEMPLATE)
        task = {"status": "running", "progress": 0, "error": None, "failures": []}
        out = tmp_path / "batch.pdf"
        run_export("t1", task, state.session.template.clone(), [registration], str(out))
        assert task["status"] == "done"
        assert task["progress"] == 1
        assert out.read_bytes().startswith(b"%PDF")

    def test_worker_error_marks_task_failed(self, client, registration, tmp_path):
        task = {"status": "running", "progress": 0, "error": None, "failures": []}
        with patch("web.app.export_batch_pdf", side_effect=TypeError("boom")):
            run_export("t2", task, state.session.template.clone(), [registration],
                       str(tmp_path / "batch.pdf"))
        assert task["status"] == "error"
        assert task["error"] == "boom"

    def test_render_failure_is_reported_per_badge(self, client, registration, tmp_path):
        task = {"status": "running", "progress": 0, "error": None, "failures": []}
        with patch("export.pdf_export.render_badge_image",
                   side_effect=TypeError("bad style")):
            run_export("t3", task, state.session.template.clone(), [registration],
                       str(tmp_path / "batch.pdf"))
        assert task["status"] == "done"
        assert task["failures"] == [{"index": 0, "registrationId": "REG-001",
                                     "reason": "bad style"}]


# ── Backend calls and the state lock ─────────────────────────────────

class TestBackendCallsOutsideLock:
    def test_overlapping_loads_keep_the_newest(self, client):
        def slow_get(template_id):
            if template_id == "old":
                # a second load completes while the first is still waiting
                assert not state.lock.locked()
                with app.test_client() as other:
                    assert other.post("/api/templates/new/load").get_json()["ok"] is True
                return Template(id="old", name="Old")
            return Template(id="new", name="New")

        state.templates.get.side_effect = slow_get
        data = client.post("/api/templates/old/load").get_json()
        assert data["ok"] is False
        assert data["templateId"] == "new"
        assert state.session.template.name == "New"

    def test_drag_not_blocked_by_save(self, client):
        def slow_create(template):
            assert not state.lock.locked()
            with app.test_client() as other:
                other.post("/api/drag/start", json={"elementId": "title", "x": 0, "y": 0})
                other.post("/api/drag/move", json={"x": 40, "y": 0})
                other.post("/api/drag/end")
            return Template(id="saved2")

        state.templates.create.side_effect = slow_create
        data = client.post("/api/templates/save").get_json()
        assert data["templateId"] == "saved2"
        assert state.session.template.find_element("title").position.x == 50
        # the saved snapshot predates the drag
        saved_snapshot = state.templates.create.call_args.args[0]
        assert saved_snapshot.find_element("title").position.x == 10

    def test_fetch_single_registration(self, client, registration):
        state.registration_service.get.return_value = registration
        data = client.get("/api/registrations/abc123").get_json()
        assert data["registration_id"] == "REG-001"
        state.registration_service.get.assert_called_once_with("ev1", "abc123")
        assert state.find_registration("abc123") is registration
