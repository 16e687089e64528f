"""Flask application for the Onsite Atlas badge designer."""

import json
import logging
import os
import threading
import uuid
from functools import wraps
from io import BytesIO
from urllib.parse import urlparse

from flask import Flask, Response, abort, jsonify, request, send_file

from config import EXPORT_DIR, MAX_BATCH_PRINT
from models.badge_template import Template
from models.registration import RegistrationRecord
from export.badge_renderer import render_badge
from export.rasterizer import rasterize_badge
from export.pdf_export import build_print_view, export_badge_pdf, export_batch_pdf
from designer.errors import BatchCapExceeded, ExternalServiceError, ValidationError
from utils.fonts import get_font_families
from utils.image_utils import compute_scale_factor
from utils.units import badge_pixel_size
from web.state import state

logger = logging.getLogger("OnsiteAtlas.web")

app = Flask(__name__)
app.secret_key = os.urandom(32)
app.config["MAX_CONTENT_LENGTH"] = 10 * 1024 * 1024  # 10 MB request limit

ALLOWED_HOSTS = {"localhost", "127.0.0.1"}

os.makedirs(EXPORT_DIR, exist_ok=True)


@app.before_request
def csrf_check():
    """Reject non-GET/HEAD/OPTIONS requests with a foreign Origin or Referer."""
    if request.method in ("GET", "HEAD", "OPTIONS"):
        return
    origin = request.headers.get("Origin") or request.headers.get("Referer")
    if origin:
        host = urlparse(origin).hostname
        if host not in ALLOWED_HOSTS:
            return jsonify(error="Forbidden: cross-origin request"), 403


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

@app.errorhandler(ValidationError)
def handle_validation_error(e: ValidationError):
    issues = [i.to_dict() if hasattr(i, "to_dict") else str(i) for i in e.issues]
    return jsonify(error=e.message, issues=issues), 400


@app.errorhandler(ExternalServiceError)
def handle_service_error(e: ExternalServiceError):
    return jsonify(error=e.message), 502


@app.errorhandler(ValueError)
def handle_value_error(e: ValueError):
    return jsonify(error=str(e)), 400


def locked(view):
    """Serialize designer edits; history must follow request order."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        with state.lock:
            return view(*args, **kwargs)
    return wrapper


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object")
    return data


def _session_payload(mutation=None) -> dict:
    session = state.session
    payload = {
        "template": session.template.to_dict(),
        "templateId": session.template_id,
        "selectedId": session.selected_id,
        "canUndo": session.history.can_undo,
        "canRedo": session.history.can_redo,
    }
    if mutation is not None:
        payload["warnings"] = [w.to_dict() for w in mutation.warnings]
    return payload


# ---------------------------------------------------------------------------
# Current template
# ---------------------------------------------------------------------------

@app.route("/api/template")
def get_template():
    return jsonify(_session_payload())


@app.route("/api/template", methods=["PUT"])
@locked
def replace_template():
    mutation = state.session.replace_template(Template.from_dict(_json_body()))
    return jsonify(ok=True, **_session_payload(mutation))


@app.route("/api/template/new", methods=["POST"])
@locked
def new_template():
    state.reset_session()
    return jsonify(ok=True, **_session_payload())


@app.route("/api/template/defaults", methods=["POST"])
@locked
def add_default_elements():
    mutation = state.session.apply_default_elements()
    return jsonify(ok=True, **_session_payload(mutation))


@app.route("/api/template/validate", methods=["POST"])
def validate_template():
    return jsonify(state.session.validate().to_dict())


@app.route("/api/upload-template", methods=["POST"])
@locked
def upload_template():
    if "file" not in request.files:
        return jsonify(error="No file provided"), 400
    f = request.files["file"]
    try:
        data = json.load(f.stream)
    except ValueError as e:
        return jsonify(error=f"Invalid template: {e}"), 400
    if not isinstance(data, dict):
        return jsonify(error="Invalid template: expected an object"), 400
    mutation = state.session.replace_template(Template.from_dict(data))
    return jsonify(ok=True, **_session_payload(mutation))


@app.route("/api/download-template")
def download_template():
    buf = BytesIO()
    buf.write(json.dumps(state.session.template.to_dict(), indent=2).encode("utf-8"))
    buf.seek(0)
    return send_file(
        buf,
        mimetype="application/json",
        as_attachment=True,
        download_name="badge_template.json",
    )


# ---------------------------------------------------------------------------
# Elements, selection, history
# ---------------------------------------------------------------------------

@app.route("/api/elements", methods=["POST"])
@locked
def add_element():
    data = _json_body()
    mutation = state.session.add_element(data.get("type", ""))
    return jsonify(ok=True, **_session_payload(mutation)), 201


@app.route("/api/elements/<element_id>", methods=["PUT"])
@locked
def update_element(element_id):
    mutation = state.session.update_element(element_id, _json_body())
    return jsonify(ok=True, **_session_payload(mutation))


@app.route("/api/elements/<element_id>", methods=["DELETE"])
@locked
def delete_element(element_id):
    mutation = state.session.remove_element(element_id)
    return jsonify(ok=True, **_session_payload(mutation))


@app.route("/api/selection", methods=["PUT"])
@locked
def select_element():
    state.session.select(_json_body().get("elementId"))
    return jsonify(ok=True, selectedId=state.session.selected_id)


@app.route("/api/undo", methods=["POST"])
@locked
def undo():
    restored = state.session.undo()
    return jsonify(ok=restored is not None, **_session_payload())


@app.route("/api/redo", methods=["POST"])
@locked
def redo():
    restored = state.session.redo()
    return jsonify(ok=restored is not None, **_session_payload())


# ---------------------------------------------------------------------------
# Dragging (pointer events forwarded by the canvas)
# ---------------------------------------------------------------------------

@app.route("/api/drag/start", methods=["POST"])
@locked
def drag_start():
    data = _json_body()
    started = state.session.drag.pointer_down(
        data.get("elementId", ""),
        float(data.get("x", 0)),
        float(data.get("y", 0)),
        float(data.get("scale", 1) or 1),
    )
    return jsonify(ok=started, selectedId=state.session.selected_id)


@app.route("/api/drag/move", methods=["POST"])
@locked
def drag_move():
    data = _json_body()
    position = state.session.drag.pointer_move(float(data.get("x", 0)), float(data.get("y", 0)))
    return jsonify(ok=position is not None,
                   position=position.to_dict() if position else None)


@app.route("/api/drag/end", methods=["POST"])
@locked
def drag_end():
    outcome = state.session.drag.pointer_up()
    if outcome is None:
        return jsonify(ok=False)
    return jsonify(ok=True, moved=outcome.moved, committed=outcome.committed,
                   **_session_payload())


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------

@app.route("/api/sample-registration")
def get_sample_registration():
    return jsonify(state.sample.to_dict())


@app.route("/api/sample-registration", methods=["PUT"])
def update_sample_registration():
    data = _json_body()
    merged = {**state.sample.to_dict(), **data}
    state.sample = RegistrationRecord(**{k: v for k, v in merged.items()
                                         if k in RegistrationRecord.__dataclass_fields__})
    return jsonify(ok=True, registration=state.sample.to_dict())


def _preview_scale(template: Template) -> float:
    fit = request.args.get("fit", "")
    if "x" in fit:
        try:
            fit_w, fit_h = (float(v) for v in fit.split("x", 1))
        except ValueError:
            raise ValidationError("fit must look like 400x600")
        px_w, px_h = badge_pixel_size(template.size.width, template.size.height, template.unit)
        return compute_scale_factor(px_w, px_h, fit_w, fit_h)
    try:
        return float(request.args.get("scale", 1))
    except ValueError:
        raise ValidationError("scale must be a number")


@app.route("/api/preview")
def preview_badge():
    template = state.session.template
    node = render_badge(template, state.sample, scale=_preview_scale(template),
                        preview_mode=request.args.get("preview", "1") == "1")
    img = rasterize_badge(node)
    buf = BytesIO()
    img.save(buf, format="PNG")
    buf.seek(0)
    return send_file(buf, mimetype="image/png")


@app.route("/api/preview/tree")
def preview_tree():
    template = state.session.template
    node = render_badge(template, state.sample, scale=_preview_scale(template),
                        preview_mode=True)
    return jsonify(node.to_dict())


@app.route("/api/fonts")
def get_fonts():
    return jsonify(fonts=get_font_families())


# ---------------------------------------------------------------------------
# Template library (backend)
# ---------------------------------------------------------------------------

@app.route("/api/events/<event_id>", methods=["PUT"])
def set_event(event_id):
    event = state.events.get_event(event_id)
    state.event_id = event_id
    return jsonify(ok=True, event=event)


@app.route("/api/templates")
def list_templates():
    event_id = request.args.get("event") or state.event_id or None
    templates = state.templates.list(event_id)
    return jsonify(templates=[t.to_dict() for t in templates])


# Backend calls run with the lock released so drags and export progress
# never wait on the network; the load token drops responses that arrive late.

@app.route("/api/templates/<template_id>/load", methods=["POST"])
def load_template(template_id):
    with state.lock:
        session = state.session
        token = session.begin_load()
    template = state.templates.get(template_id)
    with state.lock:
        applied = session.finish_load(token, template)
        return jsonify(ok=applied, **_session_payload())


@app.route("/api/templates/save", methods=["POST"])
def save_template():
    with state.lock:
        session = state.session
        template_id, snapshot = session.prepare_save()
    if template_id:
        saved = state.templates.update(template_id, snapshot)
    else:
        saved = state.templates.create(snapshot)
    with state.lock:
        session.finish_save(template_id, saved)
        return jsonify(ok=True, saved=saved.to_dict(), **_session_payload())


@app.route("/api/templates/<template_id>", methods=["DELETE"])
def delete_template(template_id):
    state.templates.remove(template_id)
    return jsonify(ok=True)


@app.route("/api/templates/<template_id>/duplicate", methods=["POST"])
def duplicate_template(template_id):
    event_id = (request.get_json(silent=True) or {}).get("event") or state.event_id or None
    copy = state.templates.duplicate(template_id, event_id)
    return jsonify(ok=True, template=copy.to_dict())


@app.route("/api/templates/<template_id>/set-default", methods=["POST"])
def set_default_template(template_id):
    if not state.event_id:
        return jsonify(error="No event selected"), 400
    state.templates.set_default(state.event_id, template_id)
    return jsonify(ok=True)


# ---------------------------------------------------------------------------
# Registrations & printing
# ---------------------------------------------------------------------------

@app.route("/api/registrations")
def list_registrations():
    if not state.event_id:
        return jsonify(error="No event selected"), 400
    try:
        page = int(request.args.get("page", 1))
        page_size = int(request.args.get("limit", 100))
    except ValueError:
        return jsonify(error="page and limit must be integers"), 400
    filters = {k: v for k, v in request.args.items() if k not in ("page", "limit")}
    result = state.registration_service.list(state.event_id, filters, page, page_size)
    state.remember_registrations(result.items)
    return jsonify(result.to_dict())


@app.route("/api/registrations/<registration_id>")
def get_registration(registration_id):
    if not state.event_id:
        return jsonify(error="No event selected"), 400
    record = state.registration_service.get(state.event_id, registration_id)
    state.remember_registration(record)
    return jsonify(record.to_dict())


def _registration_or_404(key: str) -> RegistrationRecord:
    record = state.find_registration(key)
    if record is None:
        abort(404)
    return record


@app.route("/api/print-view/<registration_key>")
def print_view(registration_key):
    record = _registration_or_404(registration_key)
    html = build_print_view(state.session.template, record, mark_printed=state.mark_printed)
    return Response(html, mimetype="text/html")


@app.route("/api/export-single-pdf/<registration_key>")
def export_single_pdf(registration_key):
    record = _registration_or_404(registration_key)
    output_path = os.path.join(EXPORT_DIR, f"badge_{uuid.uuid4().hex[:8]}.pdf")
    export_badge_pdf(state.session.template, record, output_path,
                     mark_printed=state.mark_printed)
    return send_file(
        output_path,
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"badge_{record.registration_id or 'single'}.pdf",
    )


@app.route("/api/export-pdf", methods=["POST"])
def start_pdf_export():
    keys = _json_body().get("registrationIds") or []
    if not keys:
        return jsonify(error="No registrations selected"), 400
    if len(keys) > MAX_BATCH_PRINT:
        raise BatchCapExceeded(len(keys), MAX_BATCH_PRINT)
    records = []
    for key in keys:
        record = state.find_registration(key)
        if record is None:
            return jsonify(error=f"Unknown registration: {key}"), 404
        records.append(record)

    task_id = str(uuid.uuid4())[:8]
    output_path = os.path.join(EXPORT_DIR, f"badges_{task_id}.pdf")
    task = {
        "status": "running",
        "progress": 0,
        "total": len(records),
        "path": output_path,
        "error": None,
        "failures": [],
    }
    with state.lock:
        state.export_tasks[task_id] = task
        # Capture current state for the thread
        template = state.session.template.clone()

    t = threading.Thread(target=run_export,
                         args=(task_id, task, template, records, output_path),
                         daemon=True)
    t.start()

    return jsonify(task_id=task_id), 202


def run_export(task_id, task, template, records, output_path):
    """Worker body; always leaves the task in "done" or "error"."""
    def on_progress(n):
        with state.lock:
            task["progress"] = n

    try:
        result = export_batch_pdf(template, records, output_path,
                                  on_progress=on_progress,
                                  mark_printed=state.mark_printed)
        with state.lock:
            task["status"] = "done"
            task["failures"] = [f.to_dict() for f in result.failures]
    except Exception as e:
        logger.exception("Batch export %s failed", task_id)
        with state.lock:
            task["status"] = "error"
            task["error"] = str(e)


@app.route("/api/export-pdf/status/<task_id>")
def pdf_export_status(task_id):
    with state.lock:
        task = state.export_tasks.get(task_id)
        if not task:
            return jsonify(error="Unknown task"), 404
        return jsonify(
            status=task["status"],
            progress=task["progress"],
            total=task["total"],
            error=task["error"],
            failures=task["failures"],
        )


@app.route("/api/export-pdf/download/<task_id>")
def download_pdf(task_id):
    task = state.export_tasks.get(task_id)
    if not task or task["status"] != "done":
        return jsonify(error="PDF not ready"), 400
    return send_file(
        task["path"],
        mimetype="application/pdf",
        as_attachment=True,
        download_name="badges.pdf",
    )
