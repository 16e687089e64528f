"""Print-ready output: single badge PDF or print view, and batch PDFs with ReportLab."""

import base64
import logging
from dataclasses import dataclass, field
from html import escape
from io import BytesIO
from typing import Callable, List, Optional, Sequence, Tuple

from PIL import Image
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas as rl_canvas

from config import MAX_BATCH_PRINT
from models.badge_template import Template
from models.registration import RegistrationRecord
from export.badge_renderer import render_badge
from export.rasterizer import rasterize_badge
from designer.errors import BatchCapExceeded, ExternalServiceError
from utils.units import badge_pixel_size, pixels_to_points

logger = logging.getLogger("OnsiteAtlas.export.pdf")

MarkPrinted = Callable[[RegistrationRecord], None]


@dataclass
class BatchItemFailure:
    index: int
    registration_id: str
    reason: str

    def to_dict(self) -> dict:
        return {"index": self.index, "registrationId": self.registration_id,
                "reason": self.reason}


@dataclass
class BatchExportResult:
    output_path: str
    pages: int = 0
    exported: List[RegistrationRecord] = field(default_factory=list)
    failures: List[BatchItemFailure] = field(default_factory=list)
    cancelled: bool = False


def page_size_points(template: Template) -> Tuple[float, float]:
    """Physical badge size in PDF points (72 per inch)."""
    px_w, px_h = badge_pixel_size(template.size.width, template.size.height, template.unit)
    return pixels_to_points(px_w), pixels_to_points(px_h)


def render_badge_image(template: Template, registration: RegistrationRecord) -> Image.Image:
    """Off-screen render at 1:1 reference scale, flattened to RGB."""
    badge = rasterize_badge(render_badge(template, registration, scale=1.0))
    flat = Image.new("RGB", badge.size, "white")
    flat.paste(badge, (0, 0), badge)
    badge.close()
    return flat


def _png_bytes(img: Image.Image) -> bytes:
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def _notify_printed(records: Sequence[RegistrationRecord],
                    mark_printed: Optional[MarkPrinted]) -> None:
    """Fire-and-forget status updates; a failure never affects the document."""
    if mark_printed is None:
        return
    for record in records:
        try:
            mark_printed(record)
        except (ExternalServiceError, ValueError) as e:
            logger.warning("Could not mark badge printed for %s: %s",
                           record.registration_id or record.record_id, e)


def export_badge_pdf(
    template: Template,
    registration: RegistrationRecord,
    output_path: str,
    mark_printed: Optional[MarkPrinted] = None,
) -> str:
    """Write one badge as a single page sized to the physical badge."""
    page_w, page_h = page_size_points(template)
    img = render_badge_image(template, registration)
    c = rl_canvas.Canvas(output_path, pagesize=(page_w, page_h))
    c.drawImage(ImageReader(BytesIO(_png_bytes(img))), 0, 0, page_w, page_h)
    c.showPage()
    c.save()
    img.close()
    logger.info("Exported badge for %s to %s", registration.registration_id, output_path)
    _notify_printed([registration], mark_printed)
    return output_path


def build_print_view(
    template: Template,
    registration: RegistrationRecord,
    mark_printed: Optional[MarkPrinted] = None,
) -> str:
    """HTML page sized exactly to the badge that prints itself on load."""
    img = render_badge_image(template, registration)
    data_url = "data:image/png;base64," + base64.b64encode(_png_bytes(img)).decode("ascii")
    img.close()
    unit = template.unit if template.unit in ("in", "cm", "mm") else "px"
    width = f"{template.size.width}{unit}"
    height = f"{template.size.height}{unit}"
    html = f"""<!DOCTYPE html>
<html><head><title>Print Badge - {escape(registration.display_name)}</title>
<style>
  @page {{ size: {width} {height}; margin: 0; }}
  body {{ margin: 0; display: flex; justify-content: center; align-items: center; min-height: 100vh; background: #fff; }}
  .badge-img {{ width: {width}; height: {height}; object-fit: contain; display: block; border: none; }}
</style>
</head><body onload="window.print(); window.onafterprint = function(){{ window.close(); }}">
  <img src="{data_url}" class="badge-img" alt="Badge" />
</body></html>
"""
    _notify_printed([registration], mark_printed)
    return html


def export_batch_pdf(
    template: Template,
    registrations: Sequence[RegistrationRecord],
    output_path: str,
    on_progress: Optional[Callable[[int], None]] = None,
    is_cancelled: Optional[Callable[[], bool]] = None,
    mark_printed: Optional[MarkPrinted] = None,
    max_batch: int = MAX_BATCH_PRINT,
) -> BatchExportResult:
    """One page per registration, in selection order, all the same physical size.

    Requests over ``max_batch`` are refused before anything is rendered. A
    badge that fails to render is reported in ``failures`` and the remaining
    badges are still written; the document is saved with whatever succeeded.
    """
    if len(registrations) > max_batch:
        raise BatchCapExceeded(len(registrations), max_batch)

    page_w, page_h = page_size_points(template)
    result = BatchExportResult(output_path=output_path)
    c = rl_canvas.Canvas(output_path, pagesize=(page_w, page_h))

    try:
        for i, registration in enumerate(registrations):
            if is_cancelled and is_cancelled():
                result.cancelled = True
                logger.info("Batch export cancelled after %d badges", result.pages)
                break
            try:
                img = render_badge_image(template, registration)
            except Exception as e:
                # A failed badge is recorded; the batch carries on
                failure = BatchItemFailure(i, registration.registration_id, str(e))
                result.failures.append(failure)
                logger.error("Badge %d (%s) failed to render: %s",
                             i + 1, registration.registration_id, e)
            else:
                c.drawImage(ImageReader(BytesIO(_png_bytes(img))), 0, 0, page_w, page_h)
                c.showPage()
                img.close()
                result.pages += 1
                result.exported.append(registration)
            if on_progress:
                on_progress(i + 1)
    finally:
        c.save()
    logger.info("Batch export wrote %d page(s) to %s (%d failed)",
                result.pages, output_path, len(result.failures))
    _notify_printed(result.exported, mark_printed)
    return result
