"""Tests for export.pdf_export."""

from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

from models.registration import RegistrationRecord
from designer.errors import BatchCapExceeded, ExternalServiceError
from export.pdf_export import (
    build_print_view, export_badge_pdf, export_batch_pdf, page_size_points,
)


def _registrations(n):
    return [RegistrationRecord(registration_id=f"R-{i}", first_name=f"Guest{i}")
            for i in range(n)]


# ── Single badge ─────────────────────────────────────────────────────

class TestSingleBadge:
    def test_page_size_points(self, small_template):
        assert page_size_points(small_template) == (216, 216)

    def test_export_writes_pdf(self, tmp_path, small_template, registration):
        out = tmp_path / "one.pdf"
        mark = MagicMock()
        export_badge_pdf(small_template, registration, str(out), mark_printed=mark)
        assert out.read_bytes().startswith(b"%PDF")
        mark.assert_called_once_with(registration)

    def test_print_view_html(self, small_template, registration):
        html = build_print_view(small_template, registration)
        assert "@page { size: 3in 3in; margin: 0; }" in html
        assert "data:image/png;base64," in html
        assert "window.print()" in html

    def test_status_failure_does_not_break_print(self, small_template, registration):
        mark = MagicMock(side_effect=ExternalServiceError("offline"))
        html = build_print_view(small_template, registration, mark_printed=mark)
        assert "<img" in html
        mark.assert_called_once()


# ── Batch ────────────────────────────────────────────────────────────

class TestBatchExport:
    def test_over_cap_rejected_before_rendering(self, tmp_path, small_template):
        out = tmp_path / "batch.pdf"
        with patch("export.pdf_export.rasterize_badge") as mock_raster:
            with pytest.raises(BatchCapExceeded) as exc:
                export_batch_pdf(small_template, _registrations(101), str(out))
        assert mock_raster.call_count == 0
        assert exc.value.requested == 101
        assert exc.value.limit == 100
        assert not out.exists()

    def test_one_page_per_registration_in_order(self, tmp_path, small_template):
        out = tmp_path / "batch.pdf"
        progress = []
        regs = _registrations(3)
        with patch("export.pdf_export.render_badge_image",
                   side_effect=lambda t, r: Image.new("RGB", (300, 300), "white")) as mock_render:
            result = export_batch_pdf(small_template, regs, str(out),
                                      on_progress=progress.append)
        assert result.pages == 3
        assert [call.args[1].registration_id for call in mock_render.call_args_list] == \
            ["R-0", "R-1", "R-2"]
        assert progress == [1, 2, 3]
        assert out.read_bytes().startswith(b"%PDF")

    def test_failed_badge_is_reported(self, tmp_path, small_template):
        out = tmp_path / "batch.pdf"
        images = [Image.new("RGB", (300, 300)), ValueError("bad data"),
                  Image.new("RGB", (300, 300))]
        mark = MagicMock()
        with patch("export.pdf_export.render_badge_image", side_effect=images):
            result = export_batch_pdf(small_template, _registrations(3), str(out),
                                      mark_printed=mark)
        assert result.pages == 2
        assert [(f.index, f.registration_id) for f in result.failures] == [(1, "R-1")]
        assert [r.registration_id for r in result.exported] == ["R-0", "R-2"]
        assert mark.call_count == 2

    def test_unexpected_error_is_a_failure_not_a_crash(self, tmp_path, small_template):
        out = tmp_path / "batch.pdf"
        images = [Image.new("RGB", (300, 300)), TypeError("bad style value")]
        with patch("export.pdf_export.render_badge_image", side_effect=images):
            result = export_batch_pdf(small_template, _registrations(2), str(out))
        assert result.pages == 1
        assert result.failures[0].reason == "bad style value"
        assert out.read_bytes().startswith(b"%PDF")

    def test_document_saved_when_progress_hook_raises(self, tmp_path, small_template):
        out = tmp_path / "batch.pdf"
        with patch("export.pdf_export.render_badge_image",
                   side_effect=lambda t, r: Image.new("RGB", (300, 300))):
            with pytest.raises(RuntimeError):
                export_batch_pdf(small_template, _registrations(2), str(out),
                                 on_progress=MagicMock(side_effect=RuntimeError("gone")))
        assert out.read_bytes().startswith(b"%PDF")

    def test_cancel_stops_early(self, tmp_path, small_template):
        out = tmp_path / "batch.pdf"
        seen = []
        with patch("export.pdf_export.render_badge_image",
                   side_effect=lambda t, r: Image.new("RGB", (300, 300))):
            result = export_batch_pdf(small_template, _registrations(5), str(out),
                                      on_progress=seen.append,
                                      is_cancelled=lambda: len(seen) >= 2)
        assert result.cancelled
        assert result.pages == 2

    def test_real_render_batch(self, tmp_path, small_template):
        out = tmp_path / "batch.pdf"
        result = export_batch_pdf(small_template, _registrations(2), str(out))
        assert result.pages == 2
        assert result.failures == []
