"""Tests for models.validation."""

from models.badge_template import Element, Position, Size, Template
from models.validation import element_overlaps, overlapping_pairs, validate


def _el(el_id, x=0, y=0, w=50, h=50, **kw):
    kw.setdefault("type", "shape")
    kw.setdefault("field_type", "shape")
    return Element(id=el_id, position=Position(x, y), size=Size(w, h), **kw)


class TestValidate:
    def test_valid_template(self, small_template):
        report = validate(small_template)
        assert report.valid
        assert report.issues == []

    def test_duplicate_ids_rejected(self):
        t = Template(elements=[_el("a"), _el("a", x=200)])
        report = validate(t)
        assert not report.valid
        dup = [i for i in report.issues if i.code == "duplicate_id"]
        assert len(dup) == 1
        assert "a" in dup[0].message

    def test_missing_position(self):
        t = Template(elements=[Element(id="a", type="image", field_type="image")])
        report = validate(t)
        assert [(i.code, i.field) for i in report.issues] == [("missing_field", "position")]

    def test_field_type_required_only_for_data_bound(self):
        shape = Element(id="s", type="shape", position=Position(0, 0))
        text = Element(id="t", type="text", position=Position(0, 0))
        report = validate(Template(elements=[shape, text]))
        assert [(i.element_id, i.field) for i in report.issues] == [("t", "fieldType")]

    def test_unknown_type_and_binding(self):
        t = Template(elements=[Element(id="x", type="video", field_type="avatar",
                                       position=Position(0, 0))])
        codes = {i.code for i in validate(t).issues}
        assert codes == {"invalid_type", "invalid_field_type"}

    def test_overlap_is_only_a_warning(self):
        t = Template(elements=[_el("a"), _el("b", x=25, y=25)])
        report = validate(t)
        assert report.valid
        assert [(w.first_id, w.second_id) for w in report.warnings] == [("a", "b")]

    def test_unit_orientation_and_size_checked(self):
        t = Template(unit="ft", orientation="diagonal", size=Size(0, 5))
        issues = validate(t).issues
        assert [(i.code, i.field) for i in issues] == [
            ("invalid_value", "unit"),
            ("invalid_value", "orientation"),
            ("invalid_value", "size"),
        ]

    def test_metric_units_are_valid(self):
        assert validate(Template(unit="mm", size=Size(86, 54))).valid

    def test_report_to_dict(self):
        report = validate(Template(elements=[_el("a"), _el("a")]))
        d = report.to_dict()
        assert d["valid"] is False
        assert d["issues"][0]["code"] == "duplicate_id"


class TestOverlap:
    def test_touching_edges_do_not_overlap(self):
        assert not element_overlaps(_el("a", w=50), _el("b", x=50))

    def test_unsized_elements_never_overlap(self):
        text = Element(id="t", type="text", position=Position(0, 0))
        assert not element_overlaps(text, _el("b"))
        assert overlapping_pairs([text, _el("b")]) == []
