"""Lays out a badge for one registration as a tree of absolutely positioned nodes.

The layout is a pure function of its inputs: it never mutates the template
or the registration, so the same inputs always give an equal tree. The
rasterizer turns that tree into pixels for previews and exports.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from models.badge_template import Element, Size, Template, clean_style
from models.registration import RegistrationRecord
from utils.units import badge_pixel_size

logger = logging.getLogger("OnsiteAtlas.export.renderer")

DEFAULT_BADGE_SIZE = Size(3.375, 5.375)
DEFAULT_COLORS = {"background": "#FFFFFF", "text": "#000000",
                  "accent": "#3B82F6", "borderColor": "#CCCCCC"}

# Field-toggle layout used when a template carries nothing usable
FALLBACK_FIELDS = {"name": True, "organization": True, "registrationId": True,
                   "category": True, "country": True, "qrCode": True}
FALLBACK_FIELD_CONFIG = {
    "name": {"fontSize": 18, "fontWeight": "bold", "position": {"top": 40, "left": 50}},
    "organization": {"fontSize": 14, "fontWeight": "normal", "position": {"top": 65, "left": 50}},
    "registrationId": {"fontSize": 12, "fontWeight": "normal", "position": {"top": 85, "left": 50}},
    "category": {"fontSize": 12, "fontWeight": "normal", "position": {"top": 105, "left": 50}},
    "country": {"fontSize": 12, "fontWeight": "normal", "position": {"top": 240, "left": 50}},
    "qrCode": {"size": 100, "position": {"top": 135, "left": 100}},
}

# Style values measured in pixels, scaled along with the badge
SCALED_STYLE_KEYS = ("fontSize", "borderWidth", "borderRadius", "padding")

WATERMARK_Z = 10_000

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp", ".svg")


@dataclass
class BadgeNode:
    """One absolutely positioned box. ``width``/``height`` of None mean "fit content"."""
    kind: str  # "badge", "text", "qrCode", "image", "shape", "category", "label"
    left: float = 0
    top: float = 0
    width: Optional[float] = None
    height: Optional[float] = None
    text: str = ""
    qr_payload: Optional[str] = None
    src: Optional[str] = None
    style: Dict[str, Any] = field(default_factory=dict)
    z_index: float = 1
    children: List["BadgeNode"] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "left": self.left,
            "top": self.top,
            "width": self.width,
            "height": self.height,
            "text": self.text,
            "qrPayload": self.qr_payload,
            "src": self.src,
            "style": copy.deepcopy(self.style),
            "zIndex": self.z_index,
            "children": [c.to_dict() for c in self.children],
        }


def _num(value, default: float = 0) -> float:
    """Numeric value or ``default`` for missing/zero/non-numeric input."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not value:
        return default
    return value


def _is_image_ref(value: str) -> bool:
    return (value.startswith(("http://", "https://", "data:", "/", "./"))
            or value.lower().endswith(IMAGE_EXTENSIONS))


def _background(template: Template, colors: Optional[dict] = None):
    """Split the template background into (color, image source)."""
    color = (colors or {}).get("background") or "#FFFFFF"
    image = template.background_image
    background = template.background or ""
    if _is_image_ref(background):
        image = image or background
    elif background and colors is None:
        color = background
    return color, image


def _badge_node(template: Template, width: float, height: float, color: str,
                image: Optional[str], border_color: str, preview_mode: bool,
                scale: float) -> BadgeNode:
    style = {"backgroundColor": color, "fontFamily": "Arial, sans-serif"}
    ps = template.print_settings
    if preview_mode:
        style["border"] = {"width": 1, "color": "#CCCCCC", "dashed": True}
    elif ps.show_border:
        style["border"] = {"width": max(1, _num(ps.border_width, 1) * scale),
                           "color": border_color, "dashed": False}
    return BadgeNode(kind="badge", width=width, height=height, src=image, style=style)


def _watermark(width: float, height: float) -> BadgeNode:
    return BadgeNode(
        kind="label", left=width - 48, top=height - 18, width=46, height=16,
        text="Preview", z_index=WATERMARK_Z,
        style={"fontSize": 10, "color": "#999999", "backgroundColor": "#FFFFFFB3",
               "padding": 1, "borderRadius": 2, "textAlign": "center"},
    )


def _scaled_style(style: dict, scale: float) -> dict:
    result = clean_style(style)
    for key in SCALED_STYLE_KEYS:
        if key in result:
            result[key] = result[key] * scale
    return result


def _text_value(el: Element, registration: RegistrationRecord) -> str:
    if el.field_type == "custom" and el.content:
        return el.content
    return registration.field_value(el.field_type)


def _element_node(el: Element, registration: RegistrationRecord, scale: float,
                  badge_width: float) -> Optional[BadgeNode]:
    x = el.position.x if el.position else 0
    y = el.position.y if el.position else 0
    style = _scaled_style(el.style, scale)
    node = BadgeNode(
        kind=el.type,
        left=x * scale,
        top=y * scale,
        width=el.size.width * scale if el.size else None,
        height=el.size.height * scale if el.size else None,
        style=style,
        z_index=el.z_index,
    )

    if el.type == "text":
        # Spans the badge so single-line text centres; explicit left/right
        # alignment keeps the element's own box.
        if not (style.get("textAlign") in ("left", "right") and el.size):
            node.left = 0
            node.width = badge_width
            style["textAlign"] = "center"
        node.text = _text_value(el, registration) or ""
    elif el.type == "qrCode":
        node.qr_payload = registration.registration_id or ""
        if node.width is None:
            node.width = node.height = 100 * scale
    elif el.type == "image":
        node.src = el.content or None
    elif el.type == "shape":
        style.setdefault("backgroundColor", "#EEEEEE")
        node.text = ""
        style["shape"] = el.content or "rectangle"
    elif el.type == "category":
        node.text = registration.category_name
        if not style.get("backgroundColor") and registration.category_color:
            style["backgroundColor"] = registration.category_color
    else:
        logger.debug("Skipping element %s of unknown type %r", el.id, el.type)
        return None

    style.setdefault("textAlign", "left")
    return node


def _render_elements(template: Template, registration: RegistrationRecord,
                     scale: float, preview_mode: bool) -> BadgeNode:
    px_w, px_h = badge_pixel_size(template.size.width, template.size.height, template.unit)
    width, height = px_w * scale, px_h * scale
    color, image = _background(template)
    badge = _badge_node(template, width, height, color, image,
                        template.print_settings.border_color, preview_mode, scale)

    children = []
    for el in template.elements:
        node = _element_node(el, registration, scale, width)
        if node is not None:
            children.append(node)
    # sorted() is stable, so insertion order breaks z-index ties
    badge.children = sorted(children, key=lambda n: n.z_index)
    if preview_mode:
        badge.children.append(_watermark(width, height))
    return badge


def _render_field_layout(template: Template, registration: RegistrationRecord,
                         scale: float, preview_mode: bool) -> BadgeNode:
    fields = template.fields or {}
    config = template.field_config or {}
    colors = template.colors or DEFAULT_COLORS
    size = template.size if (template.size.width and template.size.height) else DEFAULT_BADGE_SIZE
    px_w, px_h = badge_pixel_size(size.width, size.height, template.unit or "in")
    width, height = px_w * scale, px_h * scale
    color, image = _background(template, colors)
    badge = _badge_node(template, width, height, color, image,
                        colors.get("borderColor") or "#CCCCCC", preview_mode, scale)

    def text_node(key: str, text: str) -> BadgeNode:
        cfg = config.get(key) or {}
        position = cfg.get("position") or {}
        return BadgeNode(
            kind="text",
            left=_num(position.get("left")) * scale,
            top=_num(position.get("top")) * scale,
            text=text,
            style={
                "fontSize": _num(cfg.get("fontSize"), 12) * scale,
                "fontWeight": cfg.get("fontWeight") or "normal",
                "color": cfg.get("color") or colors.get("text") or "#000000",
                "textAlign": cfg.get("textAlign") or "left",
            },
        )

    children = []
    if template.logo:
        logo_cfg = config.get("logo") or {}
        position = logo_cfg.get("position") or {}
        logo_size = logo_cfg.get("size") or {}
        children.append(BadgeNode(
            kind="image",
            left=_num(position.get("left"), 10) * scale,
            top=_num(position.get("top"), 10) * scale,
            width=_num(logo_size.get("width"), 50) * scale,
            src=template.logo,
        ))
    if fields.get("name"):
        name = f"{registration.first_name} {registration.last_name}".strip()
        children.append(text_node("name", name or registration.display_name))
    for key in ("organization", "registrationId", "category", "country"):
        value = registration.field_value(key)
        if fields.get(key) and value:
            children.append(text_node(key, value))
    if fields.get("qrCode") and registration.registration_id:
        qr_cfg = config.get("qrCode") or {}
        position = qr_cfg.get("position") or {}
        side = _num(qr_cfg.get("size"), 100) * scale
        children.append(BadgeNode(
            kind="qrCode",
            left=_num(position.get("left"), 100) * scale,
            top=_num(position.get("top"), 135) * scale,
            width=side,
            height=side,
            qr_payload=registration.registration_id,
            style={"backgroundColor": colors.get("background") or "#FFFFFF",
                   "color": colors.get("text") or "#000000"},
        ))

    badge.children = children
    if preview_mode:
        badge.children.append(_watermark(width, height))
    return badge


def _has_field_layout(template: Template) -> bool:
    return isinstance(template.fields, dict) and isinstance(template.field_config, dict)


def render_badge(template: Optional[Template],
                 registration: Optional[RegistrationRecord] = None,
                 scale: float = 1.0, preview_mode: bool = False) -> BadgeNode:
    """Lay out ``template`` for ``registration`` at ``scale`` screen pixels per reference pixel.

    Templates are free-form user data: one with neither elements nor a usable
    fields/fieldConfig pair still renders, as the default card.
    """
    registration = registration or RegistrationRecord()
    if template is not None and template.elements:
        return _render_elements(template, registration, scale, preview_mode)
    if template is not None and _has_field_layout(template):
        return _render_field_layout(template, registration, scale, preview_mode)

    logger.debug("Template has no elements or field layout; rendering default card")
    base = template or Template(size=DEFAULT_BADGE_SIZE)
    fallback = Template(
        size=base.size,
        unit=base.unit or "in",
        background=base.background,
        background_image=base.background_image,
        print_settings=base.print_settings,
        fields=dict(FALLBACK_FIELDS),
        field_config=copy.deepcopy(FALLBACK_FIELD_CONFIG),
        colors=dict(base.colors or DEFAULT_COLORS),
    )
    return _render_field_layout(fallback, registration, scale, preview_mode)
