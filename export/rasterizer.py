"""Rasterizes a BadgeNode tree into a Pillow image."""

import logging
from typing import Optional, Tuple

import qrcode
from PIL import Image, ImageColor, ImageDraw, ImageOps

from export.badge_renderer import BadgeNode
from utils.fonts import is_bold, load_font
from utils.image_utils import load_image

logger = logging.getLogger("OnsiteAtlas.export.rasterizer")

MIN_FONT_SIZE = 8
DEFAULT_TEXT_COLOR = (0, 0, 0, 255)
WHITE = (255, 255, 255, 255)

Color = Tuple[int, int, int, int]


def parse_color(value, default: Optional[Color] = None) -> Optional[Color]:
    """CSS-ish colour to RGBA; 'transparent' gives None."""
    if not value or not isinstance(value, str):
        return default
    value = value.strip()
    if value.lower() in ("transparent", "none"):
        return None
    try:
        return ImageColor.getcolor(value, "RGBA")
    except ValueError:
        logger.debug("Unrecognised colour %r", value)
        return default


def _px(value) -> int:
    return int(round(value or 0))


def _font_for(style: dict, size: Optional[float] = None):
    return load_font(
        style.get("fontFamily") or "Arial, sans-serif",
        size if size is not None else (style.get("fontSize") or 16),
        bold=is_bold(style.get("fontWeight")),
        italic=str(style.get("fontStyle", "")).lower() == "italic",
    )


def _measure(draw: ImageDraw.ImageDraw, text: str, font) -> Tuple[int, int, Tuple]:
    bbox = draw.textbbox((0, 0), text, font=font)
    return bbox[2] - bbox[0], bbox[3] - bbox[1], bbox


def _text_extent(node: BadgeNode) -> Tuple[int, int]:
    """Content box of a text node whose width or height is unset."""
    probe = ImageDraw.Draw(Image.new("RGBA", (1, 1)))
    pad = node.style.get("padding") or 0
    w, h, _ = _measure(probe, node.text or " ", _font_for(node.style))
    return w + 2 * _px(pad) + 2, h + 2 * _px(pad) + 2


def _paint_box(draw: ImageDraw.ImageDraw, size: Tuple[int, int], style: dict,
               default_fill: Optional[Color] = None) -> None:
    fill = parse_color(style.get("backgroundColor"), default_fill)
    border_width = _px(style.get("borderWidth"))
    outline = parse_color(style.get("borderColor"), DEFAULT_TEXT_COLOR) if border_width else None
    if fill is None and outline is None:
        return
    box = [0, 0, size[0] - 1, size[1] - 1]
    radius = _px(style.get("borderRadius"))
    if style.get("shape") in ("circle", "ellipse"):
        draw.ellipse(box, fill=fill, outline=outline, width=border_width or 1)
    else:
        draw.rounded_rectangle(box, radius=radius, fill=fill, outline=outline,
                               width=border_width or 1)


def _draw_text(draw: ImageDraw.ImageDraw, size: Tuple[int, int], text: str, style: dict) -> None:
    """Single line, centred vertically, shrunk until it fits the box width."""
    if not text:
        return
    pad = _px(style.get("padding"))
    avail = max(1, size[0] - 2 * pad)
    font_size = style.get("fontSize") or 16
    font = _font_for(style, font_size)
    text_w, text_h, bbox = _measure(draw, text, font)
    while text_w > avail and font_size > MIN_FONT_SIZE:
        font_size -= 1
        font = _font_for(style, font_size)
        text_w, text_h, bbox = _measure(draw, text, font)

    align = style.get("textAlign") or "left"
    if align == "center":
        x = (size[0] - text_w) / 2
    elif align == "right":
        x = size[0] - pad - text_w
    else:
        x = pad
    y = (size[1] - text_h) / 2
    fill = parse_color(style.get("color"), DEFAULT_TEXT_COLOR) or DEFAULT_TEXT_COLOR
    draw.text((x - bbox[0], y - bbox[1]), text, fill=fill, font=font)


def _qr_image(payload: str, side: int, style: dict) -> Image.Image:
    qr = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_M, border=1)
    qr.add_data(payload)
    qr.make(fit=True)
    fg = parse_color(style.get("color"), DEFAULT_TEXT_COLOR) or DEFAULT_TEXT_COLOR
    bg = parse_color(style.get("backgroundColor"), WHITE) or WHITE
    img = qr.make_image(fill_color=fg[:3], back_color=bg[:3]).convert("RGBA")
    return img.resize((side, side), Image.NEAREST)


def _rounded_mask(size: Tuple[int, int], radius: int) -> Image.Image:
    mask = Image.new("L", size, 0)
    ImageDraw.Draw(mask).rounded_rectangle([0, 0, size[0] - 1, size[1] - 1],
                                           radius=radius, fill=255)
    return mask


def _render_layer(node: BadgeNode) -> Optional[Image.Image]:
    """Draw one node onto its own transparent layer, or None if it has nothing to show."""
    style = node.style
    width, height = node.width, node.height

    source = None
    if node.kind == "image":
        source = load_image(node.src)
        if source is None:
            return None
        if width is None:
            width = source.width
        if height is None:
            height = width * source.height / max(source.width, 1)
    elif node.kind in ("text", "category", "label") and (width is None or height is None):
        auto_w, auto_h = _text_extent(node)
        width = auto_w if width is None else width
        height = auto_h if height is None else height
    elif width is None or height is None:
        width = width or height or 0
        height = height or width

    size = (max(1, _px(width)), max(1, _px(height)))
    layer = Image.new("RGBA", size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)

    if node.kind in ("text", "category", "label"):
        _paint_box(draw, size, style)
        _draw_text(draw, size, node.text, style)
    elif node.kind == "shape":
        _paint_box(draw, size, style, default_fill=parse_color("#EEEEEE"))
    elif node.kind == "qrCode":
        _paint_box(draw, size, style)
        side = min(size)
        pad = min(_px(style.get("padding")), side // 4)
        code = _qr_image(node.qr_payload or "", max(1, side - 2 * pad), style)
        layer.alpha_composite(code, dest=((size[0] - code.width) // 2,
                                          (size[1] - code.height) // 2))
    elif node.kind == "image":
        picture = source.resize(size, Image.LANCZOS)
        radius = _px(style.get("borderRadius"))
        if radius:
            alpha = Image.new("L", size, 0)
            alpha.paste(picture.getchannel("A"), (0, 0), _rounded_mask(size, radius))
            picture.putalpha(alpha)
        layer.alpha_composite(picture)
        if style.get("borderWidth"):
            _paint_box(draw, size, {**style, "backgroundColor": "transparent"})
    else:
        return None
    return layer


def _apply_opacity(layer: Image.Image, opacity) -> Image.Image:
    if not isinstance(opacity, (int, float)) or opacity >= 1:
        return layer
    opacity = max(0.0, float(opacity))
    alpha = layer.getchannel("A").point(lambda a: int(a * opacity))
    layer.putalpha(alpha)
    return layer


def _draw_node(badge: Image.Image, node: BadgeNode) -> None:
    layer = _render_layer(node)
    if layer is None:
        return
    layer = _apply_opacity(layer, node.style.get("opacity"))

    x, y = _px(node.left), _px(node.top)
    rotation = node.style.get("rotation")
    if isinstance(rotation, (int, float)) and rotation % 360:
        # rotate about the centre, as a CSS transform would
        w, h = layer.size
        layer = layer.rotate(-rotation, resample=Image.BICUBIC, expand=True)
        x -= (layer.width - w) // 2
        y -= (layer.height - h) // 2

    overlay = Image.new("RGBA", badge.size, (0, 0, 0, 0))
    overlay.paste(layer, (x, y))
    badge.alpha_composite(overlay)


def _draw_border(badge: Image.Image, border: dict) -> None:
    width = max(1, _px(border.get("width", 1)))
    color = parse_color(border.get("color"), parse_color("#CCCCCC"))
    if color is None:
        return
    draw = ImageDraw.Draw(badge)
    right, bottom = badge.width - 1, badge.height - 1
    if not border.get("dashed"):
        draw.rectangle([0, 0, right, bottom], outline=color, width=width)
        return
    dash = 4
    for start in range(0, badge.width, dash * 2):
        end = min(start + dash - 1, right)
        draw.line([(start, 0), (end, 0)], fill=color, width=width)
        draw.line([(start, bottom), (end, bottom)], fill=color, width=width)
    for start in range(0, badge.height, dash * 2):
        end = min(start + dash - 1, bottom)
        draw.line([(0, start), (0, end)], fill=color, width=width)
        draw.line([(right, start), (right, end)], fill=color, width=width)


def rasterize_badge(node: BadgeNode) -> Image.Image:
    """Draw a badge tree at its own pixel size; returns an RGBA image."""
    size = (max(1, _px(node.width)), max(1, _px(node.height)))
    background = parse_color(node.style.get("backgroundColor"), WHITE)
    badge = Image.new("RGBA", size, background or (0, 0, 0, 0))

    if node.src:
        picture = load_image(node.src)
        if picture is not None:
            badge.alpha_composite(ImageOps.fit(picture, size, Image.LANCZOS))

    for child in node.children:
        _draw_node(badge, child)

    border = node.style.get("border")
    if border:
        _draw_border(badge, border)
    return badge
