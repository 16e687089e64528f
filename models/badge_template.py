"""Badge template data models with JSON serialization."""

import copy
import json
import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

ELEMENT_TYPES = ("text", "qrCode", "image", "shape", "category")
FIELD_TYPES = (
    "name", "organization", "registrationId", "category", "country",
    "custom", "qrCode", "image", "shape",
)
UNITS = ("in", "cm", "mm")
ORIENTATIONS = ("portrait", "landscape")

# Filled into every element style by resolve_defaults()
STYLE_DEFAULTS = {"opacity": 1, "zIndex": 1, "rotation": 0}

# Style keys the renderer does arithmetic on
NUMERIC_STYLE_KEYS = ("fontSize", "borderWidth", "borderRadius", "padding",
                      "opacity", "zIndex", "rotation")


def style_number(value) -> Optional[float]:
    """Numeric style value, accepting CSS-ish strings like "16px"; None if unusable."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip().lower()
        if text.endswith("px"):
            text = text[:-2].strip()
        try:
            number = float(text)
        except ValueError:
            return None
        if not math.isfinite(number):
            return None
        return int(number) if number.is_integer() else number
    return None


def clean_style(style: dict) -> dict:
    """Copy of ``style`` with numeric keys coerced; unusable values dropped."""
    result = copy.deepcopy(style)
    for key in NUMERIC_STYLE_KEYS:
        if key in result:
            number = style_number(result[key])
            if number is None:
                del result[key]
            else:
                result[key] = number
    return result


@dataclass
class Position:
    """Badge-local position in reference pixels (100 px per inch)."""
    x: float = 0
    y: float = 0

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, d: dict) -> "Position":
        return cls(x=d.get("x") or 0, y=d.get("y") or 0)


@dataclass
class Size:
    width: float = 0
    height: float = 0

    def to_dict(self) -> dict:
        return {"width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, d: dict) -> "Size":
        return cls(width=d.get("width") or 0, height=d.get("height") or 0)


@dataclass
class Element:
    """One positioned visual element on the badge."""
    id: str = ""
    type: str = ""
    field_type: str = ""  # data binding: "custom", "name", "organization", ...
    content: str = ""
    position: Optional[Position] = None
    size: Optional[Size] = None  # optional for text
    style: Dict[str, Any] = field(default_factory=dict)

    @property
    def width(self) -> float:
        return self.size.width if self.size else 0

    @property
    def height(self) -> float:
        return self.size.height if self.size else 0

    @property
    def z_index(self) -> float:
        z = self.style.get("zIndex")
        return z if isinstance(z, (int, float)) else 1

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "type": self.type,
            "fieldType": self.field_type,
            "content": self.content,
            "position": self.position.to_dict() if self.position else None,
            "style": copy.deepcopy(self.style),
        }
        if self.size is not None:
            d["size"] = self.size.to_dict()
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "Element":
        position = d.get("position")
        size = d.get("size")
        return cls(
            id=str(d.get("id") or ""),
            type=d.get("type") or "",
            field_type=d.get("fieldType") or "",
            content=d.get("content") or "",
            position=Position.from_dict(position) if isinstance(position, dict) else None,
            size=Size.from_dict(size) if isinstance(size, dict) else None,
            style=copy.deepcopy(d.get("style") or {}),
        )


@dataclass
class PrintSettings:
    show_border: bool = False
    border_width: float = 1
    border_color: str = "#CCCCCC"
    padding: float = 0
    margin: float = 0

    def to_dict(self) -> dict:
        return {
            "showBorder": self.show_border,
            "borderWidth": self.border_width,
            "borderColor": self.border_color,
            "padding": self.padding,
            "margin": self.margin,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "PrintSettings":
        ps = cls()
        return cls(
            show_border=bool(d.get("showBorder", ps.show_border)),
            border_width=d.get("borderWidth", ps.border_width),
            border_color=d.get("borderColor") or ps.border_color,
            padding=d.get("padding", ps.padding),
            margin=d.get("margin", ps.margin),
        )


@dataclass
class Template:
    """Complete badge template: physical size, background, elements, print options.

    ``fields``/``field_config``/``colors`` hold the older toggle-based layout
    (``{"name": True, ...}`` plus per-field font and top/left offsets) that the
    renderer still accepts when a template has no elements.
    """
    name: str = "Untitled Badge"
    description: str = ""
    id: Optional[str] = None
    event: Optional[str] = None
    is_global: bool = False
    is_default: bool = False
    orientation: str = "portrait"  # informational only, never transposes size
    size: Size = field(default_factory=lambda: Size(3.5, 5))
    unit: str = "in"
    background: str = "#FFFFFF"
    background_image: Optional[str] = None
    logo: Optional[str] = None
    elements: List[Element] = field(default_factory=list)
    print_settings: PrintSettings = field(default_factory=PrintSettings)
    fields: Optional[Dict[str, bool]] = None
    field_config: Optional[Dict[str, Any]] = None
    colors: Optional[Dict[str, str]] = None

    def find_element(self, element_id: str) -> Optional[Element]:
        for el in self.elements:
            if el.id == element_id:
                return el
        return None

    def element_ids(self) -> List[str]:
        return [el.id for el in self.elements]

    def clone(self) -> "Template":
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        d = {
            "name": self.name,
            "description": self.description,
            "event": self.event,
            "isGlobal": self.is_global,
            "isDefault": self.is_default,
            "orientation": self.orientation,
            "size": self.size.to_dict(),
            "unit": self.unit,
            "background": self.background,
            "backgroundImage": self.background_image,
            "logo": self.logo,
            "elements": [el.to_dict() for el in self.elements],
            "printSettings": self.print_settings.to_dict(),
        }
        if self.id is not None:
            d["_id"] = self.id
        if self.fields is not None:
            d["fields"] = copy.deepcopy(self.fields)
        if self.field_config is not None:
            d["fieldConfig"] = copy.deepcopy(self.field_config)
        if self.colors is not None:
            d["colors"] = dict(self.colors)
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "Template":
        d = dict(d)  # avoid mutating the input
        defaults = cls()
        event = d.get("event")
        if isinstance(event, dict):
            event = event.get("_id") or event.get("id")
        size = d.get("size")
        print_settings = d.get("printSettings")
        fields = d.get("fields")
        field_config = d.get("fieldConfig")
        colors = d.get("colors")
        template_id = d.get("_id") or d.get("id")
        return cls(
            name=d.get("name") or defaults.name,
            description=d.get("description") or "",
            id=str(template_id) if template_id else None,
            event=str(event) if event else None,
            is_global=bool(d.get("isGlobal", False)),
            is_default=bool(d.get("isDefault", False)),
            orientation=d.get("orientation") or defaults.orientation,
            size=Size.from_dict(size) if isinstance(size, dict) else defaults.size,
            unit=d.get("unit") or defaults.unit,
            background=d.get("background") or defaults.background,
            background_image=d.get("backgroundImage") or None,
            logo=d.get("logo") or None,
            elements=[Element.from_dict(e) for e in d.get("elements") or []
                      if isinstance(e, dict)],
            print_settings=(PrintSettings.from_dict(print_settings)
                            if isinstance(print_settings, dict) else PrintSettings()),
            fields=copy.deepcopy(fields) if isinstance(fields, dict) else None,
            field_config=copy.deepcopy(field_config) if isinstance(field_config, dict) else None,
            colors=dict(colors) if isinstance(colors, dict) else None,
        )

    def save_json(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load_json(cls, path: str) -> "Template":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))


def element_defaults(element_type: str) -> Optional[dict]:
    """Type-specific defaults for a newly added element, or None if unknown."""
    if element_type == "text":
        return {
            "field_type": "custom",
            "content": "New Text",
            "size": Size(150, 30),
            "style": {"fontSize": 16, "fontFamily": "Arial", "fontWeight": "normal",
                      "color": "#000000", "backgroundColor": "transparent"},
        }
    if element_type == "qrCode":
        return {
            "field_type": "qrCode",
            "content": "",
            "size": Size(80, 80),
            "style": {"backgroundColor": "transparent", "padding": 0},
        }
    if element_type == "image":
        return {
            "field_type": "image",
            "content": "",
            "size": Size(100, 100),
            "style": {"opacity": 1, "borderRadius": 0},
        }
    if element_type == "shape":
        return {
            "field_type": "shape",
            "content": "rectangle",
            "size": Size(100, 50),
            "style": {"backgroundColor": "#E5E7EB", "borderColor": "#9CA3AF",
                      "borderWidth": 1, "borderRadius": 0, "opacity": 1},
        }
    if element_type == "category":
        return {
            "field_type": "category",
            "content": "",
            "size": Size(120, 30),
            "style": {"fontSize": 14, "fontFamily": "Arial", "fontWeight": "normal",
                      "color": "#FFFFFF", "backgroundColor": "#3B82F6", "padding": 5,
                      "borderRadius": 16, "textAlign": "center"},
        }
    return None


def default_badge_template() -> Template:
    """Standard badge: name, QR code, registration ID and category."""
    return Template(
        name="Standard Badge Template",
        description="Default template with name, QR code, registration ID and category",
        is_global=True,
        orientation="portrait",
        size=Size(3.375, 5.375),
        unit="in",
        background="#FFFFFF",
        elements=[
            Element(
                id="name", type="text", field_type="name",
                position=Position(100, 100), size=Size(200, 40),
                style={"fontSize": 24, "fontFamily": "Arial", "fontWeight": "bold",
                       "color": "#000000", "backgroundColor": "transparent",
                       "textAlign": "center", "zIndex": 1},
            ),
            Element(
                id="qr", type="qrCode", field_type="qrCode",
                position=Position(150, 150), size=Size(100, 100),
                style={"backgroundColor": "transparent", "padding": 0, "zIndex": 2},
            ),
            Element(
                id="regid", type="text", field_type="registrationId",
                position=Position(125, 260), size=Size(150, 30),
                style={"fontSize": 16, "fontFamily": "Arial", "fontWeight": "normal",
                       "color": "#666666", "backgroundColor": "transparent",
                       "textAlign": "center", "zIndex": 3},
            ),
            Element(
                id="category", type="category", field_type="category",
                position=Position(140, 300), size=Size(120, 30),
                style={"fontSize": 14, "fontFamily": "Arial", "fontWeight": "normal",
                       "color": "#FFFFFF", "backgroundColor": "#3B82F6", "padding": 5,
                       "borderRadius": 16, "textAlign": "center", "zIndex": 4},
            ),
        ],
        print_settings=PrintSettings(show_border=True, border_width=1,
                                     border_color="#CCCCCC", padding=5, margin=5),
    )


def resolve_defaults(template: Template) -> Template:
    """Return a fully populated copy of ``template``.

    Optional style keys and template-level fallbacks are resolved once here,
    at load time, so later passes can read them directly.
    """
    elements = []
    for el in template.elements:
        style = dict(STYLE_DEFAULTS)
        style.update(clean_style(el.style))
        elements.append(replace(
            el,
            position=replace(el.position) if el.position else None,
            size=replace(el.size) if el.size else None,
            style=style,
        ))
    return replace(
        template,
        unit=template.unit or "in",
        background=template.background or "#FFFFFF",
        orientation=template.orientation or "portrait",
        size=replace(template.size),
        elements=elements,
        print_settings=replace(template.print_settings),
        fields=copy.deepcopy(template.fields),
        field_config=copy.deepcopy(template.field_config),
        colors=dict(template.colors) if template.colors is not None else None,
    )
