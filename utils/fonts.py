"""System font discovery and CSS-style font resolution for the rasterizer."""

import logging
import os
import sys
from typing import Dict, List, Optional

from PIL import ImageFont

logger = logging.getLogger("OnsiteAtlas.utils.fonts")

# Cache: display name ("Arial Bold") -> file path
_font_cache: Optional[Dict[str, str]] = None

# CSS generic families -> installed families to try, in order
GENERIC_FAMILIES = {
    "sans-serif": ("Arial", "Helvetica", "Liberation Sans", "DejaVu Sans", "Noto Sans"),
    "serif": ("Times New Roman", "Liberation Serif", "DejaVu Serif", "Noto Serif"),
    "monospace": ("Courier New", "Liberation Mono", "DejaVu Sans Mono"),
}

_STYLE_SUFFIXES = (" Bold Italic", " Bold", " Italic", " Regular", " Oblique")

BOLD_WEIGHTS = {"bold", "bolder", "600", "700", "800", "900"}


def _font_dirs() -> List[str]:
    dirs = []
    project_fonts = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "fonts")
    if os.path.isdir(project_fonts):
        dirs.append(project_fonts)

    if sys.platform == "win32":
        windir = os.environ.get("WINDIR", r"C:\Windows")
        dirs.append(os.path.join(windir, "Fonts"))
    elif sys.platform == "darwin":
        dirs.extend(["/System/Library/Fonts", "/Library/Fonts",
                     os.path.expanduser("~/Library/Fonts")])
    else:
        for d in ("/usr/share/fonts", "/usr/local/share/fonts",
                  os.path.expanduser("~/.local/share/fonts")):
            if os.path.isdir(d):
                for root, _, files in os.walk(d):
                    if any(f.lower().endswith((".ttf", ".otf")) for f in files):
                        dirs.append(root)
    return [d for d in dirs if os.path.isdir(d)]


def discover_fonts() -> Dict[str, str]:
    """Map font display names ("DejaVu Sans Bold") to file paths, cached."""
    global _font_cache
    if _font_cache is not None:
        return _font_cache

    fonts: Dict[str, str] = {}
    for font_dir in _font_dirs():
        for entry in os.scandir(font_dir):
            if not entry.is_file() or not entry.name.lower().endswith((".ttf", ".otf")):
                continue
            try:
                family, style = ImageFont.truetype(entry.path, size=12).getname()
            except OSError:
                continue
            if not family:
                continue
            display = family if not style or style.lower() == "regular" else f"{family} {style}"
            fonts.setdefault(display, entry.path)

    logger.debug("Discovered %d fonts", len(fonts))
    _font_cache = dict(sorted(fonts.items()))
    return _font_cache


def _candidates(family_list: str) -> List[str]:
    """Expand a CSS font-family list ("Arial, sans-serif") into family names."""
    names = []
    for part in (family_list or "").split(","):
        name = part.strip().strip("'\"")
        if not name:
            continue
        names.extend(GENERIC_FAMILIES.get(name.lower(), (name,)))
    names.extend(GENERIC_FAMILIES["sans-serif"])
    return names


def find_font_path(family_list: str, bold: bool = False, italic: bool = False) -> Optional[str]:
    """Best installed file for the first available family in ``family_list``."""
    fonts = discover_fonts()
    lowered = {name.lower(): path for name, path in fonts.items()}

    style = " ".join(s for s, on in (("Bold", bold), ("Italic", italic)) if on)
    for family in _candidates(family_list):
        key = family.lower()
        if style and f"{key} {style.lower()}" in lowered:
            return lowered[f"{key} {style.lower()}"]
        if key in lowered:
            return lowered[key]
    return None


def is_bold(weight) -> bool:
    return str(weight or "").lower() in BOLD_WEIGHTS


def load_font(family_list: str, size: float, bold: bool = False, italic: bool = False):
    """Load a PIL font, falling back to Pillow's built-in scalable font."""
    size = max(1, int(round(size)))
    path = find_font_path(family_list, bold, italic)
    if path:
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            logger.debug("Could not open font file %s", path)
    return ImageFont.load_default(size=size)


def get_font_families() -> List[str]:
    """Sorted unique family names for the properties editor."""
    families = set()
    for name in discover_fonts():
        for suffix in _STYLE_SUFFIXES:
            if name.endswith(suffix):
                name = name[:-len(suffix)]
                break
        if name.strip():
            families.add(name.strip())
    return sorted(families)
