"""Image loading and preview scale helpers."""

import base64
import logging
from functools import lru_cache
from io import BytesIO
from typing import Optional

import requests
from PIL import Image

logger = logging.getLogger("OnsiteAtlas.utils.images")

FETCH_TIMEOUT = 15


def compute_scale_factor(
    image_width: float,
    image_height: float,
    canvas_width: float,
    canvas_height: float,
) -> float:
    """Compute uniform scale factor to fit image within canvas bounds."""
    if image_width <= 0 or image_height <= 0:
        return 1.0
    scale_x = canvas_width / image_width
    scale_y = canvas_height / image_height
    return min(scale_x, scale_y)


@lru_cache(maxsize=32)
def _fetch_bytes(url: str) -> bytes:
    resp = requests.get(url, timeout=FETCH_TIMEOUT)
    resp.raise_for_status()
    return resp.content


def _read_source(src: str) -> bytes:
    if src.startswith("data:"):
        _, _, payload = src.partition(",")
        return base64.b64decode(payload)
    if src.startswith(("http://", "https://")):
        return _fetch_bytes(src)
    with open(src, "rb") as f:
        return f.read()


def load_image(src: Optional[str]) -> Optional[Image.Image]:
    """Open a path, http(s) URL or data URI as RGBA; None if it cannot be read."""
    if not src:
        return None
    try:
        img = Image.open(BytesIO(_read_source(src)))
        return img.convert("RGBA")
    except (OSError, ValueError, requests.RequestException) as e:
        logger.warning("Could not load image %s: %s", src[:80], e)
        return None
