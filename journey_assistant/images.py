"""Helpers for turning screenshots on disk or in memory into image payloads."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Iterable, List

from PIL import Image, UnidentifiedImageError

from .models import ImagePayload

logger = logging.getLogger(__name__)

_MIME_TYPES = {"PNG": "image/png", "JPEG": "image/jpeg", "WEBP": "image/webp", "GIF": "image/gif"}


def from_pil(image: Image.Image, *, image_format: str = "png") -> ImagePayload:
    """Encode a Pillow image; formats the model APIs reject are re-encoded as PNG."""

    fmt = image_format.upper()
    if fmt == "JPG":
        fmt = "JPEG"
    if fmt not in _MIME_TYPES:
        fmt = "PNG"
    if fmt == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return ImagePayload(
        data=buffer.getvalue(),
        width=image.width,
        height=image.height,
        mime_type=_MIME_TYPES[fmt],
    )


def load_image(path: Path | str) -> ImagePayload:
    """Read an image file; raises ``ValueError`` when it is not a readable image."""

    source = Path(path).expanduser()
    try:
        with Image.open(source) as image:
            image.load()
            fmt = image.format or "PNG"
            if fmt in _MIME_TYPES:
                return ImagePayload(
                    data=source.read_bytes(),
                    width=image.width,
                    height=image.height,
                    mime_type=_MIME_TYPES[fmt],
                )
            logger.debug("Re-encoding %s image %s as PNG", fmt, source)
            return from_pil(image)
    except UnidentifiedImageError as exc:
        raise ValueError(f"{source} is not a readable image") from exc


def load_images(paths: Iterable[Path | str]) -> List[ImagePayload]:
    return [load_image(path) for path in paths]
