"""Letterbox reference images onto a fixed-width canvas of the requested ratio."""
from __future__ import annotations

import io
import logging
from typing import Tuple

from PIL import Image as PILImage, UnidentifiedImageError

from image_studio.errors import CanvasError, ImageDecodeError
from image_studio.models import ImageAsset

logger = logging.getLogger("image-studio")

CANVAS_WIDTH = 1024
BACKGROUND = (255, 255, 255)
OUTPUT_MIME = "image/jpeg"
JPEG_QUALITY = 95


def parse_ratio(ratio: str | None) -> float:
    """Turn ``"W:H"`` into ``W / H``.

    Unparseable or zero components fall back to a square canvas; the fallback
    is logged so it never happens silently.
    """

    try:
        width_text, height_text = str(ratio).split(":", 1)
        width, height = float(width_text), float(height_text)
    except (TypeError, ValueError):
        logger.warning("[canvas.ratio] unparseable ratio=%r, using 1:1", ratio)
        return 1.0
    if not (width > 0 and height > 0):
        logger.warning("[canvas.ratio] non-positive ratio=%r, using 1:1", ratio)
        return 1.0
    return width / height


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def canvas_size(ratio: str | None, width: int = CANVAS_WIDTH) -> Tuple[int, int]:
    return width, max(1, _round_half_up(width / parse_ratio(ratio)))


def fit_box(
    source: Tuple[int, int], target: Tuple[int, int]
) -> Tuple[int, int, int, int]:
    """Return ``(x, y, w, h)`` placing *source* inside *target* without cropping."""

    src_w, src_h = source
    dst_w, dst_h = target
    if src_w / src_h > dst_w / dst_h:
        draw_w = dst_w
        draw_h = max(1, _round_half_up(dst_w * src_h / src_w))
        return 0, (dst_h - draw_h) // 2, draw_w, draw_h
    draw_h = dst_h
    draw_w = max(1, _round_half_up(dst_h * src_w / src_h))
    return (dst_w - draw_w) // 2, 0, draw_w, draw_h


def _decode(asset: ImageAsset) -> PILImage.Image:
    try:
        image = PILImage.open(io.BytesIO(asset.data))
        image.load()
    except (UnidentifiedImageError, PILImage.DecompressionBombError, OSError, ValueError) as exc:
        raise ImageDecodeError(f"Failed to decode reference image: {exc}") from exc
    if image.width <= 0 or image.height <= 0:
        raise ImageDecodeError("Reference image has no pixels")
    return image


def normalize(asset: ImageAsset, ratio: str | None, *, width: int = CANVAS_WIDTH) -> ImageAsset:
    """Letterbox *asset* on a white canvas matching *ratio* and re-encode it as JPEG."""

    source = _decode(asset)
    size = canvas_size(ratio, width)

    try:
        canvas = PILImage.new("RGB", size, BACKGROUND)
    except (MemoryError, ValueError) as exc:
        raise CanvasError(f"Unable to allocate a {size[0]}x{size[1]} canvas") from exc

    x, y, draw_w, draw_h = fit_box(source.size, size)
    resized = source.convert("RGBA").resize((draw_w, draw_h), PILImage.LANCZOS)
    canvas.paste(resized, (x, y), resized)

    bio = io.BytesIO()
    canvas.save(bio, "JPEG", quality=JPEG_QUALITY)
    logger.debug(
        "[canvas.normalize] ratio=%s source=%sx%s canvas=%sx%s box=%s",
        ratio,
        source.width,
        source.height,
        size[0],
        size[1],
        (x, y, draw_w, draw_h),
    )
    return ImageAsset(data=bio.getvalue(), mime_type=OUTPUT_MIME)
