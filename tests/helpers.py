from __future__ import annotations

import base64
from io import BytesIO

from PIL import Image

from image_studio.models import ImageAsset


def make_png(size: tuple[int, int], color: tuple[int, int, int] = (255, 0, 0)) -> bytes:
    image = Image.new("RGB", size, color)
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def make_asset(size: tuple[int, int] = (120, 120), color: tuple[int, int, int] = (255, 0, 0)) -> ImageAsset:
    return ImageAsset(data=make_png(size, color), mime_type="image/png")


def make_data_url(size: tuple[int, int] = (120, 120), color: tuple[int, int, int] = (255, 0, 0)) -> str:
    encoded = base64.b64encode(make_png(size, color)).decode("ascii")
    return f"data:image/png;base64,{encoded}"
