"""Helpers for ``data:<mime>;base64,<payload>`` strings."""
from __future__ import annotations

import base64
import binascii
import re
from typing import Tuple

from image_studio.errors import ImageDecodeError

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[^;,]*)(?:;[^,]*)?;base64,(?P<data>.*)$", re.S)
_IMAGE_PREFIX_RE = re.compile(r"^data:image/(\w+);base64,")

DEFAULT_EXT = "png"


def build_data_url(mime_type: str, data: bytes) -> str:
    encoded = base64.b64encode(bytes(data)).decode("ascii")
    return f"data:{mime_type or 'image/png'};base64,{encoded}"


def wrap_base64(mime_type: str, payload: str) -> str:
    """Wrap an already-encoded base64 payload without re-encoding it."""

    return f"data:{mime_type};base64,{payload}"


def is_data_url(value: object) -> bool:
    return isinstance(value, str) and value.startswith("data:")


def parse_data_url(value: str) -> Tuple[str, bytes]:
    """Split *value* into ``(mime_type, raw_bytes)``."""

    if not isinstance(value, str):
        raise ImageDecodeError("image must be a base64 data URL string")
    match = _DATA_URL_RE.match(value.strip())
    if not match:
        raise ImageDecodeError("Invalid image data URL.")
    try:
        data = base64.b64decode(match.group("data"), validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ImageDecodeError("Invalid base64 payload in data URL.") from exc
    if not data:
        raise ImageDecodeError("Data URL carries no image bytes.")
    return match.group("mime") or "application/octet-stream", data


def image_mime_and_ext(value: str) -> Tuple[str, str]:
    """Return ``(mime, ext)`` from a ``data:image/<ext>`` prefix, ``png`` by default."""

    match = _IMAGE_PREFIX_RE.match(value or "")
    ext = match.group(1) if match else DEFAULT_EXT
    return f"image/{ext}", ext


def strip_image_prefix(value: str) -> bytes:
    """Decode the payload after a ``data:...;base64,`` prefix.

    Strings without a prefix are treated as bare base64.
    """

    payload = value
    if value.startswith("data:") and "," in value:
        payload = value.split(",", 1)[1]
    try:
        return base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ImageDecodeError("Invalid base64 payload in data URL.") from exc
