"""Resolve the single image carried by a provider's JSON response.

Providers (and versions of the same provider) place the image in different
places. The known shapes are tried in a fixed order and the first one that
is present wins:

1. ``data[0].url``
2. ``data[0].b64_json``
3. ``output[0]``
4. ``images[0]``
5. ``image``

Strings are returned verbatim when they already are data URLs, fetched when
they are http(s) URLs, and otherwise treated as bare base64 in the requested
output format. Objects are resolved through their ``url`` or ``b64_json``
field.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Iterator, Optional, Tuple

import httpx

from image_studio.errors import ContentMissingError, ProviderError
from image_studio.services.data_url import build_data_url, wrap_base64

logger = logging.getLogger("image-studio")

Fetcher = Callable[[str], Tuple[str, bytes]]


class HttpImageFetcher:
    """Download remote image bytes with httpx."""

    def __init__(self, *, timeout: float = 60, proxy: str | None = None) -> None:
        self.timeout = timeout
        self.proxy = proxy

    def __call__(self, url: str) -> Tuple[str, bytes]:
        try:
            with httpx.Client(proxy=self.proxy, timeout=self.timeout, follow_redirects=True) as client:
                r = client.get(url)
        except httpx.HTTPError as exc:
            raise ProviderError(f"Failed to download image: {exc}") from exc
        if r.status_code >= 400:
            raise ProviderError(
                f"Failed to download image ({r.status_code})", status=r.status_code
            )
        if not r.content:
            raise ContentMissingError(f"Downloaded image at {url} was empty")
        mime_type = (r.headers.get("content-type") or "image/png").split(";", 1)[0].strip()
        return mime_type or "image/png", r.content


def _first(value: Any) -> Any:
    if isinstance(value, list) and value:
        return value[0]
    return None


def _candidates(payload: Any) -> Iterator[Tuple[str, Any]]:
    if not isinstance(payload, dict):
        return
    head = _first(payload.get("data"))
    if isinstance(head, dict):
        if head.get("url"):
            yield "data[0].url", head["url"]
        if head.get("b64_json"):
            yield "data[0].b64_json", head["b64_json"]
    for key in ("output", "images"):
        item = _first(payload.get(key))
        if item:
            yield f"{key}[0]", item
    if payload.get("image"):
        yield "image", payload["image"]


def _resolve_string(value: str, output_format: str, fetch: Fetcher) -> str:
    if value.startswith("data:"):
        return value
    if value.startswith("http://") or value.startswith("https://"):
        mime_type, data = fetch(value)
        return build_data_url(mime_type, data)
    return wrap_base64(f"image/{output_format}", value)


def _resolve(value: Any, output_format: str, fetch: Fetcher) -> Optional[str]:
    if isinstance(value, str):
        return _resolve_string(value, output_format, fetch)
    if isinstance(value, dict):
        url = value.get("url")
        if isinstance(url, str) and url:
            mime_type, data = fetch(url)
            return build_data_url(mime_type, data)
        b64 = value.get("b64_json")
        if isinstance(b64, str) and b64:
            return wrap_base64(f"image/{output_format}", b64)
    return None


def reconcile(payload: Any, output_format: str = "png", *, fetch: Fetcher | None = None) -> str:
    """Return the canonical data URL for the image inside *payload*."""

    fetcher = fetch or HttpImageFetcher()
    for path, candidate in _candidates(payload):
        resolved = _resolve(candidate, output_format, fetcher)
        if resolved:
            logger.debug("[reconcile] resolved image via %s", path)
            return resolved
        # only the first present shape is considered
        logger.warning("[reconcile] unusable value at %s: %r", path, type(candidate).__name__)
        break

    keys = sorted(payload) if isinstance(payload, dict) else type(payload).__name__
    raise ContentMissingError(f"No image data in provider response (keys={keys})")
