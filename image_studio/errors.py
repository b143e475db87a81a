"""Error types raised along the generation pipeline."""
from __future__ import annotations

from typing import Iterable, Optional


class StudioError(RuntimeError):
    """Base class for failures reported once to the caller."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequestError(StudioError):
    status_code = 400


class ImageDecodeError(StudioError):
    status_code = 422


class CanvasError(StudioError):
    """The drawing surface could not be allocated."""

    status_code = 500


class ContentMissingError(StudioError):
    """The upstream call succeeded but carried no recognisable image."""

    status_code = 502


class ProviderError(StudioError):
    status_code = 502

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status

    @property
    def is_permission_denied(self) -> bool:
        if self.status == 403:
            return True
        text = (self.message or "").lower()
        return "permission" in text or "403" in text


class ConfigurationError(StudioError):
    status_code = 500

    def __init__(self, message: str, *, missing: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.missing = list(missing)


PERMISSION_DENIED_MESSAGE = (
    "Permission denied by the image provider. The Pro model may not be "
    "available for this API key; switch to the Fast tier and try again."
)


def describe_failure(exc: BaseException, tier: str | None = None) -> str:
    """Return the single user-facing message for *exc*."""

    if isinstance(exc, ProviderError) and tier == "pro" and exc.is_permission_denied:
        return PERMISSION_DENIED_MESSAGE
    if isinstance(exc, StudioError):
        return exc.message
    return str(exc) or "An unknown error occurred while generating the image."


__all__ = [
    "CanvasError",
    "ConfigurationError",
    "ContentMissingError",
    "ImageDecodeError",
    "InvalidRequestError",
    "PERMISSION_DENIED_MESSAGE",
    "ProviderError",
    "StudioError",
    "describe_failure",
]
