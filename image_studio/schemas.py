from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from image_studio.models import AspectRatio, GenerationMode, QualityTier
from image_studio.services.qwen import QwenLayeredOptions


class _CompatModel(BaseModel):
    """Base model configured to ignore unknown fields."""

    model_config = ConfigDict(extra="ignore")


class UploadRequest(_CompatModel):
    # Any JSON value is accepted so the handler can answer with the relay's own
    # 400 message instead of a validation envelope.
    image: Any = Field(default=None, description="Base64 data URL of the image")


class UploadResponse(_CompatModel):
    url: str


class ErrorResponse(_CompatModel):
    error: str


class GenerateImageRequest(_CompatModel):
    prompt: str = ""
    mode: GenerationMode = "text-to-image"
    aspect_ratio: AspectRatio = "1:1"
    tier: QualityTier = "fast"
    images: List[str] = Field(
        default_factory=list,
        description="Reference images as data URLs (image-to-image only)",
    )
    persist: bool = Field(
        default=False, description="Also store the result and return its public URL"
    )


class GenerateImageResponse(_CompatModel):
    image: str
    url: Optional[str] = None


class DiffuseRequest(_CompatModel):
    image: str = Field(..., description="Data URL or public URL of the source image")
    options: QwenLayeredOptions = Field(default_factory=QwenLayeredOptions)


class DiffuseResponse(_CompatModel):
    image: str
