"""Domain models shared between the pipeline services and the API layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Literal, Optional, Tuple, get_args

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from image_studio.errors import InvalidRequestError
from image_studio.services.data_url import build_data_url, parse_data_url

AspectRatio = Literal["1:1", "4:3", "3:4", "16:9", "9:16"]
GenerationMode = Literal["text-to-image", "image-to-image"]
QualityTier = Literal["fast", "pro"]

ASPECT_RATIOS: Tuple[str, ...] = get_args(AspectRatio)
MAX_REFERENCE_IMAGES = 5

PROMPT_REQUIRED = "Please provide a prompt."
IMAGE_AND_PROMPT_REQUIRED = "Please upload an image and provide a prompt."


class ImageAsset(BaseModel):
    """An in-memory reference image."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str = "image/png"

    @property
    def data_url(self) -> str:
        return build_data_url(self.mime_type, self.data)

    @classmethod
    def from_data_url(cls, value: str) -> "ImageAsset":
        mime_type, data = parse_data_url(value)
        return cls(data=data, mime_type=mime_type)

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str = "image/png") -> "ImageAsset":
        return cls(data=bytes(data), mime_type=mime_type or "image/png")


class GenerationRequest(BaseModel):
    """Immutable description of one submission."""

    model_config = ConfigDict(frozen=True)

    prompt: str
    aspect_ratio: AspectRatio = "1:1"
    mode: GenerationMode = "text-to-image"
    tier: QualityTier = "fast"
    images: Tuple[ImageAsset, ...] = ()

    @field_validator("prompt", mode="before")
    @classmethod
    def _strip_prompt(cls, value: object) -> str:
        return "" if value is None else str(value).strip()

    @model_validator(mode="after")
    def _check_inputs(self) -> "GenerationRequest":
        if self.mode == "image-to-image":
            if not self.images or not self.prompt:
                raise ValueError(IMAGE_AND_PROMPT_REQUIRED)
            if len(self.images) > MAX_REFERENCE_IMAGES:
                raise ValueError(
                    f"You can upload a maximum of {MAX_REFERENCE_IMAGES} images."
                )
        elif not self.prompt:
            raise ValueError(PROMPT_REQUIRED)
        return self

    @property
    def use_pro_model(self) -> bool:
        return self.tier == "pro"

    @classmethod
    def build(cls, **fields: object) -> "GenerationRequest":
        """Construct a request, reporting validation failures as ``InvalidRequestError``."""

        try:
            return cls(**fields)
        except ValidationError as exc:
            raise InvalidRequestError(_first_error_message(exc)) from exc


def _first_error_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    ctx = first.get("ctx") or {}
    if isinstance(ctx.get("error"), Exception):
        return str(ctx["error"])
    location = ".".join(str(item) for item in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


@dataclass(frozen=True)
class GenerationResult:
    image: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.image is not None and self.error is None


class AssetTray:
    """The active set of reference images, capped at ``MAX_REFERENCE_IMAGES``."""

    def __init__(self, limit: int = MAX_REFERENCE_IMAGES) -> None:
        self.limit = limit
        self._items: List[ImageAsset] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[ImageAsset]:
        return iter(self._items)

    @property
    def is_full(self) -> bool:
        return len(self._items) >= self.limit

    def add(self, asset: ImageAsset) -> ImageAsset:
        if self.is_full:
            raise InvalidRequestError(f"You can upload a maximum of {self.limit} images.")
        self._items.append(asset)
        return asset

    def reuse(self, data_url: str) -> ImageAsset:
        """Add a previous generation output as a reference image."""

        return self.add(ImageAsset.from_data_url(data_url))

    def remove(self, index: int) -> ImageAsset:
        try:
            return self._items.pop(index)
        except IndexError as exc:
            raise InvalidRequestError(f"No reference image at position {index}") from exc

    def clear(self) -> None:
        self._items.clear()

    def snapshot(self) -> Tuple[ImageAsset, ...]:
        return tuple(self._items)
