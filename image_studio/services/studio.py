"""Generation pipeline: normalise references, call the provider, optionally persist."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional, Sequence

from image_studio.errors import (
    ConfigurationError,
    InvalidRequestError,
    StudioError,
    describe_failure,
)
from image_studio.models import GenerationRequest, GenerationResult, ImageAsset
from image_studio.services.canvas import normalize
from image_studio.services.credentials import CredentialSelector
from image_studio.services.qwen import QwenLayeredClient, QwenLayeredOptions

logger = logging.getLogger("image-studio")

RELAY_KEYS = (
    "GOOGLE_CLOUD_PROJECT_ID",
    "GOOGLE_CLOUD_BUCKET_NAME",
    "GOOGLE_CLOUD_KEY_JSON",
    "UPLOAD_API_URL",
)


class ImageStudio:
    """Runs one submission at a time through the image pipeline."""

    def __init__(
        self,
        provider: Any,
        *,
        qwen: Optional[QwenLayeredClient] = None,
        relay: Any = None,
        relay_missing: Sequence[str] = RELAY_KEYS,
    ) -> None:
        self.provider = provider
        self.qwen = qwen
        self.relay = relay
        self.relay_missing = list(relay_missing)
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def normalize_all(self, images: Sequence[ImageAsset], ratio: str) -> List[ImageAsset]:
        tasks = [asyncio.to_thread(normalize, image, ratio) for image in images]
        return list(await asyncio.gather(*tasks))

    async def generate(
        self, request: GenerationRequest, *, selector: CredentialSelector | None = None
    ) -> str:
        if self.busy:
            raise InvalidRequestError("A generation is already in progress.")
        async with self._lock:
            images: List[ImageAsset] = []
            if request.mode == "image-to-image":
                images = await self.normalize_all(request.images, request.aspect_ratio)
            return await asyncio.to_thread(
                self.provider.generate, request, images, selector=selector
            )

    async def run(
        self, request: GenerationRequest, *, selector: CredentialSelector | None = None
    ) -> GenerationResult:
        try:
            image = await self.generate(request, selector=selector)
        except StudioError as exc:
            logger.warning("[studio.fail] mode=%s tier=%s err=%s", request.mode, request.tier, exc)
            return GenerationResult(error=describe_failure(exc, request.tier))
        return GenerationResult(image=image)

    async def diffuse(self, image: str, options: QwenLayeredOptions | None = None) -> str:
        if self.qwen is None:
            raise InvalidRequestError("Diffusion is not available on this studio.")
        return await asyncio.to_thread(self.qwen.diffuse, image, options)

    def ensure_persistable(self) -> None:
        """Raise ``ConfigurationError`` naming the relay keys that are absent."""

        if self.relay is not None:
            return
        storage_keys = [key for key in self.relay_missing if key != "UPLOAD_API_URL"]
        message = "No storage relay is configured. Set UPLOAD_API_URL"
        if storage_keys:
            message += " or add " + ", ".join(storage_keys)
        raise ConfigurationError(message + ".", missing=self.relay_missing)

    async def persist(self, data_url: str) -> str:
        self.ensure_persistable()
        return await asyncio.to_thread(self.relay.persist, data_url)
