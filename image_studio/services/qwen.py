"""Qwen "image layered" diffusion via the Pixazo gateway."""
from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Callable, Literal, Optional

import httpx
from pydantic import BaseModel, Field

from image_studio.config import QwenConfig
from image_studio.errors import ConfigurationError, ProviderError
from image_studio.services.data_url import is_data_url
from image_studio.services.reconcile import Fetcher, HttpImageFetcher, reconcile

logger = logging.getLogger("image-studio")


class QwenLayeredOptions(BaseModel):
    num_inference_steps: int = Field(default=28, ge=1, le=100)
    guidance_scale: float = Field(default=5.0, ge=0)
    num_images: int = Field(default=1, ge=1, le=4)
    enable_safety_checker: bool = True
    output_format: Literal["png", "jpeg"] = "png"
    acceleration: Literal["regular", "turbo"] = "regular"


def _error_message(status: int, text: str) -> str:
    message = f"Qwen API error ({status})"
    try:
        body = json.loads(text)
    except ValueError:
        return f"{message}: {text[:200]}" if text else message
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("message"):
            return str(body["message"])
    return message


class QwenLayeredClient:
    def __init__(
        self,
        config: QwenConfig,
        *,
        persist: Optional[Callable[[str], str]] = None,
        fetch: Optional[Fetcher] = None,
    ) -> None:
        self.config = config
        self.persist = persist
        self.fetch = fetch or HttpImageFetcher(timeout=config.timeout)

    def _public_url(self, image: str) -> str:
        if not is_data_url(image):
            return image
        if self.persist is None:
            raise ConfigurationError(
                "A storage relay is required to diffuse inline images.",
                missing=["UPLOAD_API_URL"],
            )
        return self.persist(image)

    def diffuse(self, image: str, options: QwenLayeredOptions | None = None) -> str:
        """Refine *image* (data URL or public URL) and return the result as a data URL."""

        if not self.config.api_key:
            raise ConfigurationError(
                "Qwen diffusion is not configured. Set PIXAZO_API_KEY.",
                missing=["PIXAZO_API_KEY"],
            )

        opts = options or QwenLayeredOptions()
        payload = {"image_url": self._public_url(image), **opts.model_dump()}
        headers = {
            "Content-Type": "application/json",
            "Cache-Control": "no-cache",
            "Ocp-Apim-Subscription-Key": self.config.api_key,
        }

        trace_id = uuid.uuid4().hex[:8]
        logger.info(
            "[qwen.call>%s] steps=%s guidance=%s format=%s acceleration=%s",
            trace_id,
            opts.num_inference_steps,
            opts.guidance_scale,
            opts.output_format,
            opts.acceleration,
        )
        start = time.time()
        try:
            with httpx.Client(timeout=self.config.timeout) as client:
                r = client.post(self.config.url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise ProviderError(f"Qwen API request failed: {exc}") from exc

        if r.status_code >= 400:
            message = _error_message(r.status_code, r.text)
            logger.warning("[qwen.fail>%s] status=%s message=%s", trace_id, r.status_code, message)
            raise ProviderError(message, status=r.status_code)

        try:
            body = r.json()
        except ValueError as exc:
            raise ProviderError(f"Qwen API returned non-JSON body: {exc}", status=r.status_code) from exc

        result = reconcile(body, opts.output_format, fetch=self.fetch)
        logger.info("[qwen.done>%s] time=%.0fms", trace_id, (time.time() - start) * 1000)
        return result
