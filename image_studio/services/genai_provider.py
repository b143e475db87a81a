from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Callable, Optional, Sequence

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from image_studio.config import GenAIConfig
from image_studio.errors import ConfigurationError, ContentMissingError, ProviderError
from image_studio.models import GenerationRequest, ImageAsset
from image_studio.services.credentials import CredentialSelector, NullCredentialSelector
from image_studio.services.data_url import build_data_url

logger = logging.getLogger("image-studio")

NO_IMAGE_MESSAGE = "No image data found in the API response."


class GeminiImageProvider:
    """google-genai adapter: text-to-image and image-to-image on Gemini/Imagen models."""

    def __init__(
        self,
        config: GenAIConfig,
        *,
        selector: CredentialSelector | None = None,
        client_factory: Callable[..., Any] | None = None,
    ) -> None:
        self.config = config
        self.selector = selector or NullCredentialSelector()
        self._client_factory = client_factory or genai.Client

    # ---------- entry point ----------
    def generate(
        self,
        request: GenerationRequest,
        images: Sequence[ImageAsset] | None = None,
        *,
        selector: CredentialSelector | None = None,
    ) -> str:
        """Return one generated image as a data URL.

        ``images`` are the already normalised reference images; they are only
        used in image-to-image mode.
        """

        api_key = self._resolve_api_key(request, selector or self.selector)
        client = self._client_factory(api_key=api_key)
        trace_id = uuid.uuid4().hex[:8]
        start = time.time()

        try:
            if request.mode == "image-to-image":
                model = self._model_for(request)
                result = self._edit(client, model, request.prompt, images or request.images, trace_id)
            elif request.tier == "fast" and self.config.fast_text_route == "imagen":
                model = self.config.imagen_model
                result = self._imagen(client, model, request.prompt, request.aspect_ratio, trace_id)
            else:
                model = self._model_for(request)
                result = self._text(client, model, request.prompt, request.aspect_ratio, trace_id)
        except genai_errors.APIError as exc:
            logger.warning(
                "[genai.fail>%s] code=%s status=%s message=%s",
                trace_id,
                exc.code,
                exc.status,
                exc.message,
            )
            raise ProviderError(
                f"Failed to generate image: {exc.message or exc}", status=exc.code
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("[genai.fail>%s] transport error: %s", trace_id, exc)
            raise ProviderError(f"Failed to generate image: {exc}") from exc

        logger.info(
            "[genai.done>%s] model=%s mode=%s chars=%d time=%.0fms",
            trace_id,
            model,
            request.mode,
            len(result),
            (time.time() - start) * 1000,
        )
        return result

    def _model_for(self, request: GenerationRequest) -> str:
        return self.config.pro_model if request.use_pro_model else self.config.fast_model

    def _resolve_api_key(
        self, request: GenerationRequest, selector: CredentialSelector
    ) -> Optional[str]:
        if request.use_pro_model:
            if not selector.has_selected_key():
                selector.open_select_key()
            selected = selector.selected_key()
            if selected:
                return selected
        if not self.config.api_key:
            raise ConfigurationError(
                "Gemini API key is not configured. Set GEMINI_API_KEY.",
                missing=["GEMINI_API_KEY"],
            )
        return self.config.api_key

    # ---------- gemini: prompt only ----------
    def _text(self, client: Any, model: str, prompt: str, aspect_ratio: str, trace_id: str) -> str:
        logger.info("[genai.call>%s] mode=text model=%s ratio=%s", trace_id, model, aspect_ratio)
        response = client.models.generate_content(
            model=model,
            contents=[types.Part(text=prompt)],
            config=types.GenerateContentConfig(
                image_config=types.ImageConfig(aspect_ratio=aspect_ratio),
            ),
        )
        return extract_inline_image(response)

    # ---------- gemini: reference images + prompt ----------
    def _edit(
        self,
        client: Any,
        model: str,
        prompt: str,
        images: Sequence[ImageAsset],
        trace_id: str,
    ) -> str:
        logger.info("[genai.call>%s] mode=edit model=%s images=%d", trace_id, model, len(images))
        parts = [types.Part.from_bytes(data=image.data, mime_type=image.mime_type) for image in images]
        parts.append(types.Part(text=prompt))
        response = client.models.generate_content(model=model, contents=parts)
        return extract_inline_image(response)

    # ---------- imagen ----------
    def _imagen(self, client: Any, model: str, prompt: str, aspect_ratio: str, trace_id: str) -> str:
        logger.info("[genai.call>%s] mode=imagen model=%s ratio=%s", trace_id, model, aspect_ratio)
        response = client.models.generate_images(
            model=model,
            prompt=prompt,
            config=types.GenerateImagesConfig(
                number_of_images=1,
                aspect_ratio=aspect_ratio,
                output_mime_type="image/png",
            ),
        )
        for generated in getattr(response, "generated_images", None) or []:
            image = getattr(generated, "image", None)
            data = getattr(image, "image_bytes", None)
            if isinstance(data, (bytes, bytearray)) and data:
                return build_data_url(getattr(image, "mime_type", None) or "image/png", bytes(data))
        raise ContentMissingError(NO_IMAGE_MESSAGE)


def extract_inline_image(response: Any) -> str:
    """Return the first inline image part of a ``generate_content`` response."""

    candidates = getattr(response, "candidates", None) or []
    if candidates:
        content = getattr(candidates[0], "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            data = getattr(inline, "data", None) if inline is not None else None
            if data:
                mime_type = getattr(inline, "mime_type", None) or "image/png"
                if isinstance(data, str):
                    return f"data:{mime_type};base64,{data}"
                return build_data_url(mime_type, bytes(data))
    raise ContentMissingError(NO_IMAGE_MESSAGE)
