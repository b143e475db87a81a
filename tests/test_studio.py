from __future__ import annotations

import asyncio
import io

import pytest
from PIL import Image

from helpers import make_asset
from image_studio.errors import (
    ConfigurationError,
    ContentMissingError,
    InvalidRequestError,
    PERMISSION_DENIED_MESSAGE,
    ProviderError,
)
from image_studio.models import GenerationRequest
from image_studio.services.studio import ImageStudio


class StubProvider:
    def __init__(self, result: str = "data:image/png;base64,QUJD", error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls: list[tuple[GenerationRequest, list]] = []

    def generate(self, request, images=None, *, selector=None):
        self.calls.append((request, list(images or [])))
        if self.error is not None:
            raise self.error
        return self.result


class StubRelay:
    def __init__(self) -> None:
        self.persisted: list[str] = []

    def persist(self, data_url: str) -> str:
        self.persisted.append(data_url)
        return "https://storage.googleapis.com/bucket/generated/1-abc.png"


def test_text_to_image_skips_normalisation() -> None:
    provider = StubProvider()
    studio = ImageStudio(provider)

    result = asyncio.run(studio.generate(GenerationRequest(prompt="a red cube")))

    assert result.startswith("data:image/")
    assert provider.calls[0][1] == []


def test_image_to_image_normalises_every_reference() -> None:
    provider = StubProvider()
    studio = ImageStudio(provider)
    request = GenerationRequest(
        prompt="restyle",
        mode="image-to-image",
        aspect_ratio="4:3",
        images=(make_asset((50, 50)), make_asset((300, 100)), make_asset((100, 300))),
    )

    asyncio.run(studio.generate(request))

    normalised = provider.calls[0][1]
    assert len(normalised) == 3
    for asset in normalised:
        assert asset.mime_type == "image/jpeg"
        assert Image.open(io.BytesIO(asset.data)).size == (1024, 768)


def test_second_submission_while_busy_is_rejected() -> None:
    provider = StubProvider()
    studio = ImageStudio(provider)

    async def scenario() -> None:
        async with studio._lock:
            assert studio.busy
            with pytest.raises(InvalidRequestError):
                await studio.generate(GenerationRequest(prompt="again"))

    asyncio.run(scenario())
    assert provider.calls == []
    assert not studio.busy


def test_run_rewrites_permission_denied_for_pro() -> None:
    provider = StubProvider(error=ProviderError("Permission denied on model", status=403))
    studio = ImageStudio(provider)

    result = asyncio.run(studio.run(GenerationRequest(prompt="x", tier="pro")))

    assert not result.ok
    assert result.error == PERMISSION_DENIED_MESSAGE


def test_run_passes_fast_tier_failures_through() -> None:
    provider = StubProvider(error=ProviderError("Permission denied on model", status=403))
    studio = ImageStudio(provider)

    result = asyncio.run(studio.run(GenerationRequest(prompt="x", tier="fast")))

    assert result.error == "Permission denied on model"


def test_run_reports_content_missing() -> None:
    studio = ImageStudio(StubProvider(error=ContentMissingError("No image data found in the API response.")))

    result = asyncio.run(studio.run(GenerationRequest(prompt="x")))

    assert result.error == "No image data found in the API response."


def test_persist_delegates_to_relay() -> None:
    relay = StubRelay()
    studio = ImageStudio(StubProvider(), relay=relay)

    url = asyncio.run(studio.persist("data:image/png;base64,QUJD"))

    assert url.startswith("https://storage.googleapis.com/bucket/generated/")
    assert relay.persisted == ["data:image/png;base64,QUJD"]


def test_persist_without_relay_names_missing_keys() -> None:
    studio = ImageStudio(StubProvider())

    with pytest.raises(ConfigurationError) as info:
        asyncio.run(studio.persist("data:image/png;base64,QUJD"))

    assert info.value.status_code == 500
    assert info.value.missing == [
        "GOOGLE_CLOUD_PROJECT_ID",
        "GOOGLE_CLOUD_BUCKET_NAME",
        "GOOGLE_CLOUD_KEY_JSON",
        "UPLOAD_API_URL",
    ]
    assert "UPLOAD_API_URL" in info.value.message


def test_diffuse_requires_client() -> None:
    studio = ImageStudio(StubProvider())
    with pytest.raises(InvalidRequestError):
        asyncio.run(studio.diffuse("data:image/png;base64,QUJD"))
