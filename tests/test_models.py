from __future__ import annotations

import unittest

import pytest
from pydantic import ValidationError

from helpers import make_asset, make_data_url
from image_studio.errors import ImageDecodeError, InvalidRequestError
from image_studio.models import (
    IMAGE_AND_PROMPT_REQUIRED,
    MAX_REFERENCE_IMAGES,
    PROMPT_REQUIRED,
    AssetTray,
    GenerationRequest,
    ImageAsset,
)


class GenerationRequestTests(unittest.TestCase):
    def test_prompt_is_stripped(self) -> None:
        request = GenerationRequest.build(prompt="  a red cube  ")
        self.assertEqual(request.prompt, "a red cube")
        self.assertEqual(request.mode, "text-to-image")
        self.assertEqual(request.tier, "fast")
        self.assertEqual(request.aspect_ratio, "1:1")

    def test_empty_prompt_rejected_in_text_mode(self) -> None:
        with self.assertRaises(InvalidRequestError) as ctx:
            GenerationRequest.build(prompt="   ")
        self.assertEqual(ctx.exception.message, PROMPT_REQUIRED)

    def test_empty_prompt_rejected_in_image_mode(self) -> None:
        with self.assertRaises(InvalidRequestError) as ctx:
            GenerationRequest.build(prompt="", mode="image-to-image", images=[make_asset()])
        self.assertEqual(ctx.exception.message, IMAGE_AND_PROMPT_REQUIRED)

    def test_image_mode_requires_a_reference(self) -> None:
        with self.assertRaises(InvalidRequestError) as ctx:
            GenerationRequest.build(prompt="restyle", mode="image-to-image")
        self.assertEqual(ctx.exception.message, IMAGE_AND_PROMPT_REQUIRED)

    def test_image_mode_caps_references(self) -> None:
        images = [make_asset() for _ in range(MAX_REFERENCE_IMAGES + 1)]
        with self.assertRaises(InvalidRequestError):
            GenerationRequest.build(prompt="restyle", mode="image-to-image", images=images)

    def test_unknown_ratio_rejected(self) -> None:
        with self.assertRaises(InvalidRequestError) as ctx:
            GenerationRequest.build(prompt="x", aspect_ratio="2:1")
        self.assertIn("aspect_ratio", ctx.exception.message)

    def test_request_is_immutable(self) -> None:
        request = GenerationRequest.build(prompt="x")
        with self.assertRaises(ValidationError):
            request.prompt = "y"  # type: ignore[misc]


def test_image_asset_round_trips_through_data_url() -> None:
    data_url = make_data_url((8, 8))
    asset = ImageAsset.from_data_url(data_url)
    assert asset.mime_type == "image/png"
    assert asset.data_url == data_url


def test_image_asset_rejects_non_data_url() -> None:
    with pytest.raises(ImageDecodeError):
        ImageAsset.from_data_url("https://example.com/cat.png")


def test_asset_tray_is_bounded() -> None:
    tray = AssetTray()
    for _ in range(MAX_REFERENCE_IMAGES):
        tray.add(make_asset())

    assert tray.is_full
    with pytest.raises(InvalidRequestError):
        tray.add(make_asset())

    tray.remove(0)
    assert len(tray) == MAX_REFERENCE_IMAGES - 1
    tray.reuse(make_data_url())
    assert len(tray.snapshot()) == MAX_REFERENCE_IMAGES


def test_asset_tray_remove_out_of_range() -> None:
    with pytest.raises(InvalidRequestError):
        AssetTray().remove(3)
