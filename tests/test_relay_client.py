from __future__ import annotations

import pytest

from image_studio.config import RelayConfig
from image_studio.errors import ProviderError
from image_studio.services.relay_client import StorageRelayClient


class DummyResponse:
    def __init__(self, status_code: int, body: object, reason_phrase: str = "OK"):
        self.status_code = status_code
        self._body = body
        self.reason_phrase = reason_phrase

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


def install_client(monkeypatch, response: DummyResponse) -> dict:
    calls: dict[str, object] = {}

    class DummyClient:
        def __init__(self, *args, **kwargs):
            calls["kwargs"] = kwargs

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            return None

        def post(self, url, json, headers):
            calls["request"] = {"url": url, "json": json, "headers": headers}
            return response

    monkeypatch.setattr("image_studio.services.relay_client.httpx.Client", DummyClient)
    return calls


def test_persist_posts_data_url(monkeypatch) -> None:
    public = "https://storage.googleapis.com/bucket/generated/1700000000000-k3j.png"
    calls = install_client(monkeypatch, DummyResponse(200, {"url": public}))
    relay = StorageRelayClient(RelayConfig(upload_api_url="https://relay.example.com/"))

    assert relay.persist("data:image/png;base64,QUJD") == public
    assert calls["request"]["url"] == "https://relay.example.com/api/upload"
    assert calls["request"]["json"] == {"image": "data:image/png;base64,QUJD"}


def test_persist_surfaces_relay_error(monkeypatch) -> None:
    install_client(monkeypatch, DummyResponse(500, {"error": "Missing GOOGLE_CLOUD_BUCKET_NAME"}))
    relay = StorageRelayClient(RelayConfig(upload_api_url="https://relay.example.com"))

    with pytest.raises(ProviderError) as info:
        relay.persist("data:image/png;base64,QUJD")

    assert info.value.message == "Missing GOOGLE_CLOUD_BUCKET_NAME"
    assert info.value.status == 500


def test_persist_falls_back_to_reason_phrase(monkeypatch) -> None:
    install_client(monkeypatch, DummyResponse(502, ValueError("html"), reason_phrase="Bad Gateway"))
    relay = StorageRelayClient(RelayConfig(upload_api_url="https://relay.example.com"))

    with pytest.raises(ProviderError) as info:
        relay.persist("data:image/png;base64,QUJD")

    assert info.value.message == "Bad Gateway"
