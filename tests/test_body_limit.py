from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from image_studio.middlewares.body_limit import BodyLimitMiddleware


def test_body_limit_middleware_rejects_oversized_requests() -> None:
    app = FastAPI()
    app.add_middleware(BodyLimitMiddleware, max_body_bytes=64)

    @app.post("/api/echo")
    def echo(payload: dict) -> dict:
        return payload

    client = TestClient(app)

    small = client.post("/api/echo", json={"a": 1})
    assert small.status_code == 200
    assert small.json() == {"a": 1}

    big = client.post("/api/echo", json={"image": "x" * 200})
    assert big.status_code == 413
    assert "too large" in big.json()["error"]
