"""Client for the ``POST /api/upload`` relay."""
from __future__ import annotations

import logging

import httpx

from image_studio.config import RelayConfig
from image_studio.errors import ContentMissingError, ProviderError

logger = logging.getLogger("image-studio")


class StorageRelayClient:
    def __init__(self, config: RelayConfig, *, base_url: str | None = None) -> None:
        self.config = config
        self.base_url = base_url

    @property
    def endpoint(self) -> str:
        if self.base_url and not self.config.upload_api_url:
            return f"{self.base_url.rstrip('/')}/api/upload"
        return self.config.endpoint

    def persist(self, data_url: str) -> str:
        """Upload *data_url* through the relay and return its public URL."""

        try:
            with httpx.Client(timeout=self.config.timeout) as client:
                r = client.post(
                    self.endpoint,
                    json={"image": data_url},
                    headers={"Content-Type": "application/json"},
                )
        except httpx.HTTPError as exc:
            raise ProviderError(f"Upload failed: {exc}") from exc

        if r.status_code >= 400:
            try:
                body = r.json()
            except ValueError:
                body = None
            detail = body.get("error") if isinstance(body, dict) else None
            message = detail or r.reason_phrase or f"Upload failed ({r.status_code})"
            logger.warning("[relay.fail] status=%s message=%s", r.status_code, message)
            raise ProviderError(message, status=r.status_code)

        try:
            body = r.json()
        except ValueError:
            body = None
        url = body.get("url") if isinstance(body, dict) else None
        if not url:
            raise ContentMissingError("Upload relay returned no url")
        logger.info("[relay.done] url=%s", url)
        return url
