"""Google Cloud Storage backend for the upload relay."""
from __future__ import annotations

import json
import logging
import secrets
import time
from typing import Any, Optional

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage
from google.oauth2 import service_account

from image_studio.config import StorageConfig
from image_studio.errors import ConfigurationError, InvalidRequestError, StudioError
from image_studio.services.data_url import image_mime_and_ext, strip_image_prefix

logger = logging.getLogger("image-studio")

PUBLIC_BASE = "https://storage.googleapis.com"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _random_suffix(length: int = 11) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def missing_config_message(missing: list[str]) -> str:
    hint = (
        "Add these environment variables to the deployment: "
        + ", ".join(missing)
        + "."
    )
    if "GOOGLE_CLOUD_KEY_JSON" in missing:
        hint += (
            " For GOOGLE_CLOUD_KEY_JSON, paste the full service account key JSON"
            " (or set GOOGLE_CLOUD_KEY_FILE to its path)."
        )
    return hint


def ensure_configured(config: StorageConfig) -> None:
    missing = config.missing()
    if missing:
        raise ConfigurationError(missing_config_message(missing), missing=missing)


def public_url_for(bucket: str, key: str) -> str:
    return f"{PUBLIC_BASE}/{bucket}/{key.lstrip('/')}"


def make_key(ext: str, prefix: str = "generated", *, now_ms: Optional[int] = None) -> str:
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    folder = (prefix or "generated").strip("/")
    return f"{folder}/{stamp}-{_random_suffix()}.{ext or 'png'}"


def _build_client(config: StorageConfig) -> storage.Client:
    if config.key_json:
        try:
            info = json.loads(config.key_json)
            credentials = service_account.Credentials.from_service_account_info(info)
            return storage.Client(project=config.project_id, credentials=credentials)
        except (ValueError, TypeError, AttributeError, GoogleAuthError) as exc:
            raise ConfigurationError(
                f"Invalid GOOGLE_CLOUD_KEY_JSON: {exc}", missing=["GOOGLE_CLOUD_KEY_JSON"]
            ) from exc
    try:
        return storage.Client.from_service_account_json(config.key_file, project=config.project_id)
    except (OSError, ValueError, GoogleAuthError) as exc:
        raise ConfigurationError(
            f"Unable to load GOOGLE_CLOUD_KEY_FILE: {exc}", missing=["GOOGLE_CLOUD_KEY_FILE"]
        ) from exc


class GCSImageStore:
    """Write data-URL images to a bucket and hand back their public URLs."""

    def __init__(self, config: StorageConfig, *, client: Any = None) -> None:
        ensure_configured(config)
        self.config = config
        self.bucket_name = str(config.bucket)
        self._client = client or _build_client(config)
        self._bucket = self._client.bucket(self.bucket_name)

    def store_data_url(self, image: Any) -> str:
        if not image or not isinstance(image, str):
            raise InvalidRequestError("Missing or invalid image (base64 data URL)")

        mime_type, ext = image_mime_and_ext(image)
        data = strip_image_prefix(image)
        key = make_key(ext, self.config.prefix)

        blob = self._bucket.blob(key)
        try:
            blob.upload_from_string(data, content_type=mime_type)
        except GoogleAPIError as exc:
            logger.exception("[storage.put] upload failed key=%s", key)
            raise StudioError(str(exc) or "Upload failed") from exc

        try:
            blob.make_public()
        except GoogleAPIError as exc:
            logger.warning("[storage.acl] make_public failed key=%s err=%s", key, exc)

        url = public_url_for(self.bucket_name, key)
        logger.info("[storage.put] key=%s bytes=%d type=%s", key, len(data), mime_type)
        return url

    def persist(self, data_url: str) -> str:
        """Same contract as ``StorageRelayClient.persist`` without the HTTP hop."""

        return self.store_data_url(data_url)
