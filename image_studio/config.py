from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List
from urllib.parse import urlparse

DEFAULT_QWEN_LAYERED_URL = (
    "https://gateway.pixazo.ai/qwen-image-layered/v1/qwen-image-layered-request"
)


def _env(*names: str, default: str | None = None) -> str | None:
    """Return the first non-blank value among *names*."""

    for name in names:
        value = os.getenv(name)
        if value is None:
            continue
        text = value.strip()
        if text:
            return text
    return default


def _as_int(value: str | None, default: int) -> int:
    try:
        return max(int(value), 0) if value is not None else default
    except (TypeError, ValueError):
        return default


def _parse_allowed_origins(raw: str | None) -> List[str]:
    """Normalise comma-separated origins into values accepted by CORSMiddleware."""

    if not raw:
        return ["*"]

    cleaned: List[str] = []
    for origin in raw.split(","):
        value = origin.strip()
        if not value:
            continue
        if value == "*":
            return ["*"]

        parsed = urlparse(value)
        if parsed.scheme and parsed.netloc:
            normalised = f"{parsed.scheme}://{parsed.netloc}"
        else:
            normalised = value

        if normalised not in cleaned:
            cleaned.append(normalised)

    return cleaned or ["*"]


@dataclass
class GenAIConfig:
    api_key: str | None = None
    fast_model: str = "gemini-2.5-flash-image"
    pro_model: str = "gemini-3-pro-image-preview"
    imagen_model: str = "imagen-4.0-generate-001"
    # "gemini" keeps text-to-image on the conversational model; "imagen" sends
    # fast text-to-image requests to the Imagen family instead.
    fast_text_route: str = "gemini"

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls) -> "GenAIConfig":
        route = (_env("GENAI_FAST_TEXT_ROUTE", default="gemini") or "gemini").lower()
        if route not in {"gemini", "imagen"}:
            route = "gemini"
        return cls(
            api_key=_env("GEMINI_API_KEY", "API_KEY", "GOOGLE_API_KEY"),
            fast_model=_env("GENAI_FAST_MODEL", default=cls.fast_model) or cls.fast_model,
            pro_model=_env("GENAI_PRO_MODEL", default=cls.pro_model) or cls.pro_model,
            imagen_model=_env("GENAI_IMAGEN_MODEL", default=cls.imagen_model) or cls.imagen_model,
            fast_text_route=route,
        )


@dataclass
class QwenConfig:
    api_key: str | None = None
    url: str = DEFAULT_QWEN_LAYERED_URL
    timeout: int = 120

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls) -> "QwenConfig":
        return cls(
            api_key=_env("PIXAZO_API_KEY", "QWEN_API_KEY"),
            url=_env("QWEN_LAYERED_URL", default=DEFAULT_QWEN_LAYERED_URL)
            or DEFAULT_QWEN_LAYERED_URL,
            timeout=_as_int(_env("QWEN_TIMEOUT_SECONDS"), 120),
        )


@dataclass
class StorageConfig:
    project_id: str | None = None
    bucket: str | None = None
    key_json: str | None = None
    key_file: str | None = None
    prefix: str = "generated"

    def missing(self) -> List[str]:
        """Names of the environment keys still required by the relay."""

        absent: List[str] = []
        if not self.project_id:
            absent.append("GOOGLE_CLOUD_PROJECT_ID")
        if not self.bucket:
            absent.append("GOOGLE_CLOUD_BUCKET_NAME")
        if not (self.key_json or self.key_file):
            absent.append("GOOGLE_CLOUD_KEY_JSON")
        return absent

    @property
    def is_configured(self) -> bool:
        return not self.missing()

    @classmethod
    def from_env(cls) -> "StorageConfig":
        return cls(
            project_id=_env("GOOGLE_CLOUD_PROJECT_ID"),
            bucket=_env("GOOGLE_CLOUD_BUCKET_NAME"),
            key_json=_env("GOOGLE_CLOUD_KEY_JSON", "GCLOUD_KEY_JSON"),
            key_file=_env("GOOGLE_CLOUD_KEY_FILE"),
            prefix=(_env("GOOGLE_CLOUD_OBJECT_PREFIX", default="generated") or "generated").strip("/"),
        )


@dataclass
class RelayConfig:
    upload_api_url: str = ""
    timeout: int = 60

    @property
    def endpoint(self) -> str:
        base = (self.upload_api_url or "").rstrip("/")
        return f"{base}/api/upload" if base else "/api/upload"


@dataclass
class GuardConfig:
    max_body_bytes: int

    @classmethod
    def from_env(cls) -> "GuardConfig":
        return cls(max_body_bytes=_as_int(_env("MAX_BODY_BYTES"), 50 * 1024 * 1024))


@dataclass
class Settings:
    environment: str
    allowed_origins: List[str]
    genai: GenAIConfig
    qwen: QwenConfig
    storage: StorageConfig
    relay: RelayConfig
    guard: GuardConfig


@lru_cache()
def get_settings() -> Settings:
    return Settings(
        environment=_env("ENVIRONMENT", default="development") or "development",
        allowed_origins=_parse_allowed_origins(_env("ALLOWED_ORIGINS", default="*")),
        genai=GenAIConfig.from_env(),
        qwen=QwenConfig.from_env(),
        storage=StorageConfig.from_env(),
        relay=RelayConfig(
            upload_api_url=_env("UPLOAD_API_URL", default="") or "",
            timeout=_as_int(_env("UPLOAD_TIMEOUT_SECONDS"), 60),
        ),
        guard=GuardConfig.from_env(),
    )
