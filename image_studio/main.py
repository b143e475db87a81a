from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from image_studio.config import Settings, get_settings
from image_studio.errors import InvalidRequestError, StudioError, describe_failure
from image_studio.middlewares.body_limit import BodyLimitMiddleware
from image_studio.models import GenerationRequest, ImageAsset
from image_studio.schemas import (
    DiffuseRequest,
    DiffuseResponse,
    ErrorResponse,
    GenerateImageRequest,
    GenerateImageResponse,
    UploadRequest,
    UploadResponse,
)
from image_studio.services.credentials import StaticCredentialSelector
from image_studio.services.genai_provider import GeminiImageProvider
from image_studio.services.qwen import QwenLayeredClient
from image_studio.services.relay_client import StorageRelayClient
from image_studio.services.storage_gcs import GCSImageStore
from image_studio.services.studio import ImageStudio

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logging.getLogger("uvicorn").setLevel(LOG_LEVEL)
logging.getLogger("uvicorn.error").setLevel(LOG_LEVEL)
logging.getLogger("uvicorn.access").setLevel(LOG_LEVEL)
logging.getLogger("image-studio").setLevel(LOG_LEVEL)

logger = logging.getLogger("image-studio")

settings = get_settings()

app = FastAPI(title="Image Studio API", version="1.0.0")

app.add_middleware(BodyLimitMiddleware, max_body_bytes=settings.guard.max_body_bytes)

allow_all = "*" in settings.allowed_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=not allow_all,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=86400,
)


# ---------- dependencies ----------
def get_app_settings() -> Settings:
    return get_settings()


@lru_cache(maxsize=1)
def _store() -> GCSImageStore:
    store = GCSImageStore(get_settings().storage)
    logger.info("GCS image store ready bucket=%s", store.bucket_name)
    return store


def get_store() -> GCSImageStore:
    return _store()


@lru_cache(maxsize=1)
def _provider() -> GeminiImageProvider:
    return GeminiImageProvider(get_settings().genai)


def get_provider() -> GeminiImageProvider:
    return _provider()


def _persister(cfg: Settings) -> Any:
    """Store locally when GCS is configured, otherwise go through a remote relay."""

    if cfg.storage.is_configured:
        return get_store()
    if cfg.relay.upload_api_url:
        return StorageRelayClient(cfg.relay)
    return None


def get_studio(
    provider: GeminiImageProvider = Depends(get_provider),
    cfg: Settings = Depends(get_app_settings),
) -> ImageStudio:
    relay = _persister(cfg)
    qwen = QwenLayeredClient(cfg.qwen, persist=relay.persist if relay is not None else None)
    return ImageStudio(
        provider,
        qwen=qwen,
        relay=relay,
        relay_missing=cfg.storage.missing() + ["UPLOAD_API_URL"],
    )


# ---------- error envelopes ----------
@app.exception_handler(StudioError)
async def studio_error_handler(request: Request, exc: StudioError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("[api] %s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(item) for item in first.get("loc", ()) if item != "body")
    message = first.get("msg") or "Invalid request"
    return JSONResponse(
        status_code=400,
        content={"error": f"{location}: {message}" if location else message},
    )


# ---------- routes ----------
@app.get("/", include_in_schema=False)
def root() -> dict[str, Any]:
    return {"service": "image-studio", "ok": True}


@app.head("/", include_in_schema=False)
def root_head() -> Response:
    return Response(status_code=200)


@app.get("/health")
def health() -> dict[str, bool]:
    return {"ok": True}


@app.post(
    "/api/upload",
    response_model=UploadResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def api_upload(payload: UploadRequest, store: GCSImageStore = Depends(get_store)) -> UploadResponse:
    if not payload.image or not isinstance(payload.image, str):
        raise InvalidRequestError("Missing or invalid image (base64 data URL)")
    try:
        url = store.store_data_url(payload.image)
    except StudioError:
        raise
    except Exception as exc:  # pragma: no cover - storage transport errors
        logger.exception("Upload error: %s", exc)
        raise StudioError(str(exc) or "Upload failed") from exc
    return UploadResponse(url=url)


@app.post(
    "/api/generate",
    response_model=GenerateImageResponse,
    responses={
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
async def api_generate(
    payload: GenerateImageRequest,
    studio: ImageStudio = Depends(get_studio),
    api_key: Optional[str] = Header(default=None, alias="X-Gemini-Api-Key"),
) -> JSONResponse:
    images: list[ImageAsset] = []
    if payload.mode == "image-to-image":
        images = [ImageAsset.from_data_url(item) for item in payload.images]
    request = GenerationRequest.build(
        prompt=payload.prompt,
        mode=payload.mode,
        aspect_ratio=payload.aspect_ratio,
        tier=payload.tier,
        images=images,
    )
    if payload.persist:
        studio.ensure_persistable()
    selector = StaticCredentialSelector(api_key) if api_key else None

    try:
        image = await studio.generate(request, selector=selector)
        url = await studio.persist(image) if payload.persist else None
    except StudioError as exc:
        logger.warning("[api.generate] tier=%s failed: %s", request.tier, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": describe_failure(exc, request.tier)},
        )

    body = GenerateImageResponse(image=image, url=url)
    return JSONResponse(content=body.model_dump(exclude_none=True))


@app.post(
    "/api/diffuse",
    response_model=DiffuseResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def api_diffuse(payload: DiffuseRequest, studio: ImageStudio = Depends(get_studio)) -> DiffuseResponse:
    image = await studio.diffuse(payload.image, payload.options)
    return DiffuseResponse(image=image)
