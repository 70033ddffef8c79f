"""HTTP endpoint for on-the-fly image delivery.

GET /assets/{key} resolves transform parameters from the query string and
client hints, fetches the original once from the origin store, transforms
it, and answers with cache and diagnostic headers.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from .errors import ImageDeliveryError, ProcessingFailure
from .models import EffectiveTransform, OriginObject, ServerConfig, TransformResult
from .origin import OriginStore
from .process import Codec, PillowCodec, execute
from .resolver import resolve
from .storage import build_etag, normalize_key

logger = logging.getLogger(__name__)


def build_headers(
    config: ServerConfig,
    effective: EffectiveTransform,
    source: OriginObject,
    result: TransformResult,
) -> dict[str, str]:
    """Assemble response headers for a delivered image."""
    headers = {
        "Content-Type": result.content_type,
        "Content-Length": str(len(result.data)),
        "Cache-Control": config.cache_control,
        "ETag": build_etag(result.data),
    }

    if config.diagnostic_headers:
        headers["X-Device-Type"] = effective.device
        headers["X-Connection-Type"] = effective.connection
        headers["X-Original-Size"] = str(len(source.data))
        headers["X-Optimized-Size"] = str(len(result.data))

    return headers


def first_values(query_params) -> dict[str, str]:
    """Collapse repeated query parameters to the first value given for each name."""
    return {name: query_params.getlist(name)[0] for name in query_params.keys()}


def error_response(error: ImageDeliveryError) -> JSONResponse:
    return JSONResponse({"error": error.message}, status_code=error.status_code)


def create_app(
    config: ServerConfig,
    store: OriginStore,
    codec: Optional[Codec] = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Server settings
        store: Origin store to fetch originals from
        codec: Image codec (defaults to PillowCodec with the configured pixel limit)

    Returns:
        Configured FastAPI app
    """
    codec = codec or PillowCodec(max_image_pixels=config.max_image_pixels)
    app = FastAPI(title="CDN Image Optimizer")

    @app.exception_handler(ImageDeliveryError)
    async def handle_delivery_error(request: Request, exc: ImageDeliveryError) -> JSONResponse:
        logger.warning("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.detail)
        return error_response(exc)

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    # Sync route: FastAPI runs it in its threadpool, so the origin fetch and
    # codec work never block the event loop.
    @app.get("/assets/{key:path}")
    def get_asset(key: str, request: Request) -> Response:
        storage_key = normalize_key(key)
        effective = resolve(first_values(request.query_params), request.headers)
        logger.debug(
            "Resolved %s: format=%s quality=%d width=%s height=%s original=%s device=%s connection=%s",
            storage_key, effective.format, effective.quality, effective.width,
            effective.height, effective.original, effective.device, effective.connection,
        )

        source = store.fetch(storage_key)

        try:
            result = execute(source.data, source.content_type, effective, codec)
        except ImageDeliveryError:
            raise
        except Exception as e:
            logger.exception("Unexpected failure processing %s", storage_key)
            raise ProcessingFailure(str(e)) from e

        logger.info(
            "Served %s as %s (%d -> %d bytes)",
            storage_key, result.content_type, len(source.data), len(result.data),
        )

        return Response(
            content=result.data,
            headers=build_headers(config, effective, source, result),
        )

    return app
