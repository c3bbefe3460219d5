"""HTTP layer: the browser UI assets plus ``POST /api/process``."""

from http import HTTPStatus
from pathlib import Path
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse, Response
from loguru import logger
from pydantic import ValidationError

from image_renamer.keywords import KeywordExtractor
from image_renamer.models import ProcessRequest
from image_renamer.processor import BatchProcessor


if TYPE_CHECKING:
    from image_renamer.config import Settings


STATIC_DIR = Path(__file__).parent / "static"
STATIC_ROUTES = {
    "/": "index.html",
    "/index.html": "index.html",
    "/style.css": "style.css",
    "/app.js": "app.js",
}
CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}
PREFLIGHT_HEADERS = {
    **CORS_HEADERS,
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}
MISSING_PATHS_ERROR = "Source path and output path are required"


def _error(message: str, status: HTTPStatus) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status, headers=CORS_HEADERS)


def _static_route(app: FastAPI, path: str, filename: str) -> None:
    asset = STATIC_DIR / filename

    async def serve_asset() -> FileResponse:
        return FileResponse(asset)

    app.add_api_route(path, serve_asset, methods=["GET"], include_in_schema=False)


def create_app(settings: "Settings", processor: BatchProcessor | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Loaded application settings.
        processor: Batch processor to delegate to; built from ``settings`` when omitted.

    Returns:
        Configured FastAPI app.

    """
    if processor is None:
        processor = BatchProcessor(
            KeywordExtractor(settings),
            pacing_delay_seconds=settings.pacing_delay_seconds,
        )

    app = FastAPI(title="AI Image Renamer", docs_url=None, redoc_url=None, openapi_url=None)

    @app.options("/api/process")
    async def process_preflight() -> Response:
        return Response(status_code=HTTPStatus.OK, headers=PREFLIGHT_HEADERS)

    @app.post("/api/process")
    async def process_images(request: Request) -> JSONResponse:
        try:
            payload = await request.json()
            body = ProcessRequest.model_validate(payload)
        except (ValueError, ValidationError) as exc:
            logger.warning("process_request_invalid", error=str(exc))
            return _error(MISSING_PATHS_ERROR, HTTPStatus.BAD_REQUEST)

        logger.info("process_request_received", source=body.source_path, output=body.output_path)
        try:
            report = await processor.process_directory(body.source_path, body.output_path)
        except Exception as exc:
            logger.exception("process_request_failed")
            return _error(str(exc), HTTPStatus.INTERNAL_SERVER_ERROR)

        return JSONResponse(report.model_dump(by_alias=True), headers=CORS_HEADERS)

    for path, filename in STATIC_ROUTES.items():
        _static_route(app, path, filename)

    return app
