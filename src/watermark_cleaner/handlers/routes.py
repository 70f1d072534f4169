import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from humanize import naturalsize
from starlette.datastructures import UploadFile

from watermark_cleaner.errors import (
    InvalidRequestError,
    PayloadTooLargeError,
    WatermarkCleanerError,
)
from watermark_cleaner.types import PredictionResult
from watermark_cleaner.uploaders.utils import is_http_url

from .download import DownloadProxy
from .service import RemovalService

_logger = logging.getLogger(__name__)

SERVICE_NAME = "SoraWatermarkCleaner"

_USAGE_MSG = "Provide either JSON {url} or multipart with 'file'."
_FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def _validate_url(value: Any) -> str:
    url = str(value).strip()
    if not is_http_url(url):
        msg = "Invalid URL."
        raise InvalidRequestError(msg)
    return url


async def _read_upload(file: UploadFile, max_bytes: int) -> tuple[bytes, str]:
    if not file.filename:
        msg = "Invalid file upload."
        raise InvalidRequestError(msg)

    # Read one byte past the limit to detect oversized files without reading them whole
    payload = await file.read(max_bytes + 1)
    if len(payload) > max_bytes:
        msg = f"File exceeds the {naturalsize(max_bytes, binary=True)} limit."
        raise PayloadTooLargeError(msg)
    if not payload:
        msg = "Invalid file upload."
        raise InvalidRequestError(msg)
    return payload, file.filename


async def _parse_remove_request(
    request: Request, max_upload_bytes: int
) -> tuple[str | None, tuple[bytes, str] | None]:
    """
    Extract the source of a removal request.

    Returns `(url, None)` for URL requests or `(None, (payload, filename))` for file uploads.
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError as e:
            msg = "Request body is not valid JSON."
            raise InvalidRequestError(msg) from e
        url = body.get("url") if isinstance(body, dict) else None
        if url is None:
            raise InvalidRequestError(_USAGE_MSG)
        return _validate_url(url), None

    if content_type.startswith(_FORM_CONTENT_TYPES):
        form = await request.form()
        url, file = form.get("url"), form.get("file")
        if isinstance(file, UploadFile) and not file.filename:
            # An untouched file input is still sent, with an empty filename
            file = None
        if url and file:
            msg = "Provide either a URL or a file, not both."
            raise InvalidRequestError(msg)
        if isinstance(file, UploadFile):
            return None, await _read_upload(file, max_upload_bytes)
        if file:
            msg = "Invalid file upload."
            raise InvalidRequestError(msg)
        if url:
            return _validate_url(url), None

    raise InvalidRequestError(_USAGE_MSG)


def _to_response(result: PredictionResult) -> dict[str, Any]:
    return {
        "status": result.job.status,
        "output": result.job.output,
        "logs": result.job.logs or None,
    }


def make_router(
    service: RemovalService, proxy: DownloadProxy, max_upload_bytes: int
) -> APIRouter:
    router = APIRouter(prefix="/api")

    @router.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "ok": True,
            "service": SERVICE_NAME,
            "replicateConfigured": service.configured,
            "uploadBackends": service.upload_backends,
        }

    @router.post("/remove")
    async def remove(request: Request) -> dict[str, Any]:
        # Checked before reading the body, so nothing is uploaded when unconfigured
        service.ensure_configured()

        url, upload = await _parse_remove_request(request, max_upload_bytes)
        if upload is not None:
            payload, filename = upload
            result = await service.remove_from_file(payload, filename)
        else:
            result = await service.remove_from_url(str(url))
        return _to_response(result)

    @router.get("/download")
    async def download(url: str = "", filename: str | None = None) -> StreamingResponse:
        return await proxy.stream(url, filename)

    return router


async def _handle_watermark_cleaner_error(
    request: Request, exc: Exception
) -> JSONResponse:
    code = getattr(exc, "code", WatermarkCleanerError.code)
    status_code = getattr(exc, "status_code", WatermarkCleanerError.status_code)
    if status_code >= 500:  # noqa: PLR2004
        _logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        _logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(
        {"error": str(exc) or "Server error", "code": code}, status_code=status_code
    )


async def _render_unexpected_error(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    try:
        return await call_next(request)
    except Exception as e:  # noqa: BLE001
        _logger.exception("%s %s raised", request.method, request.url.path)
        return JSONResponse(
            {"error": str(e) or "Server error", "code": WatermarkCleanerError.code},
            status_code=500,
        )


def register_error_handlers(app: FastAPI) -> None:
    """
    Render errors as `{"error": message, "code": kind}` with each error's status code.

    Call this before adding CORS middleware, so error responses carry CORS headers too.
    """
    app.add_exception_handler(WatermarkCleanerError, _handle_watermark_cleaner_error)
    app.middleware("http")(_render_unexpected_error)
