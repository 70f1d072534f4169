"""Build the web app and serve it."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import replicate
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .handlers.download import DownloadProxy
from .handlers.routes import make_router, register_error_handlers
from .handlers.service import RemovalService
from .predictors.replicate import ReplicatePredictor
from .settings import Settings
from .uploaders.chain import build_upload_chain
from .utils.logger import setup_logging

_logger = logging.getLogger(__name__)

USER_AGENT = "watermark-cleaner/0.1"


def _log_configuration(settings: Settings) -> None:
    if not settings.REPLICATE_API_TOKEN:
        _logger.warning(
            "REPLICATE_API_TOKEN is not set. Please set it before calling /api/remove."
        )
    if not settings.REPLICATE_MODEL_VERSION:
        _logger.warning(
            "REPLICATE_MODEL_VERSION is not set. Please set it to a version from Replicate."
        )
        return
    model = settings.replicate_model
    _logger.info(
        "Replicate config -> model: %s, version: %s",
        model.model or "(none)",
        model.version or "(none)",
    )


def _make_replicate_client(
    settings: Settings, transport: httpx.AsyncBaseTransport
) -> replicate.Client | None:
    """Build a Replicate SDK client whose connections go through `transport`."""
    if not settings.REPLICATE_API_TOKEN:
        return None
    return replicate.Client(
        api_token=settings.REPLICATE_API_TOKEN.get_secret_value(),
        timeout=httpx.Timeout(settings.HTTP_TIMEOUT_S),
        transport=transport,
    )


def create_app(
    settings: Settings, replicate_client: replicate.Client | None = None
) -> FastAPI:
    """
    Create the app.

    A single httpx client is shared by every request. It and the Replicate client's
    connections are closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        replicate_transport = httpx.AsyncHTTPTransport()
        try:
            async with httpx.AsyncClient(
                timeout=settings.HTTP_TIMEOUT_S,
                headers={"User-Agent": USER_AGENT},
            ) as client:
                service = RemovalService(
                    build_upload_chain(
                        settings,
                        client,
                        replicate_client
                        or _make_replicate_client(settings, replicate_transport),
                    ),
                    ReplicatePredictor.from_settings(client, settings),
                )
                app.include_router(
                    make_router(service, DownloadProxy(client), settings.MAX_UPLOAD_BYTES)
                )
                _log_configuration(settings)
                yield
        finally:
            await replicate_transport.aclose()

    app = FastAPI(title="Sora Watermark Cleaner", lifespan=lifespan)
    register_error_handlers(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    return app


def main() -> None:
    """Start the server."""
    settings = Settings()
    setup_logging(settings.LOG_LEVEL)
    uvicorn.run(
        create_app(settings),
        host=settings.HOST,
        port=settings.PORT,
        loop="uvloop",
        log_config=None,
    )


if __name__ == "__main__":
    main()
