"""
FastAPI Application Entry Point.

Routes are served both at the root and under /api, so clients written
for either layout work:

    POST /v1/audio/speech     POST /api/v1/audio/speech
    GET  /v1/models           GET  /api/v1/models
    GET  /health, GET /metrics

Usage:
    uvicorn tts_relay.main:app --host 0.0.0.0 --port 8000
    # or
    tts-relay --serve --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from tts_relay import __version__
from tts_relay.api.openai_compat import relay_error_handler, validation_error_handler
from tts_relay.api.openai_compat import router as openai_router
from tts_relay.api.routes import router
from tts_relay.core.errors import RelayError
from tts_relay.core.logging import configure_logging, get_logger, info
from tts_relay.services.speech_service import shutdown_service

_LOG = get_logger("tts-relay.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    info(_LOG, "startup", version=__version__)
    yield
    await shutdown_service()
    info(_LOG, "shutdown")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance ready to serve requests.
    """
    configure_logging()

    app = FastAPI(title="tts-relay", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=86400,
    )

    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RelayError, relay_error_handler)

    app.include_router(router)
    app.include_router(openai_router)
    app.include_router(router, prefix="/api", include_in_schema=False)
    app.include_router(openai_router, prefix="/api", include_in_schema=False)

    return app


app = create_app()
