"""
FastAPI Dependency Injection Providers.

    get_settings()        - settings.yaml (or $TTS_RELAY_SETTINGS), cached
    get_speech_service()  - the process-wide SpeechService
    require_api_key()     - bearer key check for /v1/* routes

Usage in Route Handlers:
    @router.post("/v1/audio/speech", dependencies=[Depends(require_api_key)])
    async def speech(req: SpeechRequest, service: SpeechService = Depends(get_speech_service)):
        ...
"""
from __future__ import annotations

import hmac
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header

from tts_relay.core.config import Settings, load_settings
from tts_relay.core.errors import AuthenticationError
from tts_relay.core.logging import get_logger, warn
from tts_relay.services.speech_service import SpeechService, get_service

_LOG = get_logger("tts-relay.auth")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache application settings.

    A missing settings file is not an error; every option has a default.
    """
    return load_settings(missing_ok=True)


def get_speech_service() -> SpeechService:
    """Get the singleton SpeechService (shared credential cache and HTTP client)."""
    return get_service(get_settings())


def require_api_key(
    authorization: Optional[str] = Header(default=None),
    service: SpeechService = Depends(get_speech_service),
) -> None:
    """
    Enforce `Authorization: Bearer <key>` when an API key is configured.

    Raises:
        AuthenticationError: Key configured and header missing or wrong.
    """
    expected = service.config.auth.api_key
    if not expected:
        return

    supplied = ""
    if authorization and authorization.startswith("Bearer "):
        supplied = authorization[len("Bearer "):]

    if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        warn(_LOG, "auth_rejected", header_present=authorization is not None)
        raise AuthenticationError("Invalid API key")
