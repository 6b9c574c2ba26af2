"""
tts-relay Services Layer.

The business logic between the API/CLI and the provider layer.

Components:
    - speech_service.py: SpeechService (clean, chunk, batch, deliver)
    - validators.py: Request validation and voice resolution
"""
from .speech_service import (
    SpeechResult,
    SpeechService,
    SynthesisRequest,
    get_service,
    reset_service,
    shutdown_service,
)
from .validators import build_synthesis_request, resolve_voice

__all__ = [
    "SpeechResult",
    "SpeechService",
    "SynthesisRequest",
    "build_synthesis_request",
    "get_service",
    "reset_service",
    "resolve_voice",
    "shutdown_service",
]
