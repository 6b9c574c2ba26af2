"""
Service Routes.

Endpoints:
    GET /v1/models   - OpenAI-style model list (tts-1, tts-1-hd, tts-1-<alias>)
    GET /health      - Liveness plus credential state, for probes
    GET /metrics     - Prometheus exposition

/v1/models needs the API key when one is configured; /health and
/metrics never do.
"""
from __future__ import annotations

import time

from fastapi import APIRouter, Depends, Response

from tts_relay.api.dependencies import get_speech_service, require_api_key
from tts_relay.api.schemas import ModelCard, ModelList
from tts_relay.core.metrics import metrics
from tts_relay.services.speech_service import SpeechService
from tts_relay.services.validators import MODEL_PREFIX, voice_aliases

router = APIRouter()

BASE_MODELS = ("tts-1", "tts-1-hd")


@router.get("/v1/models", response_model=ModelList, dependencies=[Depends(require_api_key)])
async def list_models(service: SpeechService = Depends(get_speech_service)) -> ModelList:
    """List model ids clients can send, one per voice alias."""
    created = int(time.time())
    ids = list(BASE_MODELS) + [f"{MODEL_PREFIX}{alias}" for alias in voice_aliases(service.config)]
    return ModelList(data=[ModelCard(id=model_id, created=created) for model_id in ids])


@router.get("/health")
async def health(service: SpeechService = Depends(get_speech_service)):
    return service.get_health_info()


@router.get("/metrics")
async def prometheus_metrics():
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
