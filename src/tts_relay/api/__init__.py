"""
FastAPI REST API Layer for tts-relay.

This package defines all HTTP endpoints:
    - openai_compat.py: OpenAI-compatible endpoint (/v1/audio/speech)
    - routes.py: /v1/models, /health, /metrics
    - schemas.py: Request/response Pydantic models
    - dependencies.py: FastAPI dependency injection and API key check
"""
