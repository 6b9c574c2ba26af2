"""
OpenAI-Compatible Speech Endpoint.

POST /v1/audio/speech accepts OpenAI's TTS request format (plus relay
extensions: pitch, style, stream, concurrency, chunk_size,
cleaning_options) and answers with audio/mpeg.

    curl -X POST http://localhost:8000/v1/audio/speech \\
        -H "Authorization: Bearer $TTS_RELAY_API_KEY" \\
        -H "Content-Type: application/json" \\
        -d '{"model": "tts-1-shimmer", "input": "你好，世界！"}' \\
        --output speech.mp3

Error Responses:
    {"error": {"message": "...", "type": "...", "param": null, "code": "..."}}

    invalid_request_error  400   bad JSON, schema violation, missing input, unknown voice
    invalid_api_key        401   API key configured and not supplied
    credential_error       502   provider handshake failed, nothing cached
    tts_generation_error   502   a provider synthesis call failed
    internal_server_error  500   anything else

In stream mode the first window is synthesized before the response
starts, so early failures still produce the JSON error above. A failure
after audio has been sent ends the stream early.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse

from tts_relay.api.dependencies import get_speech_service, require_api_key
from tts_relay.api.schemas import SpeechRequest
from tts_relay.core.errors import ErrorCode, RelayError, error_body
from tts_relay.core.logging import debug, error, get_logger, info, set_request_id, warn
from tts_relay.services.speech_service import SpeechService
from tts_relay.services.validators import build_synthesis_request

router = APIRouter()

_LOG = get_logger("tts-relay.openai")

AUDIO_MEDIA_TYPE = "audio/mpeg"

STATUS_MAP = {
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.INVALID_API_KEY: 401,
    ErrorCode.CREDENTIAL_ERROR: 502,
    ErrorCode.PROVIDER_ERROR: 502,
    ErrorCode.STREAM_ABORTED: 502,
    ErrorCode.INTERNAL_ERROR: 500,
}


def relay_error_response(exc: RelayError) -> JSONResponse:
    """Render a RelayError as an OpenAI-style JSON error with its mapped status."""
    return JSONResponse(status_code=STATUS_MAP.get(exc.code, 500), content=exc.to_dict())


def _internal_error_response() -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content=error_body("Internal server error", "api_error", ErrorCode.INTERNAL_ERROR),
    )


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    """App-level handler for RelayErrors raised outside endpoints (e.g. auth)."""
    return relay_error_response(exc)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed JSON and schema violations in the OpenAI envelope with status 400."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request body"
    warn(_LOG, "request_rejected", path=request.url.path, error=message)
    return JSONResponse(
        status_code=400,
        content=error_body(message, "invalid_request_error", ErrorCode.INVALID_REQUEST),
    )


@router.post("/v1/audio/speech", response_class=Response, dependencies=[Depends(require_api_key)])
async def openai_speech(
    req: SpeechRequest,
    service: SpeechService = Depends(get_speech_service),
):
    """
    Synthesize speech and return MP3 audio.

    Returns:
        audio/mpeg body (whole file, or a chunked stream when stream=true)
        with an X-Request-Id header.
    """
    rid = str(uuid.uuid4())[:12]
    set_request_id(rid)

    try:
        synth_request = build_synthesis_request(
            req.input,
            model=req.model,
            voice=req.voice,
            speed=req.speed,
            pitch=req.pitch,
            style=req.style,
            stream=req.stream,
            concurrency=req.concurrency,
            chunk_size=req.chunk_size,
            cleaning=req.cleaning_options.to_options(),
            config=service.config,
        )

        info(
            _LOG,
            "speech_request",
            chars=len(synth_request.text),
            model=req.model,
            voice=synth_request.voice,
            mode="stream" if synth_request.stream else "buffered",
            concurrency=synth_request.concurrency,
            chunk_size=synth_request.chunk_size,
        )
        debug(_LOG, "speech_request_full", text=synth_request.text, speed=synth_request.speed, pitch=synth_request.pitch)

        if req.response_format and req.response_format != "mp3":
            warn(_LOG, "format_unsupported", requested=req.response_format, using="mp3")

        headers = {
            "X-Request-Id": rid,
            "X-Voice": synth_request.voice,
        }

        if synth_request.stream:
            body = await service.synthesize_stream(synth_request, rid)
            return StreamingResponse(body, media_type=AUDIO_MEDIA_TYPE, headers=headers)

        result = await service.synthesize(synth_request, rid)
        headers["X-Chunks"] = str(result.chunks)
        return Response(content=result.audio, media_type=AUDIO_MEDIA_TYPE, headers=headers)

    except RelayError as e:
        return relay_error_response(e)

    except Exception as e:
        error(_LOG, "speech_request_crashed", error=repr(e))
        return _internal_error_response()
