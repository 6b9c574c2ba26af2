"""
Input validation and voice resolution for speech requests.

Everything an entry point receives (HTTP JSON, CLI flags) goes through
build_synthesis_request() before any text processing or provider call,
so a bad request never costs an outbound request.

Voice Resolution:
    1. An explicit `voice` wins. If it names an alias ("nova"), the
       alias is translated; otherwise it is used as a provider voice id.
    2. Without a voice, the model suffix is looked up:
           "tts-1-nova" -> "nova" -> zh-CN-YunxiNeural
    3. Nothing resolved -> InvalidRequest.

The alias table can be extended or overridden under `voices.aliases`
in settings.yaml.

Validation Rules:
    - input: required, non-empty string
    - speed: 0.25 .. 2.0
    - pitch: finite number
    - concurrency, chunk_size: integers >= 1
"""
from __future__ import annotations

import math
from typing import Any, Dict, Mapping, Optional

from tts_relay.core.config import Defaults, RelayConfig
from tts_relay.core.errors import InvalidRequest
from tts_relay.core.logging import get_logger, warn
from tts_relay.services.speech_service import SynthesisRequest
from tts_relay.utils.text import CleaningOptions

_LOG = get_logger("tts-relay.validators")

MODEL_PREFIX = "tts-1-"

VOICE_ALIASES: Dict[str, str] = {
    "shimmer": "zh-CN-XiaoxiaoNeural",
    "alloy": "zh-CN-YunyangNeural",
    "fable": "zh-CN-YunjianNeural",
    "onyx": "zh-CN-XiaoyiNeural",
    "nova": "zh-CN-YunxiNeural",
    "echo": "zh-CN-liaoning-XiaobeiNeural",
}


def voice_aliases(config: Optional[RelayConfig] = None) -> Dict[str, str]:
    """Built-in aliases with any configured overrides applied."""
    merged = dict(VOICE_ALIASES)
    if config is not None:
        merged.update(config.voice_aliases)
    return merged


def resolve_voice(model: Optional[str], voice: Optional[str], aliases: Mapping[str, str]) -> str:
    """
    Resolve the provider voice id for a request.

    Raises:
        InvalidRequest: No voice given and the model names no known alias.
    """
    if voice:
        return aliases.get(voice, voice)

    model = model or Defaults.SYNTHESIS_DEFAULT_MODEL
    resolved = aliases.get(model.replace(MODEL_PREFIX, ""))
    if resolved:
        return resolved

    warn(_LOG, "voice_unresolved", model=model)
    raise InvalidRequest(
        f"Invalid voice model - model: {model}, voice: {voice}. "
        f"Pass 'voice' or use a model like '{MODEL_PREFIX}<alias>' with alias one of: {', '.join(sorted(aliases))}",
        details={"param": "voice"},
    )


def validate_input(text: Any) -> str:
    """
    Validate the text to synthesize.

    Raises:
        InvalidRequest: Missing, empty or not a string.
    """
    if not text or not isinstance(text, str):
        raise InvalidRequest("'input' is a required parameter", details={"param": "input"})
    return text


def validate_speed(speed: Any) -> float:
    try:
        value = float(speed)
    except (TypeError, ValueError):
        raise InvalidRequest(f"'speed' must be a number, got {speed!r}", details={"param": "speed"})
    if not (Defaults.SYNTHESIS_MIN_SPEED <= value <= Defaults.SYNTHESIS_MAX_SPEED):
        raise InvalidRequest(
            f"'speed' must be between {Defaults.SYNTHESIS_MIN_SPEED} and {Defaults.SYNTHESIS_MAX_SPEED}, got {value}",
            details={"param": "speed"},
        )
    return value


def validate_pitch(pitch: Any) -> float:
    try:
        value = float(pitch)
    except (TypeError, ValueError):
        raise InvalidRequest(f"'pitch' must be a number, got {pitch!r}", details={"param": "pitch"})
    if not math.isfinite(value):
        raise InvalidRequest("'pitch' must be finite", details={"param": "pitch"})
    return value


def validate_positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidRequest(f"'{name}' must be an integer >= 1, got {value!r}", details={"param": name})
    try:
        as_int = int(value)
    except (TypeError, ValueError):
        raise InvalidRequest(f"'{name}' must be an integer >= 1, got {value!r}", details={"param": name})
    if as_int != value or as_int < 1:
        raise InvalidRequest(f"'{name}' must be an integer >= 1, got {value!r}", details={"param": name})
    return as_int


def build_synthesis_request(
    text: Any,
    *,
    model: Optional[str] = None,
    voice: Optional[str] = None,
    speed: Any = 1.0,
    pitch: Any = 1.0,
    style: Optional[str] = None,
    stream: bool = False,
    concurrency: Any = None,
    chunk_size: Any = None,
    cleaning: Optional[CleaningOptions] = None,
    config: Optional[RelayConfig] = None,
) -> SynthesisRequest:
    """
    Validate raw request fields and build a SynthesisRequest.

    Unset optional fields take their defaults from config (or Defaults).

    Raises:
        InvalidRequest: Any field fails validation.
    """
    config = config or RelayConfig()
    synthesis = config.synthesis

    text = validate_input(text)
    resolved_voice = resolve_voice(model or synthesis.default_model, voice, voice_aliases(config))

    return SynthesisRequest(
        text=text,
        voice=resolved_voice,
        speed=validate_speed(speed),
        pitch=validate_pitch(pitch),
        style=style or synthesis.default_style,
        stream=bool(stream),
        concurrency=validate_positive_int(
            "concurrency", synthesis.default_concurrency if concurrency is None else concurrency
        ),
        chunk_size=validate_positive_int(
            "chunk_size", synthesis.default_chunk_size if chunk_size is None else chunk_size
        ),
        cleaning=cleaning or CleaningOptions(),
    )
