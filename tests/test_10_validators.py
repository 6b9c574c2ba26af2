"""Tests for request validation and voice resolution."""
from __future__ import annotations

import pytest

from tts_relay.core.config import RelayConfig, Settings
from tts_relay.core.errors import ErrorCode, InvalidRequest
from tts_relay.services.speech_service import factor_to_percent
from tts_relay.services.validators import (
    VOICE_ALIASES,
    build_synthesis_request,
    resolve_voice,
    validate_input,
    validate_positive_int,
    validate_speed,
    voice_aliases,
)
from tts_relay.utils.text import CleaningOptions


class TestResolveVoice:
    def test_model_suffix_alias(self):
        assert resolve_voice("tts-1-nova", None, VOICE_ALIASES) == "zh-CN-YunxiNeural"
        assert resolve_voice("tts-1-shimmer", None, VOICE_ALIASES) == "zh-CN-XiaoxiaoNeural"

    def test_explicit_alias_voice(self):
        assert resolve_voice("tts-1", "echo", VOICE_ALIASES) == "zh-CN-liaoning-XiaobeiNeural"

    def test_explicit_voice_id_passes_through(self):
        assert resolve_voice("tts-1-nova", "en-US-JennyNeural", VOICE_ALIASES) == "en-US-JennyNeural"

    def test_unresolvable_model(self):
        with pytest.raises(InvalidRequest) as exc_info:
            resolve_voice("tts-1", None, VOICE_ALIASES)
        assert exc_info.value.code == ErrorCode.INVALID_REQUEST
        assert "tts-1" in exc_info.value.message

    def test_unknown_alias(self):
        with pytest.raises(InvalidRequest):
            resolve_voice("tts-1-robot", None, VOICE_ALIASES)

    def test_configured_aliases_merge(self):
        config = RelayConfig.from_settings(Settings(raw={"voices": {"aliases": {
            "nova": "en-US-AriaNeural",
            "narrator": "en-GB-RyanNeural",
        }}}))
        aliases = voice_aliases(config)

        assert aliases["nova"] == "en-US-AriaNeural"
        assert aliases["narrator"] == "en-GB-RyanNeural"
        assert aliases["shimmer"] == "zh-CN-XiaoxiaoNeural"


class TestFieldValidators:
    @pytest.mark.parametrize("value", [None, "", 42, ["text"]])
    def test_input_required(self, value):
        with pytest.raises(InvalidRequest) as exc_info:
            validate_input(value)
        assert exc_info.value.message == "'input' is a required parameter"

    @pytest.mark.parametrize("value", [0.25, 1, "1.5", 2.0])
    def test_speed_accepted(self, value):
        assert validate_speed(value) == float(value)

    @pytest.mark.parametrize("value", [0.2, 2.01, "fast", None])
    def test_speed_rejected(self, value):
        with pytest.raises(InvalidRequest):
            validate_speed(value)

    @pytest.mark.parametrize("value", [0, -1, 1.5, True, "x", None])
    def test_positive_int_rejected(self, value):
        with pytest.raises(InvalidRequest):
            validate_positive_int("concurrency", value)

    def test_positive_int_accepted(self):
        assert validate_positive_int("chunk_size", 1) == 1
        assert validate_positive_int("chunk_size", 3.0) == 3


class TestPercent:
    @pytest.mark.parametrize("factor,expected", [
        (1.0, 0),
        (1.5, 50),
        (0.5, -50),
        (2.0, 100),
        (0.25, -75),
        (1.125, 13),
        (0.875, -13),
        (1.004, 0),
    ])
    def test_factor_to_percent(self, factor, expected):
        assert factor_to_percent(factor) == expected


class TestBuildRequest:
    def test_defaults(self):
        req = build_synthesis_request("你好", model="tts-1-nova")

        assert req.voice == "zh-CN-YunxiNeural"
        assert req.concurrency == 10
        assert req.chunk_size == 300
        assert req.style == "general"
        assert req.stream is False
        assert req.rate_percent == 0
        assert req.cleaning == CleaningOptions()

    def test_config_defaults_applied(self):
        config = RelayConfig.from_settings(Settings(raw={"synthesis": {
            "default_concurrency": 3, "default_chunk_size": 50, "default_style": "calm",
        }}))
        req = build_synthesis_request("x", model="tts-1-nova", config=config)

        assert (req.concurrency, req.chunk_size, req.style) == (3, 50, "calm")

    def test_configured_default_model(self):
        config = RelayConfig.from_settings(Settings(raw={"synthesis": {"default_model": "tts-1-onyx"}}))
        req = build_synthesis_request("x", config=config)
        assert req.voice == "zh-CN-XiaoyiNeural"

    def test_voice_params(self):
        req = build_synthesis_request("x", voice="v", speed=1.5, pitch=0.9, style="sad")
        params = req.voice_params("riff-24khz-16bit-mono-pcm")

        assert params.voice == "v"
        assert params.rate == 50
        assert params.pitch == -10
        assert params.style == "sad"
        assert params.output_format == "riff-24khz-16bit-mono-pcm"

    def test_missing_input_checked_first(self):
        """A missing input is reported even when the voice is also unusable."""
        with pytest.raises(InvalidRequest) as exc_info:
            build_synthesis_request(None, model="tts-1")
        assert "input" in exc_info.value.message

    def test_invalid_concurrency(self):
        with pytest.raises(InvalidRequest) as exc_info:
            build_synthesis_request("x", voice="v", concurrency=0)
        assert exc_info.value.details["param"] == "concurrency"
