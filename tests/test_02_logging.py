"""Tests for the logging level system, formatters and request ids."""
from __future__ import annotations

import json
import logging


class TestLogLevelEnum:
    """Test LogLevel enum values."""

    def test_level_enum_values(self):
        from tts_relay.core.logging import LogLevel

        assert LogLevel.MINIMAL == 1
        assert LogLevel.NORMAL == 2
        assert LogLevel.VERBOSE == 3
        assert LogLevel.DEBUG == 4

    def test_level_map(self):
        """Numeric levels map onto increasingly chatty Python levels."""
        from tts_relay.core.logging import LEVEL_MAP, LogLevel

        assert LEVEL_MAP[LogLevel.MINIMAL] == logging.WARNING
        assert LEVEL_MAP[LogLevel.NORMAL] == logging.INFO
        assert LEVEL_MAP[LogLevel.VERBOSE] == logging.DEBUG
        assert LEVEL_MAP[LogLevel.DEBUG] < logging.DEBUG


class TestLevelCoercion:
    """Test level coercion from various input types."""

    def test_from_int(self):
        from tts_relay.core.logging import LogLevel, coerce_level

        assert coerce_level(1) == LogLevel.MINIMAL
        assert coerce_level(4) == LogLevel.DEBUG

    def test_from_names(self):
        from tts_relay.core.logging import LogLevel, coerce_level

        assert coerce_level("minimal") == LogLevel.MINIMAL
        assert coerce_level("VERBOSE") == LogLevel.VERBOSE
        assert coerce_level("info") == LogLevel.NORMAL
        assert coerce_level("3") == LogLevel.VERBOSE

    def test_from_python_levels(self):
        from tts_relay.core.logging import LogLevel, coerce_level

        assert coerce_level(logging.WARNING) == LogLevel.MINIMAL
        assert coerce_level(logging.INFO) == LogLevel.NORMAL
        assert coerce_level(logging.DEBUG) == LogLevel.DEBUG

    def test_garbage_falls_back_to_normal(self):
        from tts_relay.core.logging import LogLevel, coerce_level

        assert coerce_level("loud") == LogLevel.NORMAL
        assert coerce_level(None) == LogLevel.NORMAL


class TestRequestId:
    def test_default_and_set(self):
        import contextvars

        from tts_relay.core.logging import get_request_id, set_request_id

        def _check():
            assert get_request_id() == "-"
            set_request_id("abc123")
            assert get_request_id() == "abc123"

        contextvars.Context().run(_check)

    def test_tasks_inherit_request_id(self):
        """Per-chunk tasks see the request id of the request that spawned them."""
        import asyncio
        import contextvars

        from tts_relay.core.logging import get_request_id, set_request_id

        async def run_test():
            set_request_id("req-42")

            async def child():
                return get_request_id()

            return await asyncio.gather(asyncio.ensure_future(child()), asyncio.ensure_future(child()))

        seen = contextvars.copy_context().run(asyncio.run, run_test())
        assert seen == ["req-42", "req-42"]


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("tts-relay.test", logging.INFO, __file__, 1, "speech_request", None, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


class TestFormatters:
    def test_jsonl_fields(self):
        from tts_relay.core.logging import JsonlFormatter

        line = JsonlFormatter().format(_record(
            tag="INFO",
            request_id="rid1",
            numeric_level=2,
            seconds=0.25,
            extra_data={"chars": 12, "voice": "zh-CN-XiaoxiaoNeural"},
        ))
        payload = json.loads(line)

        assert payload["message"] == "speech_request"
        assert payload["request_id"] == "rid1"
        assert payload["level"] == 2
        assert payload["seconds"] == 0.25
        assert payload["extra"] == {"chars": 12, "voice": "zh-CN-XiaoxiaoNeural"}
        assert "ts" in payload

    def test_jsonl_omits_empty_optionals(self):
        from tts_relay.core.logging import JsonlFormatter

        payload = json.loads(JsonlFormatter().format(_record(tag="WARN", request_id="-")))
        assert "extra" not in payload
        assert "seconds" not in payload
        assert "event" not in payload

    def test_console_plain_when_colors_off(self, monkeypatch):
        from tts_relay.core.logging import ColoredConsoleFormatter, colors

        monkeypatch.setattr(colors, "USE_COLORS", False)
        line = ColoredConsoleFormatter().format(_record(
            tag="SUCCESS", request_id="rid9", seconds=1.5, extra_data={"windows": 3},
        ))

        assert "\033[" not in line
        assert "(rid9)" in line
        assert "speech_request" in line
        assert "1.500s" in line
        assert "windows=3" in line

    def test_console_colors_status(self, monkeypatch):
        from tts_relay.core.logging import ColoredConsoleFormatter, Colors, colors

        monkeypatch.setattr(colors, "USE_COLORS", True)
        line = ColoredConsoleFormatter().format(_record(tag="FAIL", request_id="-", extra_data={"status": 502}))
        assert f"{Colors.RED}status=502{Colors.RESET}" in line


class TestColorSupport:
    def test_no_color_env(self, monkeypatch):
        from tts_relay.core.logging import supports_color

        monkeypatch.setenv("TTS_RELAY_NO_COLOR", "1")
        assert supports_color() is False

        monkeypatch.delenv("TTS_RELAY_NO_COLOR")
        monkeypatch.setenv("NO_COLOR", "1")
        assert supports_color() is False

    def test_tag_colors(self):
        from tts_relay.core.logging import Colors, get_tag_color

        assert get_tag_color("success") == Colors.BRIGHT_GREEN
        assert get_tag_color("FAIL") == Colors.BRIGHT_RED
        assert get_tag_color("unknown") == Colors.WHITE


class TestLoggingConfig:
    def test_env_overrides(self, tmp_path, monkeypatch):
        from tts_relay.core.logging.context import read_logging_config

        settings = tmp_path / "settings.yaml"
        settings.write_text("logging:\n  level: 1\n  log_dir: from-file\n", encoding="utf-8")
        monkeypatch.setenv("TTS_RELAY_SETTINGS", str(settings))
        monkeypatch.setenv("TTS_RELAY_LOG_LEVEL", "4")
        monkeypatch.setenv("TTS_RELAY_LOG_ROTATE_BYTES", "2048")
        monkeypatch.setenv("TTS_RELAY_LOG_ROTATE_BACKUP", "not-a-number")

        cfg = read_logging_config()

        assert cfg["level"] == "4"
        assert cfg["log_dir"] == "from-file"
        assert cfg["rotate_max_bytes"] == 2048
        assert "rotate_backup_count" not in cfg

    def test_jsonl_file_written(self, tmp_path, monkeypatch):
        """With a log dir configured, records land in tts-relay.jsonl."""
        from tts_relay.core import logging as relay_logging

        monkeypatch.setenv("TTS_RELAY_SETTINGS", str(tmp_path / "missing.yaml"))
        monkeypatch.setenv("TTS_RELAY_LOG_DIR", str(tmp_path / "logs"))
        monkeypatch.setenv("TTS_RELAY_LOG_LEVEL", "2")

        try:
            relay_logging.configure_logging(force=True)
            log = relay_logging.get_logger("tts-relay.test")
            relay_logging.info(log, "persisted_line", chars=5)
            for handler in logging.getLogger().handlers:
                handler.flush()

            lines = (tmp_path / "logs" / "tts-relay.jsonl").read_text(encoding="utf-8").splitlines()
            payloads = [json.loads(line) for line in lines]
            assert any(p["message"] == "persisted_line" and p["extra"] == {"chars": 5} for p in payloads)
        finally:
            for handler in logging.getLogger().handlers:
                handler.close()
            monkeypatch.delenv("TTS_RELAY_LOG_DIR")
            relay_logging.configure_logging(force=True)

    def test_level_gates_verbose(self, monkeypatch):
        """verbose() is dropped at NORMAL and emitted at VERBOSE."""
        from tts_relay.core import logging as relay_logging
        from tts_relay.core.logging import LogLevel
        from tts_relay.core.logging.context import set_level

        log = relay_logging.get_logger("tts-relay.gate")
        seen = []

        class _Capture(logging.Handler):
            def emit(self, record):
                seen.append(record.getMessage())

        handler = _Capture(level=1)
        log.addHandler(handler)
        previous = relay_logging.get_level()
        try:
            set_level(LogLevel.NORMAL)
            relay_logging.verbose(log, "hidden")
            relay_logging.info(log, "shown")
            set_level(LogLevel.VERBOSE)
            relay_logging.verbose(log, "now_shown")
        finally:
            set_level(previous)
            log.removeHandler(handler)

        assert seen == ["shown", "now_shown"]


class TestContextAccessors:
    def test_level_and_config_round_trip(self):
        from tts_relay.core.logging import context
        from tts_relay.core.logging.levels import LogLevel

        saved_level = context.get_level()
        saved_config = context.get_log_config()
        try:
            context.set_level(LogLevel.VERBOSE)
            assert context.get_level() == LogLevel.VERBOSE
            assert context.get_level_name() == "VERBOSE"

            context.set_log_config({"level": 3, "log_dir": "logs"})
            assert context.get_log_config() == {"level": 3, "log_dir": "logs"}
        finally:
            context.set_level(saved_level)
            context.set_log_config(saved_config)

    def test_accessors_documented(self):
        import inspect

        from tts_relay.core.logging import context

        for name in ("get_request_id", "set_request_id", "get_level", "set_level",
                     "get_level_name", "is_configured", "set_configured",
                     "get_log_config", "set_log_config", "read_logging_config"):
            doc = inspect.getdoc(getattr(context, name))
            assert doc, name
            assert "Returns:" in doc or "Args:" in doc, name
