"""
Log formatters: JSON Lines for files, colored single lines for the console.

    JSONL:
        {"ts":"2026-01-15T14:30:05+03:00","level":2,"tag":"INFO","message":"speech_request","request_id":"3f2a9c1d0b4e","extra":{"chars":412}}

    Console:
        14:30:05 [ INFO  ] (3f2a9c1d0b4e) speech_request chars=412 mode=stream
        14:30:06 [SUCCESS] (3f2a9c1d0b4e) speech_done 0.842s bytes=48211
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict

from . import colors
from .colors import Colors, get_tag_color


class JsonlFormatter(logging.Formatter):
    """One JSON object per record: ts, level, tag, message, request_id and optional event/seconds/extra."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": getattr(record, "numeric_level", 2),
            "tag": getattr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }

        event = getattr(record, "event", None)
        if event:
            payload["event"] = event

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            payload["seconds"] = seconds

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra"] = extra_data

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Human-readable console lines.

    Format: HH:MM:SS [ TAG ] (rid) message event=.. 0.123s key=value

    Durations are green under 0.1s, yellow under 1s and red above.
    HTTP status fields are red when >= 400.
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tag = getattr(record, "tag", record.levelname)
        rid = getattr(record, "request_id", "-")

        parts = [
            self._paint(ts, Colors.DIM),
            self._paint(f"[{tag:^7}]", get_tag_color(tag)),
        ]
        if rid != "-":
            parts.append(self._paint(f"({rid})", Colors.DIM + Colors.CYAN))
        parts.append(record.getMessage())

        event = getattr(record, "event", None)
        if event:
            parts.append(self._paint(f"event={event}", Colors.BLUE))

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            if seconds < 0.1:
                time_color = Colors.GREEN
            elif seconds < 1.0:
                time_color = Colors.YELLOW
            else:
                time_color = Colors.RED
            parts.append(self._paint(f"{seconds:.3f}s", time_color))

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            for k, v in extra_data.items():
                parts.append(self._paint(f"{k}={v}", self._field_color(k, v)))

        return " ".join(parts)

    @staticmethod
    def _paint(text: str, color: str) -> str:
        if not colors.USE_COLORS:
            return text
        return f"{color}{text}{Colors.RESET}"

    @staticmethod
    def _field_color(key: str, value: Any) -> str:
        if key == "status" and isinstance(value, int):
            return Colors.RED if value >= 400 else Colors.GREEN
        if key in ("window", "windows", "chunk", "chunks"):
            return Colors.MAGENTA
        if key in ("error", "code"):
            return Colors.RED
        return Colors.DIM
