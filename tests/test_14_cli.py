"""Tests for the tts-relay CLI."""
from __future__ import annotations

import json

import pytest


def _json_line(out: str) -> dict:
    for line in out.splitlines():
        if line.startswith('{"ok"'):
            return json.loads(line)
    raise AssertionError(f"no JSON payload in output:\n{out}")


@pytest.fixture
def fake_cli_service(monkeypatch, fake_edge, clock):
    """Route the CLI's SpeechService through the fake endpoints."""
    from tts_relay import cli
    from tts_relay.services.speech_service import SpeechService

    monkeypatch.setattr(
        cli,
        "SpeechService",
        lambda settings: SpeechService(settings, client=fake_edge.client(), clock=clock),
    )
    return fake_edge


class TestDryRun:
    def test_dry_run_json(self, capsys):
        from tts_relay.cli import main

        code = main([
            "--text", "**Hello**, world. Second sentence!",
            "--model", "tts-1-nova",
            "--chunk-size", "10",
            "--concurrency", "3",
            "--dry-run", "--json",
        ])

        out = capsys.readouterr().out
        assert code == 0
        assert "DRY_RUN_OK" in out

        item = _json_line(out)["items"][0]
        assert item["voice"] == "zh-CN-YunxiNeural"
        assert item["chunks"] == ["Hello,", "world.", "Second sentence", "!"]
        assert item["windows"] == 2

    def test_keep_flags(self, capsys):
        from tts_relay.cli import main

        main(["😀 **x** 1.", "--voice", "v", "--keep-emoji", "--keep-markdown", "--keep-citations", "--dry-run", "--json"])
        item = _json_line(capsys.readouterr().out)["items"][0]
        assert item["chunks"] == ["😀 **x** 1."]

    def test_requires_text(self):
        from tts_relay.cli import main

        with pytest.raises(SystemExit):
            main(["--dry-run"])

    def test_invalid_request_exits(self):
        from tts_relay.cli import main

        with pytest.raises(SystemExit) as exc_info:
            main(["--text", "hi", "--model", "tts-1", "--dry-run"])
        assert "Invalid voice model" in str(exc_info.value.code)


class TestSynthesis:
    def test_writes_file(self, tmp_path, capsys, fake_cli_service):
        from tts_relay.cli import main

        out = tmp_path / "hello.mp3"
        code = main(["Hello, world.", "--voice", "nova", "--out", str(out), "--json"])

        assert code == 0
        assert out.read_bytes() == b"[Hello, world.]"
        payload = _json_line(capsys.readouterr().out)
        assert payload["ok"] is True
        assert payload["items"][0]["bytes"] == len(b"[Hello, world.]")

    def test_stream_mode(self, tmp_path, fake_cli_service):
        from tts_relay.cli import main

        out = tmp_path / "long.mp3"
        code = main(["a. b. c.", "--voice", "nova", "--chunk-size", "3", "--concurrency", "2",
                     "--stream", "--out", str(out)])

        assert code == 0
        assert out.read_bytes() == b"[a.][b.][c.]"

    def test_batch_file(self, tmp_path, fake_cli_service):
        from tts_relay.cli import main

        inputs = tmp_path / "inputs.txt"
        inputs.write_text("first.\n\nsecond.\n", encoding="utf-8")
        out_dir = tmp_path / "out"

        code = main(["--file", str(inputs), "--voice", "nova", "--out", str(out_dir)])

        assert code == 0
        assert (out_dir / "item_001.mp3").read_bytes() == b"[first.]"
        assert (out_dir / "item_002.mp3").read_bytes() == b"[second.]"

    def test_provider_failure_exit_code(self, tmp_path, capsys, fake_cli_service):
        from tts_relay.cli import main

        fake_cli_service.handshake_status = 500
        code = main(["Hello.", "--voice", "nova", "--out", str(tmp_path / "x.mp3"), "--json"])

        assert code == 1
        payload = _json_line(capsys.readouterr().out)
        assert payload["ok"] is False
        assert payload["error"]["code"] == "credential_error"
