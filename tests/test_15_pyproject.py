"""Tests for pyproject.toml and package layout."""
from __future__ import annotations

import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).parent.parent


class TestPackageImports:
    def test_version_defined(self):
        import tts_relay

        assert isinstance(tts_relay.__version__, str)
        assert tts_relay.__version__

    def test_modules_importable(self):
        from tts_relay.api import openai_compat, routes, schemas
        from tts_relay.core import config, errors, metrics
        from tts_relay.services import SpeechService, build_synthesis_request
        from tts_relay.tts import batcher, chunker, credentials, provider, sink, ssml
        from tts_relay.utils import text, timeit

        assert all(m is not None for m in (
            openai_compat, routes, schemas, config, errors, metrics,
            batcher, chunker, credentials, provider, sink, ssml, text, timeit,
        ))
        assert SpeechService is not None
        assert build_synthesis_request is not None


class TestCLIEntryPoint:
    def test_cli_help_exits_zero(self):
        result = subprocess.run(
            [sys.executable, "-m", "tts_relay.cli", "--help"],
            capture_output=True,
            text=True,
            cwd=ROOT,
            env={"PYTHONPATH": str(ROOT / "src"), "PATH": ""},
        )
        assert result.returncode == 0
        assert "tts-relay CLI" in result.stdout


class TestPyprojectToml:
    def _load(self) -> dict:
        import tomllib

        with open(ROOT / "pyproject.toml", "rb") as f:
            return tomllib.load(f)

    def test_project_metadata(self):
        project = self._load()["project"]
        assert project["name"] == "tts-relay"
        assert project["scripts"]["tts-relay"] == "tts_relay.cli:main"

    def test_runtime_dependencies(self):
        deps = " ".join(self._load()["project"]["dependencies"])
        for name in ("fastapi", "uvicorn", "pydantic", "httpx", "pyyaml", "prometheus-client", "regex"):
            assert name in deps

    def test_test_extra(self):
        extras = self._load()["project"]["optional-dependencies"]
        assert any(d.startswith("pytest") for d in extras["test"])
