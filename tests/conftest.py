"""
Shared fixtures: an in-process fake of the Edge endpoints.

FakeEdge answers the handshake with a JWT that expires token_ttl seconds
after the fake clock's "now", and answers synthesis with b"[<text>]" so
tests can read back which chunks were synthesized and in what order.
"""
from __future__ import annotations

import asyncio
import base64
import json
import re
from typing import Any, Dict, List

import httpx
import pytest

_PROSODY_TEXT = re.compile(r"<prosody[^>]*>(.*)</prosody>", re.DOTALL)


def make_jwt(exp: float) -> str:
    def _b64(obj: dict) -> str:
        raw = json.dumps(obj).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    return f"{_b64({'alg': 'HS256', 'typ': 'JWT'})}.{_b64({'exp': exp, 'region': 'eastasia'})}.sig"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeEdge:
    """Handshake + synthesis endpoints behind httpx.MockTransport."""

    def __init__(self, clock: FakeClock, token_ttl: float = 600.0, region: str = "eastasia"):
        self.clock = clock
        self.token_ttl = token_ttl
        self.region = region

        self.handshake_status = 200
        self.handshake_delay = 0.0
        self.handshake_body: Any = None
        self.fail_texts: Dict[str, int] = {}
        self.delays: Dict[str, float] = {}
        self.transport_error_texts: set = set()

        self.handshakes = 0
        self.handshake_requests: List[httpx.Request] = []
        self.synth_requests: List[httpx.Request] = []
        self.synth_texts: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "dev.microsofttranslator.com":
            return await self._handshake(request)
        return await self._synthesize(request)

    async def _handshake(self, request: httpx.Request) -> httpx.Response:
        self.handshakes += 1
        self.handshake_requests.append(request)
        if self.handshake_delay:
            await asyncio.sleep(self.handshake_delay)
        if self.handshake_status != 200:
            return httpx.Response(self.handshake_status, text="handshake refused")
        if self.handshake_body is not None:
            return httpx.Response(200, json=self.handshake_body)
        token = make_jwt(self.clock.now + self.token_ttl)
        return httpx.Response(200, json={"r": self.region, "t": token})

    async def _synthesize(self, request: httpx.Request) -> httpx.Response:
        match = _PROSODY_TEXT.search(request.content.decode("utf-8"))
        text = match.group(1) if match else ""
        self.synth_requests.append(request)
        self.synth_texts.append(text)

        if text in self.transport_error_texts:
            raise httpx.ConnectError("connection refused", request=request)

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(text, 0.0))
        finally:
            self.in_flight -= 1

        status = self.fail_texts.get(text)
        if status:
            return httpx.Response(status, text="upstream exploded")
        return httpx.Response(200, content=f"[{text}]".encode("utf-8"))

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_edge(clock) -> FakeEdge:
    return FakeEdge(clock)


@pytest.fixture
def jwt_factory():
    return make_jwt


@pytest.fixture(autouse=True)
def _no_env_api_key(monkeypatch):
    """An API key in the developer's shell must not leak into tests."""
    monkeypatch.delenv("TTS_RELAY_API_KEY", raising=False)


@pytest.fixture
def make_service(fake_edge, clock):
    """Build a SpeechService wired to the fake endpoints."""
    from tts_relay.core.config import Settings
    from tts_relay.services.speech_service import SpeechService

    def _make(raw: dict | None = None) -> SpeechService:
        return SpeechService(Settings(raw=raw or {}), client=fake_edge.client(), clock=clock)

    return _make


@pytest.fixture
def make_client(make_service):
    """TestClient over create_app() with the fake-backed service injected."""
    from fastapi.testclient import TestClient

    from tts_relay.api.dependencies import get_speech_service
    from tts_relay.main import create_app
    from tts_relay.services.speech_service import reset_service

    clients = []

    def _make(raw: dict | None = None) -> TestClient:
        service = make_service(raw)
        app = create_app()
        app.dependency_overrides[get_speech_service] = lambda: service
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)
    reset_service()
