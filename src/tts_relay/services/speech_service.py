"""
Speech Service - the synthesis pipeline behind every entry point.

This module provides the SpeechService class, shared by the HTTP API
and the CLI. A request flows through:

    SynthesisRequest
      -> clean_text()            markdown/emoji/URL/citation removal
      -> smart_chunk_text()      punctuation-bounded chunks
      -> BatchOrchestrator       windowed concurrent provider calls
      -> bytes (buffered) or an async byte iterator (streamed)

The service owns one httpx.AsyncClient and one CredentialManager for the
process, so the provider token is shared across requests.

Usage:
    service = get_service(load_settings(missing_ok=True))
    result = await service.synthesize(request, request_id="a1b2c3")
    with open("speech.mp3", "wb") as f:
        f.write(result.audio)
"""
from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import httpx

from tts_relay import __version__
from tts_relay.core.config import Defaults, RelayConfig, Settings
from tts_relay.core.errors import RelayError
from tts_relay.core.logging import error, fail, get_logger, info, success, verbose, warn
from tts_relay.core.metrics import metrics
from tts_relay.tts.batcher import BatchOrchestrator, BatchStats
from tts_relay.tts.chunker import smart_chunk_text
from tts_relay.tts.credentials import CredentialManager
from tts_relay.tts.provider import EdgeSynthesisClient, VoiceParams
from tts_relay.tts.sink import AudioSink, QueueAudioSink
from tts_relay.utils.text import CleaningOptions, clean_text
from tts_relay.utils.timeit import timeit

_LOG = get_logger("tts-relay.service")


# =============================================================================
# Request/Response Dataclasses
# =============================================================================

@dataclass(frozen=True)
class SynthesisRequest:
    """
    A validated speech request.

    Built by services.validators.build_synthesis_request(); every field is
    already checked and defaulted.

    Attributes:
        text: Raw input text (cleaned by the service).
        voice: Provider voice id, e.g. "zh-CN-XiaoxiaoNeural".
        speed: Speaking speed factor in [0.25, 2.0].
        pitch: Pitch factor (1.0 = unchanged).
        style: Speaking style.
        stream: Deliver audio window by window.
        concurrency: Chunks synthesized at once (batch window size).
        chunk_size: Target maximum characters per chunk.
        cleaning: Text cleaning switches.
    """
    text: str
    voice: str
    speed: float = 1.0
    pitch: float = 1.0
    style: str = Defaults.SYNTHESIS_DEFAULT_STYLE
    stream: bool = False
    concurrency: int = Defaults.SYNTHESIS_DEFAULT_CONCURRENCY
    chunk_size: int = Defaults.SYNTHESIS_DEFAULT_CHUNK_SIZE
    cleaning: CleaningOptions = field(default_factory=CleaningOptions)

    @property
    def rate_percent(self) -> int:
        return factor_to_percent(self.speed)

    @property
    def pitch_percent(self) -> int:
        return factor_to_percent(self.pitch)

    def voice_params(self, output_format: str = Defaults.PROVIDER_OUTPUT_FORMAT) -> VoiceParams:
        return VoiceParams(
            voice=self.voice,
            rate=self.rate_percent,
            pitch=self.pitch_percent,
            style=self.style,
            output_format=output_format,
        )


@dataclass
class SpeechResult:
    """
    Result of buffered synthesis.

    Attributes:
        audio: Concatenated audio in the provider's output format.
        chunks: Number of chunks synthesized.
        windows: Number of batch windows run.
        total_seconds: Wall time for the whole request.
        request_id: Request ID for tracing.
        timings: Per-stage timing breakdown.
    """
    audio: bytes
    chunks: int
    windows: int
    total_seconds: float
    request_id: str
    timings: Dict[str, float] = field(default_factory=dict)


def factor_to_percent(factor: float) -> int:
    """
    Convert a multiplicative factor to a signed percent change.

    Halves round away from zero: 1.125 -> 13, 0.875 -> -13.
    """
    value = round((factor - 1.0) * 100.0, 6)
    magnitude = int(abs(value) + 0.5)
    return magnitude if value >= 0 else -magnitude


# =============================================================================
# Main Service Class
# =============================================================================

class SpeechService:
    """
    Speech synthesis pipeline over the Edge provider.

    Args:
        settings: Application settings.
        client: Outbound HTTP client. Created from the provider config when
            omitted; a client passed in is not closed by aclose().
        clock: Epoch-seconds clock for credential expiry (tests).
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._settings = settings
        self._config = RelayConfig.from_settings(settings)

        # ─────────────────────────────────────────────────────────────────────
        # Outbound HTTP
        # ─────────────────────────────────────────────────────────────────────
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self._config.provider.timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Provider pipeline
        # ─────────────────────────────────────────────────────────────────────
        self._credentials = CredentialManager(
            self._client,
            endpoint_url=self._config.provider.endpoint_url,
            refresh_skew_s=self._config.credentials.refresh_skew_s,
            user_agent=self._config.provider.user_agent,
            clock=clock,
        )
        self._synth = EdgeSynthesisClient(
            self._client,
            self._credentials,
            synth_url=self._config.provider.synth_url,
            user_agent=self._config.provider.user_agent,
        )
        self._orchestrator = BatchOrchestrator(self._synth)

        self._text_preview_chars = self._config.logging.text_preview_chars
        self._started_at = time.time()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def config(self) -> RelayConfig:
        return self._config

    @property
    def credentials(self) -> CredentialManager:
        return self._credentials

    @property
    def orchestrator(self) -> BatchOrchestrator:
        return self._orchestrator

    # =========================================================================
    # Text Preparation
    # =========================================================================

    def prepare(self, request: SynthesisRequest) -> List[str]:
        """Clean and chunk the request text."""
        with timeit("clean") as t_clean:
            cleaned = clean_text(request.text, request.cleaning)
        chunk_result = smart_chunk_text(cleaned, request.chunk_size)

        verbose(
            _LOG,
            "prepared",
            chars_in=len(request.text),
            chars_out=len(cleaned),
            chunks=len(chunk_result.chunks),
            clean_s=round(t_clean.timing.seconds, 4) if t_clean.timing else None,
        )
        if not chunk_result.chunks:
            warn(_LOG, "empty_after_cleaning", chars_in=len(request.text))
        return chunk_result.chunks

    def _preview(self, text: str) -> str:
        if len(text) <= self._text_preview_chars:
            return text
        return text[: self._text_preview_chars] + "..."

    # =========================================================================
    # Buffered Synthesis
    # =========================================================================

    async def synthesize(self, request: SynthesisRequest, request_id: str) -> SpeechResult:
        """
        Synthesize the whole request and return the concatenated audio.

        Raises:
            CredentialError: No provider credential could be obtained.
            ProviderError: A chunk failed; no partial audio is returned.
        """
        timings: Dict[str, float] = {}
        info(_LOG, "synthesis_start", mode="buffered", voice=request.voice, text=self._preview(request.text))

        with timeit("total") as t_total:
            chunks = self.prepare(request)
            stats = BatchStats()
            try:
                with timeit("synth") as t_synth:
                    audio = await self._orchestrator.run_buffered(
                        chunks,
                        request.concurrency,
                        request.voice_params(self._config.provider.output_format),
                        stats=stats,
                    )
            except RelayError as e:
                metrics.record_request("buffered", "error", t_total.seconds)
                fail(_LOG, "synthesis_failed", mode="buffered", code=e.code, error=e.message, **e.details)
                raise
        timings["synth"] = t_synth.timing.seconds if t_synth.timing else 0.0
        total = t_total.timing.seconds if t_total.timing else 0.0

        metrics.record_request("buffered", "success", total, audio_bytes=len(audio))
        success(
            _LOG,
            "synthesis_done",
            mode="buffered",
            chunks=stats.chunks,
            windows=stats.windows,
            bytes=len(audio),
            seconds=total,
        )
        return SpeechResult(
            audio=audio,
            chunks=stats.chunks,
            windows=stats.windows,
            total_seconds=total,
            request_id=request_id,
            timings=timings,
        )

    # =========================================================================
    # Streamed Synthesis
    # =========================================================================

    async def stream_to(self, request: SynthesisRequest, sink: AudioSink) -> BatchStats:
        """Synthesize window by window into sink (always closed on return)."""
        chunks = self.prepare(request)
        stats = BatchStats()
        await self._orchestrator.run_streamed(
            chunks,
            request.concurrency,
            request.voice_params(self._config.provider.output_format),
            sink,
            stats=stats,
        )
        return stats

    async def synthesize_stream(self, request: SynthesisRequest, request_id: str) -> AsyncIterator[bytes]:
        """
        Start streamed synthesis and return an async iterator of audio.

        The first window is awaited before returning, so a failure that
        happens before any audio exists (bad credential, first call
        rejected) is raised here and can still become an error response.
        Later failures end the iterator with the error, truncating the
        stream.
        """
        info(_LOG, "synthesis_start", mode="stream", voice=request.voice, text=self._preview(request.text))

        sink = QueueAudioSink(maxsize=max(1, request.concurrency))
        stats = BatchStats()
        started = time.perf_counter()
        metrics.stream_started()

        async def _produce() -> None:
            chunks = self.prepare(request)
            await self._orchestrator.run_streamed(
                chunks,
                request.concurrency,
                request.voice_params(self._config.provider.output_format),
                sink,
                stats=stats,
            )

        task = asyncio.ensure_future(_produce())
        task.add_done_callback(lambda t: self._finish_stream(t, sink, stats, started))

        body = sink.iter_bytes()
        try:
            first = await body.__anext__()
        except StopAsyncIteration:
            await body.aclose()
            return _empty_stream()
        except BaseException:
            await body.aclose()
            if not task.done():
                task.cancel()
            raise

        return _chain_first(first, body)

    def _finish_stream(self, task: asyncio.Task, sink: QueueAudioSink, stats: BatchStats, started: float) -> None:
        metrics.stream_finished()
        duration = time.perf_counter() - started
        if task.cancelled():
            metrics.record_request("stream", "error", duration, audio_bytes=sink.bytes_written)
            warn(_LOG, "stream_cancelled", windows_done=stats.windows_done, windows=stats.windows)
            return

        exc = task.exception()
        if exc is None:
            metrics.record_request("stream", "success", duration, audio_bytes=sink.bytes_written)
            success(
                _LOG,
                "synthesis_done",
                mode="stream",
                chunks=stats.chunks,
                windows=stats.windows,
                bytes=sink.bytes_written,
                seconds=duration,
            )
            return

        metrics.record_request("stream", "error", duration, audio_bytes=sink.bytes_written)
        if isinstance(exc, RelayError):
            fail(
                _LOG,
                "synthesis_failed",
                mode="stream",
                code=exc.code,
                error=exc.message,
                windows_done=stats.windows_done,
                windows=stats.windows,
            )
        else:
            error(_LOG, "synthesis_crashed", mode="stream", error=repr(exc))

    # =========================================================================
    # Health Check / Lifecycle
    # =========================================================================

    def get_health_info(self) -> Dict[str, Any]:
        """Service status, provider settings and credential state."""
        cred = self._credentials.credential
        return {
            "ok": True,
            "version": __version__,
            "uptime_s": round(time.time() - self._started_at, 1),
            "provider": {
                "output_format": self._config.provider.output_format,
                "timeout_s": self._config.provider.timeout_s,
            },
            "credential": {
                "state": self._credentials.state.value,
                "region": cred.region if cred else None,
                "expires_at": cred.expires_at if cred else None,
                "handshakes": self._credentials.handshakes,
            },
            "defaults": {
                "concurrency": self._config.synthesis.default_concurrency,
                "chunk_size": self._config.synthesis.default_chunk_size,
                "style": self._config.synthesis.default_style,
            },
            "auth_required": bool(self._config.auth.api_key),
        }

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


async def _empty_stream() -> AsyncIterator[bytes]:
    return
    yield b""


async def _chain_first(first: bytes, rest: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    try:
        yield first
        async for item in rest:
            yield item
    finally:
        await rest.aclose()


# =============================================================================
# Global Service Singleton
# =============================================================================

_service: Optional[SpeechService] = None
_service_lock = threading.Lock()


def get_service(settings: Settings) -> SpeechService:
    """
    Get or create the process-wide SpeechService.

    Thread-safe lazy singleton; the credential cache lives as long as it.
    """
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = SpeechService(settings)
    return _service


async def shutdown_service() -> None:
    """Close the global service's HTTP client and drop the instance."""
    global _service
    with _service_lock:
        service, _service = _service, None
    if service is not None:
        await service.aclose()


def reset_service() -> None:
    """
    Drop the global service instance without closing it.

    Used by tests for clean state between cases.
    """
    global _service
    with _service_lock:
        _service = None
