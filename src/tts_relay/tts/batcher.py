"""
Windowed batch synthesis.

Chunks are synthesized in windows of `concurrency` chunks. Calls inside
a window run concurrently; windows run strictly one after another, so at
most `concurrency` provider calls are in flight per request.

    chunks:   c0 c1 c2 c3 c4 c5 c6     (concurrency=3)
    windows: [c0 c1 c2] -> [c3 c4 c5] -> [c6]

Audio order always follows chunk order, whatever order the calls finish
in (asyncio.gather returns results positionally).

Two delivery modes:
    run_buffered()  - join every payload, return one bytes object
    run_streamed()  - write each finished window to an AudioSink

When a call fails, its siblings in the same window are cancelled and no
later window starts. Buffered mode returns nothing; streamed mode has
already delivered the earlier windows, reports the error to the sink,
and closes it.

Usage:
    orchestrator = BatchOrchestrator(synth_client)
    audio = await orchestrator.run_buffered(chunks, 10, params)
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Iterator, List, Protocol, Sequence, Tuple

from tts_relay.core.errors import RelayError, SinkError
from tts_relay.core.logging import get_logger, verbose, warn
from tts_relay.core.metrics import metrics
from tts_relay.tts.provider import VoiceParams
from tts_relay.tts.sink import AudioSink
from tts_relay.utils.timeit import timeit

_LOG = get_logger("tts-relay.batcher")


class ChunkSynthesizer(Protocol):
    async def synthesize_chunk(self, text: str, params: VoiceParams) -> bytes: ...


@dataclass
class BatchStats:
    """Counters for one orchestrated run."""
    chunks: int = 0
    windows: int = 0
    windows_done: int = 0
    audio_bytes: int = 0


def iter_windows(chunks: Sequence[str], concurrency: int) -> Iterator[Tuple[int, Sequence[str]]]:
    """
    Yield (offset, window) pairs of consecutive chunk slices.

    concurrency is clamped to at least 1.
    """
    size = max(1, int(concurrency))
    for offset in range(0, len(chunks), size):
        yield offset, chunks[offset:offset + size]


def window_count(n_chunks: int, concurrency: int) -> int:
    size = max(1, int(concurrency))
    return (n_chunks + size - 1) // size


class BatchOrchestrator:
    """
    Drives chunk synthesis window by window.

    Args:
        synthesizer: Anything with `async synthesize_chunk(text, params) -> bytes`,
            normally an EdgeSynthesisClient.
    """

    def __init__(self, synthesizer: ChunkSynthesizer):
        self._synth = synthesizer

    async def _synthesize_one(self, text: str, params: VoiceParams, chunk_index: int, window_index: int) -> bytes:
        try:
            return await self._synth.synthesize_chunk(text, params)
        except RelayError as e:
            e.details.setdefault("chunk", chunk_index)
            e.details.setdefault("window", window_index)
            raise

    async def _run_window(
        self,
        window: Sequence[str],
        offset: int,
        window_index: int,
        params: VoiceParams,
    ) -> List[bytes]:
        tasks = [
            asyncio.ensure_future(self._synthesize_one(text, params, offset + i, window_index))
            for i, text in enumerate(window)
        ]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _process_window(
        self,
        window: Sequence[str],
        offset: int,
        window_index: int,
        params: VoiceParams,
        stats: BatchStats,
    ) -> List[bytes]:
        with timeit("window") as t:
            payloads = await self._run_window(window, offset, window_index, params)
        stats.windows_done += 1
        metrics.inc_windows_processed()
        verbose(
            _LOG,
            "window_done",
            window=window_index,
            windows=stats.windows,
            chunks=len(window),
            bytes=sum(len(p) for p in payloads),
            seconds=t.timing.seconds if t.timing else None,
        )
        return payloads

    @staticmethod
    def _begin(chunks: Sequence[str], concurrency: int, stats: BatchStats | None) -> BatchStats:
        stats = stats if stats is not None else BatchStats()
        stats.chunks = len(chunks)
        stats.windows = window_count(len(chunks), concurrency)
        return stats

    async def run_buffered(
        self,
        chunks: Sequence[str],
        concurrency: int,
        params: VoiceParams,
        stats: BatchStats | None = None,
    ) -> bytes:
        """
        Synthesize every chunk and return the concatenated audio.

        Raises:
            RelayError: The first failing call's error; no partial audio.
        """
        stats = self._begin(chunks, concurrency, stats)
        collected: List[bytes] = []
        for window_index, (offset, window) in enumerate(iter_windows(chunks, concurrency)):
            collected.extend(await self._process_window(window, offset, window_index, params, stats))
        audio = b"".join(collected)
        stats.audio_bytes = len(audio)
        return audio

    async def run_streamed(
        self,
        chunks: Sequence[str],
        concurrency: int,
        params: VoiceParams,
        sink: AudioSink,
        stats: BatchStats | None = None,
    ) -> None:
        """
        Synthesize window by window, writing each window's audio to sink.

        The sink always gets close(). On a synthesis failure it first gets
        error(exc); the exception is then re-raised to the caller.

        Raises:
            SinkError: The sink refused a write; no further calls are made.
            RelayError: A synthesis call failed.
        """
        stats = self._begin(chunks, concurrency, stats)
        try:
            for window_index, (offset, window) in enumerate(iter_windows(chunks, concurrency)):
                payloads = await self._process_window(window, offset, window_index, params, stats)
                for payload in payloads:
                    try:
                        await sink.write(payload)
                    except SinkError:
                        raise
                    except Exception as e:
                        raise SinkError(f"Audio sink write failed: {e}", details={"window": window_index}) from e
                    stats.audio_bytes += len(payload)
        except SinkError as e:
            warn(_LOG, "stream_aborted", windows_done=stats.windows_done, windows=stats.windows, error=e.message)
            await sink.error(e)
            raise
        except Exception as e:
            await sink.error(e)
            raise
        finally:
            await sink.close()
