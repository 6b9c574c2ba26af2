"""
Audio sinks: where streamed audio goes.

The batch orchestrator writes each finished window's payloads to an
AudioSink, reports a failure with error(), and always calls close().

    QueueAudioSink  - feeds an HTTP StreamingResponse through iter_bytes()
    FileAudioSink   - appends to a local file (used by the CLI)
"""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Optional, Protocol, Union

from tts_relay.core.errors import SinkError

_CLOSE = object()


class AudioSink(Protocol):
    async def write(self, data: bytes) -> None: ...

    async def error(self, exc: BaseException) -> None: ...

    async def close(self) -> None: ...


class QueueAudioSink:
    """
    asyncio.Queue-backed sink consumed by a single reader.

    The reader side is iter_bytes(). When the reader stops early (client
    disconnected, generator closed) the sink is detached and every later
    write() raises SinkError so the producer stops issuing calls.

    If error() was called, iter_bytes() raises that error after yielding
    everything written before it, so the HTTP response ends abnormally
    instead of looking complete.
    """

    def __init__(self, maxsize: int = 0):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize)
        self._closed = False
        self._detached = False
        self._failure: Optional[BaseException] = None
        self._bytes_written = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def detached(self) -> bool:
        return self._detached

    @property
    def failure(self) -> Optional[BaseException]:
        return self._failure

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    async def write(self, data: bytes) -> None:
        if self._detached:
            raise SinkError("Stream consumer disconnected")
        if self._closed:
            raise SinkError("Write after close")
        await self._queue.put(data)
        self._bytes_written += len(data)

    async def error(self, exc: BaseException) -> None:
        if self._closed or self._failure is not None:
            return
        self._failure = exc

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if not self._detached:
            await self._queue.put(_CLOSE)

    def detach(self) -> None:
        self._detached = True
        # Unblock a producer waiting on a bounded queue.
        while not self._queue.empty():
            self._queue.get_nowait()

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        try:
            while True:
                item = await self._queue.get()
                if item is _CLOSE:
                    break
                yield item
            if self._failure is not None:
                raise self._failure
        finally:
            self.detach()


class FileAudioSink:
    """
    Appends audio to a file opened on first write.

    A failed run leaves whatever was written so far; the caller decides
    whether to keep the partial file.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._fh: Optional[BinaryIO] = None
        self._closed = False
        self.failure: Optional[BaseException] = None

    @property
    def path(self) -> Path:
        return self._path

    async def write(self, data: bytes) -> None:
        if self._closed:
            raise SinkError("Write after close")
        try:
            if self._fh is None:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._fh = self._path.open("wb")
            self._fh.write(data)
            self._fh.flush()
        except OSError as e:
            raise SinkError(f"Cannot write {self._path}: {e}") from e

    async def error(self, exc: BaseException) -> None:
        self.failure = exc

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._fh is not None:
            self._fh.close()
            self._fh = None
