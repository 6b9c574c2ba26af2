"""
Timing helper for measuring code blocks.

Example:
    with timeit("clean", meta={"chars": len(text)}) as t:
        cleaned = clean_text(text, options)
    print(f"Took {t.timing.seconds:.3f}s")

Works unchanged around awaits inside coroutines, since it only reads
perf_counter() on enter and exit.
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Optional


@dataclass
class Timing:
    """
    Timing measurement result.

    Attributes:
        name: What was timed (e.g., "chunk", "window").
        seconds: Duration in seconds.
        meta: Optional metadata for additional context.
    """
    name: str
    seconds: float
    meta: Optional[Dict[str, Any]] = None


class timeit:
    """Context manager that records wall-clock duration into .timing on exit."""

    def __init__(self, name: str, meta: Optional[Dict[str, Any]] = None):
        self.name = name
        self.meta = meta
        self._t0: float | None = None
        self.timing: Timing | None = None

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        t1 = perf_counter()
        assert self._t0 is not None
        self.timing = Timing(name=self.name, seconds=(t1 - self._t0), meta=self.meta)

    @property
    def seconds(self) -> float:
        """Elapsed seconds; while still inside the block, time so far."""
        if self.timing is not None:
            return self.timing.seconds
        if self._t0 is None:
            return 0.0
        return perf_counter() - self._t0
