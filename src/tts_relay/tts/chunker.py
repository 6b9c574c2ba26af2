"""
Text Chunking for remote synthesis.

Long input is split into chunks of roughly max_chars characters so each
provider call stays small and chunks can be synthesized concurrently.

Strategy:
    1. Split on runs of sentence/clause punctuation and line breaks,
       keeping each punctuation run as its own segment:
           . ? ! , ; : \\n \\r and the CJK forms 。 ？ ！ ， ； ：
    2. Greedily append segments to a buffer while it stays within
       max_chars; otherwise flush the (stripped) buffer and start over.
    3. If nothing came out for non-empty input, hard slice at max_chars.

A single segment longer than max_chars is emitted whole, so the bound is
approximate. A trailing punctuation run that does not fit in the current
buffer becomes a chunk of its own (and its own provider call), as the "!"
below does.

Example:
    >>> smart_chunk_text("Hello, world. Second sentence!", max_chars=10).chunks
    ['Hello,', 'world.', 'Second sentence', '!']
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List

from tts_relay.core.config import Defaults
from tts_relay.core.logging import get_logger, verbose
from tts_relay.utils.timeit import timeit

_LOG = get_logger("tts-relay.chunker")

# Capturing group keeps the separators in the split output.
_BOUNDARY_SPLIT = re.compile(r"([.?!,;:\n。？！，；：\r]+)")


@dataclass
class ChunkResult:
    """
    Result of text chunking.

    Attributes:
        chunks: Non-empty text chunks in reading order.
        timings_s: Timing measurements in seconds.
    """
    chunks: List[str]
    timings_s: Dict[str, float]


def _fixed_slices(text: str, max_chars: int) -> List[str]:
    return [text[i:i + max_chars] for i in range(0, len(text), max_chars)]


def smart_chunk_text(text: str, max_chars: int = Defaults.SYNTHESIS_DEFAULT_CHUNK_SIZE) -> ChunkResult:
    """
    Split text into ordered chunks at punctuation boundaries.

    Args:
        text: Cleaned input text.
        max_chars: Target maximum characters per chunk.

    Returns:
        ChunkResult; chunks is empty only for empty input.

    Raises:
        ValueError: If max_chars is less than 1.
    """
    if max_chars < 1:
        raise ValueError(f"max_chars must be >= 1, got {max_chars}")

    timings: Dict[str, float] = {}
    if not text:
        return ChunkResult(chunks=[], timings_s=timings)

    with timeit("chunk") as t:
        chunks: List[str] = []
        buffer = ""
        for segment in _BOUNDARY_SPLIT.split(text):
            if not segment:
                continue
            if len(buffer) + len(segment) <= max_chars:
                buffer += segment
                continue
            if buffer.strip():
                chunks.append(buffer.strip())
            buffer = segment

        if buffer.strip():
            chunks.append(buffer.strip())

        if not chunks:
            chunks = _fixed_slices(text, max_chars)

        chunks = [c for c in chunks if c]

    timings["chunk"] = t.timing.seconds if t.timing else 0.0

    verbose(
        _LOG,
        "chunked",
        chunks=len(chunks),
        max_chars=max_chars,
        longest=max((len(c) for c in chunks), default=0),
        seconds=timings["chunk"],
    )
    return ChunkResult(chunks=chunks, timings_s=timings)
