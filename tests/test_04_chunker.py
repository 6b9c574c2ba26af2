"""Tests for punctuation-bounded chunking."""
from __future__ import annotations

import pytest

from tts_relay.tts.chunker import smart_chunk_text


class TestSmartChunk:
    def test_pinned_example(self):
        result = smart_chunk_text("Hello, world. Second sentence!", max_chars=10)
        assert result.chunks == ["Hello,", "world.", "Second sentence", "!"]

    def test_short_text_single_chunk(self):
        result = smart_chunk_text("Hello, world.", max_chars=300)
        assert result.chunks == ["Hello, world."]
        assert isinstance(result.timings_s.get("chunk"), float)

    def test_empty_text(self):
        assert smart_chunk_text("", max_chars=10).chunks == []

    def test_cjk_punctuation(self):
        result = smart_chunk_text("你好，世界。今天天气很好！", max_chars=4)
        assert result.chunks == ["你好，", "世界。", "今天天气很好", "！"]

    def test_no_punctuation_long_segment_kept_whole(self):
        text = "a" * 25
        assert smart_chunk_text(text, max_chars=10).chunks == [text]

    def test_only_whitespace_falls_back_to_slices(self):
        """Non-empty input never yields zero chunks."""
        result = smart_chunk_text("      ", max_chars=4)
        assert result.chunks == ["    ", "  "]

    def test_line_breaks_are_boundaries(self):
        result = smart_chunk_text("first line\nsecond line", max_chars=12)
        assert result.chunks == ["first line", "second line"]

    def test_order_and_content_preserved(self):
        text = "One. Two, three; four: five? Six! Seven."
        chunks = smart_chunk_text(text, max_chars=8).chunks
        assert "".join(chunks).replace(" ", "") == text.replace(" ", "")
        assert all(chunks)

    def test_max_chars_must_be_positive(self):
        with pytest.raises(ValueError):
            smart_chunk_text("text", max_chars=0)
