"""
SSML document builder for the Edge speech endpoint.

User text is XML-escaped, except for <break> tags, which pass through
untouched so callers can insert pauses:

    <break time="500ms"/>   <break time='1s'>   <break/>

The document wraps the text in voice, mstts:express-as (speaking style)
and prosody (rate/pitch as signed percentages).
"""
from __future__ import annotations

import re
from xml.sax.saxutils import escape

_BREAK_TAG_RE = re.compile(
    r"<break\s+time=\"[^\"]*\"\s*/?>|<break\s*/?>|<break\s+time='[^']*'\s*/?>",
    re.IGNORECASE,
)
_PLACEHOLDER_RE = re.compile(r"__BREAK_TAG_(\d+)__")

_ATTR_ENTITIES = {'"': "&quot;"}

SSML_TEMPLATE = (
    '<speak xmlns="http://www.w3.org/2001/10/synthesis" '
    'xmlns:mstts="http://www.w3.org/2001/mstts" version="1.0" xml:lang="en-US">'
    '<voice name="{voice}">'
    '<mstts:express-as style="{style}">'
    '<prosody rate="{rate}%" pitch="{pitch}%">'
    "{text}"
    "</prosody>"
    "</mstts:express-as>"
    "</voice>"
    "</speak>"
)


def escape_preserving_breaks(text: str) -> str:
    """Escape &, < and > in text while leaving recognized <break> tags intact."""
    tags: list[str] = []

    def _stash(match: re.Match) -> str:
        tags.append(match.group(0))
        return f"__BREAK_TAG_{len(tags) - 1}__"

    escaped = escape(_BREAK_TAG_RE.sub(_stash, text))
    if not tags:
        return escaped

    def _restore(match: re.Match) -> str:
        index = int(match.group(1))
        return tags[index] if index < len(tags) else match.group(0)

    return _PLACEHOLDER_RE.sub(_restore, escaped)


def build_ssml(text: str, voice: str, rate: int, pitch: int, style: str) -> str:
    """
    Render one text segment as an SSML document.

    Args:
        text: Segment text (may contain <break> tags).
        voice: Provider voice id, e.g. "zh-CN-XiaoxiaoNeural".
        rate: Speaking rate change in percent (0 = normal).
        pitch: Pitch change in percent (0 = normal).
        style: Speaking style, e.g. "general" or "cheerful".
    """
    return SSML_TEMPLATE.format(
        voice=escape(voice, _ATTR_ENTITIES),
        style=escape(style, _ATTR_ENTITIES),
        rate=int(rate),
        pitch=int(pitch),
        text=escape_preserving_breaks(text),
    )
