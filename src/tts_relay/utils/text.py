"""
Text cleaning for speech input.

Chat-style text arrives full of markdown, links, emoji and footnote
markers that a voice should not read out. clean_text() removes them
according to a CleaningOptions, then collapses whitespace.

Order of operations (each step optional except the last):
    1. URLs                       (remove_urls)
    2. Markdown                   (remove_markdown)
         images -> "", links -> label, **bold**/__bold__ -> text,
         *italic*/_italic_ -> text, `code` -> code, "# " headings -> ""
    3. Custom keywords            (custom_keywords, comma separated)
    4. Emoji                      (remove_emoji)
    5. Citation numbers           (remove_citation_numbers)
         " 12." -> "." ; a 1-2 digit number preceded by whitespace and
         followed by punctuation or end of text
    6. Whitespace collapse        (remove_line_breaks; every run becomes one space)
    7. Strip                      (always)

Example:
    >>> clean_text("See **this** doc 3. https://x.y", CleaningOptions())
    'See this doc.'
"""
from __future__ import annotations

import re
from dataclasses import dataclass

import regex

from tts_relay.core.logging import debug, get_logger

_LOG = get_logger("tts-relay.text")

_URL_RE = re.compile(r"(https?://[^\s]+)")

_MD_IMAGE_RE = re.compile(r"!\[.*?\]\(.*?\)")
_MD_LINK_RE = re.compile(r"\[(.*?)\]\(.*?\)")
_MD_BOLD_RE = re.compile(r"(\*\*|__)(.*?)\1")
_MD_ITALIC_RE = re.compile(r"(\*|_)(.*?)\1")
_MD_CODE_RE = re.compile(r"`{1,3}(.*?)`{1,3}")
_MD_HEADING_RE = re.compile(r"#{1,6}\s")

_EMOJI_RE = regex.compile(r"\p{Emoji_Presentation}")

_CITATION_RE = re.compile(r"\s\d{1,2}(?=[.。，,;；:：]|\Z)")

_WS_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class CleaningOptions:
    """
    Which removals clean_text() applies.

    custom_keywords is a comma separated list of literal strings to delete
    (case-sensitive, matched anywhere).
    """
    remove_markdown: bool = True
    remove_emoji: bool = True
    remove_urls: bool = True
    remove_line_breaks: bool = True
    remove_citation_numbers: bool = True
    custom_keywords: str = ""

    def keywords(self) -> list[str]:
        return [k.strip() for k in self.custom_keywords.split(",") if k.strip()]


def strip_markdown(text: str) -> str:
    text = _MD_IMAGE_RE.sub("", text)
    text = _MD_LINK_RE.sub(r"\1", text)
    text = _MD_BOLD_RE.sub(r"\2", text)
    text = _MD_ITALIC_RE.sub(r"\2", text)
    text = _MD_CODE_RE.sub(r"\1", text)
    text = _MD_HEADING_RE.sub("", text)
    return text


def remove_keywords(text: str, keywords: list[str]) -> str:
    if not keywords:
        return text
    pattern = "|".join(re.escape(k) for k in keywords)
    return re.sub(pattern, "", text)


def clean_text(text: str, options: CleaningOptions | None = None) -> str:
    """
    Clean text for speech synthesis.

    Args:
        text: Raw input text.
        options: Which removals to apply. Defaults to all enabled.

    Returns:
        Cleaned text, stripped. May be empty.
    """
    opts = options or CleaningOptions()
    original_len = len(text)

    if opts.remove_urls:
        text = _URL_RE.sub("", text)

    if opts.remove_markdown:
        text = strip_markdown(text)

    text = remove_keywords(text, opts.keywords())

    if opts.remove_emoji:
        text = _EMOJI_RE.sub("", text)

    if opts.remove_citation_numbers:
        text = _CITATION_RE.sub("", text)

    if opts.remove_line_breaks:
        text = _WS_RE.sub(" ", text)

    text = text.strip()

    debug(_LOG, "cleaned", chars_in=original_len, chars_out=len(text))
    return text
