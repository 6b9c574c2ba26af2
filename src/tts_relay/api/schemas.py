"""
Pydantic Schemas for API Request/Response Validation.

Schemas:
    SpeechRequest: OpenAI-compatible /v1/audio/speech body
    CleaningOptionsModel: Text cleaning switches inside SpeechRequest
    ModelCard / ModelList: /v1/models response
    ErrorResponse: OpenAI-style error envelope

Pydantic checks types and ranges; services.validators applies the
remaining rules (required input, voice resolution) so that the CLI and
the API share them.
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from tts_relay.core.config import Defaults
from tts_relay.utils.text import CleaningOptions


class CleaningOptionsModel(BaseModel):
    """
    Text cleaning switches. Every removal is on unless turned off.

    Example:
        {"remove_markdown": true, "remove_emoji": false, "custom_keywords": "ad,sponsor"}
    """
    model_config = ConfigDict(extra="ignore")

    remove_markdown: bool = True
    remove_emoji: bool = True
    remove_urls: bool = True
    remove_line_breaks: bool = True
    remove_citation_numbers: bool = True
    custom_keywords: str = ""

    def to_options(self) -> CleaningOptions:
        return CleaningOptions(
            remove_markdown=self.remove_markdown,
            remove_emoji=self.remove_emoji,
            remove_urls=self.remove_urls,
            remove_line_breaks=self.remove_line_breaks,
            remove_citation_numbers=self.remove_citation_numbers,
            custom_keywords=self.custom_keywords,
        )


class SpeechRequest(BaseModel):
    """
    OpenAI-compatible speech request with relay extensions.

    Attributes:
        model: "tts-1", "tts-1-hd" or "tts-1-<alias>". The alias picks a
            voice when `voice` is not given.
        input: Text to speak, any length (chunked internally).
        voice: Provider voice id ("zh-CN-XiaoxiaoNeural") or alias ("nova").
        response_format: Accepted for client compatibility; audio is
            always MP3 (audio-24khz-48kbitrate-mono-mp3).
        speed: Speaking speed factor, 0.25 to 2.0.
        pitch: Pitch factor, 1.0 = unchanged.
        style: Speaking style ("general", "cheerful", "sad", ...).
        stream: Stream audio as each batch window finishes.
        concurrency: Chunks synthesized at once.
        chunk_size: Target maximum characters per chunk.
        cleaning_options: Text cleaning switches.

    Example:
        {"model": "tts-1-nova", "input": "你好，世界。", "speed": 1.2, "stream": true}
    """
    model_config = ConfigDict(extra="ignore")

    model: str = Field(
        default=Defaults.SYNTHESIS_DEFAULT_MODEL,
        description="Model id; the tts-1-<alias> form selects a voice.",
    )
    input: Optional[str] = Field(
        default=None,
        description="The text to generate audio for (required).",
    )
    voice: Optional[str] = Field(
        default=None,
        description="Provider voice id or alias.",
    )
    response_format: Optional[str] = Field(
        default=None,
        description="Ignored; audio is always mp3.",
    )
    speed: float = Field(
        default=1.0,
        ge=Defaults.SYNTHESIS_MIN_SPEED,
        le=Defaults.SYNTHESIS_MAX_SPEED,
        description="Speaking speed factor.",
    )
    pitch: float = Field(
        default=1.0,
        description="Pitch factor.",
    )
    style: Optional[str] = Field(
        default=None,
        description="Speaking style; defaults to 'general'.",
    )
    stream: bool = Field(
        default=False,
        description="Stream audio window by window.",
    )
    concurrency: Optional[int] = Field(
        default=None,
        ge=1,
        description="Chunks synthesized concurrently (default 10).",
    )
    chunk_size: Optional[int] = Field(
        default=None,
        ge=1,
        description="Target maximum characters per chunk (default 300).",
    )
    cleaning_options: CleaningOptionsModel = Field(
        default_factory=CleaningOptionsModel,
        description="Text cleaning switches.",
    )


class ModelCard(BaseModel):
    id: str
    object: str = "model"
    created: int
    owned_by: str = "openai"


class ModelList(BaseModel):
    object: str = "list"
    data: List[ModelCard]


class ErrorDetail(BaseModel):
    message: str
    type: str
    param: Optional[str] = None
    code: Optional[str] = None


class ErrorResponse(BaseModel):
    """
    OpenAI-style error envelope.

    Example:
        {"error": {"message": "'input' is a required parameter", "type": "invalid_request_error",
                   "param": null, "code": "invalid_request_error"}}
    """
    error: ErrorDetail
