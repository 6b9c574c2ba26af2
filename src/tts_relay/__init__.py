"""
tts-relay: OpenAI-compatible relay for the Edge speech service.

Accepts OpenAI /v1/audio/speech requests, cleans and chunks the text,
and synthesizes the chunks against the provider in concurrent windows,
returning one MP3 or streaming it window by window.

Key Features:
    - OpenAI-compatible endpoint (/v1/audio/speech, /v1/models)
    - Signed provider handshake with a cached, self-refreshing token
    - Text cleaning (markdown, emoji, URLs, citation numbers, keywords)
    - Sentence-aware chunking and ordered, windowed batch synthesis
    - Buffered or streamed MP3 output
    - Prometheus metrics and structured JSONL logging

Example Usage:
    >>> from tts_relay.services import SpeechService, build_synthesis_request
    >>> from tts_relay.core.config import Settings
    >>>
    >>> service = SpeechService(Settings(raw={}))
    >>> request = build_synthesis_request("你好", model="tts-1-nova", config=service.config)
    >>> result = await service.synthesize(request, request_id="demo")
    >>> with open("output.mp3", "wb") as f:
    ...     f.write(result.audio)
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
