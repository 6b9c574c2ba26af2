"""
Edge speech synthesis client.

One call turns one text chunk into one audio payload:

    POST https://{region}.tts.speech.microsoft.com/cognitiveservices/v1
    Authorization: <jwt>
    Content-Type: application/ssml+xml
    X-Microsoft-OutputFormat: audio-24khz-48kbitrate-mono-mp3

Failures are not retried; a non-2xx status or a transport error becomes a
ProviderError (status 0 for transport errors).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from tts_relay.core.config import Defaults
from tts_relay.core.errors import ProviderError
from tts_relay.core.logging import debug, get_logger
from tts_relay.core.metrics import metrics
from tts_relay.tts.credentials import CredentialManager, ProviderCredential
from tts_relay.tts.ssml import build_ssml
from tts_relay.utils.timeit import timeit

_LOG = get_logger("tts-relay.provider")


@dataclass(frozen=True)
class VoiceParams:
    """
    Per-request voice settings shared by every chunk.

    rate and pitch are signed percentages (0 = unchanged).
    """
    voice: str
    rate: int = 0
    pitch: int = 0
    style: str = Defaults.SYNTHESIS_DEFAULT_STYLE
    output_format: str = Defaults.PROVIDER_OUTPUT_FORMAT


class EdgeSynthesisClient:
    """
    Synthesizes chunks against the Edge endpoint.

    Args:
        client: Shared httpx.AsyncClient.
        credentials: Source of the Authorization token and region.
        synth_url: URL template with a {region} placeholder.
        user_agent: User-Agent header value.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        credentials: CredentialManager,
        synth_url: str = Defaults.PROVIDER_SYNTH_URL,
        user_agent: str = Defaults.PROVIDER_USER_AGENT,
    ):
        self._client = client
        self._credentials = credentials
        self._synth_url = synth_url
        self._user_agent = user_agent

    @property
    def credentials(self) -> CredentialManager:
        return self._credentials

    async def synthesize(
        self,
        text: str,
        voice: str,
        rate: int,
        pitch: int,
        style: str,
        output_format: str,
        credential: ProviderCredential,
    ) -> bytes:
        """
        Synthesize one chunk with an explicit credential.

        Returns:
            Raw audio bytes in output_format.

        Raises:
            ProviderError: Non-2xx response or transport failure.
        """
        url = self._synth_url.format(region=credential.region)
        headers = {
            "Authorization": credential.token,
            "Content-Type": "application/ssml+xml",
            "User-Agent": self._user_agent,
            "X-Microsoft-OutputFormat": output_format,
        }
        body = build_ssml(text, voice, rate, pitch, style)

        outcome = "error"
        with timeit("provider_call") as t:
            try:
                response = await self._client.post(url, headers=headers, content=body.encode("utf-8"))
            except httpx.HTTPError as e:
                metrics.record_provider_call(outcome, t.seconds)
                raise ProviderError(0, str(e) or type(e).__name__) from e

            if response.is_success:
                outcome = "success"
        metrics.record_provider_call(outcome, t.timing.seconds if t.timing else 0.0)

        if not response.is_success:
            raise ProviderError(response.status_code, response.text)

        audio = response.content
        debug(_LOG, "chunk_synthesized", chars=len(text), bytes=len(audio), seconds=t.timing.seconds if t.timing else None)
        return audio

    async def synthesize_chunk(self, text: str, params: VoiceParams, credential: Optional[ProviderCredential] = None) -> bytes:
        """Synthesize one chunk, fetching the shared credential if none is given."""
        if credential is None:
            credential = await self._credentials.get_credential()
        return await self.synthesize(
            text,
            params.voice,
            params.rate,
            params.pitch,
            params.style,
            params.output_format,
            credential,
        )
