"""
Provider credential cache for the Edge speech endpoint.

The synthesis endpoint wants a short-lived JWT obtained from a signed
handshake with the translator app endpoint. The handshake response is:

    {"r": "<region>", "t": "<jwt>", ...}

The token's "exp" claim gives its expiry. One credential is cached per
CredentialManager (and the service keeps one manager per process), so
every request shares it.

Refresh rules:
    - fresh      now < expires_at - refresh_skew_s   -> served as-is
    - stale      otherwise                            -> refresh
    - refresh ok                                      -> replace wholesale
    - refresh failed, earlier credential exists       -> serve the stale one
    - refresh failed, none yet                        -> CredentialError

Concurrent callers that find the credential stale while a refresh is in
flight wait for it and share its outcome instead of starting their own.
"""
from __future__ import annotations

import asyncio
import base64
import hashlib
import hmac
import json
import time
import uuid
from dataclasses import dataclass
from email.utils import formatdate
from enum import Enum
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

import httpx

from tts_relay.core.config import Defaults
from tts_relay.core.errors import CredentialError
from tts_relay.core.logging import debug, fail, get_logger, success, warn
from tts_relay.core.metrics import metrics
from tts_relay.utils.timeit import timeit

_LOG = get_logger("tts-relay.credentials")

SIGNATURE_APP_ID = "MSTranslatorAndroidApp"
SIGNING_KEY_B64 = "oik6PdDdMnOXemTbwvMn9de/h9lFnfBaCWbGMMZqqoSaQaqUOqjVGm5NqsmjcBI1x+sS9ugjB55HEJWRiFXYFw=="

# encodeURIComponent-compatible safe set
_URL_SAFE_CHARS = "-_.!~*'()"

HANDSHAKE_HEADERS = {
    "Accept-Language": "zh-Hans",
    "X-ClientVersion": "4.0.530a 5fe1dc6c",
    "X-UserId": "0f04d16a175c411e",
    "X-HomeGeographicRegion": "zh-Hans-CN",
    "Content-Type": "application/json; charset=utf-8",
    "Content-Length": "0",
    "Accept-Encoding": "gzip",
}


class CredentialState(str, Enum):
    ABSENT = "absent"
    VALID = "valid"
    STALE = "stale"


@dataclass(frozen=True)
class ProviderCredential:
    """
    A handshake result.

    Attributes:
        endpoint: The raw handshake response ("r" region, "t" token).
        token: JWT sent as the Authorization header.
        expires_at: Token expiry in epoch seconds.
    """
    endpoint: Dict[str, Any]
    token: str
    expires_at: float

    @property
    def region(self) -> str:
        return str(self.endpoint.get("r", ""))

    def is_fresh(self, now: float, skew_s: float) -> bool:
        return now < self.expires_at - skew_s


def sign_request(url: str, now: Optional[float] = None, nonce: Optional[str] = None) -> str:
    """
    Build the X-MT-Signature header value for url.

    The signed message is the app id, the percent-encoded url without its
    scheme, an RFC 1123 GMT date and a random hex nonce, lowercased and
    HMAC-SHA256'd with the app key.

    Returns:
        "MSTranslatorAndroidApp::<b64 sig>::<date>::<nonce>"
    """
    url_no_scheme = url.split("://", 1)[1] if "://" in url else url
    encoded_url = quote(url_no_scheme, safe=_URL_SAFE_CHARS)
    date = formatdate(now, usegmt=True)
    nonce = nonce or uuid.uuid4().hex

    message = f"{SIGNATURE_APP_ID}{encoded_url}{date}{nonce}".lower()
    key = base64.b64decode(SIGNING_KEY_B64)
    digest = hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()
    signature = base64.b64encode(digest).decode("ascii")

    return f"{SIGNATURE_APP_ID}::{signature}::{date}::{nonce}"


def decode_token_expiry(token: str) -> float:
    """
    Read the "exp" claim from a JWT without verifying it.

    Raises:
        ValueError: If the token is not a JWT or has no numeric exp.
    """
    parts = token.split(".")
    if len(parts) < 2:
        raise ValueError("token is not a JWT")
    payload = parts[1]
    payload += "=" * (-len(payload) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload.encode("ascii")))
    except (ValueError, UnicodeError) as e:
        raise ValueError(f"undecodable JWT payload: {e}") from e
    if not isinstance(claims, dict) or not isinstance(claims.get("exp"), (int, float)):
        raise ValueError("JWT payload has no numeric exp claim")
    return float(claims["exp"])


class CredentialManager:
    """
    Process-wide provider credential with coalesced refresh.

    Args:
        client: Shared httpx.AsyncClient used for the handshake.
        endpoint_url: Handshake URL.
        refresh_skew_s: Seconds before expiry at which a credential is stale.
        user_agent: User-Agent sent with the handshake.
        clock: Returns epoch seconds; injectable for tests.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        endpoint_url: str = Defaults.PROVIDER_ENDPOINT_URL,
        refresh_skew_s: float = Defaults.CREDENTIALS_REFRESH_SKEW_S,
        user_agent: str = Defaults.PROVIDER_USER_AGENT,
        clock: Callable[[], float] = time.time,
    ):
        self._client = client
        self._endpoint_url = endpoint_url
        self._skew = refresh_skew_s
        self._user_agent = user_agent
        self._clock = clock

        self._credential: Optional[ProviderCredential] = None
        self._lock = asyncio.Lock()
        self._attempts = 0
        self._completed = 0
        self._last_error: Optional[str] = None

    @property
    def credential(self) -> Optional[ProviderCredential]:
        return self._credential

    @property
    def state(self) -> CredentialState:
        if self._credential is None:
            return CredentialState.ABSENT
        if self._credential.is_fresh(self._clock(), self._skew):
            return CredentialState.VALID
        return CredentialState.STALE

    @property
    def handshakes(self) -> int:
        """Number of handshakes attempted so far."""
        return self._attempts

    async def get_credential(self) -> ProviderCredential:
        """
        Return a usable credential, refreshing when stale.

        Raises:
            CredentialError: The handshake failed and nothing is cached.
        """
        cred = self._credential
        if cred is not None and cred.is_fresh(self._clock(), self._skew):
            return cred

        seen = self._completed
        async with self._lock:
            cred = self._credential
            if cred is not None and cred.is_fresh(self._clock(), self._skew):
                return cred

            # A refresh finished (and failed) while we waited.
            if self._completed != seen:
                if cred is not None:
                    return cred
                raise CredentialError(
                    f"Failed to obtain provider credential: {self._last_error}",
                    details={"coalesced": True},
                )

            self._attempts += 1
            try:
                fresh = await self._handshake()
            except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
                self._completed += 1
                self._last_error = str(e) or type(e).__name__
                if cred is not None:
                    metrics.record_credential_refresh("stale")
                    warn(_LOG, "credential_refresh_failed", serving="stale", error=self._last_error)
                    return cred
                metrics.record_credential_refresh("failure")
                fail(_LOG, "credential_refresh_failed", serving="none", error=self._last_error)
                raise CredentialError(f"Failed to obtain provider credential: {self._last_error}") from e

            self._completed += 1
            self._credential = fresh
            self._last_error = None
            metrics.record_credential_refresh("success")
            return fresh

    async def _handshake(self) -> ProviderCredential:
        headers = dict(HANDSHAKE_HEADERS)
        headers["X-ClientTraceId"] = uuid.uuid4().hex
        headers["X-MT-Signature"] = sign_request(self._endpoint_url)
        headers["User-Agent"] = self._user_agent

        with timeit("handshake") as t:
            response = await self._client.post(self._endpoint_url, headers=headers)

        if response.status_code >= 400:
            raise ValueError(f"handshake returned {response.status_code} {response.reason_phrase} - {response.text}")

        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("handshake response is not a JSON object")
        token = data.get("t")
        if not isinstance(token, str) or not token:
            raise ValueError("handshake response has no token")
        region = data.get("r")
        if not isinstance(region, str) or not region:
            raise ValueError("handshake response has no region")
        expires_at = decode_token_expiry(token)

        success(
            _LOG,
            "credential_refreshed",
            region=region,
            expires_in=int(expires_at - self._clock()),
            seconds=t.seconds,
        )
        debug(_LOG, "credential_state", expires_at=expires_at, skew_s=self._skew)
        return ProviderCredential(endpoint=data, token=token, expires_at=expires_at)
