"""
Error codes and exceptions for tts-relay.

Every failure that can reach a client is a RelayError subclass carrying a
stable code. The API layer maps codes to HTTP statuses and renders the
OpenAI-style envelope returned by to_dict():

    {"error": {"message": "...", "type": "api_error", "param": null, "code": "tts_generation_error"}}
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """
    Stable error codes returned in the "code" field of error responses.
    """
    INVALID_REQUEST = "invalid_request_error"   # Bad or missing input
    INVALID_API_KEY = "invalid_api_key"         # Missing/wrong bearer key
    CREDENTIAL_ERROR = "credential_error"       # Handshake failed, no prior token
    PROVIDER_ERROR = "tts_generation_error"     # Remote synthesis failed
    STREAM_ABORTED = "stream_aborted"           # Audio sink refused a write
    INTERNAL_ERROR = "internal_server_error"    # Unexpected error


# Codes reported with type "invalid_request_error"; the rest are "api_error".
_CLIENT_ERROR_CODES = frozenset({ErrorCode.INVALID_REQUEST})


class RelayError(Exception):
    """
    Base exception for relay errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode.
        details: Extra context (window/chunk index, upstream status).
    """
    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    @property
    def error_type(self) -> str:
        return "invalid_request_error" if self.code in _CLIENT_ERROR_CODES else "api_error"

    def to_dict(self) -> Dict[str, Any]:
        """Render the OpenAI-compatible error envelope."""
        return error_body(self.message, self.error_type, self.code)


class InvalidRequest(RelayError):
    """Raised when the inbound request is missing or has unusable fields."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.INVALID_REQUEST, details)


class AuthenticationError(RelayError):
    """Raised when an API key is configured and the request does not carry it."""
    def __init__(self, message: str = "Invalid API key", details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.INVALID_API_KEY, details)


class CredentialError(RelayError):
    """Raised when the provider handshake fails and no earlier credential exists."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.CREDENTIAL_ERROR, details)


class ProviderError(RelayError):
    """
    Raised when a synthesis call fails.

    status is the upstream HTTP status, or 0 for a transport failure.
    """
    def __init__(self, status: int, body: str, details: Optional[Dict] = None):
        self.status = status
        self.body = body
        merged = {"status": status}
        merged.update(details or {})
        super().__init__(f"Edge TTS API error: {status} - {body}", ErrorCode.PROVIDER_ERROR, merged)


class SinkError(RelayError):
    """Raised when the audio sink can no longer accept data (consumer gone)."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.STREAM_ABORTED, details)


def error_body(message: str, error_type: str, code: str) -> Dict[str, Any]:
    return {
        "error": {
            "message": message,
            "type": error_type,
            "param": None,
            "code": code,
        }
    }
