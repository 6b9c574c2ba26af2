"""
Configuration Management for tts-relay.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration sections
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (TTS_RELAY_API_KEY, TTS_RELAY_LOG_LEVEL, etc.)
    2. YAML config file (config/settings.yaml, or $TTS_RELAY_SETTINGS)
    3. Defaults class values

Example settings.yaml:
    provider:
      timeout_s: 30
      output_format: audio-24khz-48kbitrate-mono-mp3

    credentials:
      refresh_skew_s: 300

    synthesis:
      default_concurrency: 10
      default_chunk_size: 300

    voices:
      aliases:
        nova: zh-CN-XiaochenNeural

    auth:
      api_key: ""
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    Thrown when a configuration value is outside acceptable bounds
    or of the wrong type.
    """
    pass


class Defaults:
    """
    Centralized default configuration values.

    Sections:
        - Provider: Remote synthesis and handshake endpoints
        - Credentials: Token caching behaviour
        - Synthesis: Per-request defaults (concurrency, chunk size, voice)
        - Logging: Log level and previews
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Provider (remote Edge speech endpoint)
    # ─────────────────────────────────────────────────────────────────────────
    PROVIDER_ENDPOINT_URL = "https://dev.microsofttranslator.com/apps/endpoint?api-version=1.0"
    PROVIDER_SYNTH_URL = "https://{region}.tts.speech.microsoft.com/cognitiveservices/v1"
    PROVIDER_OUTPUT_FORMAT = "audio-24khz-48kbitrate-mono-mp3"
    PROVIDER_USER_AGENT = "okhttp/4.5.0"
    PROVIDER_TIMEOUT_S = 30.0

    # ─────────────────────────────────────────────────────────────────────────
    # Credential cache
    # ─────────────────────────────────────────────────────────────────────────
    CREDENTIALS_REFRESH_SKEW_S = 5 * 60     # Treat token as stale 5 min early

    # ─────────────────────────────────────────────────────────────────────────
    # Synthesis request defaults
    # ─────────────────────────────────────────────────────────────────────────
    SYNTHESIS_DEFAULT_MODEL = "tts-1"
    SYNTHESIS_DEFAULT_STYLE = "general"
    SYNTHESIS_DEFAULT_CONCURRENCY = 10      # Chunks per batch window
    SYNTHESIS_DEFAULT_CHUNK_SIZE = 300      # Max characters per chunk
    SYNTHESIS_MIN_SPEED = 0.25
    SYNTHESIS_MAX_SPEED = 2.0

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 80
    LOGGING_LEVEL = 2                       # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


@dataclass
class ProviderConfig:
    """Remote provider endpoints and transport settings."""
    endpoint_url: str = Defaults.PROVIDER_ENDPOINT_URL
    synth_url: str = Defaults.PROVIDER_SYNTH_URL
    output_format: str = Defaults.PROVIDER_OUTPUT_FORMAT
    user_agent: str = Defaults.PROVIDER_USER_AGENT
    timeout_s: float = Defaults.PROVIDER_TIMEOUT_S


@dataclass
class CredentialConfig:
    """
    Credential cache configuration.

    refresh_skew_s is the lead time before the token's real expiry at
    which a cached credential stops being served as fresh.
    """
    refresh_skew_s: float = Defaults.CREDENTIALS_REFRESH_SKEW_S


@dataclass
class SynthesisConfig:
    """Defaults applied to inbound speech requests."""
    default_model: str = Defaults.SYNTHESIS_DEFAULT_MODEL
    default_style: str = Defaults.SYNTHESIS_DEFAULT_STYLE
    default_concurrency: int = Defaults.SYNTHESIS_DEFAULT_CONCURRENCY
    default_chunk_size: int = Defaults.SYNTHESIS_DEFAULT_CHUNK_SIZE


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, critical errors only
        2 = NORMAL: Request lifecycle (default)
        3 = VERBOSE: Per-window timing, detailed flow
        4 = DEBUG: Full text, credential state
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class AuthConfig:
    """Inbound bearer key. Empty means the API is open."""
    api_key: str = ""


@dataclass
class RelayConfig:
    """
    Validated configuration for the speech relay.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = RelayConfig.from_settings(settings)
        print(config.synthesis.default_chunk_size)
    """
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    credentials: CredentialConfig = field(default_factory=CredentialConfig)
    synthesis: SynthesisConfig = field(default_factory=SynthesisConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    voice_aliases: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RelayConfig":
        """
        Create RelayConfig from Settings with validation.

        Args:
            settings: Raw Settings object loaded from YAML.

        Returns:
            Validated RelayConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Provider
        # ─────────────────────────────────────────────────────────────────────
        provider_raw = raw.get("provider", {}) or {}
        provider = ProviderConfig(
            endpoint_url=str(provider_raw.get("endpoint_url", Defaults.PROVIDER_ENDPOINT_URL)),
            synth_url=str(provider_raw.get("synth_url", Defaults.PROVIDER_SYNTH_URL)),
            output_format=str(provider_raw.get("output_format", Defaults.PROVIDER_OUTPUT_FORMAT)),
            user_agent=str(provider_raw.get("user_agent", Defaults.PROVIDER_USER_AGENT)),
            timeout_s=float(provider_raw.get("timeout_s", Defaults.PROVIDER_TIMEOUT_S)),
        )
        cls._validate_positive("provider.timeout_s", provider.timeout_s)
        if "{region}" not in provider.synth_url:
            raise ConfigValidationError("provider.synth_url must contain a {region} placeholder")

        # ─────────────────────────────────────────────────────────────────────
        # Credentials
        # ─────────────────────────────────────────────────────────────────────
        credentials_raw = raw.get("credentials", {}) or {}
        credentials = CredentialConfig(
            refresh_skew_s=float(credentials_raw.get("refresh_skew_s", Defaults.CREDENTIALS_REFRESH_SKEW_S)),
        )
        cls._validate_non_negative("credentials.refresh_skew_s", credentials.refresh_skew_s)

        # ─────────────────────────────────────────────────────────────────────
        # Synthesis defaults
        # ─────────────────────────────────────────────────────────────────────
        synthesis_raw = raw.get("synthesis", {}) or {}
        synthesis = SynthesisConfig(
            default_model=str(synthesis_raw.get("default_model", Defaults.SYNTHESIS_DEFAULT_MODEL)),
            default_style=str(synthesis_raw.get("default_style", Defaults.SYNTHESIS_DEFAULT_STYLE)),
            default_concurrency=int(synthesis_raw.get("default_concurrency", Defaults.SYNTHESIS_DEFAULT_CONCURRENCY)),
            default_chunk_size=int(synthesis_raw.get("default_chunk_size", Defaults.SYNTHESIS_DEFAULT_CHUNK_SIZE)),
        )
        cls._validate_positive("synthesis.default_concurrency", synthesis.default_concurrency)
        cls._validate_positive("synthesis.default_chunk_size", synthesis.default_chunk_size)

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)

        # Handle string log levels (e.g., "INFO", "DEBUG")
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        # ─────────────────────────────────────────────────────────────────────
        # Auth (environment wins over the file)
        # ─────────────────────────────────────────────────────────────────────
        auth_raw = raw.get("auth", {}) or {}
        api_key = os.getenv("TTS_RELAY_API_KEY")
        auth = AuthConfig(
            api_key=api_key if api_key is not None else str(auth_raw.get("api_key") or ""),
        )

        # ─────────────────────────────────────────────────────────────────────
        # Voice aliases (merged over the built-in table by the validators)
        # ─────────────────────────────────────────────────────────────────────
        voices_raw = raw.get("voices", {}) or {}
        aliases_raw = voices_raw.get("aliases", {}) or {}
        if not isinstance(aliases_raw, dict):
            raise ConfigValidationError("voices.aliases must be a mapping of alias -> voice id")
        voice_aliases = {str(k): str(v) for k, v in aliases_raw.items()}

        return cls(
            provider=provider,
            credentials=credentials,
            synthesis=synthesis,
            logging=logging_cfg,
            auth=auth,
            voice_aliases=voice_aliases,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within a range [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_relay_config() to get the validated RelayConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    @property
    def output_format(self) -> str:
        """Get the provider audio output format."""
        return str((self.raw.get("provider", {}) or {}).get("output_format", Defaults.PROVIDER_OUTPUT_FORMAT))

    @property
    def default_model(self) -> str:
        """Get the model alias used when a request names none."""
        return str((self.raw.get("synthesis", {}) or {}).get("default_model", Defaults.SYNTHESIS_DEFAULT_MODEL))

    def get_relay_config(self) -> RelayConfig:
        """
        Get validated RelayConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return RelayConfig.from_settings(self)


def default_settings_path() -> str:
    """Settings path from $TTS_RELAY_SETTINGS, else config/settings.yaml."""
    return os.getenv("TTS_RELAY_SETTINGS", "config/settings.yaml")


def load_settings(path: Optional[str] = None, missing_ok: bool = False) -> Settings:
    """
    Load settings from a YAML configuration file.

    Args:
        path: Path to the YAML configuration file. Defaults to
            default_settings_path().
        missing_ok: Return empty settings (all defaults) instead of
            raising when the file does not exist.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If the settings file doesn't exist and
            missing_ok is False.
    """
    p = Path(path or default_settings_path())
    if not p.exists():
        if missing_ok:
            return Settings(raw={})
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    return Settings(raw=raw)
