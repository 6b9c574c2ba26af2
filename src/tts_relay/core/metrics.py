"""
Prometheus Metrics for the speech relay.

Metrics Exposed:
    tts_relay_requests_total              - Counter of speech requests by mode and status
    tts_relay_request_duration_seconds    - Histogram of request latency by mode
    tts_relay_provider_calls_total        - Counter of per-chunk synthesis calls by outcome
    tts_relay_provider_call_duration_seconds - Histogram of per-chunk call latency
    tts_relay_windows_processed_total     - Counter of batch windows completed
    tts_relay_audio_bytes_total           - Counter of audio bytes returned to clients
    tts_relay_credential_refreshes_total  - Counter of handshakes by outcome
    tts_relay_active_streams              - Gauge of streams currently being written

Usage:
    from tts_relay.core.metrics import metrics

    metrics.record_request(mode="buffered", status="success", duration=0.8, audio_bytes=48211)
    metrics.record_provider_call("success", 0.42)
    content, content_type = metrics.get_metrics_response()

Prometheus Scrape Config Example:
    scrape_configs:
      - job_name: 'tts-relay'
        static_configs:
          - targets: ['localhost:8000']
        metrics_path: '/metrics'
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class RelayMetrics:
    """
    Relay metrics on a private CollectorRegistry.

    A private registry keeps these series separate from anything else
    registered in the process (and lets tests build fresh instances).
    """

    def __init__(self):
        self._registry = CollectorRegistry()

        self._requests_total = Counter(
            "tts_relay_requests_total",
            "Total speech requests",
            ["mode", "status"],
            registry=self._registry,
        )
        self._request_duration = Histogram(
            "tts_relay_request_duration_seconds",
            "Speech request duration in seconds",
            ["mode"],
            buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self._registry,
        )
        self._provider_calls = Counter(
            "tts_relay_provider_calls_total",
            "Per-chunk synthesis calls",
            ["outcome"],
            registry=self._registry,
        )
        self._provider_call_duration = Histogram(
            "tts_relay_provider_call_duration_seconds",
            "Per-chunk synthesis call duration in seconds",
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=self._registry,
        )
        self._windows_processed = Counter(
            "tts_relay_windows_processed_total",
            "Batch windows completed",
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "tts_relay_audio_bytes_total",
            "Audio bytes returned to clients",
            registry=self._registry,
        )
        self._credential_refreshes = Counter(
            "tts_relay_credential_refreshes_total",
            "Provider credential handshakes",
            ["outcome"],
            registry=self._registry,
        )
        self._active_streams = Gauge(
            "tts_relay_active_streams",
            "Streams currently being written",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_request(self, mode: str, status: str, duration: float, audio_bytes: int = 0) -> None:
        """
        Record a completed speech request.

        Args:
            mode: "buffered" or "stream"
            status: "success" or "error"
            duration: Request duration in seconds
            audio_bytes: Audio bytes delivered to the client
        """
        self._requests_total.labels(mode=mode, status=status).inc()
        self._request_duration.labels(mode=mode).observe(duration)
        if audio_bytes > 0:
            self._audio_bytes_total.inc(audio_bytes)

    def record_provider_call(self, outcome: str, duration: float) -> None:
        """outcome is "success" or "error"."""
        self._provider_calls.labels(outcome=outcome).inc()
        self._provider_call_duration.observe(duration)

    def inc_windows_processed(self) -> None:
        self._windows_processed.inc()

    def record_credential_refresh(self, outcome: str) -> None:
        """outcome is "success", "stale" (failed, prior served) or "failure"."""
        self._credential_refreshes.labels(outcome=outcome).inc()

    def stream_started(self) -> None:
        self._active_streams.inc()

    def stream_finished(self) -> None:
        self._active_streams.dec()

    def get_metrics_response(self) -> tuple[bytes, str]:
        """
        Get metrics in Prometheus exposition format.

        Returns:
            Tuple of (content_bytes, content_type)
        """
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


metrics = RelayMetrics()
