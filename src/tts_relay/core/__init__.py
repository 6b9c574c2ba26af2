"""
Core Infrastructure for tts-relay.

This package provides foundational components:
    - config.py: Configuration loading and validation
    - errors.py: Error codes and the RelayError hierarchy
    - logging/: Structured logging with numeric levels
    - metrics.py: Prometheus metrics collection
"""
