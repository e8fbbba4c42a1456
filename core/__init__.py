"""
Core utilities and configuration for the feed pipeline.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and startup validation
    database: Async engine, session factory and dialect-aware inserts
    exceptions: Exception hierarchy with structured error context
    results: Success/error result values returned by service operations
    clock: Injectable clock (system and fixed)
    locks: Per-key asyncio locks
    logging: Logging configuration
    urls: URL classification helpers (YouTube, XKCD, tweets)

Usage:
    from core.config import settings, validate_settings
    from core.results import make_success_result, make_error_result
    from core.exceptions import ValidationError, NetworkError
    from core.logging import setup_logging

Example:
    setup_logging()
    validate_settings(settings)
"""

__all__ = [
    "config",
    "database",
    "exceptions",
    "results",
    "clock",
    "locks",
    "logging",
    "urls",
]
