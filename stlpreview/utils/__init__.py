"""Utility functions for stlpreview."""

from stlpreview.utils.logging import (
    setup_logging,
    get_logger,
    log_performance,
    log_decode_stats,
    log_conversion_result,
    StructuredLogger,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "log_performance",
    "log_decode_stats",
    "log_conversion_result",
    "StructuredLogger",
]
