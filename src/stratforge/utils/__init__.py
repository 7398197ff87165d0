"""Utility modules for StratForge."""

from stratforge.utils.logging import RunLogger, get_logger, setup_logging

__all__ = [
    "setup_logging",
    "get_logger",
    "RunLogger",
]
