"""
Structured logging configuration for StratForge.

Uses structlog for context-rich logging. Output goes to stderr so the CLI's
live stage display on stdout stays readable.
"""

from __future__ import annotations

import logging
import sys
import time
from typing import Any

import structlog
from structlog.types import Processor

from stratforge.core.config import get_settings


def setup_logging(
    level: str | None = None,
    json_format: bool | None = None,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON output format
    """
    settings = get_settings()
    level = level or settings.generation.log_level
    json_format = json_format if json_format is not None else (
        settings.generation.log_format == "json"
    )
    numeric_level = getattr(logging, level.upper())

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a logger instance, optionally named."""
    return structlog.get_logger(name)


class RunLogger:
    """
    Context manager that logs one pipeline run and its outcome.

    The outcome recorded with ``record`` is logged when the block exits:
    a successful run at info level, a halted run at warning level with the
    stage that failed.

    Example:
        with RunLogger(logger, "strategy", asset="BTC") as run_log:
            run_log.record(await orchestrator.run(data))
    """

    def __init__(
        self,
        logger: structlog.BoundLogger,
        pipeline: str,
        **context: Any,
    ):
        self.logger = logger.bind(pipeline=pipeline, **context)
        self.pipeline = pipeline
        self.run: Any = None
        self._started = 0.0

    def __enter__(self) -> "RunLogger":
        self._started = time.perf_counter()
        self.logger.info(f"Starting {self.pipeline} pipeline")
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        duration_ms = round((time.perf_counter() - self._started) * 1000, 1)
        if exc_type:
            self.logger.error(
                f"Aborted {self.pipeline} pipeline",
                success=False,
                error=str(exc_val),
                error_type=exc_type.__name__,
                duration_ms=duration_ms,
            )
        elif self.run is not None and not self.run.success:
            self.logger.warning(
                f"Halted {self.pipeline} pipeline",
                success=False,
                failed_stage=self.run.failed_stage,
                error=self.run.error,
                duration_ms=duration_ms,
            )
        elif self.run is not None:
            self.logger.info(
                f"Finished {self.pipeline} pipeline",
                success=True,
                duration_ms=duration_ms,
            )
        else:
            self.logger.info(f"Finished {self.pipeline} pipeline", duration_ms=duration_ms)

    def record(self, run: Any) -> Any:
        """Keep a pipeline result to report on exit and hand it back."""
        self.run = run
        return run
