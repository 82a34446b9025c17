"""
Structured logging configuration for sitemet.

Provides:
- IngestLogger: Structured logger with context binding
- get_logger: Get a logger for a specific component
- configure_logging: Configure logging output format
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Dict, Optional

import structlog


class IngestLogger:
    """
    Structured logger for extraction and expansion steps.

    Example:
        log = IngestLogger("extractor")
        log = log.bind(source="cru", variable="temp")

        log.info("extraction_started", n_files=1, n_sites=250)
        log.warning("grid_file_missing", file="cru_ts4.01.1901.2016.tmp.dat.nc")
    """

    def __init__(
        self,
        component: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the logger.

        Args:
            component: Component name (e.g., "extractor", "expander")
            context: Initial context bindings
        """
        self._component = component
        self._context = context or {}
        self._logger = structlog.get_logger(f"sitemet.{component}")
        if self._context:
            self._logger = self._logger.bind(**self._context)

    @property
    def context(self) -> Dict[str, Any]:
        return dict(self._context)

    def bind(self, **kwargs: Any) -> "IngestLogger":
        """
        Create a new logger with additional context bindings.

        Args:
            **kwargs: Key-value pairs to bind to the logger

        Returns:
            New IngestLogger with bound context
        """
        return IngestLogger(self._component, {**self._context, **kwargs})

    def debug(self, event: str, **kwargs: Any) -> None:
        self._logger.debug(event, **kwargs)

    def info(self, event: str, **kwargs: Any) -> None:
        self._logger.info(event, **kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        self._logger.warning(event, **kwargs)

    def error(self, event: str, **kwargs: Any) -> None:
        self._logger.error(event, **kwargs)

    def exception(self, event: str, **kwargs: Any) -> None:
        self._logger.exception(event, **kwargs)


def get_logger(component: str) -> IngestLogger:
    """
    Get a logger for a specific component.

    Args:
        component: Component name (e.g., "extractor", "adapter", "pipeline")

    Returns:
        IngestLogger instance
    """
    return IngestLogger(component)


def configure_logging(
    level: str = "INFO",
    format: str = "console",
    output: str = "stderr",
) -> None:
    """
    Configure logging output.

    Args:
        level: Log level ("DEBUG", "INFO", "WARNING", "ERROR")
        format: Output format ("json" or "console")
        output: Output destination ("stderr", "stdout", or file path)

    Example:
        # JSON lines for batch jobs
        configure_logging(level="INFO", format="json", output="ingest.log")
    """
    level_num = getattr(logging, level.upper(), logging.INFO)

    if output == "stderr":
        handler = logging.StreamHandler(sys.stderr)
    elif output == "stdout":
        handler = logging.StreamHandler(sys.stdout)
    else:
        handler = logging.FileHandler(output)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root_logger = logging.getLogger("sitemet")
    root_logger.setLevel(level_num)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    if format == "json":
        renderer = structlog.processors.JSONRenderer()
        timestamper = structlog.processors.TimeStamper(fmt="iso")
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=output in ("stderr", "stdout"))
        timestamper = structlog.processors.TimeStamper(fmt="%H:%M:%S")

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            timestamper,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
