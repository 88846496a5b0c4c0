"""Logging for converge runners and integrations.

Loggers are created once at process start and injected into runners and
workflows; nothing in converge reaches for a module-global logger.

Usage:
    from converge.logging import configure_logging, create_logger

    # At process startup (once)
    configure_logging(level="INFO", json_output=True)

    # Create logger for injection
    logger = create_logger("runner", integration="account-notifier")
    runner = IntegrationRunner(integration, name="account-notifier", logger=logger)
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Dict, Optional

import structlog

from converge.protocols import LoggerProtocol

# Module state
_CONFIGURED = False


class Logger:
    """LoggerProtocol implementation backed by structlog."""

    def __init__(
        self,
        base_logger: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize logger.

        Args:
            base_logger: Underlying structlog logger (created if None)
            context: Bound context fields
        """
        self._logger = base_logger or structlog.get_logger()
        self._context = context or {}

        if self._context:
            self._logger = self._logger.bind(**self._context)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._logger.debug(msg, **kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._logger.info(msg, **kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._logger.warning(msg, **kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._logger.error(msg, **kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._logger.exception(msg, **kwargs)

    def bind(self, **kwargs: Any) -> "Logger":
        """Create child logger with additional context."""
        new_context = {**self._context, **kwargs}
        return Logger(
            base_logger=structlog.get_logger(),
            context=new_context,
        )


def configure_logging(
    level: str = "INFO",
    *,
    json_output: bool = True,
    force: bool = False,
) -> None:
    """Configure stdlib logging and structlog.

    This should be called ONCE at process startup; later calls are ignored
    unless force is set.

    Args:
        level: Default log level (DEBUG, INFO, WARNING, ERROR)
        json_output: If True, output JSON; if False, console format
        force: Reconfigure even if already configured
    """
    global _CONFIGURED

    if _CONFIGURED and not force:
        return

    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        stream=sys.stdout,
        force=force,
    )

    # Silence noisy libraries
    for noisy in ["httpx", "httpcore", "botocore", "boto3", "urllib3", "aiosqlite"]:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    if json_output:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            timestamper,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )

    _CONFIGURED = True


def create_logger(
    component: str,
    **context: Any,
) -> LoggerProtocol:
    """Create a logger for dependency injection.

    Args:
        component: Component name (e.g., "runner", "account_notifier")
        **context: Additional context to bind

    Returns:
        LoggerProtocol implementation
    """
    return Logger(context={"component": component, **context})


def get_component_logger(
    component: str,
    logger: Optional[LoggerProtocol] = None,
) -> LoggerProtocol:
    """Bind a component name onto an injected logger, or create one."""
    if logger is None:
        return create_logger(component)
    return logger.bind(component=component)


from converge.logging.adapter import StructlogAdapter, create_structlog_adapter  # noqa: E402


__all__ = [
    "configure_logging",
    "create_logger",
    "get_component_logger",
    "Logger",
    "StructlogAdapter",
    "create_structlog_adapter",
]
