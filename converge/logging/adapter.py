"""StructlogAdapter - wraps a raw structlog logger as a LoggerProtocol.

Used where a caller already holds a structlog BoundLogger (for example one
configured by an embedding application) and needs to inject it into a runner.

Usage:
    import structlog
    from converge.logging.adapter import StructlogAdapter

    logger = StructlogAdapter(structlog.get_logger())
    runner = IntegrationRunner(integration, name="example", logger=logger)
"""

from typing import Any, Optional

import structlog

from converge.protocols import LoggerProtocol


class StructlogAdapter(LoggerProtocol):
    """Adapts structlog to LoggerProtocol for dependency injection."""

    def __init__(
        self,
        logger: Optional[structlog.BoundLogger] = None,
    ):
        self._logger = logger if logger is not None else structlog.get_logger()

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._logger.debug(msg, **kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._logger.info(msg, **kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._logger.warning(msg, **kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._logger.error(msg, **kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        self._logger.exception(msg, **kwargs)

    def bind(self, **kwargs: Any) -> "StructlogAdapter":
        """Create child logger with bound context."""
        return StructlogAdapter(self._logger.bind(**kwargs))

    def unbind(self, *keys: str) -> "StructlogAdapter":
        """Create child logger without specified context keys."""
        return StructlogAdapter(self._logger.unbind(*keys))


def create_structlog_adapter(**context: Any) -> StructlogAdapter:
    """Create a StructlogAdapter with optional initial context."""
    logger = structlog.get_logger()
    if context:
        logger = logger.bind(**context)
    return StructlogAdapter(logger)


__all__ = [
    "StructlogAdapter",
    "create_structlog_adapter",
]
