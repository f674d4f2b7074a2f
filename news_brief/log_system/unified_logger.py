"""Unified logger for news_brief.

All modules log through ``UnifiedLogger.get_logger(__name__)``. Loggers live
under the ``news_brief`` hierarchy and share one handler that stamps each
line with the active correlation id.
"""

import logging
import sys
from typing import Optional

from news_brief.log_system.correlation import CorrelationIdFilter


ROOT_LOGGER_NAME = "news_brief"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s"


class UnifiedLogger:
    """Process-wide logging setup."""

    _handler: Optional[logging.Handler] = None

    @classmethod
    def initialize(cls, config=None) -> None:
        """Install the shared handler on the ``news_brief`` logger.

        Safe to call more than once; later calls only update the level.

        Args:
            config: Optional ServerConfig providing ``log_level``
        """
        level_name = getattr(config, "log_level", "INFO") or "INFO"
        level = logging.getLevelName(level_name.upper())
        if not isinstance(level, int):
            level = logging.INFO

        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.setLevel(level)

        if cls._handler is None:
            # MCP STDIO transport owns stdout, so logs go to stderr
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            handler.addFilter(CorrelationIdFilter())
            root.addHandler(handler)
            root.propagate = False
            cls._handler = handler

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Return a logger inside the ``news_brief`` hierarchy."""
        if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
            name = f"{ROOT_LOGGER_NAME}.{name}"
        return logging.getLogger(name)

    @classmethod
    def close(cls) -> None:
        """Detach and flush the shared handler."""
        if cls._handler is not None:
            root = logging.getLogger(ROOT_LOGGER_NAME)
            root.removeHandler(cls._handler)
            cls._handler.flush()
            cls._handler.close()
            root.propagate = True
            cls._handler = None
