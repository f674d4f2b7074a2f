"""Exception handling for MCP tools.

A tool call that raises is turned into a structured failure response so the
client always gets an answer.
"""

import functools
from typing import Any, Awaitable, Callable, Dict

from news_brief.log_system.unified_logger import UnifiedLogger


def exception_handler(func: Callable[..., Awaitable[Dict[str, Any]]]) -> Callable[..., Awaitable[Dict[str, Any]]]:
    """Wrap an async tool so exceptions become ``{"success": False, ...}``."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> Dict[str, Any]:
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            logger = UnifiedLogger.get_logger(func.__module__)
            logger.exception(f"Error in {func.__name__}: {e}")
            return {
                "success": False,
                "error": str(e) or type(e).__name__,
                "error_type": type(e).__name__,
            }

    return wrapper
