"""Per-call logging for MCP tools."""

import functools
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from news_brief.log_system.correlation import (
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from news_brief.log_system.unified_logger import UnifiedLogger


def tool_logger(
    func: Callable[..., Awaitable[Any]],
    config: Optional[Dict[str, Any]] = None,
) -> Callable[..., Awaitable[Any]]:
    """Run each call under a fresh correlation id and log its duration.

    Args:
        func: Async tool function
        config: Server config as a dict; ``name`` is included in the log lines
    """
    server_name = (config or {}).get("name", "news_brief")
    logger = UnifiedLogger.get_logger("news_brief.tools")

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        token = set_correlation_id(generate_correlation_id())
        start = time.perf_counter()
        logger.info(f"[{server_name}] {func.__name__} started")
        try:
            result = await func(*args, **kwargs)
        except Exception:
            elapsed = (time.perf_counter() - start) * 1000
            logger.error(f"[{server_name}] {func.__name__} raised after {elapsed:.1f}ms")
            raise
        finally:
            reset_correlation_id(token)

        elapsed = (time.perf_counter() - start) * 1000
        logger.info(f"[{server_name}] {func.__name__} finished in {elapsed:.1f}ms")
        return result

    return wrapper
