"""Periodic discovery trigger."""

import asyncio
from typing import Awaitable, Callable, Optional

from news_brief.log_system.unified_logger import UnifiedLogger
from news_brief.pipeline import Pipeline, get_pipeline


async def run_periodic_discovery(
    interval_seconds: float,
    pipeline_factory: Callable[[], Awaitable[Pipeline]] = get_pipeline,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    max_runs: Optional[int] = None,
) -> int:
    """Start a discovery instance every interval_seconds.

    A failed trigger is logged and the schedule keeps going.

    Args:
        interval_seconds: Time between triggers
        pipeline_factory: Returns the pipeline to trigger on
        sleep: Coroutine used to wait between triggers
        max_runs: Stop after this many triggers (None runs until cancelled)

    Returns:
        Number of discovery instances started
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"Scheduled discovery every {interval_seconds / 3600:.2f}h")

    runs = 0
    started = 0
    while max_runs is None or runs < max_runs:
        runs += 1
        try:
            pipeline = await pipeline_factory()
            instance = await pipeline.discovery.create()
            started += 1
            logger.info(f"Scheduled news discovery started: {instance.id}")
        except Exception as e:
            logger.error(f"Error in scheduled discovery: {e}")

        if max_runs is None or runs < max_runs:
            await sleep(interval_seconds)

    return started
