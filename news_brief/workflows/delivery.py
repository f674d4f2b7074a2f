"""Delivery workflow.

Delivers one article: idempotency check, summary, message, notification,
and finally the delivery marker in the content cache.

The marker is written only after the notification was accepted. A crash
between those two steps leaves no marker, so a later run may notify the
same article again. That window is accepted rather than closed.
"""

import html
from typing import Any, Awaitable, Callable, Dict, Optional

from news_brief.config import CACHE_KEY_PREFIX, CACHE_TTL_SECONDS, FALLBACK_IMAGE_URL
from news_brief.errors import (
    DeliveryError,
    NotificationNotSentError,
    StepFailedError,
    SummaryUnavailableError,
)
from news_brief.log_system.unified_logger import UnifiedLogger
from news_brief.models.schemas import CacheEntry, DeliveryResult, DeliveryUnit, utc_now
from news_brief.storage.cache import ContentCache, article_cache_key
from news_brief.workflows.engine import WorkflowStep
from news_brief.workflows.policies import COMPOSE_STEP, RECORD_STEP, SEND_STEP, SUMMARIZE_STEP


Summarize = Callable[[str], Awaitable[Optional[str]]]
Notify = Callable[[str, str, str], Awaitable[bool]]

MESSAGE_EMOJI = "📰"


def compose_message(title: str, summary: str) -> str:
    """Format the notification caption (Telegram HTML)."""
    return f"{MESSAGE_EMOJI} <b>{html.escape(title)}</b>\n\n<i>{html.escape(summary)}</i>"


async def run_delivery(
    params: Dict[str, Any],
    step: WorkflowStep,
    *,
    cache: ContentCache,
    summarize: Summarize,
    notify: Notify,
    fallback_image_url: str = FALLBACK_IMAGE_URL,
    cache_ttl_seconds: int = CACHE_TTL_SECONDS,
    cache_key_prefix: str = CACHE_KEY_PREFIX,
) -> Dict[str, Any]:
    """Deliver one article unless it was already delivered.

    Args:
        params: DeliveryUnit params (``article`` and optional ``reprocess``)
        step: Step executor of this instance
        cache: Content cache holding delivery markers
        summarize: Text -> summary or None
        notify: (message, image URL, link) -> accepted
        fallback_image_url: Image used when the article has none
        cache_ttl_seconds: Lifetime of the delivery marker
        cache_key_prefix: Prefix of delivery marker keys

    Returns:
        DeliveryResult as a dict

    Raises:
        DeliveryError: If summarizing, sending or recording exhausted its retries
    """
    logger = UnifiedLogger.get_logger(__name__)
    unit = DeliveryUnit.from_params(params)
    article = unit.article
    cache_key = article_cache_key(article.url, cache_key_prefix)

    # Step 1: read-only idempotency check
    if not unit.reprocess:
        async def _check():
            return await cache.get(cache_key) is not None

        if await step.do("check_if_processed", _check):
            logger.info(f"Article already processed: {article.url}")
            return DeliveryResult.already_processed(article.url).to_dict()

    # Step 2: summary
    async def _summarize():
        summary = await summarize(article.content)
        if not summary:
            raise SummaryUnavailableError(f"No summary for {article.url}")
        return summary

    try:
        summary = await step.do("generate_summary", _summarize, SUMMARIZE_STEP)
    except StepFailedError as e:
        raise DeliveryError(
            f"Failed to generate summary for article: {article.url}", article.url
        ) from e

    # Step 3: message
    async def _compose():
        return compose_message(article.title, summary)

    message = await step.do("create_message", _compose, COMPOSE_STEP)

    # Step 4: notification
    image_url = article.image_url or fallback_image_url

    async def _send():
        if not await notify(message, image_url, article.url):
            raise NotificationNotSentError(f"Notification rejected for {article.url}")
        return True

    try:
        await step.do("send_notification", _send, SEND_STEP)
    except StepFailedError as e:
        raise DeliveryError(
            f"Failed to send notification for article: {article.url}", article.url
        ) from e

    # Step 5: delivery marker
    async def _record():
        entry = CacheEntry(
            processed_at=utc_now(),
            title=article.title,
            url=article.url,
            summary=summary,
        )
        await cache.put(cache_key, entry.to_dict(), cache_ttl_seconds)
        return entry.to_dict()

    try:
        recorded = await step.do("mark_as_processed", _record, RECORD_STEP)
    except StepFailedError as e:
        raise DeliveryError(
            f"Failed to record delivery for article: {article.url}", article.url
        ) from e

    logger.info(f"Delivered article: {article.url}")

    return DeliveryResult(
        url=article.url,
        title=article.title,
        summary=summary,
        notification_sent=True,
        processed_at=CacheEntry.from_dict(recorded).processed_at,
    ).to_dict()
