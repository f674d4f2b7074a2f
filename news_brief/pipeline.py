"""Pipeline wiring.

Binds the discovery and delivery workflows to the step-execution engine with
the configured cache, sources, summarizer and notifier.
"""

import asyncio
from functools import partial
from typing import Dict, Optional

import aiosqlite

from news_brief.config import ServerConfig, get_config
from news_brief.log_system.unified_logger import UnifiedLogger
from news_brief.services import feed_parser, scraper
from news_brief.services.notifier import TelegramNotifier
from news_brief.services.summarizer import OpenAISummarizer
from news_brief.storage.cache import ContentCache
from news_brief.storage.database import get_database
from news_brief.storage.workflow_store import WorkflowStore
from news_brief.workflows.delivery import Notify, Summarize, run_delivery
from news_brief.workflows.discovery import EntryFetcher, LinkFetcher, run_discovery
from news_brief.workflows.engine import Sleep, WorkflowBinding


DISCOVERY = "discovery"
DELIVERY = "delivery"


class Pipeline:
    """The two workflow bindings plus their shared collaborators.

    Summarizer and notifier are created from config on first use unless they
    are passed in, so discovery-only use needs no API credentials.

    Args:
        db: Open aiosqlite connection with the schema initialized
        config: Server configuration
        summarize: Optional summarizer coroutine function
        notify: Optional notifier coroutine function
        fetch_links: Listing fetcher (defaults to the HTML scraper)
        fetch_entries: Feed fetcher (defaults to the RSS parser)
        sleep: Coroutine used between step retries
    """

    def __init__(
        self,
        db: aiosqlite.Connection,
        config: ServerConfig,
        summarize: Optional[Summarize] = None,
        notify: Optional[Notify] = None,
        fetch_links: Optional[LinkFetcher] = None,
        fetch_entries: Optional[EntryFetcher] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.config = config
        self.cache = ContentCache(db)
        self.store = WorkflowStore(db)
        self._summarize = summarize
        self._notify = notify

        self.delivery = WorkflowBinding(
            DELIVERY,
            partial(
                run_delivery,
                cache=self.cache,
                summarize=self._summarize_article,
                notify=self._send_notification,
                fallback_image_url=config.fallback_image_url,
                cache_ttl_seconds=config.cache_ttl_seconds,
                cache_key_prefix=config.cache_key_prefix,
            ),
            self.store,
            sleep=sleep,
        )
        self.discovery = WorkflowBinding(
            DISCOVERY,
            partial(
                run_discovery,
                cache=self.cache,
                processors=self.delivery,
                fetch_links=fetch_links or scraper.fetch_links,
                fetch_entries=fetch_entries or feed_parser.fetch_entries,
                main_url=config.main_url,
                feed_url=config.feed_url,
                listing_selector=config.listing_selector,
                request_timeout=config.request_timeout,
                cache_key_prefix=config.cache_key_prefix,
                cache_ttl_seconds=config.cache_ttl_seconds,
            ),
            self.store,
            sleep=sleep,
        )

    def binding(self, workflow_type: str) -> Optional[WorkflowBinding]:
        """Binding for ``discovery`` or ``delivery``, None for anything else."""
        bindings: Dict[str, WorkflowBinding] = {
            DISCOVERY: self.discovery,
            DELIVERY: self.delivery,
        }
        return bindings.get(workflow_type)

    async def resume_pending(self) -> int:
        """Resume unfinished instances of both workflows."""
        resumed = await self.discovery.resume_pending()
        resumed += await self.delivery.resume_pending()
        return resumed

    async def drain(self) -> None:
        """Wait for all running instances, deliveries spawned by discovery included."""
        await self.discovery.drain()
        await self.delivery.drain()

    async def cancel(self) -> None:
        """Stop all running instances; they resume on the next start."""
        # Discovery first so it cannot start deliveries after they were cancelled
        await self.discovery.cancel()
        await self.delivery.cancel()

    async def _summarize_article(self, content: str) -> Optional[str]:
        if self._summarize is None:
            summarizer = OpenAISummarizer(
                self.config.openai_api_key, model=self.config.summarizer_model
            )
            self._summarize = summarizer.summarize
        return await self._summarize(content)

    async def _send_notification(self, message: str, image_url: str, link: str) -> bool:
        if self._notify is None:
            notifier = TelegramNotifier(
                self.config.telegram_bot_token or "",
                self.config.telegram_channel_id or "",
                fallback_image_url=self.config.fallback_image_url,
            )
            self._notify = notifier.send
        return await self._notify(message, image_url, link)


_pipeline: Optional[Pipeline] = None


async def get_pipeline() -> Pipeline:
    """Get or create the process-wide pipeline on the singleton database."""
    global _pipeline

    if _pipeline is None:
        logger = UnifiedLogger.get_logger(__name__)
        db = await get_database()
        _pipeline = Pipeline(db, get_config())
        logger.info("Pipeline initialized")

    return _pipeline


def set_pipeline(pipeline: Optional[Pipeline]) -> None:
    """Replace the process-wide pipeline (used by tests and embedding apps)."""
    global _pipeline
    _pipeline = pipeline
