"""Discovery workflow.

Finds new articles on the news site and starts one delivery instance per
article:

1. fetch_article_links      - candidate URLs from the listing page
2. fetch_feed_entries       - URL -> metadata from the RSS feed
3. check_processed_articles - bulk lookup of delivery markers
4. prepare_articles         - one DeliveryUnit per new URL found in the feed
5. trigger_processors       - a single batch call starting the deliveries

Source fetches are best effort: when a fetch exhausts its retries the run
carries on with what it has. The feed is authoritative for content, so a
listing URL missing from the feed is dropped with a log line.
"""

import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional

from news_brief.config import (
    CACHE_KEY_PREFIX,
    CACHE_TTL_SECONDS,
    DEFAULT_FEED_URL,
    DEFAULT_LISTING_SELECTOR,
    DEFAULT_MAIN_URL,
)
from news_brief.log_system.unified_logger import UnifiedLogger
from news_brief.models.schemas import (
    Article,
    DeliveryUnit,
    DiscoveryResult,
    FeedEntry,
    TriggeredProcessor,
    utc_now,
)
from news_brief.services import feed_parser, scraper
from news_brief.services.feed_parser import parse_published
from news_brief.storage.cache import MAX_BULK_KEYS, ContentCache, article_cache_key
from news_brief.workflows.engine import WorkflowStep
from news_brief.workflows.policies import FETCH_SOURCE_STEP


LinkFetcher = Callable[[str, str, float], Awaitable[List[str]]]
EntryFetcher = Callable[[str, float], Awaitable[Dict[str, FeedEntry]]]


def delivery_instance_id(url: str, now: float, window_seconds: int = CACHE_TTL_SECONDS) -> str:
    """Delivery instance id for url, stable within one retention window.

    Discovery runs that overlap all derive the same id for an article, and
    the delivery binding starts each id only once.
    """
    window = int(now // window_seconds)
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{url}|{window}"))


async def check_processed(
    cache: ContentCache,
    links: List[str],
    cache_key_prefix: str = CACHE_KEY_PREFIX,
) -> Dict[str, bool]:
    """Map each link to whether it has a live delivery marker.

    Reads the cache in bulk, MAX_BULK_KEYS keys per call.
    """
    processed: Dict[str, bool] = {}
    unique_links = list(dict.fromkeys(links))

    for start in range(0, len(unique_links), MAX_BULK_KEYS):
        chunk = unique_links[start:start + MAX_BULK_KEYS]
        keys = {link: article_cache_key(link, cache_key_prefix) for link in chunk}
        values = await cache.get_bulk(keys.values())
        for link, key in keys.items():
            processed[link] = values.get(key) is not None

    return processed


def build_delivery_units(
    links: List[str],
    feed_entries: Dict[str, Dict[str, Any]],
    processed: Dict[str, bool],
) -> List[DeliveryUnit]:
    """Turn new candidate links into delivery units.

    Args:
        links: Candidate URLs in listing order
        feed_entries: URL -> FeedEntry dict
        processed: URL -> already delivered

    Returns:
        One unit per distinct link that is not delivered and is in the feed
    """
    logger = UnifiedLogger.get_logger(__name__)
    units = []
    seen = set()

    for link in links:
        if link in seen:
            continue
        seen.add(link)

        # Skip already processed articles
        if processed.get(link):
            logger.info(f"Skipping already processed article: {link}")
            continue

        raw_entry = feed_entries.get(link)
        if not raw_entry:
            logger.info(f"Article not found in feed: {link}")
            continue

        entry = FeedEntry.from_dict(raw_entry)
        article = Article(
            title=entry.title,
            url=link,
            date_published=parse_published(entry.published) or utc_now(),
            content=entry.summary,
            image_url=entry.image_url,
        )
        units.append(DeliveryUnit(article=article))

    return units


async def run_discovery(
    params: Optional[Dict[str, Any]],
    step: WorkflowStep,
    *,
    cache: ContentCache,
    processors,
    fetch_links: LinkFetcher = scraper.fetch_links,
    fetch_entries: EntryFetcher = feed_parser.fetch_entries,
    main_url: str = DEFAULT_MAIN_URL,
    feed_url: str = DEFAULT_FEED_URL,
    listing_selector: str = DEFAULT_LISTING_SELECTOR,
    request_timeout: float = 10.0,
    cache_key_prefix: str = CACHE_KEY_PREFIX,
    cache_ttl_seconds: int = CACHE_TTL_SECONDS,
    clock: Callable[[], float] = time.time,
) -> Dict[str, Any]:
    """Run one discovery pass.

    Args:
        params: Optional ``main_url`` / ``feed_url`` overrides
        step: Step executor of this instance
        cache: Content cache holding delivery markers
        processors: Delivery workflow binding (anything with ``create_batch``)
        fetch_links: Listing fetcher
        fetch_entries: Feed fetcher
        main_url: Default listing page
        feed_url: Default feed
        listing_selector: CSS selector for listing links
        request_timeout: HTTP timeout for the fetchers
        cache_key_prefix: Prefix of delivery marker keys
        cache_ttl_seconds: Retention window, also the scope of delivery ids
        clock: Returns the current time in epoch seconds

    Returns:
        DiscoveryResult as a dict
    """
    logger = UnifiedLogger.get_logger(__name__)
    params = params or {}
    main_url = params.get("main_url") or main_url
    feed_url = params.get("feed_url") or feed_url

    # Step 1: candidate links; None marks a listing that could not be fetched
    async def _fetch_links():
        return await fetch_links(main_url, listing_selector, request_timeout)

    article_links = await step.do(
        "fetch_article_links", _fetch_links, FETCH_SOURCE_STEP, default=None
    )

    if article_links is not None and not article_links:
        logger.info(f"No article links on {main_url}")
        return DiscoveryResult(total_links=0, total_processed=0).to_dict()

    # Step 2: feed metadata
    async def _fetch_entries():
        entries = await fetch_entries(feed_url, request_timeout)
        return {link: entry.to_dict() for link, entry in entries.items()}

    feed_entries = await step.do(
        "fetch_feed_entries", _fetch_entries, FETCH_SOURCE_STEP, default={}
    )

    if article_links is None:
        logger.warning(f"Listing {main_url} unavailable, using feed entries as candidates")
        article_links = list(feed_entries)
        if not article_links:
            return DiscoveryResult(total_links=0, total_processed=0).to_dict()

    # Step 3: delivered state, read in bulk
    async def _check_processed():
        return await check_processed(cache, article_links, cache_key_prefix)

    processed = await step.do("check_processed_articles", _check_processed)

    # Step 4: delivery units; ids derive from URL and retention window so
    # overlapping runs and a retried trigger step map to the same instances
    async def _prepare():
        now = clock()
        return [
            {
                "id": delivery_instance_id(unit.article.url, now, cache_ttl_seconds),
                "params": unit.to_params(),
            }
            for unit in build_delivery_units(article_links, feed_entries, processed)
        ]

    batch = await step.do("prepare_articles", _prepare)

    # Step 5: one batch call for the whole fan-out
    async def _trigger():
        if not batch:
            return []
        instances = await processors.create_batch(batch)
        return [
            TriggeredProcessor(
                url=item["params"]["article"]["url"],
                processor_id=instance.id,
            ).to_dict()
            for item, instance in zip(batch, instances)
        ]

    triggered = await step.do("trigger_processors", _trigger)

    logger.info(
        f"Discovery found {len(article_links)} links, triggered {len(triggered)} deliveries"
    )

    return DiscoveryResult(
        total_links=len(article_links),
        total_processed=len(batch),
        processors=[
            TriggeredProcessor(t["url"], t["processor_id"], t["status"]) for t in triggered
        ],
    ).to_dict()
