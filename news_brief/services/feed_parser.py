"""Feed parser service.

This module parses the site's RSS feed into a mapping from article URL to
feed entry metadata.
"""

import httpx
import feedparser
from datetime import datetime, timezone
from typing import Dict, Optional
from email.utils import parsedate_to_datetime

from news_brief.errors import SourceFetchError
from news_brief.log_system.unified_logger import UnifiedLogger
from news_brief.models.schemas import FeedEntry


USER_AGENT = "NewsBrief/1.0 (RSS Feed Reader)"


def parse_feed_entries(xml: str) -> Dict[str, FeedEntry]:
    """Parse RSS/Atom XML into entries keyed by link.

    Args:
        xml: Raw feed document

    Returns:
        Mapping of entry link to FeedEntry; entries without a link are skipped
    """
    logger = UnifiedLogger.get_logger(__name__)

    feed = feedparser.parse(xml)

    if feed.bozo and not feed.entries:
        logger.warning(f"Feed parsing error: {feed.bozo_exception}")
        return {}

    entries = {}
    for entry in feed.entries:
        link = entry.get("link", "").strip()
        if not link:
            continue

        entries[link] = FeedEntry(
            title=entry.get("title", "").strip(),
            link=link,
            published=entry.get("published", "") or entry.get("updated", ""),
            summary=entry.get("summary", "") or entry.get("description", ""),
            image_url=_extract_image(entry),
        )

    return entries


def _extract_image(entry: dict) -> Optional[str]:
    """Pick the entry image from media:content, media:thumbnail or an enclosure.

    Args:
        entry: Feed entry dict

    Returns:
        Image URL if the entry carries one, None otherwise
    """
    for field in ("media_content", "media_thumbnail"):
        for media in entry.get(field, []) or []:
            url = media.get("url", "")
            if url:
                return url

    for enclosure in entry.get("enclosures", []) or []:
        if enclosure.get("type", "").startswith("image/") and enclosure.get("href"):
            return enclosure["href"]

    return None


def parse_published(value: str) -> Optional[datetime]:
    """Parse a feed publication date.

    Args:
        value: RFC 2822 (usual in RSS) or ISO 8601 date string

    Returns:
        Timezone-aware datetime if parsed successfully, None otherwise
    """
    if not value:
        return None

    parsed = None

    # Try RFC 2822 format (common in RSS)
    try:
        parsed = parsedate_to_datetime(value)
    except (ValueError, TypeError):
        pass

    # Try ISO format
    if parsed is None:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except (ValueError, AttributeError):
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def fetch_entries(feed_url: str, timeout: float = 10.0) -> Dict[str, FeedEntry]:
    """Fetch and parse the RSS feed.

    Args:
        feed_url: URL of the feed
        timeout: Request timeout in seconds

    Returns:
        Mapping of article URL to FeedEntry

    Raises:
        SourceFetchError: If the feed cannot be fetched
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"Parsing feed: {feed_url}")

    async with httpx.AsyncClient(
        follow_redirects=True,
        timeout=timeout,
        headers={"User-Agent": USER_AGENT},
    ) as client:
        try:
            response = await client.get(feed_url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch feed: {e}")
            raise SourceFetchError(feed_url, str(e)) from e

    entries = parse_feed_entries(response.text)

    logger.info(f"Parsed {len(entries)} entries from feed")
    return entries
