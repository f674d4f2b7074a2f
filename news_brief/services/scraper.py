"""HTML listing scraper.

This module turns the news site's listing page into an ordered list of
candidate article URLs using a CSS selector.
"""

import httpx
from bs4 import BeautifulSoup
from typing import List
from urllib.parse import urljoin

from news_brief.config import DEFAULT_LISTING_SELECTOR
from news_brief.errors import SourceFetchError
from news_brief.log_system.unified_logger import UnifiedLogger


USER_AGENT = "NewsBrief/1.0 (Listing Scraper)"


def extract_links(html: str, base_url: str, css_selector: str = DEFAULT_LISTING_SELECTOR) -> List[str]:
    """Extract article links from a listing page.

    Args:
        html: Raw page HTML
        base_url: URL the page was fetched from, used to resolve relative links
        css_selector: CSS selector matching the article links (or their containers)

    Returns:
        Absolute URLs in page order, without duplicates
    """
    soup = BeautifulSoup(html, "lxml")

    links = []
    seen_urls = set()

    for element in soup.select(css_selector):
        # Find the link - either the element itself or a child <a> tag
        if element.name == "a":
            link = element
        else:
            link = element.find("a")

        if not link:
            continue

        href = link.get("href", "").strip()
        if not href or href.startswith("#") or href.startswith("javascript:"):
            continue

        absolute_url = urljoin(base_url, href)

        # Skip duplicates
        if absolute_url in seen_urls:
            continue
        seen_urls.add(absolute_url)

        links.append(absolute_url)

    return links


async def fetch_links(
    url: str,
    css_selector: str = DEFAULT_LISTING_SELECTOR,
    timeout: float = 10.0,
) -> List[str]:
    """Fetch the listing page and extract candidate article links.

    Args:
        url: URL of the listing page
        css_selector: CSS selector for article links
        timeout: Request timeout in seconds

    Returns:
        Ordered list of candidate URLs (empty if the page has none)

    Raises:
        SourceFetchError: If the page cannot be fetched
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"Scraping listing: {url} with selector: {css_selector}")

    async with httpx.AsyncClient(
        follow_redirects=True,
        timeout=timeout,
        headers={"User-Agent": USER_AGENT},
    ) as client:
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch listing page: {e}")
            raise SourceFetchError(url, str(e)) from e

    links = extract_links(response.text, url, css_selector)

    if not links:
        logger.warning(f"No links found matching selector: {css_selector}")

    logger.info(f"Scraped {len(links)} links from listing")
    return links
