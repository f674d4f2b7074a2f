"""Unit tests for the source fetchers.

Tests for listing scraping, feed parsing and date parsing.
"""

import pytest
import httpx
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch, MagicMock

from news_brief.errors import SourceFetchError
from news_brief.services.feed_parser import fetch_entries, parse_feed_entries, parse_published
from news_brief.services.scraper import extract_links, fetch_links


# Mark all tests as async
pytestmark = pytest.mark.anyio


LISTING_HTML = """
<html><body>
  <div class="home-post-list-title"><a href="https://www.myjoyonline.com/story-one/">One</a></div>
  <div class="home-post-list-title"><a href="/story-two/">Two</a></div>
  <div class="home-post-list-title"><a href="https://www.myjoyonline.com/story-one/">One again</a></div>
  <div class="home-post-list-title"><a href="#comments">Skip</a></div>
  <div class="home-post-list-title"><span>No link</span></div>
  <div class="sidebar"><a href="https://www.myjoyonline.com/ad/">Ad</a></div>
</body></html>
"""

RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/">
  <channel>
    <title>MyJoyOnline</title>
    <item>
      <title>Story One</title>
      <link>https://www.myjoyonline.com/story-one/</link>
      <pubDate>Mon, 01 Jan 2024 12:00:00 GMT</pubDate>
      <description>Body of story one.</description>
      <media:content url="https://cdn.example.com/one.jpg" medium="image" />
    </item>
    <item>
      <title>Story Two</title>
      <link>https://www.myjoyonline.com/story-two/</link>
      <description>Body of story two.</description>
    </item>
    <item>
      <title>No link</title>
    </item>
  </channel>
</rss>
"""


def _mock_client(response=None, error=None):
    """Patchable httpx.AsyncClient returning response or raising error on get."""
    mock_instance = AsyncMock()
    if error is not None:
        mock_instance.get = AsyncMock(side_effect=error)
    else:
        mock_instance.get = AsyncMock(return_value=response)
    mock_instance.__aenter__ = AsyncMock(return_value=mock_instance)
    mock_instance.__aexit__ = AsyncMock(return_value=None)
    return mock_instance


def _response(text):
    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_response.text = text
    mock_response.raise_for_status = MagicMock()
    return mock_response


class TestExtractLinks:
    """Tests for listing link extraction."""

    async def test_extracts_links_in_order(self):
        """Test that matching links come back in page order without duplicates."""
        links = extract_links(LISTING_HTML, "https://www.myjoyonline.com/")

        assert links == [
            "https://www.myjoyonline.com/story-one/",
            "https://www.myjoyonline.com/story-two/",
        ]

    async def test_custom_selector(self):
        """Test that a different selector picks different links."""
        links = extract_links(LISTING_HTML, "https://www.myjoyonline.com/", "div.sidebar a")

        assert links == ["https://www.myjoyonline.com/ad/"]

    async def test_no_matches(self):
        """Test that a page without matches yields no links."""
        assert extract_links("<html><body></body></html>", "https://x/") == []


class TestFetchLinks:
    """Tests for fetching the listing page."""

    async def test_fetch_links(self):
        """Test that the fetched page is scraped."""
        with patch("news_brief.services.scraper.httpx.AsyncClient") as mock_client:
            mock_client.return_value = _mock_client(_response(LISTING_HTML))

            links = await fetch_links("https://www.myjoyonline.com/")

        assert len(links) == 2

    async def test_fetch_links_http_error_raises(self):
        """Test that transport failures surface as SourceFetchError."""
        with patch("news_brief.services.scraper.httpx.AsyncClient") as mock_client:
            mock_client.return_value = _mock_client(error=httpx.ConnectError("refused"))

            with pytest.raises(SourceFetchError, match="myjoyonline"):
                await fetch_links("https://www.myjoyonline.com/")


class TestParseFeedEntries:
    """Tests for RSS parsing."""

    async def test_entries_keyed_by_link(self):
        """Test that entries are keyed by link and linkless items are dropped."""
        entries = parse_feed_entries(RSS_FEED)

        assert set(entries) == {
            "https://www.myjoyonline.com/story-one/",
            "https://www.myjoyonline.com/story-two/",
        }

    async def test_entry_fields(self):
        """Test that title, date, summary and media image are extracted."""
        entry = parse_feed_entries(RSS_FEED)["https://www.myjoyonline.com/story-one/"]

        assert entry.title == "Story One"
        assert entry.published == "Mon, 01 Jan 2024 12:00:00 GMT"
        assert entry.summary == "Body of story one."
        assert entry.image_url == "https://cdn.example.com/one.jpg"

    async def test_entry_without_image(self):
        """Test that an item without media has no image."""
        entry = parse_feed_entries(RSS_FEED)["https://www.myjoyonline.com/story-two/"]

        assert entry.image_url is None
        assert entry.published == ""

    async def test_garbage_returns_empty(self):
        """Test that an unparseable document yields no entries."""
        assert parse_feed_entries("this is not xml") == {}


class TestFetchEntries:
    """Tests for fetching the feed."""

    async def test_fetch_entries(self):
        """Test that the fetched feed is parsed."""
        with patch("news_brief.services.feed_parser.httpx.AsyncClient") as mock_client:
            mock_client.return_value = _mock_client(_response(RSS_FEED))

            entries = await fetch_entries("https://www.myjoyonline.com/feed/")

        assert len(entries) == 2

    async def test_fetch_entries_http_error_raises(self):
        """Test that HTTP errors surface as SourceFetchError."""
        with patch("news_brief.services.feed_parser.httpx.AsyncClient") as mock_client:
            mock_client.return_value = _mock_client(error=httpx.ReadTimeout("slow"))

            with pytest.raises(SourceFetchError):
                await fetch_entries("https://www.myjoyonline.com/feed/")


class TestParsePublished:
    """Tests for publication date parsing."""

    async def test_rfc_2822(self):
        """Test parsing the RSS date format."""
        parsed = parse_published("Mon, 01 Jan 2024 12:00:00 GMT")
        assert parsed == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    async def test_iso_8601(self):
        """Test parsing an ISO timestamp with Z suffix."""
        parsed = parse_published("2024-01-01T12:00:00Z")
        assert parsed == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    async def test_naive_iso_is_utc(self):
        """Test that a naive timestamp is treated as UTC."""
        parsed = parse_published("2024-01-01T12:00:00")
        assert parsed.tzinfo is not None

    async def test_unparseable(self):
        """Test that garbage and empty strings give None."""
        assert parse_published("not a date") is None
        assert parse_published("") is None
