"""Services for news_brief."""

from .feed_parser import fetch_entries, parse_feed_entries, parse_published
from .notifier import TelegramNotifier
from .scraper import extract_links, fetch_links
from .summarizer import OpenAISummarizer

__all__ = [
    "extract_links",
    "fetch_entries",
    "fetch_links",
    "parse_feed_entries",
    "parse_published",
    "OpenAISummarizer",
    "TelegramNotifier",
]
