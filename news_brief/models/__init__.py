"""Data models for news_brief."""

from .schemas import (
    Article,
    CacheEntry,
    DeliveryResult,
    DeliveryUnit,
    DiscoveryResult,
    FeedEntry,
    TriggeredProcessor,
)

__all__ = [
    "Article",
    "CacheEntry",
    "DeliveryResult",
    "DeliveryUnit",
    "DiscoveryResult",
    "FeedEntry",
    "TriggeredProcessor",
]
