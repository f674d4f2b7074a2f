"""Storage layer for news_brief."""

from .database import (
    get_database,
    init_database,
    close_database,
)
from .cache import ContentCache, article_cache_key, MAX_BULK_KEYS
from .workflow_store import WorkflowStore

__all__ = [
    "get_database",
    "init_database",
    "close_database",
    "ContentCache",
    "article_cache_key",
    "MAX_BULK_KEYS",
    "WorkflowStore",
]
