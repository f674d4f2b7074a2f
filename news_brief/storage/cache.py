"""Content cache.

A key-value store with per-entry expiration. A live entry under
``article_cache_key(url)`` means the article has already been delivered; it
is the only record of delivery, and it disappears on its own once the
retention window has passed.
"""

import json
import time
from typing import Any, Callable, Dict, Iterable, Optional

import aiosqlite

from news_brief.config import CACHE_KEY_PREFIX
from news_brief.log_system.unified_logger import UnifiedLogger


# Largest number of keys a single bulk read accepts
MAX_BULK_KEYS = 100


def article_cache_key(url: str, prefix: str = CACHE_KEY_PREFIX) -> str:
    """Cache key for an article URL: the fixed prefix followed by the URL."""
    return f"{prefix}{url}"


class ContentCache:
    """Expiring key-value store on top of the ``content_cache`` table.

    Args:
        db: Open aiosqlite connection with the schema initialized
        clock: Returns the current time in epoch seconds (injectable for tests)
    """

    def __init__(self, db: aiosqlite.Connection, clock: Callable[[], float] = time.time):
        self._db = db
        self._clock = clock
        self._logger = UnifiedLogger.get_logger(__name__)

    async def get(self, key: str) -> Optional[Any]:
        """Return the value stored under key, or None if absent or expired."""
        cursor = await self._db.execute(
            "SELECT value FROM content_cache WHERE key = ? AND expires_at > ?",
            (key, self._clock()),
        )
        row = await cursor.fetchone()
        await cursor.close()

        if row is None:
            return None
        return json.loads(row[0])

    async def get_bulk(self, keys: Iterable[str]) -> Dict[str, Optional[Any]]:
        """Read many keys in one query.

        Args:
            keys: Up to MAX_BULK_KEYS keys

        Returns:
            Mapping of every requested key to its value, or None when absent

        Raises:
            ValueError: If more than MAX_BULK_KEYS distinct keys are requested
        """
        unique_keys = list(dict.fromkeys(keys))
        if len(unique_keys) > MAX_BULK_KEYS:
            raise ValueError(
                f"get_bulk accepts at most {MAX_BULK_KEYS} keys, got {len(unique_keys)}"
            )

        results: Dict[str, Optional[Any]] = {key: None for key in unique_keys}
        if not unique_keys:
            return results

        placeholders = ",".join("?" * len(unique_keys))
        cursor = await self._db.execute(
            f"""
            SELECT key, value FROM content_cache
            WHERE key IN ({placeholders}) AND expires_at > ?
            """,
            [*unique_keys, self._clock()],
        )
        async for row in cursor:
            results[row[0]] = json.loads(row[1])
        await cursor.close()

        return results

    async def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store value under key for ttl_seconds, replacing any previous value.

        Expired rows are purged as part of the write.
        """
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")

        now = self._clock()
        await self._db.execute("DELETE FROM content_cache WHERE expires_at <= ?", (now,))
        await self._db.execute(
            """
            INSERT INTO content_cache (key, value, expires_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                expires_at = excluded.expires_at
            """,
            (key, json.dumps(value), now + ttl_seconds),
        )
        await self._db.commit()
        self._logger.debug(f"Cached {key} for {ttl_seconds}s")
