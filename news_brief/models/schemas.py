"""Data models for news_brief.

This module defines the values passed between the discovery and delivery
workflows. Everything that crosses a workflow step boundary has a dict form,
because step results are checkpointed as JSON.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Article:
    """A news article ready for delivery. The URL identifies it."""

    title: str
    url: str
    date_published: datetime
    content: str
    image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "date_published": self.date_published.isoformat(),
            "content": self.content,
            "image_url": self.image_url or "",
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Article":
        published = data.get("date_published")
        if isinstance(published, datetime):
            date_published = published
        elif published:
            date_published = _parse_iso(published)
        else:
            date_published = utc_now()
        return cls(
            title=data.get("title", ""),
            url=data["url"],
            date_published=date_published,
            content=data.get("content", ""),
            image_url=data.get("image_url") or None,
        )


@dataclass
class FeedEntry:
    """Metadata for one item of the RSS feed."""

    title: str
    link: str
    published: str
    summary: str
    image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "link": self.link,
            "published": self.published,
            "summary": self.summary,
            "image_url": self.image_url or "",
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeedEntry":
        return cls(
            title=data.get("title", ""),
            link=data.get("link", ""),
            published=data.get("published", ""),
            summary=data.get("summary", ""),
            image_url=data.get("image_url") or None,
        )


@dataclass
class DeliveryUnit:
    """Parameters of one delivery workflow instance."""

    article: Article
    reprocess: bool = False

    def to_params(self) -> Dict[str, Any]:
        return {"article": self.article.to_dict(), "reprocess": self.reprocess}

    @classmethod
    def from_params(cls, params: Dict[str, Any]) -> "DeliveryUnit":
        return cls(
            article=Article.from_dict(params["article"]),
            reprocess=bool(params.get("reprocess", False)),
        )


@dataclass
class CacheEntry:
    """Value stored in the content cache once an article has been delivered."""

    processed_at: datetime
    title: str
    url: str
    summary: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed_at": self.processed_at.isoformat(),
            "title": self.title,
            "url": self.url,
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        return cls(
            processed_at=_parse_iso(data["processed_at"]),
            title=data.get("title", ""),
            url=data["url"],
            summary=data.get("summary", ""),
        )


@dataclass
class TriggeredProcessor:
    url: str
    processor_id: str
    status: str = "triggered"

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "processor_id": self.processor_id, "status": self.status}


@dataclass
class DiscoveryResult:
    """Outcome of one discovery run."""

    total_links: int
    total_processed: int
    processors: List[TriggeredProcessor] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utc_now)
    success: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "total_links": self.total_links,
            "total_processed": self.total_processed,
            "processors": [p.to_dict() for p in self.processors],
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class DeliveryResult:
    """Outcome of one delivery run, either delivered or skipped."""

    url: str
    title: str = ""
    summary: Optional[str] = None
    notification_sent: bool = False
    processed_at: Optional[datetime] = None
    skipped: bool = False
    reason: Optional[str] = None
    success: bool = True

    @classmethod
    def already_processed(cls, url: str) -> "DeliveryResult":
        return cls(url=url, skipped=True, reason="Article already processed")

    def to_dict(self) -> Dict[str, Any]:
        if self.skipped:
            return {
                "success": self.success,
                "skipped": True,
                "reason": self.reason,
                "url": self.url,
            }
        return {
            "success": self.success,
            "url": self.url,
            "title": self.title,
            "summary": self.summary,
            "notification_sent": self.notification_sent,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
        }
