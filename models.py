"""
Core data types. No behavior, just shapes.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class User:
    name: str
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class Feed:
    """A registered syndication source, owned by a user."""
    name: str
    url: str                # globally unique
    user_id: str
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    last_fetched_at: datetime | None = None   # written only by ingestion

    def __repr__(self) -> str:
        return f"Feed({self.name}, {self.url})"


def fetch_order_key(feed: Feed) -> tuple:
    """
    Sort key for least-recently-fetched polling.

    A feed that was never fetched counts as fetched at minus infinity, so it
    sorts before every timestamped feed. Ties fall back to creation order.
    """
    if feed.last_fetched_at is None:
        return (0, datetime.min.replace(tzinfo=timezone.utc), feed.created_at, feed.id)
    return (1, feed.last_fetched_at, feed.created_at, feed.id)


@dataclass
class FeedFollow:
    user_id: str
    feed_id: str
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    user_name: str = ""     # joined for display
    feed_name: str = ""


@dataclass
class Post:
    """One entry parsed from a feed document. Immutable once stored."""
    feed_id: str
    url: str                # unique across all posts
    title: str
    description: str
    published_at: datetime | None = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __repr__(self) -> str:
        return f"Post({self.title[:50]}, {self.url})"


class InsertResult(Enum):
    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"


@dataclass
class FeedItem:
    link: str
    title: str
    description: str
    published_at: datetime | None = None   # None when the date is missing or unparseable


@dataclass
class FeedDocument:
    """What comes back from any fetcher."""
    title: str
    link: str
    description: str
    items: list[FeedItem] = field(default_factory=list)


@dataclass
class IngestResult:
    """Outcome of one ingestion step."""
    feed_name: str
    items_seen: int         # items in the document, regardless of dedup
    inserted: int           # posts that were new
