"""
RSS/Atom fetcher. requests downloads, feedparser parses.

requests does the HTTP so the timeout and status handling are ours;
feedparser only ever sees bytes.
"""

import calendar
import logging
from datetime import datetime, timezone

import feedparser
import requests

from fetcher.base import FeedFetcher, FetchError
from models import FeedDocument, FeedItem

log = logging.getLogger(__name__)


class RSSFetcher(FeedFetcher):
    def __init__(self, timeout: float = 15, user_agent: str = "gator/0.1",
                 session: requests.Session | None = None):
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers["User-Agent"] = user_agent

    def fetch(self, url: str) -> FeedDocument:
        try:
            resp = self._session.get(url, timeout=self._timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(f"request failed: {e}") from e

        return parse_document(resp.content)

    def close(self):
        self._session.close()


def parse_document(raw: bytes | str) -> FeedDocument:
    """Parse an RSS/Atom payload. Raises FetchError if nothing usable is in it."""
    if isinstance(raw, str):
        # feedparser treats a str as a possible URL or path
        raw = raw.encode("utf-8")
    parsed = feedparser.parse(raw)

    # feedparser is lenient: bozo alone is fine as long as it found a feed
    if parsed.bozo and not parsed.entries and not parsed.feed:
        raise FetchError(f"malformed feed document: {parsed.get('bozo_exception')}")
    if not parsed.feed and not parsed.entries:
        raise FetchError("not a feed document")

    channel = parsed.feed
    items = [
        FeedItem(
            link=entry.get("link", ""),
            title=entry.get("title", ""),
            description=_description(entry),
            published_at=_published(entry),
        )
        for entry in parsed.entries
    ]

    return FeedDocument(
        title=channel.get("title", ""),
        link=channel.get("link", ""),
        description=channel.get("subtitle", "") or channel.get("description", ""),
        items=items,
    )


def _description(entry) -> str:
    if entry.get("summary"):
        return entry.summary
    if entry.get("content"):
        return entry.content[0].get("value", "")
    return ""


def _published(entry) -> datetime | None:
    """
    Entry date as an aware UTC datetime. None when the entry has no date or
    feedparser couldn't make sense of it.
    """
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        if entry.get("published") or entry.get("updated"):
            log.debug(f"Unparseable date on {entry.get('link', '?')}: "
                      f"{entry.get('published') or entry.get('updated')}")
        return None
    try:
        # feedparser normalizes to UTC struct_time
        return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
    except (ValueError, OverflowError):
        return None
