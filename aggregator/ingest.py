"""
Ingestion step: one feed in, posts out.

Strategy:
- Stamp the feed as fetched before downloading, so a feed that hangs or
  fails still goes to the back of the polling order.
- A failed fetch is logged and the step ends. Posts already stored stay.
- Posts are keyed by url; an already-known url counts as success.
"""

import logging
from datetime import datetime

from fetcher.base import FeedFetcher, FetchError
from models import Feed, FeedItem, IngestResult, InsertResult, Post, utcnow
from storage.db import Storage

log = logging.getLogger(__name__)


def scrape_next_feed(storage: Storage, fetcher: FeedFetcher) -> IngestResult | None:
    """Pick the least recently fetched feed and ingest it. One scheduler cycle."""
    feed = storage.select_least_recently_fetched()
    if feed is None:
        log.info("No feeds to fetch.")
        return None

    log.debug(f"Next feed to fetch: {feed.name} ({feed.url})")
    return ingest_feed(storage, fetcher, feed)


def ingest_feed(
    storage: Storage,
    fetcher: FeedFetcher,
    feed: Feed,
    now: datetime | None = None,
) -> IngestResult | None:
    """
    Fetch one feed and store its items as posts.

    Returns:
        IngestResult, or None if the feed vanished or its fetch failed.

    Raises:
        sqlite3.Error: storage trouble. The scheduler logs it.
    """
    marked = storage.mark_feed_fetched(feed.id, now or utcnow())
    if marked is None:
        log.warning(f"Feed {feed.name} ({feed.id}) no longer exists, skipping")
        return None

    try:
        document = fetcher.fetch(feed.url)
    except FetchError as e:
        log.warning(f"Failed to fetch feed {feed.name} ({feed.url}): {e}")
        return None

    inserted = 0
    for item in document.items:
        post = _item_to_post(feed, item)
        if post is None:
            continue
        if storage.insert_post_if_absent(post) is InsertResult.INSERTED:
            inserted += 1

    log.info(f"Feed {feed.name} collected, {len(document.items)} posts found")
    log.debug(f"Feed {feed.name}: {inserted} new posts stored")
    return IngestResult(feed_name=feed.name, items_seen=len(document.items), inserted=inserted)


def _item_to_post(feed: Feed, item: FeedItem) -> Post | None:
    link = item.link.strip()
    if not link:
        log.debug(f"Skipping item without link in {feed.name}: {item.title[:50]!r}")
        return None

    return Post(
        feed_id=feed.id,
        url=link,
        title=item.title or link,
        description=item.description,
        published_at=item.published_at,
    )
