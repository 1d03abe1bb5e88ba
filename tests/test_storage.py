"""
Tests for SQLite storage:
- least-recently-fetched selection
- idempotent post inserts
- follows, cascades, browsing
"""

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from models import Feed, InsertResult, Post, fetch_order_key

T0 = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _post(feed, url, published_at=None, title="A post"):
    return Post(feed_id=feed.id, url=url, title=title, description="", published_at=published_at)


# ──────────────────────────────────────────────
# Feed selection
# ──────────────────────────────────────────────

class TestFeedSelection:
    def test_no_feeds(self, tmp_storage):
        assert tmp_storage.select_least_recently_fetched() is None

    def test_never_fetched_comes_first(self, tmp_storage, user):
        old = tmp_storage.create_feed("old", "https://a.example/rss", user.id)
        new = tmp_storage.create_feed("new", "https://b.example/rss", user.id)
        tmp_storage.mark_feed_fetched(old.id, T0 - timedelta(days=365))

        assert tmp_storage.select_least_recently_fetched().id == new.id

    def test_order_over_full_rotation(self, tmp_storage, user):
        """Unfetched feed first, then strictly increasing timestamps."""
        feeds = [
            tmp_storage.create_feed(f"feed-{i}", f"https://{i}.example/rss", user.id)
            for i in range(4)
        ]
        # feed-3 stays unfetched; the rest get out-of-order timestamps
        tmp_storage.mark_feed_fetched(feeds[0].id, T0 + timedelta(hours=3))
        tmp_storage.mark_feed_fetched(feeds[1].id, T0 + timedelta(hours=1))
        tmp_storage.mark_feed_fetched(feeds[2].id, T0 + timedelta(hours=2))

        picked = []
        for i in range(4):
            feed = tmp_storage.select_least_recently_fetched()
            picked.append(feed.name)
            tmp_storage.mark_feed_fetched(feed.id, T0 + timedelta(days=1, minutes=i))

        assert picked == ["feed-3", "feed-1", "feed-2", "feed-0"]

    def test_selection_does_not_mutate(self, tmp_storage, user):
        feed = tmp_storage.create_feed("f", "https://f.example/rss", user.id)
        tmp_storage.select_least_recently_fetched()
        assert tmp_storage.get_feed(feed.id).last_fetched_at is None

    def test_fetch_order_key(self):
        never = Feed(name="never", url="u1", user_id="x")
        early = Feed(name="early", url="u2", user_id="x", last_fetched_at=T0)
        late = Feed(name="late", url="u3", user_id="x", last_fetched_at=T0 + timedelta(seconds=1))
        ordered = sorted([late, never, early], key=fetch_order_key)
        assert [f.name for f in ordered] == ["never", "early", "late"]


# ──────────────────────────────────────────────
# Mark fetched
# ──────────────────────────────────────────────

class TestMarkFetched:
    def test_updates_timestamp(self, tmp_storage, user):
        feed = tmp_storage.create_feed("f", "https://f.example/rss", user.id)
        updated = tmp_storage.mark_feed_fetched(feed.id, T0)
        assert updated.last_fetched_at == T0
        assert tmp_storage.get_feed(feed.id).last_fetched_at == T0

    def test_missing_feed_returns_none(self, tmp_storage):
        assert tmp_storage.mark_feed_fetched("no-such-feed", T0) is None

    def test_non_utc_timestamp_normalized(self, tmp_storage, user):
        feed = tmp_storage.create_feed("f", "https://f.example/rss", user.id)
        plus_two = timezone(timedelta(hours=2))
        tmp_storage.mark_feed_fetched(feed.id, T0.astimezone(plus_two))
        stored = tmp_storage.get_feed(feed.id).last_fetched_at
        assert stored == T0
        assert stored.utcoffset() == timedelta(0)

    def test_naive_timestamp_taken_as_utc(self, tmp_storage, user):
        feed = tmp_storage.create_feed("f", "https://f.example/rss", user.id)
        tmp_storage.mark_feed_fetched(feed.id, T0.replace(tzinfo=None))
        stored = tmp_storage.get_feed(feed.id).last_fetched_at
        assert stored == T0
        assert stored.tzinfo is not None

    def test_naive_and_aware_feeds_still_ordered(self, tmp_storage, user):
        naive = tmp_storage.create_feed("naive", "https://n.example/rss", user.id)
        aware = tmp_storage.create_feed("aware", "https://a.example/rss", user.id)
        tmp_storage.mark_feed_fetched(naive.id, (T0 + timedelta(hours=1)).replace(tzinfo=None))
        tmp_storage.mark_feed_fetched(aware.id, T0)

        assert tmp_storage.select_least_recently_fetched().id == aware.id
        feeds = sorted(tmp_storage.get_feeds(), key=fetch_order_key)
        assert [f.name for f in feeds] == ["aware", "naive"]


# ──────────────────────────────────────────────
# Feeds and users
# ──────────────────────────────────────────────

class TestFeeds:
    def test_url_unique(self, tmp_storage, user):
        tmp_storage.create_feed("f", "https://f.example/rss", user.id)
        with pytest.raises(sqlite3.IntegrityError):
            tmp_storage.create_feed("g", "https://f.example/rss", user.id)

    def test_get_by_url(self, tmp_storage, user):
        feed = tmp_storage.create_feed("f", "https://f.example/rss", user.id)
        assert tmp_storage.get_feed_by_url("https://f.example/rss").id == feed.id
        assert tmp_storage.get_feed_by_url("https://nope.example/rss") is None

    def test_user_name_unique(self, tmp_storage, user):
        with pytest.raises(sqlite3.IntegrityError):
            tmp_storage.create_user(user.name)

    def test_reset_cascades(self, tmp_storage, user):
        feed = tmp_storage.create_feed("f", "https://f.example/rss", user.id)
        tmp_storage.create_feed_follow(user.id, feed.id)
        tmp_storage.insert_post_if_absent(_post(feed, "https://f.example/1"))

        assert tmp_storage.delete_all_users() == 1
        assert tmp_storage.get_users() == []
        assert tmp_storage.get_feeds() == []
        assert tmp_storage.count_posts() == 0


# ──────────────────────────────────────────────
# Posts
# ──────────────────────────────────────────────

class TestPosts:
    def test_insert_then_duplicate(self, tmp_storage, user):
        feed = tmp_storage.create_feed("f", "https://f.example/rss", user.id)
        first = tmp_storage.insert_post_if_absent(_post(feed, "https://f.example/1"))
        second = tmp_storage.insert_post_if_absent(_post(feed, "https://f.example/1", title="Changed"))

        assert first is InsertResult.INSERTED
        assert second is InsertResult.ALREADY_EXISTS
        assert tmp_storage.count_posts(feed.id) == 1

    def test_duplicate_across_feeds(self, tmp_storage, user):
        a = tmp_storage.create_feed("a", "https://a.example/rss", user.id)
        b = tmp_storage.create_feed("b", "https://b.example/rss", user.id)
        tmp_storage.insert_post_if_absent(_post(a, "https://shared.example/story"))
        result = tmp_storage.insert_post_if_absent(_post(b, "https://shared.example/story"))
        assert result is InsertResult.ALREADY_EXISTS
        assert tmp_storage.count_posts() == 1

    def test_posts_for_user_newest_first(self, tmp_storage, user):
        feed = tmp_storage.create_feed("f", "https://f.example/rss", user.id)
        tmp_storage.create_feed_follow(user.id, feed.id)
        tmp_storage.insert_post_if_absent(_post(feed, "https://f.example/old", T0, "old"))
        tmp_storage.insert_post_if_absent(_post(feed, "https://f.example/undated", None, "undated"))
        tmp_storage.insert_post_if_absent(_post(feed, "https://f.example/new", T0 + timedelta(days=1), "new"))

        posts = tmp_storage.get_posts_for_user(user.id, limit=10)
        assert [p.title for p in posts] == ["new", "old", "undated"]
        assert posts[2].published_at is None

        assert len(tmp_storage.get_posts_for_user(user.id, limit=2)) == 2

    def test_posts_only_from_followed_feeds(self, tmp_storage, user):
        followed = tmp_storage.create_feed("a", "https://a.example/rss", user.id)
        other = tmp_storage.create_feed("b", "https://b.example/rss", user.id)
        tmp_storage.create_feed_follow(user.id, followed.id)
        tmp_storage.insert_post_if_absent(_post(followed, "https://a.example/1"))
        tmp_storage.insert_post_if_absent(_post(other, "https://b.example/1"))

        posts = tmp_storage.get_posts_for_user(user.id, limit=10)
        assert [p.url for p in posts] == ["https://a.example/1"]


# ──────────────────────────────────────────────
# Follows
# ──────────────────────────────────────────────

class TestFollows:
    def test_follow_has_names(self, tmp_storage, user):
        feed = tmp_storage.create_feed("Tech", "https://t.example/rss", user.id)
        follow = tmp_storage.create_feed_follow(user.id, feed.id)
        assert follow.user_name == user.name
        assert follow.feed_name == "Tech"

    def test_follow_unique(self, tmp_storage, user):
        feed = tmp_storage.create_feed("Tech", "https://t.example/rss", user.id)
        tmp_storage.create_feed_follow(user.id, feed.id)
        with pytest.raises(sqlite3.IntegrityError):
            tmp_storage.create_feed_follow(user.id, feed.id)

    def test_unfollow(self, tmp_storage, user):
        feed = tmp_storage.create_feed("Tech", "https://t.example/rss", user.id)
        tmp_storage.create_feed_follow(user.id, feed.id)

        assert tmp_storage.delete_feed_follow(feed.id, user.id) is True
        assert tmp_storage.get_feed_follows_for_user(user.id) == []
        assert tmp_storage.delete_feed_follow(feed.id, user.id) is False
