"""
SQLite storage. One file, one connection, no ORM.

Tables:
- users: registered users
- feeds: syndication sources, with the last time each was fetched
- feed_follows: which user follows which feed
- posts: entries ingested from feeds, unique by url

The aggregator runs ingestion cycles on worker threads, so the connection
is shared across threads and every operation holds the same lock.
"""

import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path

from models import Feed, FeedFollow, InsertResult, Post, User, fetch_order_key, utcnow


def _ts(value: datetime | None) -> str | None:
    if value is None:
        return None
    # Stored as UTC text so lexical order matches time order.
    # Naive values are taken to be UTC already.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.isoformat()


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class Storage:
    def __init__(self, db_path: Path):
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.row_factory = sqlite3.Row
        self._migrate()

    def _migrate(self):
        """Create tables if they don't exist. No migration framework needed."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL UNIQUE,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS feeds (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                url TEXT NOT NULL UNIQUE,
                user_id TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                last_fetched_at TEXT,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS feed_follows (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                feed_id TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE (user_id, feed_id),
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
                FOREIGN KEY (feed_id) REFERENCES feeds(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS posts (
                id TEXT PRIMARY KEY,
                feed_id TEXT NOT NULL,
                url TEXT NOT NULL UNIQUE,
                title TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                published_at TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY (feed_id) REFERENCES feeds(id) ON DELETE CASCADE
            );

            CREATE INDEX IF NOT EXISTS idx_posts_feed
                ON posts(feed_id);
            CREATE INDEX IF NOT EXISTS idx_posts_published
                ON posts(published_at);
        """)
        self._conn.commit()

    # ── Users ──

    def create_user(self, name: str) -> User:
        user = User(name=name)
        with self._lock:
            self._conn.execute(
                "INSERT INTO users (id, name, created_at, updated_at) VALUES (?, ?, ?, ?)",
                (user.id, user.name, _ts(user.created_at), _ts(user.updated_at)),
            )
            self._conn.commit()
        return user

    def get_user_by_name(self, name: str) -> User | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM users WHERE name = ?", (name,)
            ).fetchone()
        return self._row_to_user(row) if row else None

    def get_user_by_id(self, user_id: str) -> User | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        return self._row_to_user(row) if row else None

    def get_users(self) -> list[User]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM users ORDER BY created_at, name"
            ).fetchall()
        return [self._row_to_user(r) for r in rows]

    def delete_all_users(self) -> int:
        """Delete every user. Feeds, follows and posts go with them."""
        with self._lock:
            cursor = self._conn.execute("DELETE FROM users")
            self._conn.commit()
        return cursor.rowcount

    # ── Feeds ──

    def create_feed(self, name: str, url: str, user_id: str) -> Feed:
        feed = Feed(name=name, url=url, user_id=user_id)
        with self._lock:
            self._conn.execute(
                """INSERT INTO feeds
                   (id, name, url, user_id, created_at, updated_at, last_fetched_at)
                   VALUES (?, ?, ?, ?, ?, ?, NULL)""",
                (feed.id, feed.name, feed.url, feed.user_id,
                 _ts(feed.created_at), _ts(feed.updated_at)),
            )
            self._conn.commit()
        return feed

    def get_feeds(self) -> list[Feed]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM feeds ORDER BY created_at, name"
            ).fetchall()
        return [self._row_to_feed(r) for r in rows]

    def get_feed(self, feed_id: str) -> Feed | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM feeds WHERE id = ?", (feed_id,)
            ).fetchone()
        return self._row_to_feed(row) if row else None

    def get_feed_by_url(self, url: str) -> Feed | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM feeds WHERE url = ?", (url,)
            ).fetchone()
        return self._row_to_feed(row) if row else None

    def select_least_recently_fetched(self) -> Feed | None:
        """
        The feed that has waited longest since its last fetch, or None if no
        feeds are registered. Never-fetched feeds come first.

        Ordering is done in Python with fetch_order_key rather than relying on
        the database's NULL ordering.
        """
        feeds = self.get_feeds()
        if not feeds:
            return None
        return min(feeds, key=fetch_order_key)

    def mark_feed_fetched(self, feed_id: str, at: datetime | None = None) -> Feed | None:
        """
        Stamp a feed as fetched. Returns the updated feed, or None if the
        feed no longer exists.
        """
        at = at or utcnow()
        with self._lock:
            cursor = self._conn.execute(
                "UPDATE feeds SET last_fetched_at = ?, updated_at = ? WHERE id = ?",
                (_ts(at), _ts(at), feed_id),
            )
            self._conn.commit()
            if cursor.rowcount == 0:
                return None
            return self.get_feed(feed_id)

    # ── Follows ──

    def create_feed_follow(self, user_id: str, feed_id: str) -> FeedFollow:
        """Create a follow and return it with user and feed names joined in."""
        follow = FeedFollow(user_id=user_id, feed_id=feed_id)
        with self._lock:
            self._conn.execute(
                """INSERT INTO feed_follows (id, user_id, feed_id, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (follow.id, follow.user_id, follow.feed_id,
                 _ts(follow.created_at), _ts(follow.updated_at)),
            )
            self._conn.commit()
            row = self._conn.execute(
                """SELECT ff.*, u.name AS user_name, f.name AS feed_name
                   FROM feed_follows ff
                   JOIN users u ON ff.user_id = u.id
                   JOIN feeds f ON ff.feed_id = f.id
                   WHERE ff.id = ?""",
                (follow.id,),
            ).fetchone()
        return self._row_to_follow(row)

    def get_feed_follow(self, user_id: str, feed_id: str) -> FeedFollow | None:
        with self._lock:
            row = self._conn.execute(
                """SELECT ff.*, u.name AS user_name, f.name AS feed_name
                   FROM feed_follows ff
                   JOIN users u ON ff.user_id = u.id
                   JOIN feeds f ON ff.feed_id = f.id
                   WHERE ff.user_id = ? AND ff.feed_id = ?""",
                (user_id, feed_id),
            ).fetchone()
        return self._row_to_follow(row) if row else None

    def get_feed_follows_for_user(self, user_id: str) -> list[FeedFollow]:
        with self._lock:
            rows = self._conn.execute(
                """SELECT ff.*, u.name AS user_name, f.name AS feed_name
                   FROM feed_follows ff
                   JOIN users u ON ff.user_id = u.id
                   JOIN feeds f ON ff.feed_id = f.id
                   WHERE ff.user_id = ?
                   ORDER BY ff.created_at""",
                (user_id,),
            ).fetchall()
        return [self._row_to_follow(r) for r in rows]

    def delete_feed_follow(self, feed_id: str, user_id: str) -> bool:
        """Returns True if a follow was removed."""
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM feed_follows WHERE feed_id = ? AND user_id = ?",
                (feed_id, user_id),
            )
            self._conn.commit()
        return cursor.rowcount > 0

    # ── Posts ──

    def insert_post_if_absent(self, post: Post) -> InsertResult:
        """
        Insert a post keyed by url. An existing url is not an error:
        the insert is skipped and ALREADY_EXISTS comes back.
        """
        with self._lock:
            cursor = self._conn.execute(
                """INSERT INTO posts
                   (id, feed_id, url, title, description, published_at, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(url) DO NOTHING""",
                (
                    post.id,
                    post.feed_id,
                    post.url,
                    post.title,
                    post.description,
                    _ts(post.published_at),
                    _ts(post.created_at),
                    _ts(post.updated_at),
                ),
            )
            self._conn.commit()
        if cursor.rowcount > 0:
            return InsertResult.INSERTED
        return InsertResult.ALREADY_EXISTS

    def get_posts_for_user(self, user_id: str, limit: int = 2) -> list[Post]:
        """Newest posts from the feeds a user follows. Undated posts sort last."""
        with self._lock:
            rows = self._conn.execute(
                """SELECT p.* FROM posts p
                   JOIN feed_follows ff ON ff.feed_id = p.feed_id
                   WHERE ff.user_id = ?
                   ORDER BY p.published_at IS NULL, p.published_at DESC, p.created_at DESC
                   LIMIT ?""",
                (user_id, limit),
            ).fetchall()
        return [self._row_to_post(r) for r in rows]

    def count_posts(self, feed_id: str | None = None) -> int:
        with self._lock:
            if feed_id is None:
                row = self._conn.execute("SELECT COUNT(*) FROM posts").fetchone()
            else:
                row = self._conn.execute(
                    "SELECT COUNT(*) FROM posts WHERE feed_id = ?", (feed_id,)
                ).fetchone()
        return row[0]

    # ── Row mapping ──

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            name=row["name"],
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    def _row_to_feed(self, row: sqlite3.Row) -> Feed:
        return Feed(
            id=row["id"],
            name=row["name"],
            url=row["url"],
            user_id=row["user_id"],
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
            last_fetched_at=_parse_ts(row["last_fetched_at"]),
        )

    def _row_to_follow(self, row: sqlite3.Row) -> FeedFollow:
        return FeedFollow(
            id=row["id"],
            user_id=row["user_id"],
            feed_id=row["feed_id"],
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
            user_name=row["user_name"],
            feed_name=row["feed_name"],
        )

    def _row_to_post(self, row: sqlite3.Row) -> Post:
        return Post(
            id=row["id"],
            feed_id=row["feed_id"],
            url=row["url"],
            title=row["title"],
            description=row["description"],
            published_at=_parse_ts(row["published_at"]),
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    def close(self):
        with self._lock:
            self._conn.close()
