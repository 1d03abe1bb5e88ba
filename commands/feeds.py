"""Feed commands: agg, addfeed, feeds, follow, following, unfollow, browse."""

import logging
import signal
import socket
import threading
from contextlib import contextmanager

from aggregator.duration import InvalidDuration, format_duration, parse_duration
from aggregator.ingest import scrape_next_feed
from aggregator.scheduler import PollScheduler
from commands.registry import CommandContext, CommandError, UsageError, login_required
from models import Feed, Post, User

log = logging.getLogger(__name__)

SEPARATOR = "=" * 37

STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


@contextmanager
def interrupt_sets(event: threading.Event):
    """
    Route SIGINT/SIGTERM to `event` while the block runs.

    The Python-level handler does nothing. It runs on the main thread, which
    may be holding the event's internal lock inside wait(), so calling
    event.set() there could deadlock. Instead the interpreter writes the
    signal number to a wakeup socket and a watcher thread sets the event.
    """
    rsock, wsock = socket.socketpair()
    wsock.setblocking(False)
    old_wakeup_fd = signal.set_wakeup_fd(wsock.fileno())

    previous = {}
    for sig in STOP_SIGNALS:
        previous[sig] = signal.signal(sig, _noop_handler)

    watcher = threading.Thread(
        target=_watch_signals, args=(rsock, event), name="agg-signals", daemon=True
    )
    watcher.start()
    try:
        yield event
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)
        signal.set_wakeup_fd(old_wakeup_fd)
        wsock.close()   # watcher sees EOF and exits
        watcher.join(timeout=1)
        rsock.close()


def _noop_handler(signum, frame):
    pass


def _watch_signals(rsock: socket.socket, event: threading.Event):
    while True:
        try:
            data = rsock.recv(64)
        except OSError:
            return
        if not data:
            return
        # Other signals with Python handlers write here too
        for signum in data:
            if signum in STOP_SIGNALS:
                log.info(f"Received {signal.Signals(signum).name}")
                event.set()


def cmd_agg(ctx: CommandContext, cmd_name: str, *args: str):
    if len(args) != 1:
        raise UsageError(f"usage: {cmd_name} <time_between_reqs>")

    time_arg = args[0]
    try:
        period = parse_duration(time_arg)
    except InvalidDuration as e:
        raise UsageError(
            f"invalid duration: {time_arg} ({e}), use format 1h 30m 15s or 3500ms"
        ) from e

    print(f"Collecting feeds every {format_duration(period)}...")

    stop = threading.Event()
    scheduler = PollScheduler(
        cycle=lambda: scrape_next_feed(ctx.storage, ctx.fetcher),
        period=period,
        stop_event=stop,
        max_workers=ctx.config.max_workers,
    )
    with interrupt_sets(stop):
        scheduler.run()

    print("Shutting down feed aggregator...")


@login_required
def cmd_addfeed(ctx: CommandContext, cmd_name: str, user: User, *args: str):
    if len(args) != 2:
        raise UsageError(f"usage: {cmd_name} <feed_name> <url>")

    name, url = args
    if ctx.storage.get_feed_by_url(url):
        raise CommandError(f"feed already exists: {url}")

    feed = ctx.storage.create_feed(name, url, user.id)
    ctx.storage.create_feed_follow(user.id, feed.id)
    print("Feed created successfully:")
    print_feed(feed, user)


def cmd_feeds(ctx: CommandContext, cmd_name: str, *args: str):
    if args:
        raise UsageError(f"usage: {cmd_name}")

    feeds = ctx.storage.get_feeds()
    if not feeds:
        print("No feeds found.")
        return

    print(f"Found {len(feeds)} feeds:\n")
    for feed in feeds:
        owner = ctx.storage.get_user_by_id(feed.user_id)
        if owner is None:
            raise CommandError(f"failed to find user for feed {feed.id}")
        print_feed(feed, owner)
        print(SEPARATOR)


@login_required
def cmd_follow(ctx: CommandContext, cmd_name: str, user: User, *args: str):
    if len(args) != 1:
        raise UsageError(f"usage: {cmd_name} <feed_url>")

    url = args[0]
    feed = ctx.storage.get_feed_by_url(url)
    if feed is None:
        raise CommandError(f"feed not found: {url}")
    if ctx.storage.get_feed_follow(user.id, feed.id):
        raise CommandError(f"{user.name} already follows {feed.name}")

    follow = ctx.storage.create_feed_follow(user.id, feed.id)
    print("Feed follow created:")
    print(f"* User:          {follow.user_name}")
    print(f"* Feed:          {follow.feed_name}")


@login_required
def cmd_following(ctx: CommandContext, cmd_name: str, user: User, *args: str):
    if args:
        raise UsageError(f"usage: {cmd_name}")

    follows = ctx.storage.get_feed_follows_for_user(user.id)
    if not follows:
        print("No feed follows found for this user.")
        return

    print(f"Feed follows for user {user.name}:")
    for ff in follows:
        print(f"* {ff.feed_name}")


@login_required
def cmd_unfollow(ctx: CommandContext, cmd_name: str, user: User, *args: str):
    if len(args) != 1:
        raise UsageError(f"usage: {cmd_name} <feed_url>")

    url = args[0]
    feed = ctx.storage.get_feed_by_url(url)
    if feed is None:
        raise CommandError(f"feed not found for url: {url}")
    if not ctx.storage.delete_feed_follow(feed.id, user.id):
        raise CommandError(f"failed to unfollow feed: {url}")

    print(f"{feed.name} unfollowed successfully!")


@login_required
def cmd_browse(ctx: CommandContext, cmd_name: str, user: User, *args: str):
    if len(args) > 1:
        raise UsageError(f"usage: {cmd_name} [limit]")

    limit = ctx.config.browse_limit
    if args:
        try:
            limit = int(args[0])
        except ValueError:
            raise UsageError(f"usage: {cmd_name} [limit], limit must be an integer") from None
        if limit <= 0:
            raise UsageError(f"usage: {cmd_name} [limit], limit must be positive")

    posts = ctx.storage.get_posts_for_user(user.id, limit)
    print(f"Found {len(posts)} posts for user {user.name}")
    for post in posts:
        print_post(post)
        print(SEPARATOR)


def print_feed(feed: Feed, user: User):
    print(f"* ID:            {feed.id}")
    print(f"* Created:       {feed.created_at.isoformat()}")
    print(f"* Updated:       {feed.updated_at.isoformat()}")
    print(f"* Name:          {feed.name}")
    print(f"* URL:           {feed.url}")
    print(f"* User:          {user.name}")
    if feed.last_fetched_at:
        print(f"* Last fetched:  {feed.last_fetched_at.isoformat()}")


def print_post(post: Post):
    published = post.published_at.strftime("%Y-%m-%d %H:%M UTC") if post.published_at else "unknown"
    print(f"{published} | {post.title}")
    print(f"  {post.url}")
    if post.description:
        print(f"  {post.description[:300]}")
