from aggregator.duration import InvalidDuration, format_duration, parse_duration
from aggregator.ingest import ingest_feed, scrape_next_feed
from aggregator.scheduler import PollScheduler

__all__ = [
    "InvalidDuration",
    "PollScheduler",
    "format_duration",
    "ingest_feed",
    "parse_duration",
    "scrape_next_feed",
]
