from fetcher.base import FeedFetcher, FetchError
from fetcher.rss import RSSFetcher, parse_document

__all__ = [
    "FeedFetcher",
    "FetchError",
    "RSSFetcher",
    "parse_document",
]
