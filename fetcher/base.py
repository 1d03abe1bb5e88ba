"""
FeedFetcher interface. Every document download in the system goes
through it, so ingestion can be tested with an in-memory fake.
"""

from abc import ABC, abstractmethod

from models import FeedDocument


class FeedFetcher(ABC):
    """
    Contract:
    - fetch() either returns a parsed document or raises FetchError.
    - fetch() never touches storage.
    - fetch() returns within a bounded time; a timeout is a FetchError.
    """

    @abstractmethod
    def fetch(self, url: str) -> FeedDocument:
        """
        Download and parse the document at `url`.

        Raises:
            FetchError: network failure, bad status, timeout or
                a document that can't be parsed.
        """
        ...


class FetchError(Exception):
    """Raised when a feed document can't be fetched or parsed."""
    pass
