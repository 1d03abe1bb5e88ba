import sys
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from fetcher.base import FeedFetcher, FetchError
from models import FeedDocument, FeedItem
from storage.db import Storage


class FakeFetcher(FeedFetcher):
    """In-memory fetcher. Unknown urls return an empty document."""

    def __init__(self):
        self.documents: dict[str, FeedDocument] = {}
        self.failures: set[str] = set()
        self.calls: list[str] = []
        self.on_fetch = None    # optional callable(url), runs before the lookup
        self._lock = threading.Lock()

    def fetch(self, url: str) -> FeedDocument:
        with self._lock:
            self.calls.append(url)
        if self.on_fetch:
            self.on_fetch(url)
        if url in self.failures:
            raise FetchError(f"connection refused: {url}")
        return self.documents.get(url, FeedDocument(title="", link=url, description=""))


def _make_document(*links: str, title: str = "Test feed") -> FeedDocument:
    return FeedDocument(
        title=title,
        link="https://example.com",
        description="",
        items=[
            FeedItem(
                link=link,
                title=f"Post {i}",
                description=f"Body of post {i}",
                published_at=datetime(2024, 1, 1 + i, 12, 0, tzinfo=timezone.utc),
            )
            for i, link in enumerate(links)
        ],
    )


@pytest.fixture
def tmp_storage():
    """Create a temporary Storage instance for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        storage = Storage(db_path)
        yield storage
        storage.close()


@pytest.fixture
def user(tmp_storage):
    return tmp_storage.create_user("kahya")


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
def make_document():
    return _make_document
