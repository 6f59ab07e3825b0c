"""
Shared test fixtures.

Provides pytest fixtures for common test resources including:
- Test configuration with temporary paths
- Temporary database with schema
- Author and podcast records
- Parsed feeds built from plain items
"""

import pytest
from pathlib import Path
import tempfile
from typing import Callable, List, Optional

from retell.config import Config
from retell.ingestion.rss_parser import FeedItem, ParsedFeed
from retell.models.database import Database


@pytest.fixture
def temp_dir():
    """
    Create temporary directory for test files.

    Yields:
        Path: Temporary directory path
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_config(temp_dir: Path) -> Config:
    """
    Create test configuration with temporary paths.

    Cover images are returned inline (no media directory) and the
    platform sync endpoint accepts the token ``test-token``.
    """
    return Config(
        db_path=temp_dir / "db" / "retell.db",
        media_dir=None,
        service_token="test-token",
    )


@pytest.fixture
def test_db(test_config: Config) -> Database:
    """
    Create test database with schema.

    Returns:
        Database: Initialized test database
    """
    db = Database(test_config.db_path)
    db.initialize()
    return db


@pytest.fixture
def author_id(test_db: Database) -> str:
    """An author account."""
    with test_db.get_connection() as conn:
        return test_db.insert_user_profile(
            conn, "author@example.com", role="author", full_name="Ada Author", user_id="author-1"
        )


@pytest.fixture
def make_podcast(test_db: Database, author_id: str) -> Callable[..., str]:
    """
    Factory inserting a podcast owned by the test author.

    Keyword arguments are passed to ``Database.insert_podcast``.
    """
    def _make(title: str = "Morning Show", **kwargs) -> str:
        kwargs.setdefault("author_id", author_id)
        with test_db.get_connection() as conn:
            return test_db.insert_podcast(conn, title=title, **kwargs)

    return _make


@pytest.fixture
def add_episode(test_db: Database) -> Callable[..., str]:
    """Factory inserting a stored episode."""
    def _add(
        podcast_id: str,
        title: str,
        episode_number: int,
        audio_url: Optional[str] = None,
    ) -> str:
        with test_db.get_connection() as conn:
            return test_db.insert_episode(
                conn,
                podcast_id=podcast_id,
                title=title,
                audio_url=audio_url or f"https://cdn.example.com/{episode_number}.mp3",
                episode_number=episode_number,
            )

    return _add


def feed_item(
    title: str = "Episode",
    audio_url: str = "https://cdn.example.com/ep.mp3",
    duration: str = "",
    episode: Optional[str] = None,
    season: Optional[str] = None,
    description: str = "",
) -> FeedItem:
    """Build a FeedItem the way the parser would."""
    return FeedItem(
        title=title,
        description=description,
        enclosure_url=audio_url,
        enclosure_type="audio/mpeg" if audio_url else "",
        duration=duration,
        episode=episode,
        season=season,
    )


def parsed_feed(
    items: Optional[List[FeedItem]] = None,
    title: str = "Morning Show",
    description: str = "",
    image_url: Optional[str] = None,
    category: Optional[str] = None,
    language: Optional[str] = None,
) -> ParsedFeed:
    """Build a ParsedFeed with the given channel fields."""
    return ParsedFeed(
        title=title,
        description=description,
        image_url=image_url,
        category=category,
        language=language,
        items=list(items or []),
    )


@pytest.fixture
def make_item() -> Callable[..., FeedItem]:
    return feed_item


@pytest.fixture
def make_feed() -> Callable[..., ParsedFeed]:
    return parsed_feed
