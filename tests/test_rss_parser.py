"""
Tests for RSS feed fetching and parsing.

Uses feedparser-like namespaces in place of real parse results and a
mocked ``requests.get`` for the HTTP side.

Covers:
- Channel metadata extraction (title, description fallbacks, image, category)
- Item extraction (enclosure preference, duration, episode/season numbers)
- Items with neither title nor enclosure are dropped
- Transport failures map to FeedUnavailable
- Unparseable documents map to FeedMalformed
- Complete RSS documents parsed by feedparser itself
"""

from types import SimpleNamespace
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock, patch

import pytest
import requests

from retell.errors import FeedMalformed, FeedUnavailable
from retell.ingestion.rss_parser import fetch_feed, parse_feed_document


# ---------------------------------------------------------------------------
#  Helpers -- build realistic feedparser-like objects
# ---------------------------------------------------------------------------

def _make_entry(
    title: str = "Episode 1 - Pilot",
    audio_url: Optional[str] = "https://cdn.example.com/ep1.mp3",
    audio_type: str = "audio/mpeg",
    published: str = "Mon, 01 Jan 2024 12:00:00 GMT",
    duration: str = "01:05:30",
    summary: str = "First episode of the podcast.",
    episode: Optional[str] = None,
    season: Optional[str] = None,
    enclosures: Optional[List[Dict[str, Any]]] = None,
) -> SimpleNamespace:
    """Build a feedparser-style entry with dict-style ``get``."""
    entry = SimpleNamespace()
    entry.title = title
    entry.published = published
    entry.summary = summary
    entry.itunes_duration = duration
    if enclosures is not None:
        entry.enclosures = enclosures
    elif audio_url:
        entry.enclosures = [{"type": audio_type, "href": audio_url, "length": "1024"}]
    else:
        entry.enclosures = []
    entry.links = []
    if episode is not None:
        entry.itunes_episode = episode
    if season is not None:
        entry.itunes_season = season

    def _get(key, default=None):
        return getattr(entry, key, default)

    entry.get = _get
    return entry


def _make_feed(
    entries: Optional[List] = None,
    channel: Optional[Dict[str, Any]] = None,
    bozo: bool = False,
    bozo_exception: Optional[Exception] = None,
) -> SimpleNamespace:
    """Build a feedparser-style feed result."""
    feed = SimpleNamespace()
    feed.entries = entries or []
    feed.bozo = 1 if bozo else 0
    feed.bozo_exception = bozo_exception
    feed.feed = {"title": "My Podcast"} if channel is None else channel
    return feed


class TestChannelMetadata:
    """Feed-level fields."""

    @patch("retell.ingestion.rss_parser.feedparser.parse")
    def test_basic_channel_fields(self, mock_parse):
        mock_parse.return_value = _make_feed(
            channel={
                "title": "  My Podcast ",
                "description": "About things",
                "link": "https://example.com",
                "language": "he",
                "author": "Host Name",
                "image": {"href": "https://example.com/cover.jpg"},
                "tags": [
                    {"term": "Plain", "scheme": None},
                    {"term": "Technology", "scheme": "http://www.itunes.com/"},
                ],
            }
        )

        feed = parse_feed_document(b"<rss/>")

        assert feed.title == "My Podcast"
        assert feed.description == "About things"
        assert feed.link == "https://example.com"
        assert feed.language == "he"
        assert feed.author == "Host Name"
        assert feed.image_url == "https://example.com/cover.jpg"
        assert feed.category == "Technology"

    @patch("retell.ingestion.rss_parser.feedparser.parse")
    def test_description_falls_back_to_subtitle(self, mock_parse):
        mock_parse.return_value = _make_feed(channel={"title": "T", "subtitle": "Sub"})
        assert parse_feed_document(b"").description == "Sub"

    @patch("retell.ingestion.rss_parser.feedparser.parse")
    def test_missing_optional_fields(self, mock_parse):
        mock_parse.return_value = _make_feed(channel={"title": "T"})

        feed = parse_feed_document(b"")

        assert feed.image_url is None
        assert feed.category is None
        assert feed.language is None
        assert feed.description == ""

    @patch("retell.ingestion.rss_parser.feedparser.parse")
    def test_first_plain_category_without_itunes(self, mock_parse):
        mock_parse.return_value = _make_feed(
            channel={"title": "T", "tags": [{"term": "News"}, {"term": "Sports"}]}
        )
        assert parse_feed_document(b"").category == "News"


class TestItems:
    """Item-level fields."""

    @patch("retell.ingestion.rss_parser.feedparser.parse")
    def test_item_fields(self, mock_parse):
        mock_parse.return_value = _make_feed(
            entries=[_make_entry(episode="7", season="2")]
        )

        feed = parse_feed_document(b"")

        assert len(feed.items) == 1
        item = feed.items[0]
        assert item.title == "Episode 1 - Pilot"
        assert item.enclosure_url == "https://cdn.example.com/ep1.mp3"
        assert item.enclosure_type == "audio/mpeg"
        assert item.enclosure_length == 1024
        assert item.duration == "01:05:30"
        assert item.episode == "7"
        assert item.season == "2"
        assert item.description == "First episode of the podcast."
        assert item.pub_date.startswith("2024-01-01T12:00:00")

    @patch("retell.ingestion.rss_parser.feedparser.parse")
    def test_audio_enclosure_preferred(self, mock_parse):
        entry = _make_entry(
            enclosures=[
                {"type": "image/jpeg", "href": "https://cdn.example.com/art.jpg"},
                {"type": "audio/mpeg", "href": "https://cdn.example.com/audio.mp3"},
            ]
        )
        mock_parse.return_value = _make_feed(entries=[entry])

        item = parse_feed_document(b"").items[0]

        assert item.enclosure_url == "https://cdn.example.com/audio.mp3"

    @patch("retell.ingestion.rss_parser.feedparser.parse")
    def test_unparseable_date_kept_raw(self, mock_parse):
        mock_parse.return_value = _make_feed(entries=[_make_entry(published="someday")])
        assert parse_feed_document(b"").items[0].pub_date == "someday"

    @patch("retell.ingestion.rss_parser.feedparser.parse")
    def test_entry_with_nothing_is_dropped(self, mock_parse):
        mock_parse.return_value = _make_feed(
            entries=[
                _make_entry(title="", audio_url=None),
                _make_entry(title="No audio", audio_url=None),
            ]
        )

        feed = parse_feed_document(b"")

        assert [item.title for item in feed.items] == ["No audio"]
        assert feed.items[0].enclosure_url == ""

    @patch("retell.ingestion.rss_parser.feedparser.parse")
    def test_items_keep_document_order(self, mock_parse):
        mock_parse.return_value = _make_feed(
            entries=[
                _make_entry(title=f"Ep {i}", audio_url=f"https://cdn.example.com/{i}.mp3")
                for i in range(3)
            ]
        )
        assert [item.title for item in parse_feed_document(b"").items] == ["Ep 0", "Ep 1", "Ep 2"]


class TestMalformed:
    """Documents that are not feeds."""

    @patch("retell.ingestion.rss_parser.feedparser.parse")
    def test_bozo_without_content_raises(self, mock_parse):
        mock_parse.return_value = _make_feed(
            channel={}, bozo=True, bozo_exception=Exception("not well-formed")
        )

        with pytest.raises(FeedMalformed) as exc_info:
            parse_feed_document(b"<html>", source="https://example.com/feed")

        assert "not well-formed" in str(exc_info.value)
        assert exc_info.value.status_code == 400

    @patch("retell.ingestion.rss_parser.feedparser.parse")
    def test_bozo_with_entries_is_tolerated(self, mock_parse):
        mock_parse.return_value = _make_feed(
            entries=[_make_entry()], bozo=True, bozo_exception=Exception("undefined entity")
        )

        feed = parse_feed_document(b"")

        assert len(feed.items) == 1


class TestRealDocuments:
    """Whole RSS documents run through feedparser without patching."""

    ITUNES_FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd">
  <channel>
    <title>Morning Show</title>
    <link>https://example.com/</link>
    <description>Daily news in ten minutes.</description>
    <language>en-us</language>
    <category>News</category>
    <itunes:category text="Technology"/>
    <itunes:image href="https://example.com/itunes-cover.jpg"/>
    <item>
      <title>Episode 1 - Pilot</title>
      <description>First episode.</description>
      <pubDate>Tue, 02 Jan 2024 10:00:00 +0000</pubDate>
      <enclosure url="https://cdn.example.com/ep1.mp3" type="audio/mpeg" length="1234"/>
      <itunes:duration>1:30:00</itunes:duration>
    </item>
  </channel>
</rss>
"""

    PLAIN_FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Plain Show</title>
    <link>https://example.com/plain</link>
    <description>No iTunes tags here.</description>
    <category>Comedy</category>
    <image>
      <url>https://example.com/rss-cover.png</url>
      <title>Plain Show</title>
      <link>https://example.com/plain</link>
    </image>
  </channel>
</rss>
"""

    def test_itunes_channel(self):
        feed = parse_feed_document(self.ITUNES_FEED, source="https://example.com/feed.xml")

        assert feed.title == "Morning Show"
        assert feed.description == "Daily news in ten minutes."
        assert feed.language == "en-us"
        assert feed.image_url == "https://example.com/itunes-cover.jpg"
        assert feed.category == "Technology"

    def test_itunes_item(self):
        feed = parse_feed_document(self.ITUNES_FEED)

        assert len(feed.items) == 1
        item = feed.items[0]
        assert item.title == "Episode 1 - Pilot"
        assert item.description == "First episode."
        assert item.enclosure_url == "https://cdn.example.com/ep1.mp3"
        assert item.enclosure_type == "audio/mpeg"
        assert item.enclosure_length == 1234
        assert item.duration == "1:30:00"
        assert item.pub_date.startswith("2024-01-02T10:00:00")

    def test_rss_image_element_and_plain_category(self):
        feed = parse_feed_document(self.PLAIN_FEED)

        assert feed.image_url == "https://example.com/rss-cover.png"
        assert feed.category == "Comedy"
        assert feed.language is None
        assert feed.items == []

    def test_garbage_is_malformed(self):
        with pytest.raises(FeedMalformed):
            parse_feed_document(b"<<<not xml at all", source="https://example.com/feed")


class TestFetchFeed:
    """HTTP retrieval."""

    @patch("retell.ingestion.rss_parser.feedparser.parse")
    @patch("retell.ingestion.rss_parser.requests.get")
    def test_fetch_parses_response_body(self, mock_get, mock_parse):
        response = MagicMock()
        response.content = b"<rss>...</rss>"
        mock_get.return_value = response
        mock_parse.return_value = _make_feed(entries=[_make_entry()])

        feed = fetch_feed("https://example.com/feed", timeout=5, user_agent="Test/1.0")

        mock_get.assert_called_once_with(
            "https://example.com/feed",
            headers={"User-Agent": "Test/1.0"},
            timeout=5,
        )
        mock_parse.assert_called_once_with(b"<rss>...</rss>")
        assert feed.title == "My Podcast"
        assert len(feed.items) == 1

    @patch("retell.ingestion.rss_parser.requests.get")
    def test_timeout_is_unavailable(self, mock_get):
        mock_get.side_effect = requests.exceptions.Timeout("slow")

        with pytest.raises(FeedUnavailable) as exc_info:
            fetch_feed("https://example.com/feed")

        assert exc_info.value.status_code == 502

    @patch("retell.ingestion.rss_parser.requests.get")
    def test_http_error_is_unavailable(self, mock_get):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("404 Not Found")
        mock_get.return_value = response

        with pytest.raises(FeedUnavailable):
            fetch_feed("https://example.com/missing")

    @patch("retell.ingestion.rss_parser.requests.get")
    def test_connection_error_is_unavailable(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(FeedUnavailable):
            fetch_feed("https://example.com/feed")
