"""
Tests for the sync service.

The feed fetch is patched at ``retell.sync.rss_sync.fetch_feed``; the
database is a real temporary SQLite file.

Covers:
- Single podcast sync: episode insertion, metadata patch, last_rss_sync
- Ownership and missing feed URL
- Dry runs write nothing
- Batch sync continues past failing podcasts
- Feed preview and import
"""

import sqlite3
from unittest.mock import MagicMock, patch

import pytest

from retell.errors import FeedUnavailable, NotFound, PersistenceFailure, ValidationError
from retell.ingestion.downloader import ImageDownloadResult, ImageStore
from retell.sync.rss_sync import (
    BatchSyncResult,
    import_feed,
    preview_feed,
    sync_all_approved,
    sync_author_podcasts,
    sync_podcast,
)

from conftest import feed_item, parsed_feed

FEED_URL = "https://example.com/feed.xml"


def _episodes(db, podcast_id):
    with db.get_connection() as conn:
        return db.get_episodes_by_podcast(conn, podcast_id)


def _podcast_row(db, podcast_id):
    with db.get_connection() as conn:
        return db.get_podcast(conn, podcast_id)


def _no_images():
    store = MagicMock(spec=ImageStore)
    store.download_and_store.side_effect = AssertionError("no image download expected")
    return store


class TestSyncPodcast:
    """Tests for sync_podcast()."""

    @patch("retell.sync.rss_sync.fetch_feed")
    def test_inserts_new_episodes(self, mock_fetch, test_db, test_config, make_podcast, add_episode):
        podcast_id = make_podcast(rss_url=FEED_URL)
        add_episode(podcast_id, "Ep 1", 1, "https://cdn.example.com/ep1.mp3")
        mock_fetch.return_value = parsed_feed(
            items=[
                feed_item("Ep 2", "https://cdn.example.com/ep2.mp3", duration="1:30"),
                feed_item("ep 1", "https://cdn.example.com/ep1-copy.mp3"),
            ]
        )

        result = sync_podcast(test_db, podcast_id, config=test_config, image_store=_no_images())

        assert result.new_episode_count == 1
        assert result.total_episodes == 2
        assert result.existing_episodes == 1
        assert result.podcast_updated is False

        rows = _episodes(test_db, podcast_id)
        assert [(r["title"], r["episode_number"], r["duration"]) for r in rows] == [
            ("Ep 1", 1, None),
            ("Ep 2", 2, 90),
        ]
        assert rows[1]["script_url"] == ""
        mock_fetch.assert_called_once_with(
            FEED_URL, timeout=test_config.request_timeout, user_agent=test_config.user_agent
        )

    @patch("retell.sync.rss_sync.fetch_feed")
    def test_patches_metadata_and_stamps_sync(self, mock_fetch, test_db, test_config, make_podcast):
        podcast_id = make_podcast(title="Old Title", rss_url=FEED_URL)
        mock_fetch.return_value = parsed_feed(
            title="New Title", image_url="https://example.com/cover.jpg"
        )

        store = MagicMock(spec=ImageStore)
        store.download_and_store.return_value = ImageDownloadResult(
            success=True, image_url=f"/media/{podcast_id}/rss-cover.jpg"
        )

        result = sync_podcast(test_db, podcast_id, config=test_config, image_store=store)

        assert result.podcast_updated is True
        assert result.image_updated is True
        assert result.title == "New Title"
        row = _podcast_row(test_db, podcast_id)
        assert row["title"] == "New Title"
        assert row["rss_image_url"] == "https://example.com/cover.jpg"
        assert row["cover_image_url"] == f"/media/{podcast_id}/rss-cover.jpg"
        assert row["last_rss_sync"] is not None

    @patch("retell.sync.rss_sync.fetch_feed")
    def test_second_sync_is_a_no_op(self, mock_fetch, test_db, test_config, make_podcast):
        podcast_id = make_podcast(rss_url=FEED_URL)
        mock_fetch.return_value = parsed_feed(
            items=[feed_item(f"Ep {i}", f"https://cdn.example.com/{i}.mp3") for i in range(3)]
        )

        first = sync_podcast(test_db, podcast_id, config=test_config, image_store=_no_images())
        second = sync_podcast(test_db, podcast_id, config=test_config, image_store=_no_images())

        assert first.new_episode_count == 3
        assert second.new_episode_count == 0
        assert len(_episodes(test_db, podcast_id)) == 3

    @patch("retell.sync.rss_sync.fetch_feed")
    def test_dry_run_writes_nothing(self, mock_fetch, test_db, test_config, make_podcast):
        podcast_id = make_podcast(title="Old Title", rss_url=FEED_URL)
        mock_fetch.return_value = parsed_feed(
            title="New Title",
            image_url="https://example.com/cover.jpg",
            items=[feed_item("Ep 1", "https://cdn.example.com/1.mp3")],
        )

        result = sync_podcast(test_db, podcast_id, config=test_config, dry_run=True)

        assert result.dry_run is True
        assert result.new_episode_count == 1
        assert result.podcast_updated is True
        assert _episodes(test_db, podcast_id) == []
        row = _podcast_row(test_db, podcast_id)
        assert row["title"] == "Old Title"
        assert row["last_rss_sync"] is None

    def test_other_authors_podcast_is_not_found(self, test_db, test_config, make_podcast):
        podcast_id = make_podcast(rss_url=FEED_URL)

        with pytest.raises(NotFound) as exc_info:
            sync_podcast(test_db, podcast_id, author_id="someone-else", config=test_config)

        assert str(exc_info.value) == "Podcast not found or access denied"

    def test_podcast_without_feed(self, test_db, test_config, make_podcast):
        podcast_id = make_podcast(rss_url=None)

        with pytest.raises(NotFound) as exc_info:
            sync_podcast(test_db, podcast_id, config=test_config)

        assert "does not have an RSS feed" in str(exc_info.value)

    @patch("retell.sync.rss_sync.fetch_feed")
    def test_feed_errors_propagate(self, mock_fetch, test_db, test_config, make_podcast):
        podcast_id = make_podcast(rss_url=FEED_URL)
        mock_fetch.side_effect = FeedUnavailable("Timed out fetching RSS feed")

        with pytest.raises(FeedUnavailable):
            sync_podcast(test_db, podcast_id, config=test_config)

    @patch("retell.sync.rss_sync.fetch_feed")
    def test_write_failure_is_persistence_failure(self, mock_fetch, test_db, test_config, make_podcast):
        podcast_id = make_podcast(rss_url=FEED_URL)
        mock_fetch.return_value = parsed_feed(items=[feed_item("Ep 1", "https://cdn.example.com/1.mp3")])

        with patch.object(test_db, "insert_episodes", side_effect=sqlite3.OperationalError("disk full")):
            with pytest.raises(PersistenceFailure) as exc_info:
                sync_podcast(test_db, podcast_id, config=test_config, image_store=_no_images())

        assert "disk full" in str(exc_info.value)
        assert _podcast_row(test_db, podcast_id)["last_rss_sync"] is None

    @patch("retell.sync.rss_sync.fetch_feed")
    def test_integer_overflow_on_write_is_persistence_failure(self, mock_fetch, test_db, test_config, make_podcast):
        podcast_id = make_podcast(rss_url=FEED_URL)
        mock_fetch.return_value = parsed_feed(items=[feed_item("Ep 1", "https://cdn.example.com/1.mp3")])
        overflow = OverflowError("Python int too large to convert to SQLite INTEGER")

        with patch.object(test_db, "insert_episodes", side_effect=overflow):
            with pytest.raises(PersistenceFailure):
                sync_podcast(test_db, podcast_id, config=test_config, image_store=_no_images())

    @patch("retell.sync.rss_sync.fetch_feed")
    def test_oversized_feed_numbers_are_stored_as_absent(self, mock_fetch, test_db, test_config, make_podcast):
        podcast_id = make_podcast(rss_url=FEED_URL)
        mock_fetch.return_value = parsed_feed(
            items=[
                feed_item(
                    "Ep 1",
                    "https://cdn.example.com/1.mp3",
                    duration="100000000000000000000",
                    episode="99999999999999999999999",
                )
            ]
        )

        result = sync_podcast(test_db, podcast_id, config=test_config, image_store=_no_images())

        assert result.new_episode_count == 1
        rows = _episodes(test_db, podcast_id)
        assert [(r["episode_number"], r["duration"]) for r in rows] == [(1, None)]


class TestBatchSync:
    """Tests for sync_author_podcasts() and sync_all_approved()."""

    @patch("retell.sync.rss_sync.fetch_feed")
    def test_failure_does_not_stop_batch(self, mock_fetch, test_db, test_config, make_podcast):
        """Three podcasts, the second feed times out: two results and one error."""
        for podcast_id in ("pod-a", "pod-b", "pod-c"):
            make_podcast(
                title=f"Show {podcast_id}",
                rss_url=f"https://example.com/{podcast_id}.xml",
                status="approved",
                podcast_id=podcast_id,
            )

        def _fetch(url, **kwargs):
            if "pod-b" in url:
                raise FeedUnavailable("Timed out fetching RSS feed")
            return parsed_feed(
                title="",
                items=[feed_item(f"Ep {url}", f"{url}/1.mp3")],
            )

        mock_fetch.side_effect = _fetch

        result = sync_all_approved(test_db, config=test_config, image_store=_no_images())

        assert isinstance(result, BatchSyncResult)
        assert result.podcasts_processed == 3
        assert result.total_new_episodes == 2
        assert result.total_errors == 1
        assert [entry.podcast_id for entry in result.results] == ["pod-a", "pod-b", "pod-c"]
        assert result.results[1].error == "Timed out fetching RSS feed"

        data = result.to_dict()
        assert data["summary"] == {"podcastsProcessed": 3, "totalNewEpisodes": 2, "totalErrors": 1}
        assert data["results"][1] == {
            "podcast": {"id": "pod-b", "title": "Show pod-b"},
            "error": "Timed out fetching RSS feed",
        }

    @patch("retell.sync.rss_sync.fetch_feed")
    def test_unexpected_error_is_recorded(self, mock_fetch, test_db, test_config, make_podcast):
        make_podcast(title="Show", rss_url=FEED_URL, status="approved")
        mock_fetch.side_effect = RuntimeError("boom")

        result = sync_all_approved(test_db, config=test_config)

        assert result.errors == ["Error syncing Show: boom"]

    @patch("retell.sync.rss_sync.fetch_feed")
    def test_only_approved_podcasts_with_feed(self, mock_fetch, test_db, test_config, make_podcast):
        make_podcast(title="Draft", rss_url=FEED_URL, status="draft")
        make_podcast(title="No feed", status="approved")
        approved = make_podcast(title="Live", rss_url=FEED_URL, status="approved")
        mock_fetch.return_value = parsed_feed(title="Live")

        result = sync_all_approved(test_db, config=test_config, image_store=_no_images())

        assert [entry.podcast_id for entry in result.results] == [approved]

    def test_no_podcasts(self, test_db, test_config):
        result = sync_all_approved(test_db, config=test_config)

        assert result.podcasts_processed == 0
        assert result.to_dict()["message"] == "No podcasts with RSS feeds found"

    @patch("retell.sync.rss_sync.fetch_feed")
    def test_author_batch_dry_run(self, mock_fetch, test_db, test_config, make_podcast):
        podcast_id = make_podcast(rss_url=FEED_URL)
        mock_fetch.return_value = parsed_feed(
            items=[feed_item("Ep 1", "https://cdn.example.com/1.mp3")]
        )

        result = sync_author_podcasts(test_db, "author-1", config=test_config, dry_run=True)

        assert result.dry_run is True
        assert result.total_new_episodes == 1
        assert _episodes(test_db, podcast_id) == []

    @patch("retell.sync.rss_sync.fetch_feed")
    def test_author_batch_only_own_podcasts(self, mock_fetch, test_db, test_config, make_podcast):
        with test_db.get_connection() as conn:
            test_db.insert_user_profile(conn, "other@example.com", role="author", user_id="author-2")
        make_podcast(rss_url=FEED_URL, author_id="author-2")
        mine = make_podcast(rss_url=FEED_URL)
        mock_fetch.return_value = parsed_feed()

        result = sync_author_podcasts(test_db, "author-1", config=test_config, image_store=_no_images())

        assert [entry.podcast_id for entry in result.results] == [mine]


class TestPreviewFeed:
    """Tests for preview_feed()."""

    @patch("retell.sync.rss_sync.fetch_feed")
    def test_preview(self, mock_fetch, test_config):
        mock_fetch.return_value = parsed_feed(
            title="",
            items=[
                feed_item(f"Ep {i}", f"https://cdn.example.com/{i}.mp3", duration="10:00")
                for i in range(8)
            ],
        )

        preview = preview_feed(FEED_URL, config=test_config)

        assert preview.podcast["title"] == "Untitled Podcast"
        assert preview.podcast["category"] == "General"
        assert preview.podcast["language"] == "en"
        assert preview.total_episodes == 8
        assert len(preview.episodes) == test_config.preview_limit
        assert preview.episodes[0]["episodeNumber"] == 1
        assert preview.episodes[2]["audioUrl"] == "https://cdn.example.com/2.mp3"

    def test_preview_requires_url(self, test_config):
        with pytest.raises(ValidationError):
            preview_feed("", config=test_config)


class TestImportFeed:
    """Tests for import_feed()."""

    @patch("retell.sync.rss_sync.fetch_feed")
    def test_import_creates_draft_podcast(self, mock_fetch, test_db, test_config, author_id):
        mock_fetch.return_value = parsed_feed(
            title="Imported Show",
            description="From a feed",
            category="Technology",
            items=[
                feed_item("Ep A", "https://cdn.example.com/a.mp3"),
                feed_item("Ep B", "https://cdn.example.com/b.mp3", episode="5"),
                feed_item("", "https://cdn.example.com/untitled.mp3"),
            ],
        )

        result = import_feed(test_db, author_id, FEED_URL, config=test_config, image_store=_no_images())

        assert result.is_new is True
        assert result.imported_episodes == 2
        assert result.skipped_episodes == 1
        row = _podcast_row(test_db, result.podcast_id)
        assert row["title"] == "Imported Show"
        assert row["status"] == "draft"
        assert row["rss_url"] == FEED_URL
        assert row["rss_sync_enabled"] == 1
        assert row["auto_publish_episodes"] == 1
        assert row["category"] == "Technology"
        assert row["language"] == "en"
        numbers = [r["episode_number"] for r in _episodes(test_db, result.podcast_id)]
        assert numbers == [1, 5]

    @patch("retell.sync.rss_sync.fetch_feed")
    def test_reimport_updates_existing(self, mock_fetch, test_db, test_config, author_id):
        mock_fetch.return_value = parsed_feed(
            title="Imported Show", items=[feed_item("Ep A", "https://cdn.example.com/a.mp3")]
        )
        first = import_feed(test_db, author_id, FEED_URL, config=test_config, image_store=_no_images())

        mock_fetch.return_value = parsed_feed(
            title="Renamed Show",
            items=[
                feed_item("Ep A", "https://cdn.example.com/a.mp3"),
                feed_item("Ep B", "https://cdn.example.com/b.mp3"),
            ],
        )
        second = import_feed(test_db, author_id, FEED_URL, config=test_config, image_store=_no_images())

        assert second.is_new is False
        assert second.podcast_id == first.podcast_id
        assert second.title == "Renamed Show"
        assert second.imported_episodes == 1
        assert [r["episode_number"] for r in _episodes(test_db, first.podcast_id)] == [1, 2]

    @patch("retell.sync.rss_sync.fetch_feed")
    def test_feed_without_title_is_rejected(self, mock_fetch, test_db, test_config, author_id):
        mock_fetch.return_value = parsed_feed(title="")

        with pytest.raises(ValidationError):
            import_feed(test_db, author_id, FEED_URL, config=test_config, image_store=_no_images())
