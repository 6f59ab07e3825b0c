"""
RSS feed sync for marketplace podcasts.

Fetches a podcast's RSS feed, patches podcast metadata that changed
upstream, and inserts the feed items that are not stored yet. Podcasts
are processed one after another; in batch mode a failure on one podcast
is recorded in its result entry and the batch moves on.

This module is designed to be used in three ways:

1. **Programmatic** -- call ``sync_podcast()`` / ``sync_all_approved()``.
2. **HTTP** -- the ``/api/rss/*`` endpoints of ``retell.server``.
3. **Scheduled** -- ``retell sync-all`` from cron, a systemd timer, etc.

Example:
    >>> from retell.sync.rss_sync import sync_all_approved
    >>> result = sync_all_approved(db, config)
    >>> print(result.to_json())
"""

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from retell.config import Config, get_config
from retell.errors import NotFound, PersistenceFailure, RetellError, ValidationError
from retell.ingestion.downloader import ImageStore
from retell.ingestion.rss_parser import ParsedFeed, fetch_feed
from retell.models.database import Database, new_id
from retell.models.entities import Podcast, PodcastStatus
from retell.sync.metadata import diff_podcast_metadata, rehost_cover
from retell.sync.reconciler import NewEpisode, reconcile_episodes

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


# ---------------------------------------------------------------------------
#  Result models
# ---------------------------------------------------------------------------

@dataclass
class PodcastSyncResult:
    """
    Result of syncing a single podcast.

    Attributes:
        podcast_id: Podcast that was synced
        title: Podcast title after the sync
        podcast_updated: True if any podcast field was staged
        image_updated: True if the cover image was staged
        total_episodes: Items in the feed
        existing_episodes: Episodes stored before the sync
        new_episodes: Episodes inserted (or that would be, on a dry run)
        dry_run: True if nothing was written
    """

    podcast_id: str
    title: str
    podcast_updated: bool = False
    image_updated: bool = False
    total_episodes: int = 0
    existing_episodes: int = 0
    new_episodes: List[NewEpisode] = field(default_factory=list)
    dry_run: bool = False

    @property
    def new_episode_count(self) -> int:
        return len(self.new_episodes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": True,
            "podcast": {
                "id": self.podcast_id,
                "title": self.title,
                "updated": self.podcast_updated,
                "imageUpdated": self.image_updated,
            },
            "episodes": {
                "total": self.total_episodes,
                "existing": self.existing_episodes,
                "new": self.new_episode_count,
            },
            "dryRun": self.dry_run,
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


@dataclass
class PodcastSyncEntry:
    """
    One podcast's line in a batch result.

    Exactly one of ``error`` or the episode counts is meaningful.
    """

    podcast_id: str
    title: str
    new_episodes: int = 0
    total_episodes: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: Dict[str, Any] = {"podcast": {"id": self.podcast_id, "title": self.title}}
        if self.error is not None:
            data["error"] = self.error
        else:
            data["newEpisodes"] = self.new_episodes
            data["totalEpisodes"] = self.total_episodes
        return data


@dataclass
class BatchSyncResult:
    """
    Result of syncing several podcasts.

    Attributes:
        results: Per-podcast entries in processing order
        checked_at: ISO-8601 timestamp of when the batch started
        dry_run: True if nothing was written
    """

    results: List[PodcastSyncEntry] = field(default_factory=list)
    checked_at: str = ""
    dry_run: bool = False

    @property
    def podcasts_processed(self) -> int:
        return len(self.results)

    @property
    def total_new_episodes(self) -> int:
        return sum(entry.new_episodes for entry in self.results)

    @property
    def errors(self) -> List[str]:
        return [entry.error for entry in self.results if entry.error is not None]

    @property
    def total_errors(self) -> int:
        return len(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: Dict[str, Any] = {
            "success": True,
            "summary": {
                "podcastsProcessed": self.podcasts_processed,
                "totalNewEpisodes": self.total_new_episodes,
                "totalErrors": self.total_errors,
            },
            "results": [entry.to_dict() for entry in self.results],
            "checkedAt": self.checked_at,
            "dryRun": self.dry_run,
        }
        if not self.results:
            data["message"] = "No podcasts with RSS feeds found"
        return data

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


@dataclass
class FeedPreview:
    """Summary of a feed shown before it is imported."""

    podcast: Dict[str, Any]
    episodes: List[Dict[str, Any]]
    total_episodes: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": True,
            "podcast": self.podcast,
            "episodes": self.episodes,
            "totalEpisodes": self.total_episodes,
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


@dataclass
class ImportResult:
    """Result of importing (or re-importing) a feed for an author."""

    podcast_id: str
    title: str
    is_new: bool
    image_downloaded: bool
    total_episodes: int
    imported_episodes: int

    @property
    def skipped_episodes(self) -> int:
        return self.total_episodes - self.imported_episodes

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": True,
            "podcast": {
                "id": self.podcast_id,
                "title": self.title,
                "isNew": self.is_new,
                "imageDownloaded": self.image_downloaded,
            },
            "episodes": {
                "total": self.total_episodes,
                "imported": self.imported_episodes,
                "skipped": self.skipped_episodes,
            },
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


# ---------------------------------------------------------------------------
#  Helpers
# ---------------------------------------------------------------------------

def build_image_store(config: Config) -> ImageStore:
    """Create the image store described by the configuration."""
    return ImageStore(
        media_dir=config.media_dir,
        media_base_url=config.media_base_url,
        timeout=config.request_timeout,
        user_agent=config.user_agent,
        max_bytes=config.max_image_bytes,
    )


def _fetch(url: str, config: Config) -> ParsedFeed:
    return fetch_feed(url, timeout=config.request_timeout, user_agent=config.user_agent)


def _load_podcast(db: Database, podcast_id: str, author_id: Optional[str]) -> Podcast:
    with db.get_connection() as conn:
        row = db.get_podcast(conn, podcast_id, author_id=author_id)
    if row is None:
        raise NotFound("Podcast not found or access denied")
    return Podcast.from_row(row)


# ---------------------------------------------------------------------------
#  Single podcast
# ---------------------------------------------------------------------------

def sync_podcast(
    db: Database,
    podcast_id: str,
    author_id: Optional[str] = None,
    config: Optional[Config] = None,
    image_store: Optional[ImageStore] = None,
    dry_run: bool = False,
) -> PodcastSyncResult:
    """
    Sync one podcast with its RSS feed.

    Fetches the feed, stages changed podcast metadata, reconciles the
    feed items against stored episodes, and writes the podcast patch and
    the new episodes in a single transaction.

    Args:
        db: Database
        podcast_id: Podcast to sync
        author_id: When given, the podcast must belong to this author
        config: Application Config object (optional, uses default if None)
        image_store: Cover image store (optional, built from config if None)
        dry_run: Compute the result without downloading images or writing

    Returns:
        PodcastSyncResult with episode counts and update flags

    Raises:
        NotFound: No such podcast for this author, or it has no feed URL
        FeedUnavailable: The feed could not be retrieved
        FeedMalformed: The feed could not be parsed
        PersistenceFailure: Writing the podcast patch or episodes failed
    """
    if config is None:
        config = get_config()

    podcast = _load_podcast(db, podcast_id, author_id)
    if not podcast.rss_url:
        raise NotFound("This podcast does not have an RSS feed")

    feed = _fetch(podcast.rss_url, config)

    if dry_run:
        image_store = None
    elif image_store is None:
        image_store = build_image_store(config)

    diff = diff_podcast_metadata(
        podcast, feed, image_store=image_store, overrides=podcast.manual_overrides
    )

    with db.get_connection() as conn:
        existing = db.get_episodes_by_podcast(conn, podcast.id)
    new_episodes = reconcile_episodes(existing, feed.items)

    result = PodcastSyncResult(
        podcast_id=podcast.id,
        title=feed.title or podcast.title,
        podcast_updated=diff.changed,
        image_updated=diff.image_updated,
        total_episodes=len(feed.items),
        existing_episodes=len(existing),
        new_episodes=new_episodes,
        dry_run=dry_run,
    )

    if dry_run:
        return result

    now = _now_iso()
    updates = dict(diff.updates)
    if diff.changed:
        updates["updated_at"] = now
    updates["last_rss_sync"] = now

    try:
        with db.get_connection() as conn:
            db.update_podcast(conn, podcast.id, updates)
            if new_episodes:
                db.insert_episodes(conn, podcast.id, new_episodes)
    except (sqlite3.Error, OverflowError) as exc:
        logger.error("Failed to save RSS sync for podcast %s: %s", podcast.id, exc)
        raise PersistenceFailure(f"Failed to create episodes: {exc}") from exc

    logger.info(
        "Synced podcast %s (%s): %d new episode(s), metadata %s",
        podcast.id,
        result.title,
        result.new_episode_count,
        "updated" if diff.changed else "unchanged",
    )
    return result


# ---------------------------------------------------------------------------
#  Batches
# ---------------------------------------------------------------------------

def _run_batch(
    db: Database,
    podcasts: List[sqlite3.Row],
    config: Config,
    image_store: Optional[ImageStore],
    dry_run: bool,
) -> BatchSyncResult:
    batch = BatchSyncResult(checked_at=_now_iso(), dry_run=dry_run)

    for row in podcasts:
        podcast_id, title = row["id"], row["title"]
        try:
            result = sync_podcast(
                db,
                podcast_id,
                config=config,
                image_store=image_store,
                dry_run=dry_run,
            )
        except RetellError as exc:
            logger.warning("RSS sync failed for podcast %s (%s): %s", podcast_id, title, exc)
            batch.results.append(
                PodcastSyncEntry(podcast_id=podcast_id, title=title, error=str(exc))
            )
            continue
        except Exception as exc:
            logger.exception("Unexpected error syncing podcast %s", podcast_id)
            batch.results.append(
                PodcastSyncEntry(
                    podcast_id=podcast_id,
                    title=title,
                    error=f"Error syncing {title}: {exc}",
                )
            )
            continue

        batch.results.append(
            PodcastSyncEntry(
                podcast_id=podcast_id,
                title=title,
                new_episodes=result.new_episode_count,
                total_episodes=result.total_episodes,
            )
        )

    logger.info(
        "RSS batch finished: %d podcast(s), %d new episode(s), %d error(s)",
        batch.podcasts_processed,
        batch.total_new_episodes,
        batch.total_errors,
    )
    return batch


def _list_podcasts(db: Database, **filters: Any) -> List[sqlite3.Row]:
    try:
        with db.get_connection() as conn:
            return db.list_podcasts_with_feed(conn, **filters)
    except sqlite3.Error as exc:
        raise PersistenceFailure(f"Failed to fetch podcasts: {exc}") from exc


def sync_author_podcasts(
    db: Database,
    author_id: str,
    config: Optional[Config] = None,
    image_store: Optional[ImageStore] = None,
    dry_run: bool = False,
) -> BatchSyncResult:
    """
    Sync every podcast of one author that has a feed URL.

    Args:
        db: Database
        author_id: Author whose podcasts are synced
        config: Application Config object (optional, uses default if None)
        image_store: Cover image store (optional)
        dry_run: Only count the episodes that would be inserted

    Returns:
        BatchSyncResult with one entry per podcast
    """
    if config is None:
        config = get_config()
    podcasts = _list_podcasts(db, author_id=author_id)
    return _run_batch(db, podcasts, config, image_store, dry_run)


def sync_all_approved(
    db: Database,
    config: Optional[Config] = None,
    image_store: Optional[ImageStore] = None,
    dry_run: bool = False,
) -> BatchSyncResult:
    """
    Sync every approved podcast on the platform that has a feed URL.

    Intended for the scheduled job. Per-podcast failures are recorded in
    the result and never abort the batch.

    Args:
        db: Database
        config: Application Config object (optional, uses default if None)
        image_store: Cover image store (optional)
        dry_run: Only count the episodes that would be inserted

    Returns:
        BatchSyncResult with the aggregate summary and per-podcast detail
    """
    if config is None:
        config = get_config()
    podcasts = _list_podcasts(db, status=PodcastStatus.APPROVED.value)
    return _run_batch(db, podcasts, config, image_store, dry_run)


# ---------------------------------------------------------------------------
#  Preview and import
# ---------------------------------------------------------------------------

def preview_feed(
    rss_url: str,
    limit: Optional[int] = None,
    config: Optional[Config] = None,
) -> FeedPreview:
    """
    Fetch a feed and summarize it without touching the database.

    Args:
        rss_url: Feed URL
        limit: Number of episodes to include (defaults to config.preview_limit)
        config: Application Config object (optional, uses default if None)

    Returns:
        FeedPreview

    Raises:
        ValidationError: No URL given
        FeedUnavailable / FeedMalformed: The feed could not be read
    """
    if not rss_url:
        raise ValidationError("RSS URL is required")
    if config is None:
        config = get_config()
    if limit is None:
        limit = config.preview_limit

    feed = _fetch(rss_url, config)

    podcast = {
        "title": feed.title or "Untitled Podcast",
        "description": feed.description,
        "image": feed.image_url,
        "category": feed.category or "General",
        "language": feed.language or "en",
        "author": feed.author,
        "episodeCount": len(feed.items),
    }
    episodes = [
        {
            "title": item.title or f"Episode {index + 1}",
            "description": item.description,
            "duration": item.duration or None,
            "episodeNumber": item.episode or index + 1,
            "season": item.season or 1,
            "audioUrl": item.enclosure_url or None,
            "pubDate": item.pub_date or None,
        }
        for index, item in enumerate(feed.items[:limit])
    ]
    return FeedPreview(podcast=podcast, episodes=episodes, total_episodes=len(feed.items))


def import_feed(
    db: Database,
    author_id: str,
    rss_url: str,
    config: Optional[Config] = None,
    image_store: Optional[ImageStore] = None,
) -> ImportResult:
    """
    Create a podcast from a feed, or refresh the author's existing one.

    A new podcast starts as a ``draft`` with RSS sync enabled and its cover
    re-hosted from the feed image. An existing podcast with the same feed
    URL gets the usual metadata diff. Either way the feed's new episodes
    are inserted in the same transaction.

    Args:
        db: Database
        author_id: Importing author
        rss_url: Feed URL
        config: Application Config object (optional, uses default if None)
        image_store: Cover image store (optional, built from config if None)

    Returns:
        ImportResult

    Raises:
        ValidationError: No URL given, or the feed has no title
        FeedUnavailable / FeedMalformed: The feed could not be read
        PersistenceFailure: Writing the podcast or episodes failed
    """
    if not rss_url:
        raise ValidationError("RSS URL is required")
    if config is None:
        config = get_config()
    if image_store is None:
        image_store = build_image_store(config)

    feed = _fetch(rss_url, config)
    if not feed.title:
        raise ValidationError("RSS feed must have a title")

    with db.get_connection() as conn:
        row = db.get_podcast_by_rss_url(conn, rss_url, author_id)
    existing_podcast = Podcast.from_row(row) if row is not None else None

    now = _now_iso()
    try:
        if existing_podcast is not None:
            diff = diff_podcast_metadata(
                existing_podcast,
                feed,
                image_store=image_store,
                overrides=existing_podcast.manual_overrides,
            )
            podcast_id = existing_podcast.id
            title = diff.updates.get("title", existing_podcast.title)
            image_downloaded = diff.image_updated
            updates = dict(diff.updates)
            if diff.changed:
                updates["updated_at"] = now
            updates["last_rss_sync"] = now

            with db.get_connection() as conn:
                db.update_podcast(conn, podcast_id, updates)
                existing = db.get_episodes_by_podcast(conn, podcast_id)
                new_episodes = reconcile_episodes(existing, feed.items)
                db.insert_episodes(conn, podcast_id, new_episodes)
        else:
            podcast_id = new_id()
            title = feed.title
            cover = rehost_cover(feed.image_url, podcast_id, image_store) if feed.image_url else None
            image_downloaded = cover is not None
            new_episodes = reconcile_episodes([], feed.items)

            with db.get_connection() as conn:
                db.insert_podcast(
                    conn,
                    author_id=author_id,
                    title=feed.title,
                    description=feed.description,
                    cover_image_url=cover,
                    rss_image_url=feed.image_url,
                    category=feed.category or "General",
                    language=feed.language or "en",
                    status=PodcastStatus.DRAFT.value,
                    rss_url=rss_url,
                    auto_publish_episodes=True,
                    rss_sync_enabled=True,
                    podcast_id=podcast_id,
                )
                db.update_podcast(conn, podcast_id, {"last_rss_sync": now})
                db.insert_episodes(conn, podcast_id, new_episodes)
    except (sqlite3.Error, OverflowError) as exc:
        logger.error("Failed to import RSS feed %s: %s", rss_url, exc)
        raise PersistenceFailure(f"Failed to import podcast: {exc}") from exc

    logger.info(
        "Imported feed %s as podcast %s (%s): %d episode(s)",
        rss_url,
        podcast_id,
        "new" if existing_podcast is None else "existing",
        len(new_episodes),
    )
    return ImportResult(
        podcast_id=podcast_id,
        title=title,
        is_new=existing_podcast is None,
        image_downloaded=image_downloaded,
        total_episodes=len(feed.items),
        imported_episodes=len(new_episodes),
    )
