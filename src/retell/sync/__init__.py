"""
Feed sync: episode reconciliation, podcast metadata diffing, and the
single-podcast and batch sync operations built on them.
"""

from retell.sync.reconciler import NewEpisode, parse_duration, reconcile_episodes
from retell.sync.metadata import MetadataDiff, diff_podcast_metadata
from retell.sync.rss_sync import (
    BatchSyncResult,
    PodcastSyncResult,
    import_feed,
    preview_feed,
    sync_all_approved,
    sync_author_podcasts,
    sync_podcast,
)

__all__ = [
    "NewEpisode",
    "parse_duration",
    "reconcile_episodes",
    "MetadataDiff",
    "diff_podcast_metadata",
    "BatchSyncResult",
    "PodcastSyncResult",
    "import_feed",
    "preview_feed",
    "sync_all_approved",
    "sync_author_podcasts",
    "sync_podcast",
]
