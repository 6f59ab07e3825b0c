"""
Podcast metadata diffing.

Compares a feed's channel metadata with the stored podcast and stages the
fields that changed: title, description, category, language and the cover
image. The cover is re-hosted through an ``ImageStore`` when possible and
falls back to the remote URL otherwise; the feed's image URL is always
remembered in ``rss_image_url`` so an unchanged feed image is not fetched
again on the next sync.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from retell.ingestion.downloader import ImageStore
from retell.ingestion.rss_parser import ParsedFeed
from retell.models.entities import Podcast

logger = logging.getLogger(__name__)

# Podcast column -> manual override key that protects it
OVERRIDE_KEYS = {
    "title": "title",
    "description": "description",
    "category": "category",
    "language": "language",
    "cover_image_url": "cover_image",
}


@dataclass
class MetadataDiff:
    """
    Podcast fields staged for update.

    Attributes:
        updates: Changed columns only
        changed: True if anything was staged
        image_updated: True if the cover image was staged
    """

    updates: Dict[str, Any] = field(default_factory=dict)
    changed: bool = False
    image_updated: bool = False


def _is_overridden(overrides: Optional[Mapping[str, bool]], column: str) -> bool:
    if not overrides:
        return False
    return overrides.get(OVERRIDE_KEYS[column]) is True


def diff_podcast_metadata(
    podcast: Podcast,
    feed: ParsedFeed,
    image_store: Optional[ImageStore] = None,
    overrides: Optional[Mapping[str, bool]] = None,
) -> MetadataDiff:
    """
    Stage podcast fields whose feed value is present and different.

    Args:
        podcast: Stored podcast
        feed: Parsed feed
        image_store: Re-hosts a changed cover image; without one the
            remote URL is stored directly
        overrides: Manual override flags (``title``, ``description``,
            ``cover_image``, ``category``, ``language``); flagged fields
            are left alone

    Returns:
        MetadataDiff with the partial update record
    """
    diff = MetadataDiff()

    text_fields = (
        ("title", feed.title),
        ("description", feed.description),
        ("category", feed.category),
        ("language", feed.language),
    )
    for column, value in text_fields:
        if not value or value == getattr(podcast, column):
            continue
        if _is_overridden(overrides, column):
            logger.debug("Keeping manually set %s for podcast %s", column, podcast.id)
            continue
        diff.updates[column] = value

    image_url = feed.image_url
    if (
        image_url
        and image_url != podcast.rss_image_url
        and not _is_overridden(overrides, "cover_image_url")
    ):
        diff.updates["cover_image_url"] = rehost_cover(image_url, podcast.id, image_store)
        diff.updates["rss_image_url"] = image_url
        diff.image_updated = True

    diff.changed = bool(diff.updates)
    return diff


def rehost_cover(
    image_url: str,
    podcast_id: str,
    image_store: Optional[ImageStore],
) -> str:
    """Return the re-hosted cover URL, or the remote URL if that fails."""
    if image_store is None:
        return image_url

    logger.info("Downloading RSS feed image for podcast %s: %s", podcast_id, image_url)
    result = image_store.download_and_store(image_url, podcast_id, "rss-cover")
    if result.success and result.image_url:
        return result.image_url

    logger.warning(
        "Failed to download RSS feed image for podcast %s, using remote URL: %s",
        podcast_id,
        result.error,
    )
    return image_url
