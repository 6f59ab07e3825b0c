"""RSS feed endpoints: single and batch sync, preview, import."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from retell.config import Config
from retell.errors import ValidationError
from retell.models.database import Database
from retell.models.entities import UserProfile
from retell.server.deps import get_config, get_db, require_author, require_service_token
from retell.sync.rss_sync import (
    import_feed,
    preview_feed,
    sync_all_approved,
    sync_author_podcasts,
    sync_podcast,
)

router = APIRouter()


class UpdateRequest(BaseModel):
    """Body of POST /api/rss/update."""

    model_config = ConfigDict(populate_by_name=True)

    podcast_id: Optional[str] = Field(default=None, alias="podcastId")


class FeedUrlRequest(BaseModel):
    """Body of POST /api/rss/parse and /api/rss/import."""

    model_config = ConfigDict(populate_by_name=True)

    rss_url: Optional[str] = Field(default=None, alias="rssUrl")


@router.post("/update")
def update_podcast_feed(
    request: UpdateRequest,
    user: UserProfile = Depends(require_author),
    db: Database = Depends(get_db),
    config: Config = Depends(get_config),
):
    """Sync one of the caller's podcasts with its feed."""
    if not request.podcast_id:
        raise ValidationError("Podcast ID is required")
    result = sync_podcast(db, request.podcast_id, author_id=user.id, config=config)
    return result.to_dict()


@router.get("/update")
def update_author_feeds(
    dry_run: bool = False,
    user: UserProfile = Depends(require_author),
    db: Database = Depends(get_db),
    config: Config = Depends(get_config),
):
    """
    Sync every podcast of the caller that has a feed.

    With ``dry_run=true`` only counts the episodes that would be added.
    """
    return sync_author_podcasts(db, user.id, config=config, dry_run=dry_run).to_dict()


@router.post("/sync", dependencies=[Depends(require_service_token)])
def sync_platform_feeds(
    db: Database = Depends(get_db),
    config: Config = Depends(get_config),
):
    """Scheduled sync of all approved podcasts."""
    return sync_all_approved(db, config=config).to_dict()


@router.post("/parse", dependencies=[Depends(require_author)])
def parse_feed(
    request: FeedUrlRequest,
    config: Config = Depends(get_config),
):
    """Preview a feed before importing it."""
    return preview_feed(request.rss_url or "", config=config).to_dict()


@router.post("/import")
def import_podcast_feed(
    request: FeedUrlRequest,
    user: UserProfile = Depends(require_author),
    db: Database = Depends(get_db),
    config: Config = Depends(get_config),
):
    """Create a podcast from a feed, or refresh the caller's existing one."""
    return import_feed(db, user.id, request.rss_url or "", config=config).to_dict()
