"""
Pydantic data models for user profiles, podcasts and episodes.

Defines type-safe data models with validation for the records the feed
sync reads from and writes to the database. Rows returned by
``Database`` are converted with ``from_row``.
"""

import json
import sqlite3
from datetime import datetime
from typing import Optional, Dict, Any
from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Marketplace account role."""
    ADMIN = "admin"
    AUTHOR = "author"
    CLIENT = "client"


class PodcastStatus(str, Enum):
    """Catalog review status."""
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class UserProfile(BaseModel):
    """
    Marketplace account.

    Only the fields the sync endpoints need to authorize a caller.
    """
    id: str
    email: str
    full_name: Optional[str] = None
    role: Role = Role.CLIENT
    company: Optional[str] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "UserProfile":
        return cls(**{key: row[key] for key in row.keys() if key in cls.model_fields})

    class Config:
        """Pydantic configuration."""
        from_attributes = True


class Podcast(BaseModel):
    """
    Podcast data model.

    Represents a licensable show. ``rss_image_url`` remembers the feed
    image the current cover was taken from, which may differ from
    ``cover_image_url`` once the image has been re-hosted.
    """
    id: str
    author_id: str
    title: str
    description: str = ""
    cover_image_url: Optional[str] = None
    rss_image_url: Optional[str] = None
    category: str = "General"
    language: str = "en"
    country: str = "Unknown"
    status: PodcastStatus = PodcastStatus.DRAFT
    rss_url: Optional[str] = None
    auto_publish_episodes: bool = False
    rss_sync_enabled: bool = False
    manual_overrides: Dict[str, bool] = Field(default_factory=dict)
    last_rss_sync: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Podcast":
        data: Dict[str, Any] = {key: row[key] for key in row.keys() if key in cls.model_fields}
        overrides = data.get("manual_overrides")
        if isinstance(overrides, str):
            data["manual_overrides"] = json.loads(overrides) if overrides else {}
        elif overrides is None:
            data["manual_overrides"] = {}
        return cls(**data)

    class Config:
        """Pydantic configuration."""
        from_attributes = True


class Episode(BaseModel):
    """
    Episode data model.

    Belongs to exactly one podcast. Feed-created episodes carry an empty
    ``script_url`` until an author uploads a script.
    """
    id: Optional[str] = None
    podcast_id: str
    title: str
    description: str = ""
    audio_url: str
    script_url: str = ""
    duration: Optional[int] = Field(None, ge=0)
    episode_number: int
    season_number: Optional[int] = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Episode":
        return cls(**{key: row[key] for key in row.keys() if key in cls.model_fields})

    class Config:
        """Pydantic configuration."""
        from_attributes = True
