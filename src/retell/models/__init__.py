"""
Data models and database management.

Provides SQLite schema management, Pydantic data models, and the
database access layer for user profiles, podcasts and episodes.
"""

from retell.models.database import Database
from retell.models.schema import create_all_tables, get_table_names, SCHEMA_SQL
from retell.models.entities import Episode, Podcast, PodcastStatus, Role, UserProfile

__all__ = [
    "Database",
    "create_all_tables",
    "get_table_names",
    "SCHEMA_SQL",
    "Episode",
    "Podcast",
    "PodcastStatus",
    "Role",
    "UserProfile",
]
