"""
Database management and data access layer.

Provides a Database class for managing SQLite connections and helper methods
for the operations the feed sync needs: looking up callers, loading and
patching podcasts, and reading and inserting episodes. Includes connection
management with commit-or-rollback semantics and UTF-8 support for
multilingual text.
"""

import json
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .schema import create_all_tables


# Podcast columns that ``update_podcast`` may write
PODCAST_UPDATABLE_COLUMNS = frozenset({
    "title",
    "description",
    "cover_image_url",
    "rss_image_url",
    "category",
    "language",
    "country",
    "status",
    "rss_url",
    "auto_publish_episodes",
    "rss_sync_enabled",
    "manual_overrides",
    "last_rss_sync",
    "updated_at",
})

_BOOLEAN_COLUMNS = frozenset({"auto_publish_episodes", "rss_sync_enabled"})


def new_id() -> str:
    """Generate a record identifier."""
    return str(uuid.uuid4())


class Database:
    """
    Database connection and query management.

    Methods take an open connection so that callers decide the
    transaction boundary: everything done inside one
    ``get_connection()`` block is committed together or rolled back
    together.

    Example:
        >>> db = Database(Path("data/db/retell.db"))
        >>> db.initialize()
        >>> with db.get_connection() as conn:
        ...     podcast = db.get_podcast(conn, "3f0c...")
    """

    def __init__(self, db_path: Path):
        """
        Initialize database manager.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def initialize(self) -> None:
        """
        Initialize database schema.

        Creates all tables and indexes if they don't exist.
        Safe to call multiple times (idempotent).
        """
        create_all_tables(self.db_path)

    @contextmanager
    def get_connection(self):
        """
        Context manager for database connections.

        Automatically handles connection cleanup and ensures UTF-8 encoding
        and foreign key constraints are enabled.

        Yields:
            sqlite3.Connection: Database connection with row factory set
        """
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA encoding = 'UTF-8'")
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception as e:
            conn.rollback()
            raise e
        finally:
            conn.close()

    # ------------------------------------------------------------------
    #  User profiles
    # ------------------------------------------------------------------

    def insert_user_profile(
        self,
        conn: sqlite3.Connection,
        email: str,
        role: str = "client",
        full_name: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> str:
        """
        Insert a user profile.

        Args:
            conn: Database connection
            email: Unique account email
            role: admin/author/client
            full_name: Display name (optional)
            user_id: Explicit identifier (generated when omitted)

        Returns:
            str: ID of the inserted profile
        """
        user_id = user_id or new_id()
        conn.execute(
            "INSERT INTO user_profiles (id, email, full_name, role) VALUES (?, ?, ?, ?)",
            (user_id, email, full_name, role),
        )
        return user_id

    def get_user_profile(
        self, conn: sqlite3.Connection, user_id: str
    ) -> Optional[sqlite3.Row]:
        """Retrieve a user profile by ID."""
        cursor = conn.execute("SELECT * FROM user_profiles WHERE id = ?", (user_id,))
        return cursor.fetchone()

    # ------------------------------------------------------------------
    #  Podcasts
    # ------------------------------------------------------------------

    def insert_podcast(
        self,
        conn: sqlite3.Connection,
        author_id: str,
        title: str,
        description: str = "",
        cover_image_url: Optional[str] = None,
        rss_image_url: Optional[str] = None,
        category: str = "General",
        language: str = "en",
        country: str = "Unknown",
        status: str = "draft",
        rss_url: Optional[str] = None,
        auto_publish_episodes: bool = False,
        rss_sync_enabled: bool = False,
        podcast_id: Optional[str] = None,
    ) -> str:
        """
        Insert a new podcast record.

        Args:
            conn: Database connection
            author_id: Owning author's profile ID
            title: Podcast title
            description: Podcast description
            cover_image_url: Display cover URL (optional)
            rss_image_url: Feed image URL the cover came from (optional)
            category: Catalog category
            language: Language code
            country: Country of origin
            status: draft/pending/approved/rejected
            rss_url: Feed URL (optional)
            auto_publish_episodes: Publish feed episodes without review
            rss_sync_enabled: Whether the feed drives this podcast
            podcast_id: Explicit identifier (generated when omitted)

        Returns:
            str: ID of inserted podcast
        """
        podcast_id = podcast_id or new_id()
        conn.execute(
            """
            INSERT INTO podcasts (
                id, author_id, title, description, cover_image_url, rss_image_url,
                category, language, country, status, rss_url,
                auto_publish_episodes, rss_sync_enabled
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                podcast_id,
                author_id,
                title,
                description,
                cover_image_url,
                rss_image_url,
                category,
                language,
                country,
                status,
                rss_url,
                1 if auto_publish_episodes else 0,
                1 if rss_sync_enabled else 0,
            ),
        )
        return podcast_id

    def get_podcast(
        self,
        conn: sqlite3.Connection,
        podcast_id: str,
        author_id: Optional[str] = None,
    ) -> Optional[sqlite3.Row]:
        """
        Retrieve a podcast by ID, optionally scoped to its author.

        Args:
            conn: Database connection
            podcast_id: Podcast ID
            author_id: When given, only a podcast owned by this author matches

        Returns:
            Podcast row or None if not found
        """
        if author_id is None:
            cursor = conn.execute("SELECT * FROM podcasts WHERE id = ?", (podcast_id,))
        else:
            cursor = conn.execute(
                "SELECT * FROM podcasts WHERE id = ? AND author_id = ?",
                (podcast_id, author_id),
            )
        return cursor.fetchone()

    def get_podcast_by_rss_url(
        self, conn: sqlite3.Connection, rss_url: str, author_id: str
    ) -> Optional[sqlite3.Row]:
        """Retrieve the author's podcast backed by the given feed URL."""
        cursor = conn.execute(
            "SELECT * FROM podcasts WHERE rss_url = ? AND author_id = ? ORDER BY created_at LIMIT 1",
            (rss_url, author_id),
        )
        return cursor.fetchone()

    def list_podcasts_with_feed(
        self,
        conn: sqlite3.Connection,
        author_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[sqlite3.Row]:
        """
        List podcasts that have a feed URL.

        Args:
            conn: Database connection
            author_id: Restrict to one author's podcasts (optional)
            status: Restrict to one review status (optional)

        Returns:
            List of podcast rows, oldest first
        """
        query = "SELECT * FROM podcasts WHERE rss_url IS NOT NULL AND rss_url != ''"
        params: List[Any] = []
        if author_id is not None:
            query += " AND author_id = ?"
            params.append(author_id)
        if status is not None:
            query += " AND status = ?"
            params.append(status)
        query += " ORDER BY created_at, id"
        cursor = conn.execute(query, params)
        return cursor.fetchall()

    def update_podcast(
        self, conn: sqlite3.Connection, podcast_id: str, updates: Dict[str, Any]
    ) -> None:
        """
        Patch podcast columns.

        Args:
            conn: Database connection
            podcast_id: Podcast ID
            updates: Column -> value; only known podcast columns are accepted

        Raises:
            ValueError: If ``updates`` names a column that cannot be written
        """
        if not updates:
            return

        unknown = set(updates) - PODCAST_UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update podcast columns: {sorted(unknown)}")

        columns = []
        values: List[Any] = []
        for column, value in updates.items():
            if column == "manual_overrides":
                value = json.dumps(value or {})
            elif column in _BOOLEAN_COLUMNS:
                value = 1 if value else 0
            columns.append(f"{column} = ?")
            values.append(value)

        values.append(podcast_id)
        conn.execute(
            f"UPDATE podcasts SET {', '.join(columns)} WHERE id = ?",
            values,
        )

    # ------------------------------------------------------------------
    #  Episodes
    # ------------------------------------------------------------------

    def insert_episode(
        self,
        conn: sqlite3.Connection,
        podcast_id: str,
        title: str,
        audio_url: str,
        episode_number: int,
        description: str = "",
        script_url: str = "",
        duration: Optional[int] = None,
        season_number: Optional[int] = 1,
        episode_id: Optional[str] = None,
    ) -> str:
        """
        Insert a new episode record.

        Args:
            conn: Database connection
            podcast_id: Owning podcast ID
            title: Episode title
            audio_url: URL to audio file
            episode_number: Episode number within the season
            description: Episode description
            script_url: Script file URL (empty until uploaded)
            duration: Duration in seconds (optional)
            season_number: Season number
            episode_id: Explicit identifier (generated when omitted)

        Returns:
            str: ID of inserted episode
        """
        episode_id = episode_id or new_id()
        conn.execute(
            """
            INSERT INTO episodes (
                id, podcast_id, title, description, audio_url, script_url,
                duration, episode_number, season_number
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                episode_id,
                podcast_id,
                title,
                description,
                audio_url,
                script_url,
                duration,
                episode_number,
                season_number,
            ),
        )
        return episode_id

    def insert_episodes(
        self,
        conn: sqlite3.Connection,
        podcast_id: str,
        episodes: Iterable[Any],
    ) -> List[str]:
        """
        Insert a batch of episodes for one podcast.

        Accepts any objects exposing ``title``, ``description``,
        ``audio_url``, ``script_url``, ``duration``, ``episode_number``
        and ``season_number`` attributes.

        Returns:
            IDs of the inserted episodes, in input order
        """
        return [
            self.insert_episode(
                conn,
                podcast_id=podcast_id,
                title=ep.title,
                audio_url=ep.audio_url,
                episode_number=ep.episode_number,
                description=ep.description,
                script_url=ep.script_url,
                duration=ep.duration,
                season_number=ep.season_number,
            )
            for ep in episodes
        ]

    def get_episodes_by_podcast(
        self, conn: sqlite3.Connection, podcast_id: str
    ) -> List[sqlite3.Row]:
        """
        Retrieve all episodes of a podcast, ordered by season and number.

        Args:
            conn: Database connection
            podcast_id: Podcast ID

        Returns:
            List of episode rows
        """
        cursor = conn.execute(
            """
            SELECT * FROM episodes WHERE podcast_id = ?
            ORDER BY season_number, episode_number, created_at
            """,
            (podcast_id,),
        )
        return cursor.fetchall()
