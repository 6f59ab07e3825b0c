"""
SQLite schema and database initialization.

Defines the tables the feed sync reads and writes: user profiles,
podcasts and episodes. Provides functions to create and inspect the
database with all tables and indexes.
"""

import sqlite3
from pathlib import Path


SCHEMA_SQL = """
-- ============================================================
-- USER_PROFILES: Marketplace accounts (admins, authors, clients)
-- ============================================================
CREATE TABLE IF NOT EXISTS user_profiles (
    id              TEXT    PRIMARY KEY,
    email           TEXT    NOT NULL UNIQUE,
    full_name       TEXT,
    role            TEXT    NOT NULL DEFAULT 'client' CHECK (role IN ('admin', 'author', 'client')),
    company         TEXT,
    created_at      TEXT    DEFAULT (datetime('now')),
    updated_at      TEXT    DEFAULT (datetime('now'))
);

-- ============================================================
-- PODCASTS: Licensable shows, optionally backed by an RSS feed
-- ============================================================
CREATE TABLE IF NOT EXISTS podcasts (
    id              TEXT    PRIMARY KEY,
    author_id       TEXT    NOT NULL REFERENCES user_profiles(id) ON DELETE CASCADE,
    title           TEXT    NOT NULL,
    description     TEXT    NOT NULL DEFAULT '',
    cover_image_url TEXT,
    rss_image_url   TEXT,              -- last feed image URL the cover was taken from
    category        TEXT    NOT NULL DEFAULT 'General',
    language        TEXT    NOT NULL DEFAULT 'en',
    country         TEXT    NOT NULL DEFAULT 'Unknown',
    status          TEXT    NOT NULL DEFAULT 'draft' CHECK (status IN ('draft', 'pending', 'approved', 'rejected')),
    rss_url         TEXT,
    auto_publish_episodes INTEGER NOT NULL DEFAULT 0 CHECK (auto_publish_episodes IN (0, 1)),
    rss_sync_enabled INTEGER NOT NULL DEFAULT 0 CHECK (rss_sync_enabled IN (0, 1)),
    manual_overrides TEXT   NOT NULL DEFAULT '{}',  -- JSON object: field -> bool
    last_rss_sync   TEXT,
    created_at      TEXT    DEFAULT (datetime('now')),
    updated_at      TEXT    DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_podcasts_author ON podcasts(author_id);
CREATE INDEX IF NOT EXISTS idx_podcasts_status ON podcasts(status);
CREATE INDEX IF NOT EXISTS idx_podcasts_rss_url ON podcasts(rss_url);

-- ============================================================
-- EPISODES: Per-podcast episodes, manual or feed-imported
-- ============================================================
CREATE TABLE IF NOT EXISTS episodes (
    id              TEXT    PRIMARY KEY,
    podcast_id      TEXT    NOT NULL REFERENCES podcasts(id) ON DELETE CASCADE,
    title           TEXT    NOT NULL,
    description     TEXT    NOT NULL DEFAULT '',
    audio_url       TEXT    NOT NULL,
    script_url      TEXT    NOT NULL DEFAULT '',
    duration        INTEGER,           -- seconds
    episode_number  INTEGER NOT NULL,
    season_number   INTEGER DEFAULT 1,
    created_at      TEXT    DEFAULT (datetime('now')),
    updated_at      TEXT    DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_episodes_podcast ON episodes(podcast_id);
CREATE INDEX IF NOT EXISTS idx_episodes_number ON episodes(podcast_id, season_number, episode_number);
"""


def create_all_tables(db_path: Path) -> None:
    """
    Create database and all tables with indexes.

    This function is idempotent - safe to call multiple times.

    Args:
        db_path: Path to the SQLite database file to create/initialize

    Example:
        >>> create_all_tables(Path("data/db/retell.db"))
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path))
    conn.execute("PRAGMA encoding = 'UTF-8'")
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        conn.executescript(SCHEMA_SQL)
        conn.commit()
    finally:
        conn.close()


def get_table_names(db_path: Path) -> list[str]:
    """
    Get list of all tables in the database.

    Args:
        db_path: Path to the SQLite database file

    Returns:
        List of table names

    Example:
        >>> get_table_names(Path("data/db/retell.db"))
        ['episodes', 'podcasts', 'user_profiles']
    """
    conn = sqlite3.connect(str(db_path))
    try:
        cursor = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
        )
        return [row[0] for row in cursor.fetchall()]
    finally:
        conn.close()
