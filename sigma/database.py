"""Database schema and initialization for the Sigma LMS response cache.

This module provides SQLite setup and connection management for cached
API responses. Each cached response carries one or more tags so a whole
family of responses can be dropped at once.
Timestamps are stored both as ISO8601 text (for humans) and as epoch
seconds (for expiry checks).
"""

import sqlite3
from datetime import datetime, timezone
from typing import Iterable, Optional, TypedDict


class CachedResponseDict(TypedDict):
    """Type definition for a cached response row."""
    cache_key: str
    payload: str
    generated_at: str
    expires_at: float


def get_connection(db_path: str = "sigma.db") -> sqlite3.Connection:
    """Get a database connection with foreign keys enabled.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection object
    """
    conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.row_factory = sqlite3.Row  # Enable column access by name
    return conn


def init_database(db_path: str = "sigma.db") -> None:
    """Initialize database schema if not exists.

    Creates the tables used by the response cache:
    - cached_responses: Serialized JSON bodies keyed by cache key
    - cached_response_tags: Tags attached to each cached response

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    cursor = conn.cursor()

    cursor.executescript("""
        -- Serialized API responses
        CREATE TABLE IF NOT EXISTS cached_responses (
            cache_key TEXT PRIMARY KEY,
            payload TEXT NOT NULL,
            generated_at TEXT NOT NULL,
            expires_at REAL NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_cached_responses_expiry ON cached_responses(expires_at);

        -- Invalidation tags
        CREATE TABLE IF NOT EXISTS cached_response_tags (
            cache_key TEXT NOT NULL,
            tag TEXT NOT NULL,
            PRIMARY KEY (cache_key, tag),
            FOREIGN KEY (cache_key) REFERENCES cached_responses(cache_key) ON DELETE CASCADE
        );
        CREATE INDEX IF NOT EXISTS idx_cached_response_tags_tag ON cached_response_tags(tag);
    """)

    conn.commit()
    conn.close()


def get_cached_response(
    cache_key: str,
    now: float,
    db_path: str = "sigma.db"
) -> Optional[CachedResponseDict]:
    """Retrieve a cached response if it has not expired.

    Args:
        cache_key: Key the response was saved under
        now: Current time in epoch seconds
        db_path: Path to database file

    Returns:
        Cached row or None if missing or expired
    """
    conn = get_connection(db_path)
    cursor = conn.cursor()

    cursor.execute("""
        SELECT cache_key, payload, generated_at, expires_at
        FROM cached_responses
        WHERE cache_key = ? AND expires_at > ?
    """, (cache_key, now))

    row = cursor.fetchone()
    conn.close()

    if row:
        return {
            "cache_key": row["cache_key"],
            "payload": row["payload"],
            "generated_at": row["generated_at"],
            "expires_at": row["expires_at"],
        }
    return None


def save_cached_response(
    cache_key: str,
    payload: str,
    tags: Iterable[str],
    expires_at: float,
    db_path: str = "sigma.db"
) -> None:
    """Save a serialized response, replacing any previous one for the key.

    Args:
        cache_key: Key to save under
        payload: Serialized JSON body
        tags: Invalidation tags for this response
        expires_at: Expiry time in epoch seconds
        db_path: Path to database file
    """
    conn = get_connection(db_path)
    cursor = conn.cursor()

    try:
        cursor.execute("DELETE FROM cached_responses WHERE cache_key = ?", (cache_key,))
        cursor.execute("""
            INSERT INTO cached_responses (cache_key, payload, generated_at, expires_at)
            VALUES (?, ?, ?, ?)
        """, (cache_key, payload, datetime.now(timezone.utc).isoformat(), expires_at))
        cursor.executemany(
            "INSERT OR IGNORE INTO cached_response_tags (cache_key, tag) VALUES (?, ?)",
            [(cache_key, tag) for tag in tags]
        )
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def delete_by_tag(tag: str, db_path: str = "sigma.db") -> int:
    """Delete every cached response carrying a tag.

    Args:
        tag: Invalidation tag
        db_path: Path to database file

    Returns:
        Number of cached responses removed
    """
    conn = get_connection(db_path)
    cursor = conn.cursor()

    cursor.execute("""
        DELETE FROM cached_responses
        WHERE cache_key IN (
            SELECT cache_key FROM cached_response_tags WHERE tag = ?
        )
    """, (tag,))

    removed = cursor.rowcount
    conn.commit()
    conn.close()
    return removed


def purge_expired(now: float, db_path: str = "sigma.db") -> int:
    """Remove expired cached responses.

    Returns:
        Number of rows removed
    """
    conn = get_connection(db_path)
    cursor = conn.cursor()

    cursor.execute("DELETE FROM cached_responses WHERE expires_at <= ?", (now,))

    removed = cursor.rowcount
    conn.commit()
    conn.close()
    return removed
