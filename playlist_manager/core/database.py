"""
Thread-safe SQLite user registry for playlist-manager.

Each row of `users` is one person who logged in with Spotify. The row
holds what the sync engine needs between runs:

Schema:
    users:  id, spotify_user_id, username, email,
            access_token, access_token_timestamp, refresh_token,
            favorite_playlists (JSON array), auto_sort_playlists (JSON array),
            created_at, updated_at

Usage:
    db = Database(config.storage.database)

    user = db.upsert_user(spotify_user_id, username, email, access_token, refresh_token)
    db.set_auto_sort_playlists(user["id"], ["37i9dQZF1DXcBWIGoYBM5M"])

    for user in db.get_users_with_auto_sort():
        ...
"""

import json
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

from playlist_manager.core.exceptions import DatabaseError


DATABASE_VERSION = 1

_JSON_LIST_FIELDS = ("favorite_playlists", "auto_sort_playlists")


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    spotify_user_id TEXT UNIQUE NOT NULL,
    username TEXT,
    email TEXT,

    -- OAuth tokens
    access_token TEXT,
    access_token_timestamp TEXT,
    refresh_token TEXT,

    -- Preferences
    favorite_playlists TEXT NOT NULL DEFAULT '[]',  -- JSON array
    auto_sort_playlists TEXT NOT NULL DEFAULT '[]',  -- JSON array

    created_at TEXT,
    updated_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_users_spotify_user_id ON users(spotify_user_id);
"""


class Database:
    """
    Thread-safe SQLite user registry.

    Uses a single persistent connection with thread locking for safety.
    All public methods acquire self._lock before executing.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

        if not db_path.parent.exists():
            raise DatabaseError(
                f"Parent directory does not exist: {db_path.parent}",
                details={"path": str(db_path.parent)}
            )

        try:
            self._init_database()
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to initialize database: {e}",
                details={"path": str(db_path)}
            ) from e

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Get the persistent database connection as a context manager.

        The connection is created once and reused for all operations.
        """
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                timeout=30.0,
                check_same_thread=False  # We handle thread safety with _lock
            )
            self._conn.row_factory = sqlite3.Row
        yield self._conn

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _init_database(self) -> None:
        with self._get_connection() as conn:
            conn.executescript(_SCHEMA_SQL)

            cursor = conn.execute("SELECT version FROM schema_version LIMIT 1")
            row = cursor.fetchone()

            if row is None:
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (DATABASE_VERSION,))
            elif row[0] != DATABASE_VERSION:
                raise DatabaseError(
                    f"Database version mismatch: expected {DATABASE_VERSION}, got {row[0]}",
                    details={"expected": DATABASE_VERSION, "actual": row[0]}
                )
            conn.commit()

    def _now_iso(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def _deserialize_user_row(self, row: sqlite3.Row) -> dict[str, Any]:
        """Convert SQLite row to Python dict, decoding JSON list columns."""
        data = dict(row)

        for field in _JSON_LIST_FIELDS:
            try:
                data[field] = json.loads(data[field] or "[]")
            except (json.JSONDecodeError, TypeError) as e:
                raise DatabaseError(
                    f"Corrupted '{field}' column for user {data['id']}",
                    details={"user_id": data["id"], "field": field}
                ) from e

        return data

    # =========================================================================
    # User Operations
    # =========================================================================

    def upsert_user(
        self,
        spotify_user_id: str,
        username: str | None,
        email: str | None,
        access_token: str,
        refresh_token: str | None
    ) -> dict[str, Any]:
        """
        Create the user on first login, or refresh profile and tokens.

        Preferences of an existing user are preserved. A missing refresh
        token in a later login keeps the stored one.

        Returns:
            The stored user row.
        """
        with self._lock:
            with self._get_connection() as conn:
                now = self._now_iso()
                conn.execute("""
                    INSERT INTO users (
                        id, spotify_user_id, username, email,
                        access_token, access_token_timestamp, refresh_token,
                        created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(spotify_user_id) DO UPDATE SET
                        username = excluded.username,
                        email = excluded.email,
                        access_token = excluded.access_token,
                        access_token_timestamp = excluded.access_token_timestamp,
                        refresh_token = COALESCE(excluded.refresh_token, users.refresh_token),
                        updated_at = excluded.updated_at
                """, (
                    str(uuid.uuid4()), spotify_user_id, username, email,
                    access_token, now, refresh_token, now, now
                ))
                conn.commit()

                cursor = conn.execute("SELECT * FROM users WHERE spotify_user_id = ?", (spotify_user_id,))
                return self._deserialize_user_row(cursor.fetchone())

    def get_user(self, user_id: str) -> dict[str, Any] | None:
        """Get a user by local id, or None."""
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
                row = cursor.fetchone()
                return self._deserialize_user_row(row) if row else None

    def get_user_by_spotify_id(self, spotify_user_id: str) -> dict[str, Any] | None:
        """Get a user by Spotify account id, or None."""
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("SELECT * FROM users WHERE spotify_user_id = ?", (spotify_user_id,))
                row = cursor.fetchone()
                return self._deserialize_user_row(row) if row else None

    def list_users(self) -> list[dict[str, Any]]:
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("SELECT * FROM users ORDER BY created_at, rowid")
                return [self._deserialize_user_row(row) for row in cursor.fetchall()]

    def get_users_with_auto_sort(self) -> list[dict[str, Any]]:
        """Get every user whose auto-sort playlist set is non-empty."""
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("""
                    SELECT * FROM users
                    WHERE auto_sort_playlists IS NOT NULL AND auto_sort_playlists != '[]'
                    ORDER BY created_at, rowid
                """)
                users = [self._deserialize_user_row(row) for row in cursor.fetchall()]
                return [user for user in users if user["auto_sort_playlists"]]

    # =========================================================================
    # Token Updates
    # =========================================================================

    def update_access_token(
        self,
        user_id: str,
        access_token: str,
        refresh_token: str | None = None
    ) -> None:
        """
        Store a freshly refreshed access token (timestamp = now).

        refresh_token is only replaced when Spotify rotated it.
        """
        with self._lock:
            with self._get_connection() as conn:
                now = self._now_iso()
                cursor = conn.execute("""
                    UPDATE users
                    SET access_token = ?, access_token_timestamp = ?,
                        refresh_token = COALESCE(?, refresh_token), updated_at = ?
                    WHERE id = ?
                """, (access_token, now, refresh_token, now, user_id))

                if cursor.rowcount == 0:
                    raise DatabaseError(f"User not found: {user_id}", details={"user_id": user_id})
                conn.commit()

    # =========================================================================
    # Preferences
    # =========================================================================

    def _set_json_list(self, user_id: str, field: str, values: list[str]) -> None:
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    f"UPDATE users SET {field} = ?, updated_at = ? WHERE id = ?",
                    (json.dumps(list(values)), self._now_iso(), user_id)
                )

                if cursor.rowcount == 0:
                    raise DatabaseError(f"User not found: {user_id}", details={"user_id": user_id})
                conn.commit()

    def set_favorite_playlists(self, user_id: str, playlist_ids: list[str]) -> None:
        self._set_json_list(user_id, "favorite_playlists", playlist_ids)

    def set_auto_sort_playlists(self, user_id: str, playlist_ids: list[str]) -> None:
        self._set_json_list(user_id, "auto_sort_playlists", playlist_ids)
