#!/usr/bin/env python3
"""
repository.py - User-scoped key/value persistence

All settings are plain strings keyed by name. There are no transactions
across keys: every field is independent and overwriting is idempotent, so
last write wins.

Usage:
    repo = SQLiteSettingsRepository("~/.arena_slides/settings.db")
    repo.set("arena_email", "me@example.com")
    repo.get("arena_email")          # -> "me@example.com"
    repo.get("missing", "")          # -> ""
"""

import sqlite3
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

# Schema version - increment when schema changes
SCHEMA_VERSION = 1


class SettingsRepository(ABC):
    """get/set/delete per key. Implementations must never raise on a missing key."""

    @abstractmethod
    def get(self, key: str, default: str = "") -> str:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        raise NotImplementedError

    def delete_many(self, *keys: str) -> None:
        for key in keys:
            self.delete(key)


class InMemorySettingsRepository(SettingsRepository):
    """Process-local store; used by tests and one-shot scripts."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str, default: str = "") -> str:
        return self._data.get(key, default)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._data)


class SQLiteSettingsRepository(SettingsRepository):
    """
    SQLite-backed settings store.

    - Context manager for connections
    - WAL mode for file databases
    - Migration support via PRAGMA user_version
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize persistence layer.

        Args:
            db_path: Path to SQLite file, or ":memory:". Defaults to
                ~/.arena_slides/settings.db
        """
        if db_path is None:
            db_path = str(Path.home() / ".arena_slides" / "settings.db")

        self._memory = db_path == ":memory:"
        self._shared_conn = None
        if self._memory:
            # A :memory: database lives only as long as its connection
            self._shared_conn = sqlite3.connect(":memory:")
            self.db_path = db_path
        else:
            path = Path(db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            self.db_path = str(path)

        self._init_schema()
        logger.info(f"Settings persistence initialized at {self.db_path}")

    @contextmanager
    def _get_connection(self):
        """Get database connection with proper error handling."""
        conn = self._shared_conn
        owns_connection = conn is None
        try:
            if owns_connection:
                conn = sqlite3.connect(self.db_path)
                conn.execute('PRAGMA journal_mode = WAL')
            yield conn
            conn.commit()
        except Exception as e:
            if conn:
                conn.rollback()
            logger.error(f"Settings database error: {e}")
            raise
        finally:
            if conn and owns_connection:
                conn.close()

    def _init_schema(self):
        """Create tables and run migrations."""
        with self._get_connection() as conn:
            current_version = conn.execute("PRAGMA user_version").fetchone()[0]

            if current_version < SCHEMA_VERSION:
                logger.info(f"Migrating settings database from v{current_version} to v{SCHEMA_VERSION}")

                if current_version < 1:
                    conn.execute('''
                        CREATE TABLE IF NOT EXISTS settings (
                            key TEXT PRIMARY KEY,
                            value TEXT NOT NULL,
                            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                        )
                    ''')

                conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")

    def get(self, key: str, default: str = "") -> str:
        try:
            with self._get_connection() as conn:
                row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error:
            return default
        return row[0] if row else default

    def set(self, key: str, value: str) -> None:
        with self._get_connection() as conn:
            conn.execute(
                '''
                INSERT INTO settings (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
                ''',
                (key, str(value)),
            )

    def delete(self, key: str) -> None:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM settings WHERE key = ?", (key,))

    def close(self):
        if self._shared_conn is not None:
            self._shared_conn.close()
            self._shared_conn = None
