"""
Local SQLite storage for the pool stack.
Holds the weekly programs and manual override of the control surface and
the WiFi credentials of the controller.
"""

import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Dict, Optional, Tuple
from contextlib import contextmanager

from ..models.program import Program

logger = logging.getLogger(__name__)

_OVERRIDE_KEY = "manual_override"


class LocalDatabase:
    """SQLite database manager for local device storage."""

    def __init__(self, db_path: str = "data/pool.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self):
        """Initialize database schema."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            # Weekly programs, one row per slot (0 = highest priority)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS programs (
                    slot INTEGER PRIMARY KEY,
                    name TEXT NOT NULL,
                    enabled INTEGER NOT NULL DEFAULT 1,
                    schedule TEXT NOT NULL,
                    updated_at INTEGER NOT NULL
                )
            """)

            # Key/value settings (manual override lives here)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at INTEGER NOT NULL
                )
            """)

            # Provisioned WiFi network (single row)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS wifi_credentials (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    ssid TEXT NOT NULL,
                    password TEXT NOT NULL,
                    saved_at INTEGER NOT NULL
                )
            """)

    # =========================================================================
    # PROGRAMS
    # =========================================================================

    def load_programs(self) -> Dict[int, Program]:
        """Return every stored program keyed by slot. Unreadable rows are skipped."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM programs ORDER BY slot ASC")
            rows = cursor.fetchall()

        programs = {}
        for row in rows:
            try:
                programs[row['slot']] = Program(
                    name=row['name'],
                    enabled=bool(row['enabled']),
                    schedule=json.loads(row['schedule']),
                )
            except ValueError as e:
                logger.error(f"Skipping corrupt program in slot {row['slot']}: {e}")
        return programs

    def save_program(self, slot: int, program: Program) -> None:
        """Insert or replace the program in a slot."""
        schedule = {
            str(day): entry.model_dump()
            for day, entry in program.schedule.items()
        }
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT OR REPLACE INTO programs (slot, name, enabled, schedule, updated_at)
                VALUES (?, ?, ?, ?, ?)
            """, (slot, program.name, 1 if program.enabled else 0,
                  json.dumps(schedule), int(time.time())))

    def delete_program(self, slot: int) -> bool:
        """Delete the program in a slot. Returns False if the slot was empty."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM programs WHERE slot = ?", (slot,))
            return cursor.rowcount > 0

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def get_setting(self, key: str) -> Optional[str]:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT value FROM settings WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row['value'] if row else None

    def set_setting(self, key: str, value: str) -> None:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT OR REPLACE INTO settings (key, value, updated_at)
                VALUES (?, ?, ?)
            """, (key, value, int(time.time())))

    def delete_setting(self, key: str) -> None:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM settings WHERE key = ?", (key,))

    def load_override_json(self) -> Optional[str]:
        return self.get_setting(_OVERRIDE_KEY)

    def save_override_json(self, value: Optional[str]) -> None:
        if value is None:
            self.delete_setting(_OVERRIDE_KEY)
        else:
            self.set_setting(_OVERRIDE_KEY, value)

    # =========================================================================
    # WIFI CREDENTIALS
    # =========================================================================

    def save_credentials(self, ssid: str, password: str) -> None:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT OR REPLACE INTO wifi_credentials (id, ssid, password, saved_at)
                VALUES (1, ?, ?, ?)
            """, (ssid, password, int(time.time())))

    def load_credentials(self) -> Optional[Tuple[str, str]]:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT ssid, password FROM wifi_credentials WHERE id = 1")
            row = cursor.fetchone()
            return (row['ssid'], row['password']) if row else None

    def clear_credentials(self) -> None:
        """Erase the stored network so the next boot starts unprovisioned."""
        with self._get_connection() as conn:
            conn.execute("DELETE FROM wifi_credentials")
