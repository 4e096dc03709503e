"""SQLite-based tile processing state tracker.

Tracks every tile of a run through pending, processing, completed and
failed, with the number of attempts and the last error, for progress
reporting and post-mortem inspection.
"""

import sqlite3
import logging
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional, Dict, List
import threading

logger = logging.getLogger(__name__)

STATUSES = ('pending', 'processing', 'completed', 'failed')


class TileProcessingTracker:
    """Tracks tile processing state for one pipeline run.

    **Database Schema:**

    SQLite table `tile_processing`:

    - tile_id: Window identifier (e.g., r0512_c1024)
    - run_name: Pipeline run the tile belongs to
    - row_start, row_stop, col_start, col_stop: Window bounds
    - status: pending, processing, completed, failed
    - attempts: Number of times processing was started
    - error_message: Last error, if any
    - started_at, finished_at: ISO timestamps

    **Thread Safety:**

    All methods are thread-safe via internal locking. Tile workers update
    their own rows while the orchestrator reads statistics.

    **Typical Usage:**

    Called internally by the orchestrator and tile workers::

        tracker = TileProcessingTracker(db_path, run_name="grasshift")
        tracker.register_tile(tile)
        tracker.mark_processing(tile.tile_id)
        tracker.mark_completed(tile.tile_id)
        stats = tracker.get_statistics()
        tracker.close()
    """

    def __init__(self, db_path, run_name: str = "grasshift"):
        """Initialize tracker.

        Parameters
        ----------
        db_path : Path or str
            Path to SQLite database file. Created if it doesn't exist.
            ``":memory:"`` keeps the tracker in memory.
        run_name : str
            Run the tracked tiles belong to.
        """
        self.db_path = str(db_path)
        self.run_name = run_name
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = None
        self._lock = threading.Lock()

        self._init_database()
        logger.info("Tile tracker initialized: %s", self.db_path)

    def _get_connection(self) -> sqlite3.Connection:
        """Get the shared database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_database(self):
        """Create database schema if it doesn't exist."""
        conn = self._get_connection()

        with self._lock:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tile_processing (
                    tile_id TEXT NOT NULL,
                    run_name TEXT NOT NULL,

                    row_start INTEGER NOT NULL,
                    row_stop INTEGER NOT NULL,
                    col_start INTEGER NOT NULL,
                    col_stop INTEGER NOT NULL,

                    status TEXT DEFAULT 'pending',
                    attempts INTEGER DEFAULT 0,
                    error_message TEXT,

                    started_at TEXT,
                    finished_at TEXT,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,

                    PRIMARY KEY (run_name, tile_id)
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_status ON tile_processing(status)")
            conn.commit()

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    def register_tile(self, tile) -> bool:
        """Register a tile as pending.

        Returns
        -------
        bool
            True if newly registered, False if the tile was already known
            (its state is reset to pending).
        """
        conn = self._get_connection()

        with self._lock:
            cursor = conn.execute(
                "SELECT tile_id FROM tile_processing WHERE run_name = ? AND tile_id = ?",
                (self.run_name, tile.tile_id))
            if cursor.fetchone():
                conn.execute("""
                    UPDATE tile_processing
                    SET status = 'pending', attempts = 0, error_message = NULL,
                        started_at = NULL, finished_at = NULL
                    WHERE run_name = ? AND tile_id = ?
                """, (self.run_name, tile.tile_id))
                conn.commit()
                return False

            conn.execute("""
                INSERT INTO tile_processing
                (tile_id, run_name, row_start, row_stop, col_start, col_stop, status)
                VALUES (?, ?, ?, ?, ?, ?, 'pending')
            """, (tile.tile_id, self.run_name, tile.rows.start, tile.rows.stop,
                  tile.cols.start, tile.cols.stop))
            conn.commit()

        logger.debug("Registered tile: %s", tile.tile_id)
        return True

    def mark_processing(self, tile_id: str):
        """Record the start of an attempt."""
        conn = self._get_connection()
        with self._lock:
            conn.execute("""
                UPDATE tile_processing
                SET status = 'processing', attempts = attempts + 1, started_at = ?
                WHERE run_name = ? AND tile_id = ?
            """, (self._now(), self.run_name, tile_id))
            conn.commit()

    def mark_completed(self, tile_id: str):
        """Record a successful attempt."""
        self._finish(tile_id, 'completed', None)

    def mark_failed(self, tile_id: str, error: str):
        """Record a failed attempt. The tile stays failed unless retried."""
        self._finish(tile_id, 'failed', error)

    def _finish(self, tile_id: str, status: str, error: Optional[str]):
        conn = self._get_connection()
        with self._lock:
            conn.execute("""
                UPDATE tile_processing
                SET status = ?, error_message = ?, finished_at = ?
                WHERE run_name = ? AND tile_id = ?
            """, (status, error, self._now(), self.run_name, tile_id))
            conn.commit()
        logger.debug("Tile %s marked %s", tile_id, status)

    def get_tile_status(self, tile_id: str) -> Optional[Dict]:
        """Full record of a tile, or None if unknown."""
        conn = self._get_connection()
        with self._lock:
            cursor = conn.execute(
                "SELECT * FROM tile_processing WHERE run_name = ? AND tile_id = ?",
                (self.run_name, tile_id))
            row = cursor.fetchone()
            return dict(row) if row else None

    def get_tiles(self, status: Optional[str] = None) -> List[Dict]:
        """Tiles of this run, optionally filtered by status, in tile order."""
        if status is not None and status not in STATUSES:
            raise ValueError(f"Invalid status: {status}. Must be one of {STATUSES}")

        query = "SELECT * FROM tile_processing WHERE run_name = ?"
        params = [self.run_name]
        if status is not None:
            query += " AND status = ?"
            params.append(status)
        query += " ORDER BY row_start, col_start"

        conn = self._get_connection()
        with self._lock:
            cursor = conn.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]

    def get_statistics(self) -> Dict:
        """Summary counts: total, pending, processing, completed, failed, attempts."""
        conn = self._get_connection()
        with self._lock:
            cursor = conn.execute("""
                SELECT
                    COUNT(*) as total,
                    SUM(CASE WHEN status = 'pending' THEN 1 ELSE 0 END) as pending,
                    SUM(CASE WHEN status = 'processing' THEN 1 ELSE 0 END) as processing,
                    SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END) as completed,
                    SUM(CASE WHEN status = 'failed' THEN 1 ELSE 0 END) as failed,
                    SUM(attempts) as attempts
                FROM tile_processing
                WHERE run_name = ?
            """, (self.run_name,))
            row = cursor.fetchone()
        # SUM over zero rows is NULL
        return {key: (value or 0) for key, value in dict(row).items()}

    def close(self):
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
        logger.debug("Tile tracker closed")
