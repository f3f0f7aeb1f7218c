"""
SQLite storage.

Each collection is one row holding its JSON payload, so the adapter keeps
the same whole-collection semantics as the JSON document store.
"""

import json
import logging
import os
import shutil
import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional

from portfolio_manager.exceptions import StorageError
from portfolio_manager.models import WriteResult
from portfolio_manager.storage.base import StorageBackend

logger = logging.getLogger(__name__)

SCHEMA = '''
    CREATE TABLE IF NOT EXISTS collections (
        name TEXT PRIMARY KEY,
        payload TEXT NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
'''


class SqliteStorage(StorageBackend):
    name = 'sqlite'

    def __init__(self, path: str, backup_dir: Optional[str] = None, max_backups: int = 10):
        self.path = path
        self.backup_dir = backup_dir or os.path.join(os.path.dirname(path) or '.', 'backups')
        self.max_backups = max_backups

    def _connect(self) -> sqlite3.Connection:
        """
        Open a new connection.

        A fresh connection per call keeps the adapter usable from the worker
        threads of a price refresh.
        """
        db_dir = os.path.dirname(self.path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)
            logger.info(f"Created database directory: {db_dir}")
        try:
            db = sqlite3.connect(self.path, timeout=30)
        except sqlite3.OperationalError as e:
            raise StorageError(f"Failed to connect to database {self.path}: {e}") from e
        db.row_factory = sqlite3.Row
        return db

    def initialize(self) -> None:
        db = self._connect()
        try:
            db.execute(SCHEMA)
            db.commit()
            logger.info(f"SQLite storage ready at {self.path}")
        finally:
            db.close()

    def read(self, collection: str) -> List[Dict[str, Any]]:
        db = self._connect()
        try:
            db.execute(SCHEMA)
            row = db.execute(
                'SELECT payload FROM collections WHERE name = ?', (collection,)
            ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Database query failed for {collection}: {e}")
            raise StorageError(str(e)) from e
        finally:
            db.close()
        if row is None:
            return []
        try:
            return json.loads(row['payload'])
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt payload for collection {collection}: {e}") from e

    def write(self, collection: str, records: List[Dict[str, Any]]) -> WriteResult:
        try:
            payload = json.dumps(records)
            db = self._connect()
            try:
                db.execute(SCHEMA)
                db.execute(
                    '''
                    INSERT INTO collections (name, payload, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(name) DO UPDATE SET payload = excluded.payload,
                                                    updated_at = excluded.updated_at
                    ''',
                    (collection, payload, datetime.now().isoformat())
                )
                db.commit()
            finally:
                db.close()
            logger.debug(f"Wrote {len(records)} records to {collection}")
            return WriteResult(True)
        except (sqlite3.Error, StorageError, TypeError, ValueError) as e:
            logger.error(f"Database write failed for {collection}: {e}")
            return WriteResult(False, str(e))

    def backup(self) -> Optional[str]:
        """
        Create a timestamped copy of the database file.

        Returns the backup path, or None when the backup failed.
        """
        try:
            os.makedirs(self.backup_dir, exist_ok=True)
            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S_%f')
            backup_filename = os.path.join(self.backup_dir, f"backup_{timestamp}.db")
            shutil.copy(self.path, backup_filename)
            logger.info(f"Database backed up successfully to {backup_filename}")
            self._cleanup_old_backups()
            return backup_filename
        except OSError as e:
            logger.error(f"Database backup failed: {e}")
            return None

    def _cleanup_old_backups(self) -> None:
        """Keep only the most recent ``max_backups`` backup files."""
        backup_files = [
            os.path.join(self.backup_dir, f) for f in os.listdir(self.backup_dir)
            if f.endswith('.db') and os.path.isfile(os.path.join(self.backup_dir, f))
        ]
        backup_files.sort(key=os.path.getmtime, reverse=True)

        for old_backup in backup_files[self.max_backups:]:
            os.remove(old_backup)
            logger.info(f"Removed old backup: {old_backup}")
