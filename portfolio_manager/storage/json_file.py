"""
Local JSON document storage.

The whole database is one document: ``{"portfolios": [...],
"retirementAccounts": [...], "bankAccounts": [...]}``.
"""

import json
import logging
import os
import shutil
import tempfile
import threading
from typing import Any, Dict, List, Optional

from portfolio_manager.exceptions import StorageError
from portfolio_manager.models import WriteResult
from portfolio_manager.storage.base import COLLECTIONS, StorageBackend

logger = logging.getLogger(__name__)


def _default_document() -> Dict[str, list]:
    return {name: [] for name in COLLECTIONS}


class JsonFileStorage(StorageBackend):
    """Whole-document read-modify-write guarded by a process-wide lock."""

    name = 'json'

    def __init__(self, path: str, seed_path: Optional[str] = None):
        self.path = path
        self.seed_path = seed_path
        self._lock = threading.Lock()

    def initialize(self) -> None:
        """Create the document if missing, copying the seed document when configured."""
        with self._lock:
            if os.path.exists(self.path):
                return
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            if self.seed_path and os.path.exists(self.seed_path):
                shutil.copyfile(self.seed_path, self.path)
                logger.info(f"Copied seed database {self.seed_path} to {self.path}")
            else:
                self._dump(_default_document())
                logger.info(f"Created new database at {self.path}")

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return _default_document()
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Cannot read {self.path}: {e}") from e
        if not isinstance(document, dict):
            raise StorageError(f"{self.path} does not contain a JSON object")
        return document

    def _dump(self, document: Dict[str, Any]) -> None:
        directory = os.path.dirname(self.path) or '.'
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.db-', suffix='.json')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def read(self, collection: str) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._load().get(collection, []))

    def write(self, collection: str, records: List[Dict[str, Any]]) -> WriteResult:
        try:
            with self._lock:
                document = self._load()
                document[collection] = records
                self._dump(document)
            logger.debug(f"Wrote {len(records)} records to {collection}")
            return WriteResult(True)
        except (OSError, TypeError, ValueError, StorageError) as e:
            logger.error(f"Error writing {collection} to {self.path}: {e}")
            return WriteResult(False, str(e))
