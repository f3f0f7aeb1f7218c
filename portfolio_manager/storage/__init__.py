"""
Storage adapters behind the persistence port.

``create_storage`` is the only place that knows which adapter is in use.
"""

import logging
import os

from portfolio_manager.storage.base import (
    BANK_ACCOUNTS,
    COLLECTIONS,
    PORTFOLIOS,
    RETIREMENT_ACCOUNTS,
    StorageBackend,
)
from portfolio_manager.storage.http_storage import HttpStorage
from portfolio_manager.storage.json_file import JsonFileStorage
from portfolio_manager.storage.sqlite_storage import SqliteStorage

logger = logging.getLogger(__name__)


def create_storage(config) -> StorageBackend:
    """Build the adapter named by ``STORAGE_BACKEND`` from a Flask config mapping."""
    backend = config.get('STORAGE_BACKEND', 'json')
    data_dir = config.get('APP_DATA_DIR', 'instance')

    if backend == 'json':
        storage = JsonFileStorage(
            config.get('DATA_FILE') or os.path.join(data_dir, 'db.json'),
            seed_path=config.get('SEED_DATA_FILE'),
        )
    elif backend == 'sqlite':
        storage = SqliteStorage(
            config.get('DATABASE_PATH') or os.path.join(data_dir, 'portfolio.db'),
            backup_dir=config.get('DB_BACKUP_DIR'),
            max_backups=config.get('MAX_BACKUP_FILES', 10),
        )
    elif backend == 'http':
        base_url = config.get('REMOTE_STORAGE_URL')
        if not base_url:
            raise ValueError("REMOTE_STORAGE_URL must be set when STORAGE_BACKEND is 'http'")
        storage = HttpStorage(base_url, timeout=config.get('STORAGE_TIMEOUT', 10.0))
    else:
        raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")

    logger.info(f"Using {storage.name} storage backend")
    return storage


__all__ = [
    'BANK_ACCOUNTS',
    'COLLECTIONS',
    'PORTFOLIOS',
    'RETIREMENT_ACCOUNTS',
    'StorageBackend',
    'HttpStorage',
    'JsonFileStorage',
    'SqliteStorage',
    'create_storage',
]
