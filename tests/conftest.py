"""Shared fixtures: an in-memory persistence port and a testing app."""

import copy
import threading

import pytest

from portfolio_manager.models import WriteResult
from portfolio_manager.storage import StorageBackend


class MemoryStorage(StorageBackend):
    """
    Persistence port kept in a dict.

    ``fail_collections`` makes every write to those collections fail;
    ``write_gate`` (a threading.Event) blocks writes until it is set.
    """

    name = 'memory'

    def __init__(self, data=None, fail_collections=()):
        self.data = copy.deepcopy(data or {})
        self.fail_collections = set(fail_collections)
        self.write_gate = None
        self.writes = []
        self._lock = threading.Lock()

    def read(self, collection):
        with self._lock:
            return copy.deepcopy(self.data.get(collection, []))

    def write(self, collection, records):
        if self.write_gate is not None:
            self.write_gate.wait(timeout=5)
        with self._lock:
            self.writes.append(collection)
            if collection in self.fail_collections:
                return WriteResult(False, f"simulated failure writing {collection}")
            self.data[collection] = copy.deepcopy(records)
        return WriteResult(True)


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def app(tmp_path):
    from portfolio_manager.main import create_app

    app = create_app('testing', {'DATA_FILE': str(tmp_path / 'db.json')})
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return app.extensions['portfolio_manager']
