"""
Remote storage over HTTP.

``GET {base_url}/{collection}`` returns the JSON array and
``PUT {base_url}/{collection}`` replaces it.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from portfolio_manager.exceptions import StorageError
from portfolio_manager.models import WriteResult
from portfolio_manager.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class HttpStorage(StorageBackend):
    name = 'http'

    def __init__(self, base_url: str, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def _url(self, collection: str) -> str:
        return f"{self.base_url}/{collection}"

    def read(self, collection: str) -> List[Dict[str, Any]]:
        try:
            response = self.session.get(self._url(collection), timeout=self.timeout)
            if response.status_code == 404:
                return []
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"Error loading {collection} from {self.base_url}: {e.__class__.__name__}: {e}")
            raise StorageError(f"Cannot load {collection}: {e}") from e
        if not isinstance(data, list):
            raise StorageError(f"Expected a JSON array for {collection}, got {type(data).__name__}")
        return data

    def write(self, collection: str, records: List[Dict[str, Any]]) -> WriteResult:
        try:
            response = self.session.put(self._url(collection), json=records, timeout=self.timeout)
            response.raise_for_status()
            return WriteResult(True)
        except requests.exceptions.RequestException as e:
            logger.error(f"Error saving {collection} to {self.base_url}: {e.__class__.__name__}: {e}")
            return WriteResult(False, str(e))
