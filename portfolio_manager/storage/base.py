"""
Persistence port.

Business logic depends only on this interface; the concrete adapter is
chosen once when the application starts.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from portfolio_manager.exceptions import StorageError
from portfolio_manager.models import WriteResult

logger = logging.getLogger(__name__)

PORTFOLIOS = 'portfolios'
RETIREMENT_ACCOUNTS = 'retirementAccounts'
BANK_ACCOUNTS = 'bankAccounts'

COLLECTIONS = (PORTFOLIOS, RETIREMENT_ACCOUNTS, BANK_ACCOUNTS)


class StorageBackend(ABC):
    """
    Collection-oriented document store.

    ``read`` raises StorageError when the backing store itself is broken.
    ``write`` never raises: failures come back as ``WriteResult(success=False)``.
    """

    name = 'abstract'

    @abstractmethod
    def read(self, collection: str) -> List[Dict[str, Any]]:
        """Return every record of ``collection`` (empty list if it does not exist yet)."""

    @abstractmethod
    def write(self, collection: str, records: List[Dict[str, Any]]) -> WriteResult:
        """Replace ``collection`` with ``records``."""

    def initialize(self) -> None:
        """Prepare the backing store. Adapters that need no setup keep this no-op."""

    def ping(self) -> bool:
        """Cheap reachability check used by the health endpoint."""
        try:
            self.read(PORTFOLIOS)
            return True
        except StorageError as e:
            logger.warning(f"Storage backend {self.name} unreachable: {e}")
            return False
