"""
Base repository over one storage collection.

The repository owns the authoritative in-memory list. Every mutation writes
the new collection through the persistence port first and only swaps it into
memory once the write succeeded, then pushes the new list to listeners.
"""

import logging
import threading
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Optional

from portfolio_manager.exceptions import NotFoundError, StorageError, ValidationError
from portfolio_manager.models import WriteResult, generate_id
from portfolio_manager.models.base import utcnow
from portfolio_manager.storage import StorageBackend

logger = logging.getLogger(__name__)

Listener = Callable[[str, List[Any]], None]

PROTECTED_FIELDS = ('id', 'created_at', 'holdings')


class CollectionRepository:
    """Data access layer for one collection of containers."""

    collection: str = ''
    model: type = None
    resource_name = 'Record'

    def __init__(self, storage: StorageBackend):
        self._storage = storage
        self._items: List[Any] = []
        # Whole-collection writes: mutations inside one collection are serialized
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []

    # --- Observation ---

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener(collection, items)``; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, items: List[Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.collection, list(items))
            except Exception:
                logger.exception(f"Listener {listener!r} failed for {self.collection}")

    # --- Reads ---

    def load(self) -> int:
        """Read the collection from storage. Failures leave the repository empty."""
        try:
            records = self._storage.read(self.collection)
        except StorageError as e:
            logger.error(f"Error loading {self.collection}: {e}")
            records = []

        items = []
        for record in records:
            try:
                items.append(self.model.from_record(record))
            except (TypeError, ValueError, KeyError) as e:
                logger.warning(f"Skipping malformed {self.resource_name.lower()} record in {self.collection}: {e}")

        with self._lock:
            self._items = items
        logger.info(f"Loaded {len(items)} {self.collection}")
        self._notify(items)
        return len(items)

    def get_all(self) -> List[Any]:
        with self._lock:
            return list(self._items)

    def get_by_id(self, item_id: str) -> Optional[Any]:
        with self._lock:
            return next((item for item in self._items if item.id == item_id), None)

    def require(self, item_id: str) -> Any:
        item = self.get_by_id(item_id)
        if item is None:
            raise NotFoundError(self.resource_name, item_id)
        return item

    # --- Writes ---

    def _commit(self, transform: Callable[[List[Any]], List[Any]]) -> WriteResult:
        """
        Apply ``transform`` to the current list and persist the outcome.

        Memory and listeners only see the new list when the write succeeded.
        """
        with self._lock:
            new_items = transform(list(self._items))
            result = self._storage.write(self.collection, [item.to_record() for item in new_items])
            if result.success:
                self._items = new_items
        if result.success:
            self._notify(new_items)
        else:
            logger.error(f"Error saving {self.collection}: {result.error}")
        return result

    def _save(self, transform: Callable[[List[Any]], List[Any]]) -> None:
        result = self._commit(transform)
        if not result.success:
            raise StorageError(result.error or f"Failed to save {self.collection}")

    def _replace_item(self, item_id: str, build: Callable[[Any], Any]) -> Any:
        """Swap one item for ``build(item)``, stamping ``updated_at``."""
        updated = {}

        def transform(items):
            for index, item in enumerate(items):
                if item.id == item_id:
                    new_item = replace(build(item), updated_at=utcnow())
                    items[index] = new_item
                    updated['item'] = new_item
                    return items
            raise NotFoundError(self.resource_name, item_id)

        self._save(transform)
        return updated['item']

    def create(self, item: Any) -> Any:
        logger.info(f"Creating {self.resource_name.lower()} {item.name!r}")
        self._save(lambda items: items + [item])
        return item

    def update(self, item_id: str, **changes: Any) -> Any:
        for name in PROTECTED_FIELDS:
            if name in changes:
                raise ValidationError(f"{name} cannot be changed with update", field=name)

        def build(item):
            try:
                return replace(item, **changes)
            except TypeError as e:
                raise ValidationError(str(e)) from e

        return self._replace_item(item_id, build)

    def delete(self, item_id: str) -> None:
        def transform(items):
            remaining = [item for item in items if item.id != item_id]
            if len(remaining) == len(items):
                raise NotFoundError(self.resource_name, item_id)
            return remaining

        self._save(transform)
        logger.info(f"Deleted {self.resource_name.lower()} {item_id}")


class HoldingsRepository(CollectionRepository):
    """Repository for containers that own an ordered list of holdings."""

    holding_model: type = None

    def add_holding(self, container_id: str, holding: Any) -> Any:
        return self.add_holdings(container_id, [holding])[0]

    def add_holdings(self, container_id: str, holdings: Iterable[Any]) -> List[Any]:
        """Append holdings (e.g. from a CSV import), giving each a fresh id."""
        new_holdings = [replace(h, id=generate_id()) for h in holdings]
        if not new_holdings:
            self.require(container_id)
            return []
        self._replace_item(
            container_id,
            lambda container: replace(container, holdings=container.holdings + new_holdings)
        )
        logger.info(f"Added {len(new_holdings)} holdings to {self.resource_name.lower()} {container_id}")
        return new_holdings

    def update_holding(self, container_id: str, holding_id: str, **changes: Any) -> Any:
        if 'id' in changes:
            raise ValidationError("id cannot be changed with update", field='id')
        updated = {}

        def build(container):
            holdings = []
            for holding in container.holdings:
                if holding.id == holding_id:
                    try:
                        holding = replace(holding, **changes)
                    except TypeError as e:
                        raise ValidationError(str(e)) from e
                    updated['holding'] = holding
                holdings.append(holding)
            if 'holding' not in updated:
                raise NotFoundError('Holding', holding_id)
            return replace(container, holdings=holdings)

        self._replace_item(container_id, build)
        return updated['holding']

    def delete_holding(self, container_id: str, holding_id: str) -> None:
        def build(container):
            holdings = [h for h in container.holdings if h.id != holding_id]
            if len(holdings) == len(container.holdings):
                raise NotFoundError('Holding', holding_id)
            return replace(container, holdings=holdings)

        self._replace_item(container_id, build)

    def update_holding_prices(self, container_id: str, price_map: Dict[str, float]) -> WriteResult:
        """
        Apply a symbol -> price mapping to one container and persist it.

        Prices are applied to the container as it is at write time, so edits
        made while quotes were being fetched are kept. Never raises for
        storage failures; the outcome is returned.
        """
        changed = {}

        def transform(items):
            for index, container in enumerate(items):
                if container.id == container_id:
                    holdings, count = container.apply_prices(price_map)
                    changed['count'] = count
                    items[index] = replace(container, holdings=holdings, updated_at=utcnow())
                    return items
            raise NotFoundError(self.resource_name, container_id)

        try:
            result = self._commit(transform)
        except NotFoundError as e:
            logger.warning(f"Price update skipped: {e}")
            return WriteResult(False, str(e))

        if result.success:
            logger.info(f"Updated {changed.get('count', 0)} holding prices in {self.resource_name.lower()} {container_id}")
        return result
