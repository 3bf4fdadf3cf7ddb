from __future__ import annotations

import logging
from typing import Optional

from linecut.common.logging import log_event
from linecut.persistence.document_store import DocumentStore, StoreError

from .errors import OrderFetchError, StoreFetchError
from .models import OrderRating, OrderRecord, StoreRecord
from .paths import order_path, order_rating_path, store_path

logger = logging.getLogger(__name__)


class RecordFetcher:
    """
    Single-shot point reads for the order pipeline.

    Every call is independent: nothing here waits on another fetch.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def fetch_order(self, order_id: str) -> Optional[OrderRecord]:
        """
        Returns the order, or None when no record exists.

        Raises OrderFetchError on store failure or an undecodable payload.
        """
        try:
            snap = await self._store.get(order_path(order_id))
        except (StoreError, ValueError) as e:
            raise OrderFetchError(order_id, e) from e
        if not snap.exists:
            return None
        try:
            return OrderRecord.from_mapping(order_id, snap.value)
        except (TypeError, ValueError) as e:
            raise OrderFetchError(order_id, e) from e

    async def _load_store(self, store_id: str) -> Optional[StoreRecord]:
        try:
            snap = await self._store.get(store_path(store_id))
        except (StoreError, ValueError) as e:
            raise StoreFetchError(store_id, e) from e
        if not snap.exists:
            return None
        try:
            return StoreRecord.from_mapping(store_id, snap.value)
        except (TypeError, ValueError) as e:
            raise StoreFetchError(store_id, e) from e

    async def fetch_store(self, store_id: str) -> StoreRecord:
        """
        Returns the store, or the placeholder store on any miss.

        Empty id (no read is issued), not found, undecodable payload and
        store failure all resolve to `StoreRecord.placeholder(...)`.
        """
        if not store_id:
            log_event(logger, "orders.store_fallback", severity="DEBUG", store_id=None, reason="empty_store_id")
            return StoreRecord.placeholder()
        try:
            found = await self._load_store(store_id)
        except StoreFetchError as e:
            log_event(
                logger,
                "orders.store_fallback",
                severity="WARNING",
                store_id=store_id,
                reason="store_fetch_error",
                error=str(e.cause),
            )
            return StoreRecord.placeholder(store_id)
        if found is None:
            log_event(logger, "orders.store_fallback", severity="INFO", store_id=store_id, reason="store_not_found")
            return StoreRecord.placeholder(store_id)
        return found

    async def fetch_rating(self, store_id: str, order_id: str) -> Optional[OrderRating]:
        """The order's rating, or None when absent, unreadable or undecodable."""
        if not store_id or not order_id:
            return None
        try:
            snap = await self._store.get(order_rating_path(store_id, order_id))
        except (StoreError, ValueError) as e:
            log_event(logger, "orders.rating_fetch_failed", severity="WARNING", order_id=order_id, error=str(e))
            return None
        if not snap.exists:
            return None
        try:
            return OrderRating.from_mapping(snap.value)
        except (TypeError, ValueError) as e:
            log_event(logger, "orders.rating_decode_failed", severity="WARNING", order_id=order_id, error=str(e))
            return None
