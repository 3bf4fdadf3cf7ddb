from __future__ import annotations

import logging
from typing import AsyncIterator

from linecut.common.logging import log_event
from linecut.persistence.document_store import DocumentStore, StoreError

from .errors import IndexFetchError
from .paths import user_order_index_path

logger = logging.getLogger(__name__)


async def observe_order_ids(store: DocumentStore, user_id: str) -> AsyncIterator[tuple[str, ...]]:
    """
    Yield the user's current order ids every time the index changes.

    An absent index and an empty index both yield `()`. A failed
    subscription ends the sequence with `IndexFetchError`; retrying is the
    caller's decision. A user id that cannot name an index node fails the
    same way.
    """
    try:
        path = user_order_index_path(user_id)
    except ValueError as e:
        log_event(logger, "orders.index_failed", severity="ERROR", user_id=user_id, error=str(e))
        raise IndexFetchError(user_id, e) from e

    subscription = store.subscribe(path)
    try:
        async for snapshot in subscription:
            order_ids = tuple(child.key for child in snapshot.children() if child.key)
            log_event(
                logger,
                "orders.index_snapshot",
                severity="DEBUG",
                user_id=user_id,
                exists=snapshot.exists,
                order_count=len(order_ids),
            )
            yield order_ids
    except (StoreError, ValueError) as e:
        log_event(logger, "orders.index_failed", severity="ERROR", user_id=user_id, error=str(e))
        raise IndexFetchError(user_id, e) from e
    finally:
        aclose = getattr(subscription, "aclose", None)
        if aclose is not None:
            await aclose()
