"""
Order aggregation pipeline.

Per index snapshot (one `FanOutBatch`):
- every order id gets one slot; all slots run concurrently
- a slot reads the order, checks ownership, then joins the store (+ rating)
- every slot resolves exactly once (joined / not found / fetch error / rejected)
- the merged list is sorted and emitted once, after all slots resolve,
  and only if no newer snapshot has arrived meanwhile (generation check)
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from typing import AsyncIterator, Iterable, Optional

from linecut.common.config import DEFAULT_DISPLAY_TZ
from linecut.common.logging import bind_correlation_id, log_event
from linecut.persistence.document_store import DocumentStore

from . import ownership
from .errors import IndexFetchError, OrderFetchError, SlotOutcome, UnauthenticatedError
from .fetcher import RecordFetcher
from .index_resolver import observe_order_ids
from .models import AggregatedOrder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FanOutBatch:
    generation: int
    user_id: str
    order_ids: tuple[str, ...]


@dataclass(frozen=True)
class SlotResult:
    order_id: str
    outcome: SlotOutcome
    order: Optional[AggregatedOrder] = None


@dataclass(frozen=True)
class BatchResult:
    batch: FanOutBatch
    slots: tuple[SlotResult, ...]

    def outcome_counts(self) -> dict[str, int]:
        return dict(Counter(s.outcome.value for s in self.slots))

    def orders(self) -> list[AggregatedOrder]:
        return sort_orders(s.order for s in self.slots if s.order is not None)


def sort_orders(orders: Iterable[AggregatedOrder]) -> list[AggregatedOrder]:
    """
    Most recent business date first. Equal dates keep their input order;
    undated orders go last.
    """
    return sorted(
        orders,
        key=lambda o: (o.created_at is not None, o.created_at.timestamp() if o.created_at else 0.0),
        reverse=True,
    )


@dataclass
class _Subscription:
    user_id: str
    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    generation: int = 0
    in_flight: set[asyncio.Task] = field(default_factory=set)

    def next_batch(self, order_ids: tuple[str, ...]) -> FanOutBatch:
        self.generation += 1
        return FanOutBatch(generation=self.generation, user_id=self.user_id, order_ids=order_ids)

    def supersede(self) -> int:
        self.generation += 1
        return self.generation


@dataclass(frozen=True)
class _Emission:
    generation: int
    orders: list[AggregatedOrder]


_END = object()


class OrderAggregationPipeline:
    def __init__(
        self,
        store: DocumentStore,
        *,
        fetcher: Optional[RecordFetcher] = None,
        display_tz: str = DEFAULT_DISPLAY_TZ,
    ) -> None:
        self._store = store
        self._fetcher = fetcher or RecordFetcher(store)
        self._display_tz = display_tz

    async def resolve_slot(self, order_id: str, user_id: str) -> SlotResult:
        try:
            order = await self._fetcher.fetch_order(order_id)
        except OrderFetchError as e:
            log_event(logger, "orders.slot_fetch_failed", severity="ERROR", order_id=order_id, error=str(e.cause))
            return SlotResult(order_id, SlotOutcome.ORDER_FETCH_ERROR)

        if order is None:
            log_event(logger, "orders.slot_not_found", severity="WARNING", order_id=order_id)
            return SlotResult(order_id, SlotOutcome.ORDER_NOT_FOUND)

        if not ownership.accept(order, user_id):
            return SlotResult(order_id, SlotOutcome.OWNERSHIP_REJECTED)

        store, rating = await asyncio.gather(
            self._fetcher.fetch_store(order.store_id),
            self._fetcher.fetch_rating(order.store_id, order.order_id),
        )
        joined = AggregatedOrder.join(order, store, rating, tz=self._display_tz)
        return SlotResult(order_id, SlotOutcome.JOINED, joined)

    async def _settle_slot(self, order_id: str, user_id: str) -> SlotResult:
        try:
            return await self.resolve_slot(order_id, user_id)
        except Exception:
            # Any unexpected failure still resolves the slot, as an excluded entry.
            logger.exception("orders.slot_crashed order_id=%s", order_id)
            return SlotResult(order_id, SlotOutcome.ORDER_FETCH_ERROR)

    async def run_batch(self, batch: FanOutBatch) -> BatchResult:
        log_event(
            logger,
            "orders.batch_started",
            severity="DEBUG",
            generation=batch.generation,
            order_count=len(batch.order_ids),
        )
        if not batch.order_ids:
            return BatchResult(batch=batch, slots=())
        slots = await asyncio.gather(*(self._settle_slot(oid, batch.user_id) for oid in batch.order_ids))
        return BatchResult(batch=batch, slots=tuple(slots))

    async def aggregate(self, user_id: str, order_ids: Iterable[str]) -> list[AggregatedOrder]:
        """One-shot run over a fixed set of order ids."""
        batch = FanOutBatch(generation=0, user_id=user_id, order_ids=tuple(order_ids))
        return (await self.run_batch(batch)).orders()

    async def _run_and_publish(self, batch: FanOutBatch, state: _Subscription, out: asyncio.Queue) -> None:
        result = await self.run_batch(batch)
        if batch.generation != state.generation:
            log_event(
                logger,
                "orders.batch_superseded",
                severity="INFO",
                generation=batch.generation,
                current_generation=state.generation,
            )
            return
        orders = result.orders()
        log_event(
            logger,
            "orders.batch_emitted",
            severity="INFO",
            generation=batch.generation,
            order_count=len(batch.order_ids),
            emitted_count=len(orders),
            outcomes=result.outcome_counts(),
        )
        out.put_nowait(_Emission(batch.generation, orders))

    async def _pump(self, state: _Subscription, out: asyncio.Queue) -> None:
        with bind_correlation_id(correlation_id=state.correlation_id):
            try:
                async for order_ids in observe_order_ids(self._store, state.user_id):
                    batch = state.next_batch(order_ids)
                    if not order_ids:
                        log_event(logger, "orders.batch_emitted", severity="INFO", generation=batch.generation, order_count=0, emitted_count=0)
                        out.put_nowait(_Emission(batch.generation, []))
                        continue
                    task = asyncio.create_task(self._run_and_publish(batch, state, out))
                    state.in_flight.add(task)
                    task.add_done_callback(state.in_flight.discard)
            except IndexFetchError as e:
                out.put_nowait(_Emission(state.supersede(), []))
                out.put_nowait(e)
                return
            except Exception as e:
                out.put_nowait(e)
                return

            # Finite index stream: let the last batch land before closing.
            if state.in_flight:
                await asyncio.gather(*list(state.in_flight))
            out.put_nowait(_END)

    async def observe(self, user_id: Optional[str]) -> AsyncIterator[list[AggregatedOrder]]:
        """
        Stream the user's aggregated orders, one full list per index change.

        No user: one empty list, then UnauthenticatedError (no subscription).
        Index failure: one empty list, then IndexFetchError.
        Closing the stream closes the index subscription.
        """
        uid = (user_id or "").strip()
        if not uid:
            log_event(logger, "orders.unauthenticated", severity="WARNING")
            yield []
            raise UnauthenticatedError()

        state = _Subscription(user_id=uid)
        out: asyncio.Queue = asyncio.Queue()
        pump = asyncio.create_task(self._pump(state, out))
        try:
            while True:
                item = await out.get()
                if item is _END:
                    return
                if isinstance(item, BaseException):
                    raise item
                if item.generation != state.generation:
                    log_event(
                        logger,
                        "orders.batch_superseded",
                        severity="INFO",
                        correlation_id=state.correlation_id,
                        generation=item.generation,
                        current_generation=state.generation,
                    )
                    continue
                yield item.orders
        finally:
            state.supersede()
            for task in list(state.in_flight):
                task.cancel()
            pump.cancel()
            try:
                await pump
            except asyncio.CancelledError:
                pass
