from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Mapping, Optional

from linecut.auth.auth import AuthProvider
from linecut.common.config import DEFAULT_DISPLAY_TZ
from linecut.common.logging import log_event
from linecut.common.timeutils import format_business_date, utc_iso_seconds
from linecut.persistence.document_store import DocumentStore

from . import ownership
from .errors import OrderFetchError, RatingValidationError
from .fetcher import RecordFetcher
from .models import (
    AggregatedOrder,
    OrderDetail,
    OrderDetailItem,
    OrderRating,
    OrderRecord,
    OrderStatus,
)
from .paths import order_rating_path
from .pipeline import OrderAggregationPipeline

logger = logging.getLogger(__name__)

_STATUS_LABELS: dict[OrderStatus, str] = {
    OrderStatus.PLACED: "Em preparo",
    OrderStatus.PREPARING: "Em preparo",
    OrderStatus.READY: "Pronto para retirada",
    OrderStatus.PICKED_UP: "Pedido concluído",
    OrderStatus.CANCELLED: "Pedido cancelado",
}

_PAYMENT_METHOD_LABELS: dict[str, str] = {
    "PIX": "PIX",
    "CREDITO": "Cartão de Crédito",
    "DEBITO": "Cartão de Débito",
}

PLACEHOLDER_ITEM_NAME = "Itens do pedido"


def _number(v: Any) -> Optional[float]:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    return float(v)


def parse_order_items(items: Mapping[str, Any], *, total: float) -> tuple[OrderDetailItem, ...]:
    """
    Convert the `items` map of an order into display lines.

    Price per line: `preco_total`, else `preco_unitario * quantity`, else 0.0.
    An order without usable items gets a single placeholder line for the total.
    """
    out: list[OrderDetailItem] = []
    for item_id, raw in (items or {}).items():
        if not isinstance(raw, Mapping):
            log_event(logger, "orders.item_skipped", severity="DEBUG", item_id=str(item_id))
            continue
        name = str(raw.get("nome_produto") or raw.get("nome") or "Item")
        qty_raw = raw.get("quantidade")
        quantity = int(qty_raw) if isinstance(qty_raw, (int, float)) and not isinstance(qty_raw, bool) else 1
        line_total = _number(raw.get("preco_total"))
        unit = _number(raw.get("preco_unitario"))
        if line_total is not None:
            price = line_total
        elif unit is not None:
            price = unit * quantity
        else:
            price = 0.0
        out.append(OrderDetailItem(name=name, quantity=quantity, price=price))

    if not out:
        out.append(OrderDetailItem(name=PLACEHOLDER_ITEM_NAME, quantity=1, price=total))
    return tuple(out)


def _strip_data_uri(raw: str) -> Optional[str]:
    if not raw:
        return None
    if "base64," in raw:
        return raw.split("base64,", 1)[1] or None
    return raw


def payment_method_label(raw: str) -> str:
    return _PAYMENT_METHOD_LABELS.get(raw.strip().upper(), raw)


def status_label(status: OrderStatus) -> str:
    return _STATUS_LABELS[status]


class OrderRepository:
    """
    Customer-facing order operations for the signed-in user.

    - observe_user_orders(): live aggregated order list
    - get_order_by_id(): one order with items, payment info and store
    - save_order_rating() / get_order_rating(): the order's rating
    """

    def __init__(
        self,
        store: DocumentStore,
        auth: AuthProvider,
        *,
        display_tz: str = DEFAULT_DISPLAY_TZ,
    ) -> None:
        self._store = store
        self._auth = auth
        self._display_tz = display_tz
        self._fetcher = RecordFetcher(store)
        self._pipeline = OrderAggregationPipeline(store, fetcher=self._fetcher, display_tz=display_tz)

    def observe_user_orders(self) -> AsyncIterator[list[AggregatedOrder]]:
        return self._pipeline.observe(self._auth.current_user_id())

    async def get_order_by_id(self, order_id: str) -> Optional[OrderDetail]:
        user_id = self._auth.current_user_id()
        if not user_id:
            log_event(logger, "orders.unauthenticated", severity="WARNING", order_id=order_id)
            return None

        try:
            order = await self._fetcher.fetch_order(order_id)
        except OrderFetchError as e:
            log_event(logger, "orders.detail_fetch_failed", severity="ERROR", order_id=order_id, error=str(e.cause))
            return None
        if order is None:
            log_event(logger, "orders.detail_not_found", severity="WARNING", order_id=order_id)
            return None
        if not ownership.accept(order, user_id):
            return None

        store, rating = await asyncio.gather(
            self._fetcher.fetch_store(order.store_id),
            self._fetcher.fetch_rating(order.store_id, order.order_id),
        )
        return self._to_detail(order, store_name=store.name, store_category=store.category, rating=rating)

    def _to_detail(
        self,
        order: OrderRecord,
        *,
        store_name: str,
        store_category: str,
        rating: Optional[OrderRating],
    ) -> OrderDetail:
        return OrderDetail(
            order_number=order.order_number,
            store_name=store_name,
            store_category=store_category,
            date=format_business_date(order.created_at, tz=self._display_tz),
            status=status_label(order.status),
            payment_status="aprovado" if order.payment_status == "pago" else "pendente",
            payment_status_raw=order.payment_status,
            order_status_raw=order.status_raw,
            items=parse_order_items(order.items, total=order.total),
            total=order.total,
            payment_method=payment_method_label(order.payment_method),
            created_at=order.created_at,
            qr_code_base64=_strip_data_uri(order.qr_code),
            pix_copy_paste=order.pix_copy_paste or None,
            store_id=order.store_id,
            rating=rating.average if rating is not None else order.rating,
        )

    async def save_order_rating(
        self,
        store_id: str,
        order_id: str,
        *,
        quality: int,
        speed: int,
        service: int,
    ) -> OrderRating:
        """
        Write the rating of an order.

        Store path:
          pedidos_por_lanchonete/{store_id}/{order_id}/avaliacao
        """
        if not (store_id or "").strip() or not (order_id or "").strip():
            raise RatingValidationError("store_id and order_id are required")
        for name, score in (("quality", quality), ("speed", speed), ("service", service)):
            if isinstance(score, bool) or not isinstance(score, int) or not 1 <= score <= 5:
                raise RatingValidationError(f"{name} must be an integer between 1 and 5")

        try:
            path = order_rating_path(store_id, order_id)
        except ValueError as e:
            raise RatingValidationError(str(e)) from e

        rating = OrderRating(service=service, quality=quality, speed=speed, rated_at=utc_iso_seconds())
        await self._store.set(path, rating.to_mapping())
        log_event(logger, "orders.rating_saved", severity="INFO", store_id=store_id, order_id=order_id, average=rating.average)
        return rating

    async def get_order_rating(self, store_id: str, order_id: str) -> Optional[OrderRating]:
        return await self._fetcher.fetch_rating(store_id, order_id)

