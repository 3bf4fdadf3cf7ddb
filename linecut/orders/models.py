from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

from linecut.common.config import DEFAULT_DISPLAY_TZ
from linecut.common.timeutils import format_business_date, parse_timestamp_or_none

DEFAULT_STORE_NAME = "Lanchonete"
DEFAULT_STORE_CATEGORY = "Categoria"


class OrderStatus(str, Enum):
    PLACED = "placed"
    PREPARING = "preparing"
    READY = "ready"
    PICKED_UP = "picked_up"
    CANCELLED = "cancelled"

    @classmethod
    def from_raw(cls, raw: Any) -> "OrderStatus":
        """
        Decode `status_pedido`. Unknown or empty values are treated as placed.
        """
        s = str(raw or "").strip().lower().replace("-", "_")
        return _STATUS_ALIASES.get(s, cls.PLACED)


_STATUS_ALIASES: dict[str, OrderStatus] = {
    "pendente": OrderStatus.PLACED,
    "placed": OrderStatus.PLACED,
    "em_preparo": OrderStatus.PREPARING,
    "preparing": OrderStatus.PREPARING,
    "in_progress": OrderStatus.PREPARING,
    "em_andamento": OrderStatus.PREPARING,
    "pronto": OrderStatus.READY,
    "ready": OrderStatus.READY,
    "entregue": OrderStatus.PICKED_UP,
    "picked_up": OrderStatus.PICKED_UP,
    "completed": OrderStatus.PICKED_UP,
    "concluido": OrderStatus.PICKED_UP,
    "cancelado": OrderStatus.CANCELLED,
    "cancelled": OrderStatus.CANCELLED,
    "canceled": OrderStatus.CANCELLED,
}

_RATEABLE_STATUSES = frozenset({OrderStatus.READY, OrderStatus.PICKED_UP})


def _as_str(v: Any) -> str:
    if v is None:
        return ""
    return str(v).strip()


def _as_float(v: Any, default: float = 0.0) -> float:
    if isinstance(v, bool):
        return default
    if isinstance(v, (int, float)):
        return float(v)
    try:
        return float(str(v).strip())
    except Exception:
        return default


def _as_int(v: Any, default: int) -> int:
    if isinstance(v, bool):
        return default
    if isinstance(v, int):
        return v
    if isinstance(v, float) and v.is_integer():
        return int(v)
    try:
        return int(str(v).strip())
    except Exception:
        return default


def _owner(v: Any) -> str:
    # Compared verbatim against the requesting uid; never normalised.
    return v if isinstance(v, str) else ""


def _require_mapping(kind: str, data: Any) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise TypeError(f"{kind} payload must be a mapping, got {type(data).__name__}")
    return data


@dataclass(frozen=True, slots=True)
class OrderRating:
    """
    Customer rating of one order.

    Store path:
      pedidos_por_lanchonete/{store_id}/{order_id}/avaliacao
    """

    service: int
    quality: int
    speed: int
    rated_at: str = ""

    @property
    def average(self) -> float:
        return (self.service + self.quality + self.speed) / 3.0

    @classmethod
    def from_mapping(cls, data: Any) -> "OrderRating":
        d = _require_mapping("rating", data)
        return cls(
            service=_as_int(d.get("atendimento"), 0),
            quality=_as_int(d.get("qualidade"), 0),
            speed=_as_int(d.get("velocidade"), 0),
            rated_at=_as_str(d.get("data_avaliacao")),
        )

    def to_mapping(self) -> dict[str, Any]:
        return {
            "atendimento": int(self.service),
            "qualidade": int(self.quality),
            "velocidade": int(self.speed),
            "data_avaliacao": self.rated_at,
        }


@dataclass(frozen=True, slots=True)
class OrderRecord:
    """
    Authoritative order document.

    Store path:
      pedidos/{order_id}
    """

    order_id: str
    owner_user_id: str = ""
    store_id: str = ""
    status: OrderStatus = OrderStatus.PLACED
    status_raw: str = ""
    total: float = 0.0
    created_at: Optional[datetime] = None
    payment_transaction_code: str = ""
    rating: Optional[float] = None

    payment_status: str = ""
    payment_method: str = ""
    paid_at_raw: str = ""
    qr_code: str = ""
    pix_copy_paste: str = ""
    items: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        oid = _as_str(self.order_id)
        if not oid:
            raise ValueError("order_id is required")
        object.__setattr__(self, "order_id", oid)
        if not isinstance(self.owner_user_id, str):
            object.__setattr__(self, "owner_user_id", "")
        object.__setattr__(self, "store_id", _as_str(self.store_id))

    @property
    def order_number(self) -> str:
        return self.qr_code or self.order_id[-8:]

    @property
    def rateable(self) -> bool:
        return self.status in _RATEABLE_STATUSES

    @classmethod
    def from_mapping(cls, order_id: str, data: Any) -> "OrderRecord":
        d = _require_mapping("order", data)

        rating: Optional[float] = None
        embedded = d.get("avaliacao")
        if isinstance(embedded, Mapping):
            rating = OrderRating.from_mapping(embedded).average

        items = d.get("items")
        status_raw = _as_str(d.get("status_pedido"))
        return cls(
            order_id=order_id,
            owner_user_id=_owner(d.get("id_usuario")),
            store_id=_as_str(d.get("id_lanchonete")),
            status=OrderStatus.from_raw(status_raw),
            status_raw=status_raw,
            total=_as_float(d.get("preco_total")),
            created_at=parse_timestamp_or_none(d.get("datahora_criacao")),
            payment_transaction_code=_as_str(d.get("cod_transacao_pagamento")),
            rating=rating,
            payment_status=_as_str(d.get("status_pagamento")),
            payment_method=_as_str(d.get("metodo_pagamento")),
            paid_at_raw=_as_str(d.get("datahora_pagamento")),
            qr_code=_as_str(d.get("qr_code_pedido")),
            pix_copy_paste=_as_str(d.get("pix_copia_cola")),
            items=dict(items) if isinstance(items, Mapping) else {},
        )


@dataclass(frozen=True, slots=True)
class StoreRecord:
    """
    Store (snack bar) document.

    Store path:
      empresas/{store_id}
    """

    store_id: str
    name: str = DEFAULT_STORE_NAME
    category: str = DEFAULT_STORE_CATEGORY
    image_url: str = ""

    @classmethod
    def from_mapping(cls, store_id: str, data: Any) -> "StoreRecord":
        d = _require_mapping("store", data)
        return cls(
            store_id=_as_str(store_id),
            name=_as_str(d.get("nome_lanchonete")) or DEFAULT_STORE_NAME,
            category=_as_str(d.get("description")) or DEFAULT_STORE_CATEGORY,
            image_url=_as_str(d.get("image_url")),
        )

    @classmethod
    def placeholder(cls, store_id: str = "") -> "StoreRecord":
        return cls(store_id=_as_str(store_id))


@dataclass(frozen=True, slots=True)
class AggregatedOrder:
    """One row of the customer's order list: an order joined with its store."""

    order_id: str
    order_number: str
    date: str
    store_name: str
    store_category: str
    status: OrderStatus
    total: float
    rating: Optional[float]
    rateable: bool
    store_image_url: str
    store_id: str = ""
    created_at: Optional[datetime] = None

    @classmethod
    def join(
        cls,
        order: OrderRecord,
        store: StoreRecord,
        rating: Optional[OrderRating] = None,
        *,
        tz: str = DEFAULT_DISPLAY_TZ,
    ) -> "AggregatedOrder":
        return cls(
            order_id=order.order_id,
            order_number=order.order_number,
            date=format_business_date(order.created_at, tz=tz),
            store_name=store.name,
            store_category=store.category,
            status=order.status,
            total=order.total,
            rating=rating.average if rating is not None else order.rating,
            rateable=order.rateable,
            store_image_url=store.image_url,
            store_id=order.store_id,
            created_at=order.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "order_number": self.order_number,
            "date": self.date,
            "store_name": self.store_name,
            "store_category": self.store_category,
            "status": self.status.value,
            "total": self.total,
            "rating": self.rating,
            "rateable": self.rateable,
            "store_image_url": self.store_image_url,
            "store_id": self.store_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True, slots=True)
class OrderDetailItem:
    name: str
    quantity: int
    price: float


@dataclass(frozen=True, slots=True)
class OrderDetail:
    order_number: str
    store_name: str
    store_category: str
    date: str
    status: str
    payment_status: str
    payment_status_raw: str
    order_status_raw: str
    items: tuple[OrderDetailItem, ...]
    total: float
    payment_method: str
    created_at: Optional[datetime] = None
    qr_code_base64: Optional[str] = None
    pix_copy_paste: Optional[str] = None
    store_id: str = ""
    rating: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_number": self.order_number,
            "store_name": self.store_name,
            "store_category": self.store_category,
            "date": self.date,
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_status_raw": self.payment_status_raw,
            "order_status_raw": self.order_status_raw,
            "items": [{"name": i.name, "quantity": i.quantity, "price": i.price} for i in self.items],
            "total": self.total,
            "payment_method": self.payment_method,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "qr_code_base64": self.qr_code_base64,
            "pix_copy_paste": self.pix_copy_paste,
            "store_id": self.store_id,
            "rating": self.rating,
        }
