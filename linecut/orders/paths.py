from __future__ import annotations

ORDERS_BY_USER = "pedidos_por_usuario"
ORDERS = "pedidos"
STORES = "empresas"
ORDERS_BY_STORE = "pedidos_por_lanchonete"
RATING_CHILD = "avaliacao"


def _segment(name: str, value: str) -> str:
    s = str(value or "").strip()
    if not s:
        raise ValueError(f"{name} is required")
    if any(c in s for c in "/.#$[]"):
        raise ValueError(f"{name} must not contain any of '/.#$[]': {s!r}")
    return s


def user_order_index_path(user_id: str) -> str:
    """
    Secondary index of a user's orders.

      pedidos_por_usuario/{userId}/{orderId}
    """
    return f"{ORDERS_BY_USER}/{_segment('user_id', user_id)}"


def order_path(order_id: str) -> str:
    return f"{ORDERS}/{_segment('order_id', order_id)}"


def store_path(store_id: str) -> str:
    return f"{STORES}/{_segment('store_id', store_id)}"


def order_rating_path(store_id: str, order_id: str) -> str:
    """
    Rating of one order, kept under the store's order index.

      pedidos_por_lanchonete/{storeId}/{orderId}/avaliacao
    """
    return f"{ORDERS_BY_STORE}/{_segment('store_id', store_id)}/{_segment('order_id', order_id)}/{RATING_CHILD}"
