from __future__ import annotations

import asyncio

import pytest

from linecut.auth.auth import StaticAuthProvider
from linecut.orders.errors import RatingValidationError
from linecut.orders.models import OrderDetailItem
from linecut.orders.repository import (
    PLACEHOLDER_ITEM_NAME,
    OrderRepository,
    parse_order_items,
    payment_method_label,
)
from linecut.persistence.document_store import StoreError

from tests.fakes import FakeStore, next_item, order_doc


def _repo(store: FakeStore, uid: str | None = "u1") -> OrderRepository:
    return OrderRepository(store, StaticAuthProvider(uid))


def test_parse_order_items_prices() -> None:
    items = parse_order_items(
        {
            "i1": {"nome_produto": "X-Burger", "quantidade": 2, "preco_total": 30.0},
            "i2": {"nome": "Suco", "quantidade": 3, "preco_unitario": 4.5},
            "i3": {"quantidade": 1},
            "junk": "not-an-item",
        },
        total=47.5,
    )
    assert items == (
        OrderDetailItem(name="X-Burger", quantity=2, price=30.0),
        OrderDetailItem(name="Suco", quantity=3, price=13.5),
        OrderDetailItem(name="Item", quantity=1, price=0.0),
    )


def test_parse_order_items_placeholder_when_empty() -> None:
    assert parse_order_items({}, total=12.0) == (OrderDetailItem(name=PLACEHOLDER_ITEM_NAME, quantity=1, price=12.0),)


@pytest.mark.parametrize(
    "raw,label",
    [("PIX", "PIX"), ("credito", "Cartão de Crédito"), ("DEBITO", "Cartão de Débito"), ("VALE", "VALE")],
)
def test_payment_method_label(raw, label) -> None:
    assert payment_method_label(raw) == label


def test_get_order_by_id_builds_detail() -> None:
    store = FakeStore(
        {
            "pedidos/o1": order_doc(
                user_id="u1",
                store_id="s1",
                status="pronto",
                total=25.0,
                created="2025-10-18T22:48:02Z",
                status_pagamento="pago",
                metodo_pagamento="CREDITO",
                qr_code_pedido="data:image/png;base64,QUJD",
                pix_copia_cola="000201PIX",
                items={"i1": {"nome_produto": "Pastel", "quantidade": 1, "preco_total": 25.0}},
            ),
            "empresas/s1": {"nome_lanchonete": "Pastelaria", "description": "Pastéis"},
            "pedidos_por_lanchonete/s1/o1/avaliacao": {"atendimento": 4, "qualidade": 4, "velocidade": 4},
        }
    )

    detail = asyncio.run(_repo(store).get_order_by_id("o1"))

    assert detail is not None
    assert detail.store_name == "Pastelaria"
    assert detail.store_category == "Pastéis"
    assert detail.status == "Pronto para retirada"
    assert detail.payment_status == "aprovado"
    assert detail.payment_status_raw == "pago"
    assert detail.order_status_raw == "pronto"
    assert detail.payment_method == "Cartão de Crédito"
    assert detail.date == "18 outubro 2025"
    assert detail.qr_code_base64 == "QUJD"
    assert detail.pix_copy_paste == "000201PIX"
    assert detail.items == (OrderDetailItem(name="Pastel", quantity=1, price=25.0),)
    assert detail.rating == pytest.approx(4.0)
    assert detail.to_dict()["items"] == [{"name": "Pastel", "quantity": 1, "price": 25.0}]


def test_get_order_by_id_pending_payment_and_placeholder_item() -> None:
    store = FakeStore({"pedidos/o1": order_doc(user_id="u1", total=9.5, status="cancelado")})

    detail = asyncio.run(_repo(store).get_order_by_id("o1"))

    assert detail is not None
    assert detail.payment_status == "pendente"
    assert detail.status == "Pedido cancelado"
    assert detail.store_name == "Lanchonete"
    assert detail.items == (OrderDetailItem(name=PLACEHOLDER_ITEM_NAME, quantity=1, price=9.5),)
    assert detail.qr_code_base64 is None
    assert detail.pix_copy_paste is None
    assert detail.rating is None


def test_get_order_by_id_returns_none_for_foreign_missing_or_failing_order() -> None:
    store = FakeStore({"pedidos/o1": order_doc(user_id="someone-else")})
    store.get_errors["pedidos/bad"] = StoreError("pedidos/bad", "unavailable")
    repo = _repo(store)

    async def _run():
        return (
            await repo.get_order_by_id("o1"),
            await repo.get_order_by_id("missing"),
            await repo.get_order_by_id("bad"),
        )

    assert asyncio.run(_run()) == (None, None, None)
    # No join reads for rejected orders.
    assert not any(p.startswith("empresas/") for p in store.gets)


def test_get_order_by_id_requires_user() -> None:
    store = FakeStore({"pedidos/o1": order_doc(user_id="u1")})
    assert asyncio.run(_repo(store, uid=None).get_order_by_id("o1")) is None
    assert store.gets == []


def test_save_order_rating_writes_rating_path() -> None:
    store = FakeStore()
    repo = _repo(store)

    async def _run():
        saved = await repo.save_order_rating("s1", "o1", quality=5, speed=4, service=3)
        read_back = await repo.get_order_rating("s1", "o1")
        return saved, read_back

    saved, read_back = asyncio.run(_run())

    assert saved.average == pytest.approx(4.0)
    assert saved.rated_at.endswith("Z")
    (op, path, value) = store.writes[0]
    assert (op, path) == ("set", "pedidos_por_lanchonete/s1/o1/avaliacao")
    assert value["atendimento"] == 3
    assert value["qualidade"] == 5
    assert value["velocidade"] == 4
    assert read_back == saved


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(quality=0, speed=3, service=3),
        dict(quality=3, speed=6, service=3),
        dict(quality=3, speed=3, service=True),
        dict(quality=3.5, speed=3, service=3),
    ],
)
def test_save_order_rating_rejects_out_of_range_scores(kwargs) -> None:
    store = FakeStore()
    with pytest.raises(RatingValidationError):
        asyncio.run(_repo(store).save_order_rating("s1", "o1", **kwargs))
    assert store.writes == []


def test_save_order_rating_requires_ids() -> None:
    with pytest.raises(RatingValidationError):
        asyncio.run(_repo(FakeStore()).save_order_rating("", "o1", quality=3, speed=3, service=3))


def test_observe_user_orders_uses_current_user() -> None:
    store = FakeStore(
        {
            "pedidos_por_usuario/u1": {"o1": True},
            "pedidos/o1": order_doc(user_id="u1"),
        }
    )
    repo = _repo(store)

    async def _run():
        stream = repo.observe_user_orders()
        orders = await next_item(stream)
        await stream.aclose()
        return orders

    assert [o.order_id for o in asyncio.run(_run())] == ["o1"]
    assert store.subscribe_calls == ["pedidos_por_usuario/u1"]


def test_save_order_rating_rejects_ids_that_cannot_name_a_node() -> None:
    store = FakeStore()
    with pytest.raises(RatingValidationError):
        asyncio.run(_repo(store).save_order_rating("s.1", "o1", quality=3, speed=3, service=3))
    assert store.writes == []
