from __future__ import annotations

import asyncio
import copy
from typing import Any, Mapping, Optional

from linecut.persistence.document_store import Snapshot

_CLOSE = object()


def _key(path: str) -> str:
    return path.rstrip("/").rsplit("/", 1)[-1]


class FakeStore:
    """
    In-memory DocumentStore keyed by exact path.

    - gate(path): point reads of `path` block until the returned event is set
    - get_errors[path]: point reads of `path` raise this exception
    - push(path, value): update data and notify live subscribers
    """

    def __init__(self, data: Optional[Mapping[str, Any]] = None) -> None:
        self.data: dict[str, Any] = dict(data or {})
        self.gets: list[str] = []
        self.get_errors: dict[str, BaseException] = {}
        self.subscribe_error: Optional[BaseException] = None
        self.subscribe_calls: list[str] = []
        self.active_subscriptions = 0
        self.writes: list[tuple[str, str, Any]] = []
        self._gates: dict[str, asyncio.Event] = {}
        self._subscribers: dict[str, list[asyncio.Queue]] = {}

    def gate(self, path: str) -> asyncio.Event:
        ev = asyncio.Event()
        self._gates[path] = ev
        return ev

    async def get(self, path: str) -> Snapshot:
        self.gets.append(path)
        gate = self._gates.get(path)
        if gate is not None:
            await gate.wait()
        if path in self.get_errors:
            raise self.get_errors[path]
        return Snapshot(key=_key(path), value=copy.deepcopy(self.data.get(path)))

    async def subscribe(self, path: str):
        self.subscribe_calls.append(path)
        if self.subscribe_error is not None:
            raise self.subscribe_error
        q: asyncio.Queue = asyncio.Queue()
        self._subscribers.setdefault(path, []).append(q)
        self.active_subscriptions += 1
        try:
            q.put_nowait(Snapshot(key=_key(path), value=copy.deepcopy(self.data.get(path))))
            while True:
                item = await q.get()
                if item is _CLOSE:
                    return
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.active_subscriptions -= 1
            self._subscribers[path].remove(q)

    def push(self, path: str, value: Any) -> None:
        self.data[path] = value
        for q in self._subscribers.get(path, []):
            q.put_nowait(Snapshot(key=_key(path), value=copy.deepcopy(value)))

    def fail_subscription(self, path: str, exc: BaseException) -> None:
        for q in self._subscribers.get(path, []):
            q.put_nowait(exc)

    def close_subscription(self, path: str) -> None:
        for q in self._subscribers.get(path, []):
            q.put_nowait(_CLOSE)

    async def set(self, path: str, value: Any) -> None:
        self.writes.append(("set", path, copy.deepcopy(value)))
        self.data[path] = copy.deepcopy(value)

    async def update(self, path: str, fields: Mapping[str, Any]) -> None:
        self.writes.append(("update", path, dict(fields)))
        current = dict(self.data.get(path) or {})
        current.update(fields)
        self.data[path] = current


def order_doc(
    *,
    user_id: Any,
    store_id: str = "",
    created: str = "2025-04-10T12:00:00Z",
    status: str = "pendente",
    total: float = 10.0,
    **extra: Any,
) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "id_usuario": user_id,
        "id_lanchonete": store_id,
        "datahora_criacao": created,
        "status_pedido": status,
        "preco_total": total,
    }
    doc.update(extra)
    return doc


async def settle(rounds: int = 50) -> None:
    """Let every ready callback/task run a few times."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def next_item(stream):
    return await stream.__anext__()
