"""
Document store contract used by the order pipeline, and its Firebase
Realtime Database implementation.

Contract:
- `get(path)`        one-shot point read -> Snapshot
- `subscribe(path)`  live subscription   -> async iterator of Snapshot (current full value)
- `set(path, value)` / `update(path, fields)` writes

Store failures surface as `StoreError` (reads/writes) or
`StoreSubscriptionError` (subscriptions). Absent data is not an error:
it is a Snapshot with `exists == False`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Mapping, Optional, Protocol

from firebase_admin import db
from firebase_admin import exceptions as fb_exceptions

from linecut.common.config import Config, load_config
from linecut.persistence.firebase_client import get_database_root
from linecut.persistence.rtdb_retry import with_store_retry

logger = logging.getLogger(__name__)


class StoreError(Exception):
    def __init__(self, path: str, cause: BaseException | str) -> None:
        self.path = path
        self.cause = cause
        detail = cause if isinstance(cause, str) else f"{type(cause).__name__}: {cause}"
        super().__init__(f"store operation failed at {path!r}: {detail}")


class StoreSubscriptionError(StoreError):
    pass


def normalize_path(path: str) -> str:
    parts = [p for p in str(path or "").split("/") if p]
    if not parts:
        raise ValueError("path must contain at least one segment")
    for p in parts:
        if p in {".", ".."} or any(c in p for c in ".#$[]"):
            raise ValueError(f"invalid path segment: {p!r}")
    return "/".join(parts)


@dataclass(frozen=True)
class Snapshot:
    key: str
    value: Any

    @property
    def exists(self) -> bool:
        if self.value is None:
            return False
        if isinstance(self.value, (dict, list)) and not self.value:
            return False
        return True

    def children(self) -> list["Snapshot"]:
        """Child snapshots in store order; sparse list entries are skipped."""
        if isinstance(self.value, Mapping):
            return [Snapshot(key=str(k), value=v) for k, v in self.value.items() if v is not None]
        if isinstance(self.value, list):
            return [Snapshot(key=str(i), value=v) for i, v in enumerate(self.value) if v is not None]
        return []

    def to_dict(self) -> dict[str, Any]:
        return dict(self.value) if isinstance(self.value, Mapping) else {}


class DocumentStore(Protocol):
    async def get(self, path: str) -> Snapshot: ...

    def subscribe(self, path: str) -> AsyncIterator[Snapshot]: ...

    async def set(self, path: str, value: Any) -> None: ...

    async def update(self, path: str, fields: Mapping[str, Any]) -> None: ...


def _split(path: str) -> list[str]:
    return [p for p in str(path or "").split("/") if p]


class ListenerTree:
    """
    Local mirror of the value under a listened reference.

    The Realtime Database streams `put` (replace at sub-path) and `patch`
    (merge children at sub-path) events; applying them in order yields the
    current full value after every event.
    """

    def __init__(self) -> None:
        self.value: Any = None

    def apply(self, event_type: str, path: str, data: Any) -> Any:
        segments = _split(path)
        if event_type == "put":
            self.value = _set_in(self.value, segments, data)
        elif event_type == "patch":
            if not isinstance(data, Mapping):
                raise ValueError(f"patch event data must be a mapping, got {type(data).__name__}")
            for k, v in data.items():
                self.value = _set_in(self.value, segments + _split(str(k)), v)
        else:
            raise ValueError(f"unsupported listener event type: {event_type!r}")
        return self.value


def _as_mapping(value: Any) -> dict[str, Any]:
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, list):
        return {str(i): v for i, v in enumerate(value) if v is not None}
    return {}


def _set_in(node: Any, segments: list[str], data: Any) -> Any:
    if not segments:
        return data
    head, rest = segments[0], segments[1:]
    out = _as_mapping(node)
    child = _set_in(out.get(head), rest, data)
    if child is None or (isinstance(child, dict) and not child):
        out.pop(head, None)
    else:
        out[head] = child
    return out or None


class FirebaseDocumentStore:
    """
    `DocumentStore` over `firebase_admin.db`.

    The Admin SDK is synchronous: point reads and writes run in the default
    thread executor, and listener callbacks (fired on the SDK's listener
    thread) are handed to the event loop with `call_soon_threadsafe`.
    """

    def __init__(self, *, root: Optional[db.Reference] = None, config: Optional[Config] = None) -> None:
        self._config = config or load_config()
        self._root = root

    async def _ref(self, path: str) -> db.Reference:
        normalized = normalize_path(path)
        if self._root is None:
            # First use may resolve ADC and the project id over the network.
            self._root = await asyncio.to_thread(
                get_database_root,
                project_id=self._config.project_id,
                database_url=self._config.database_url,
            )
        return self._root.child(normalized)

    def _retrying(self, fn: Callable[[], Any], *, attempts: int) -> Callable[[], Any]:
        return lambda: with_store_retry(
            fn,
            max_attempts=attempts,
            base_delay_s=self._config.retry_base_delay_s,
            max_delay_s=self._config.retry_max_delay_s,
        )

    async def get(self, path: str) -> Snapshot:
        ref = await self._ref(path)
        try:
            value = await asyncio.to_thread(self._retrying(ref.get, attempts=self._config.read_retry_attempts))
        except fb_exceptions.FirebaseError as e:
            raise StoreError(path, e) from e
        return Snapshot(key=ref.key or "", value=value)

    async def set(self, path: str, value: Any) -> None:
        ref = await self._ref(path)
        try:
            await asyncio.to_thread(self._retrying(lambda: ref.set(value), attempts=self._config.write_retry_attempts))
        except fb_exceptions.FirebaseError as e:
            raise StoreError(path, e) from e

    async def update(self, path: str, fields: Mapping[str, Any]) -> None:
        if not fields:
            raise ValueError("update requires at least one field")
        ref = await self._ref(path)
        payload = dict(fields)
        try:
            await asyncio.to_thread(self._retrying(lambda: ref.update(payload), attempts=self._config.write_retry_attempts))
        except fb_exceptions.FirebaseError as e:
            raise StoreError(path, e) from e

    async def subscribe(self, path: str) -> AsyncIterator[Snapshot]:
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[Snapshot | BaseException] = asyncio.Queue()
        ref = await self._ref(path)
        key = ref.key or ""
        tree = ListenerTree()

        def _hand_off(item: Snapshot | BaseException) -> None:
            try:
                loop.call_soon_threadsafe(queue.put_nowait, item)
            except RuntimeError:
                # Event loop already closed; the subscriber is gone.
                logger.debug("rtdb listener event dropped after loop close path=%s", path)

        def _on_event(event: db.Event) -> None:
            try:
                value = tree.apply(event.event_type, event.path, event.data)
            except Exception as e:
                _hand_off(e)
                return
            _hand_off(Snapshot(key=key, value=value))

        try:
            registration = await asyncio.to_thread(ref.listen, _on_event)
        except fb_exceptions.FirebaseError as e:
            raise StoreSubscriptionError(path, e) from e

        try:
            while True:
                item = await queue.get()
                if isinstance(item, BaseException):
                    raise StoreSubscriptionError(path, item) from item
                yield item
        finally:
            # close() joins the SDK listener thread.
            await asyncio.to_thread(registration.close)
