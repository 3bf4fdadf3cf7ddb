from __future__ import annotations

from enum import Enum


class OrderPipelineError(Exception):
    """Base class for errors surfaced by the order aggregation pipeline."""


class UnauthenticatedError(OrderPipelineError):
    def __init__(self, message: str = "no authenticated user") -> None:
        super().__init__(message)


class IndexFetchError(OrderPipelineError):
    """The per-user order index subscription failed (permission/connectivity)."""

    def __init__(self, user_id: str, cause: BaseException) -> None:
        self.user_id = user_id
        self.cause = cause
        super().__init__(f"order index subscription failed for user {user_id!r}: {type(cause).__name__}: {cause}")


class OrderFetchError(OrderPipelineError):
    def __init__(self, order_id: str, cause: BaseException | str) -> None:
        self.order_id = order_id
        self.cause = cause
        super().__init__(f"order fetch failed for {order_id!r}: {cause}")


class StoreFetchError(OrderPipelineError):
    def __init__(self, store_id: str, cause: BaseException | str) -> None:
        self.store_id = store_id
        self.cause = cause
        super().__init__(f"store fetch failed for {store_id!r}: {cause}")


class RatingValidationError(ValueError):
    pass


class SlotOutcome(str, Enum):
    JOINED = "joined"
    ORDER_NOT_FOUND = "order_not_found"
    ORDER_FETCH_ERROR = "order_fetch_error"
    OWNERSHIP_REJECTED = "ownership_rejected"
