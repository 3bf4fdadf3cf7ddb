from linecut.orders.errors import (
    IndexFetchError,
    OrderFetchError,
    OrderPipelineError,
    RatingValidationError,
    SlotOutcome,
    StoreFetchError,
    UnauthenticatedError,
)
from linecut.orders.models import AggregatedOrder, OrderDetail, OrderRating, OrderRecord, OrderStatus, StoreRecord
from linecut.orders.pipeline import OrderAggregationPipeline, sort_orders
from linecut.orders.repository import OrderRepository

__all__ = [
    "AggregatedOrder",
    "IndexFetchError",
    "OrderAggregationPipeline",
    "OrderDetail",
    "OrderFetchError",
    "OrderPipelineError",
    "OrderRating",
    "OrderRecord",
    "OrderRepository",
    "OrderStatus",
    "RatingValidationError",
    "SlotOutcome",
    "StoreFetchError",
    "StoreRecord",
    "UnauthenticatedError",
    "sort_orders",
]
