from __future__ import annotations

import logging
from typing import Optional

from linecut.common.logging import log_event

from .models import OrderRecord

logger = logging.getLogger(__name__)


def rejection_reason(order: OrderRecord, requesting_user_id: str) -> Optional[str]:
    """
    None when the order belongs to the requesting user, else the reason code.

    The per-user index is written by application code and is not tied to the
    record, so the record's own owner field is the only authority.
    """
    owner = order.owner_user_id
    if not owner:
        return "owner_missing"
    if owner != requesting_user_id:
        return "owner_mismatch"
    return None


def accept(order: OrderRecord, requesting_user_id: str) -> bool:
    reason = rejection_reason(order, requesting_user_id)
    if reason is None:
        return True
    log_event(
        logger,
        "orders.slot_rejected",
        severity="WARNING",
        order_id=order.order_id,
        reason=reason,
        owner_user_id=order.owner_user_id or None,
        requesting_user_id=requesting_user_id or None,
    )
    return False
