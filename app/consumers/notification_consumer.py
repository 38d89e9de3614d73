"""
Downstream notification handlers for outbox events.

These stand in for the push channel (socket/broker) that tells kitchen
screens and buyers about changes. Delivery is best effort: a handler that
raises leaves the event for the poller to retry.
"""
import logging
from typing import Any, Awaitable, Callable, Dict
from uuid import UUID

from app.events.outbox_utility import (
    INVENTORY_CHANGED,
    ORDER_PLACED,
    ORDER_STATUS_CHANGED,
    PAYMENT_VERIFIED,
)

log = logging.getLogger("notification_consumer")

Handler = Callable[[Dict[str, Any], UUID], Awaitable[None]]


async def handle_order_placed(event_payload: Dict[str, Any], event_id: UUID):
    """New order for the outlet's kitchen screen."""
    log.info(
        f"Outlet {event_payload.get('outlet_id')}: new order {event_payload.get('order_ref')} "
        f"({event_payload.get('status')}, {len(event_payload.get('items', []))} lines)"
    )


async def handle_order_status_changed(event_payload: Dict[str, Any], event_id: UUID):
    log.info(
        f"Order {event_payload.get('order_ref')}: "
        f"{event_payload.get('old_status')} -> {event_payload.get('new_status')}"
    )


async def handle_inventory_changed(event_payload: Dict[str, Any], event_id: UUID):
    """Tells menu viewers of an outlet to refresh."""
    log.info(
        f"Outlet {event_payload.get('outlet_id')}: inventory changed "
        f"({event_payload.get('reason')}, {len(event_payload.get('menu_item_ids', []))} items)"
    )


async def handle_payment_verified(event_payload: Dict[str, Any], event_id: UUID):
    log.info(
        f"Payment {event_payload.get('gateway_payment_id')} verified for order {event_payload.get('order_ref')}"
    )


HANDLERS: Dict[str, Handler] = {
    ORDER_PLACED: handle_order_placed,
    ORDER_STATUS_CHANGED: handle_order_status_changed,
    INVENTORY_CHANGED: handle_inventory_changed,
    PAYMENT_VERIFIED: handle_payment_verified,
}
