from typing import Dict, Any, Optional
from app.models.outbox import OutboxEvent
from uuid import UUID

# Event types emitted by the core
ORDER_PLACED = "order.placed.v1"
ORDER_STATUS_CHANGED = "order.status_changed.v1"
INVENTORY_CHANGED = "inventory.changed.v1"
PAYMENT_VERIFIED = "payment.verified.v1"


async def create_outbox_event(
    aggregate_type: str,
    aggregate_id: Optional[UUID],
    event_type: str,
    payload: Dict[str, Any],
    conn: Any = None
) -> OutboxEvent:
    """
    Creates a new Outbox event record using the provided database connection (transaction).
    
    CRITICAL: Passing 'conn' ensures the event is created atomically with the business data.
    """
    return await OutboxEvent.create(
        aggregate_type=aggregate_type,
        aggregate_id=aggregate_id,
        event_type=event_type,
        payload=payload,
        published=False,
        attempts=0,
        using_db=conn
    )


async def emit_inventory_changed(
    outlet_id: UUID,
    menu_item_ids: list,
    reason: str,
    conn: Any = None,
) -> OutboxEvent:
    """'inventory changed for outlet X' notification."""
    return await create_outbox_event(
        aggregate_type="outlet",
        aggregate_id=outlet_id,
        event_type=INVENTORY_CHANGED,
        payload={
            "outlet_id": str(outlet_id),
            "menu_item_ids": [str(mid) for mid in menu_item_ids],
            "reason": reason,
        },
        conn=conn,
    )


async def emit_order_status_changed(
    order_id: UUID,
    order_ref: str,
    old_status: Optional[str],
    new_status: str,
    conn: Any = None,
) -> OutboxEvent:
    """'order status changed for order Y' notification."""
    return await create_outbox_event(
        aggregate_type="order",
        aggregate_id=order_id,
        event_type=ORDER_STATUS_CHANGED,
        payload={
            "order_id": str(order_id),
            "order_ref": order_ref,
            "old_status": old_status,
            "new_status": new_status,
        },
        conn=conn,
    )
