"""
Order state machine.

    pending  -> approved | rejected | cancelled
    approved -> completed | cancelled
    completed, rejected, cancelled are terminal

Every transition is one guarded UPDATE ("set status to Y where status is X"),
so of two concurrent operator actions on the same order only one can match.
"""
import logging
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple
from uuid import UUID

from tortoise.transactions import in_transaction

from app.core.exceptions import InvalidTransition, NotFound
from app.events.outbox_utility import emit_inventory_changed, emit_order_status_changed
from app.models.order import TERMINAL_STATUSES, Order, OrderItem, OrderStatus
from app.schemas.auth import Principal
from app.services import inventory_ledger
from app.services.access import require_order_access, require_outlet_access
from app.services.menu_cache import menu_cache

log = logging.getLogger("order_state")


class OrderAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    COMPLETE = "complete"
    CANCEL = "cancel"


TRANSITIONS: Dict[OrderAction, Tuple[FrozenSet[OrderStatus], OrderStatus]] = {
    OrderAction.APPROVE: (frozenset({OrderStatus.PENDING}), OrderStatus.APPROVED),
    # Reserved stock is kept on rejection; only cancellation restores it.
    OrderAction.REJECT: (frozenset({OrderStatus.PENDING}), OrderStatus.REJECTED),
    OrderAction.COMPLETE: (frozenset({OrderStatus.APPROVED}), OrderStatus.COMPLETED),
    OrderAction.CANCEL: (frozenset({OrderStatus.PENDING, OrderStatus.APPROVED}), OrderStatus.CANCELLED),
}


def can_transition(current: OrderStatus, action: OrderAction) -> bool:
    sources, _ = TRANSITIONS[action]
    return OrderStatus(current) in sources


async def transition(
    principal: Principal,
    order_id: UUID,
    action: OrderAction,
    notes: Optional[str] = None,
) -> Order:
    action = OrderAction(action)
    sources, target = TRANSITIONS[action]

    order = await Order.get_or_none(id=order_id)
    if not order:
        raise NotFound("Order not found")

    if action == OrderAction.CANCEL:
        require_order_access(principal, order)
    else:
        require_outlet_access(principal, order.outlet_id)

    if order.status in TERMINAL_STATUSES:
        raise InvalidTransition(
            f"Order is already {order.status.value}",
            current_status=order.status.value,
            action=action.value,
        )

    changes = {"status": target}
    if action == OrderAction.APPROVE:
        changes["approved_by"] = principal.user_id
    if notes:
        changes["notes"] = notes

    async with in_transaction() as conn:
        # Try the status we saw first; a racing change leaves the others to match
        candidates = sorted(sources, key=lambda s: s != order.status)
        old_status = None
        for source in candidates:
            if await Order.filter(id=order_id, status=source).using_db(conn).update(**changes):
                old_status = source
                break
        if old_status is None:
            current = await Order.get_or_none(id=order_id).using_db(conn)
            current_status = current.status.value if current else None
            raise InvalidTransition(
                f"Cannot {action.value} an order that is {current_status}",
                current_status=current_status,
                action=action.value,
            )

        if action == OrderAction.CANCEL:
            lines = await OrderItem.filter(order_id=order_id).using_db(conn)
            for line in lines:
                await inventory_ledger.release(line.menu_item_id, line.quantity, conn=conn)
            await emit_inventory_changed(
                order.outlet_id, [line.menu_item_id for line in lines], "order.cancelled", conn=conn
            )

        await emit_order_status_changed(order.id, order.order_ref, old_status.value, target.value, conn=conn)

    if action == OrderAction.CANCEL:
        # Restored stock changes availability just like a reservation does
        menu_cache.invalidate(order.outlet_id)

    log.info(f"Order {order.order_ref}: {action.value} by {principal.user_id} -> {target.value}")
    return await Order.get(id=order_id).prefetch_related('items', 'items__menu_item')


async def approve_order(principal: Principal, order_id: UUID, notes: Optional[str] = None) -> Order:
    """Sign-off for an organization bill."""
    return await transition(principal, order_id, OrderAction.APPROVE, notes)


async def reject_order(principal: Principal, order_id: UUID, notes: Optional[str] = None) -> Order:
    return await transition(principal, order_id, OrderAction.REJECT, notes)


async def complete_order(principal: Principal, order_id: UUID, notes: Optional[str] = None) -> Order:
    return await transition(principal, order_id, OrderAction.COMPLETE, notes)


async def cancel_order(principal: Principal, order_id: UUID, notes: Optional[str] = None) -> Order:
    """Buyer or operator cancellation; puts every reserved unit back."""
    return await transition(principal, order_id, OrderAction.CANCEL, notes)
