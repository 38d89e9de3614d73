import logging
import secrets
import string
import time
from datetime import datetime
from decimal import Decimal
from typing import List, Dict, Optional, Tuple
from uuid import UUID
from zoneinfo import ZoneInfo

from tortoise.transactions import in_transaction

from app.core.config import ORDER_TIMEZONE
from app.core.exceptions import InsufficientStock, InvalidInput, NotFound
from app.events.outbox_utility import (
    ORDER_PLACED,
    create_outbox_event,
    emit_inventory_changed,
)
from app.models.order import Order, OrderItem, OrderStatus, OrderType, PaymentType
from app.schemas.auth import Principal
from app.services import inventory_ledger
from app.services.access import require_order_access, require_outlet_access
from app.services.menu_cache import menu_cache
from app.services.outlet_directory import is_active

log = logging.getLogger("order_service")

_REF_ALPHABET = string.digits + string.ascii_lowercase


def generate_order_ref() -> str:
    """Time based reference with a random base36 suffix, e.g. ORD-1718000000000-k3j9x0a1b."""
    suffix = "".join(secrets.choice(_REF_ALPHABET) for _ in range(9))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


def format_order_time(moment: Optional[datetime] = None) -> str:
    """Time of day shown on the bill, in the outlet's local zone (e.g. '01:05 PM')."""
    moment = moment or datetime.now(ZoneInfo(ORDER_TIMEZONE))
    return moment.astimezone(ZoneInfo(ORDER_TIMEZONE)).strftime("%I:%M %p")


def validate_lines(items: List[Dict]) -> List[Tuple[UUID, int]]:
    """Normalises request lines into (menu_item_id, quantity) pairs."""
    if not items:
        raise InvalidInput("Order must contain items.")
    lines = []
    for it in items:
        try:
            menu_item_id = UUID(str(it["menu_item_id"]))
            qty = int(it["quantity"])
        except (KeyError, TypeError, ValueError):
            raise InvalidInput("Each item needs a valid menu_item_id and quantity.")
        if qty < 1:
            raise InvalidInput("Quantity must be at least 1")
        lines.append((menu_item_id, qty))
    return lines


async def place_order(
    principal: Principal,
    outlet_id: UUID,
    items: List[Dict],
    order_type: OrderType,
    payment_type: PaymentType,
    notes: Optional[str] = None,
) -> Order:
    """
    Reserves stock for every line and persists the Order.

    Each line is reserved with its own guarded decrement. If any line cannot
    be reserved, the lines already taken are put back before the error is
    raised, so a failed request never leaves a partial reservation behind.
    """
    lines = validate_lines(items)
    if not await is_active(outlet_id):
        raise NotFound("Outlet not found or inactive")

    reserved: List[Tuple[UUID, int, Decimal]] = []
    try:
        for menu_item_id, qty in lines:
            unit_price = await inventory_ledger.reserve(menu_item_id, outlet_id, qty)
            reserved.append((menu_item_id, qty, unit_price))

        order = await _persist_order(principal, outlet_id, reserved, order_type, payment_type, notes)
    except Exception as exc:
        if reserved:
            await _compensate(reserved)
        if isinstance(exc, InsufficientStock):
            log.info(f"Order rejected for user {principal.user_id}: {exc.message}")
        raise
    finally:
        # Also covers the compensated path: a reader may have cached the
        # intermediate stock level between reserve and release.
        if reserved:
            menu_cache.invalidate(outlet_id)

    log.info(f"Order {order.order_ref} placed for user {principal.user_id} ({order.status.value}, total {order.total_amount})")
    return order


async def _compensate(reserved: List[Tuple[UUID, int, Decimal]]) -> None:
    for menu_item_id, qty, _ in reversed(reserved):
        await inventory_ledger.release(menu_item_id, qty)
    log.warning(f"Rolled back {len(reserved)} reserved line(s)")


async def _persist_order(
    principal: Principal,
    outlet_id: UUID,
    reserved: List[Tuple[UUID, int, Decimal]],
    order_type: OrderType,
    payment_type: PaymentType,
    notes: Optional[str],
) -> Order:
    total = sum((price * qty for _, qty, price in reserved), Decimal("0"))
    # Organization bills wait for an approver; pay-now orders go straight to the kitchen
    status = OrderStatus.PENDING if payment_type == PaymentType.ORGANIZATION else OrderStatus.APPROVED

    async with in_transaction() as conn:
        order = await Order.create(
            order_ref=generate_order_ref(),
            user_id=principal.user_id,
            outlet_id=outlet_id,
            order_type=order_type,
            payment_type=payment_type,
            status=status,
            total_amount=total,
            notes=notes,
            order_time=format_order_time(),
            using_db=conn,
        )
        for menu_item_id, qty, price in reserved:
            await OrderItem.create(
                order=order,
                menu_item_id=menu_item_id,
                quantity=qty,
                unit_price=price,
                line_total=price * qty,
                using_db=conn,
            )

        await create_outbox_event(
            aggregate_type="order",
            aggregate_id=order.id,
            event_type=ORDER_PLACED,
            payload={
                "order_id": str(order.id),
                "order_ref": order.order_ref,
                "outlet_id": str(outlet_id),
                "status": status.value,
                "total_amount": str(total),
                "items": [
                    {"menu_item_id": str(mid), "quantity": qty, "unit_price": str(price)}
                    for mid, qty, price in reserved
                ],
            },
            conn=conn,
        )
        await emit_inventory_changed(outlet_id, [mid for mid, _, _ in reserved], "order.reserved", conn=conn)

    return order


async def get_order_by_id(order_id: UUID) -> Optional[Order]:
    """Fetches order details with items, including the menu item name."""
    # Pre-fetch related entities to minimize DB queries (N+1 avoidance)
    return await Order.get_or_none(id=order_id).prefetch_related('items', 'items__menu_item')


async def get_order(principal: Principal, order_id: UUID) -> Order:
    order = await get_order_by_id(order_id)
    if not order:
        raise NotFound("Order not found")
    require_order_access(principal, order)
    return order


async def list_user_orders(
    principal: Principal,
    status: Optional[OrderStatus] = None,
    limit: int = 20,
    page: int = 1,
) -> Tuple[List[Order], int]:
    query = Order.filter(user_id=principal.user_id)
    if status:
        query = query.filter(status=status)
    return await _paginate(query, limit, page)


async def list_outlet_orders(
    principal: Principal,
    outlet_id: UUID,
    status: Optional[OrderStatus] = None,
    payment_type: Optional[PaymentType] = None,
    limit: int = 50,
    page: int = 1,
) -> Tuple[List[Order], int]:
    require_outlet_access(principal, outlet_id)
    query = Order.filter(outlet_id=outlet_id)
    if status:
        query = query.filter(status=status)
    if payment_type:
        query = query.filter(payment_type=payment_type)
    return await _paginate(query, limit, page)


async def _paginate(query, limit: int, page: int) -> Tuple[List[Order], int]:
    if limit < 1 or page < 1:
        raise InvalidInput("limit and page must be positive")
    total = await query.count()
    orders = await query.order_by("-created_at").offset((page - 1) * limit).limit(limit).prefetch_related(
        'items', 'items__menu_item'
    )
    return orders, total
