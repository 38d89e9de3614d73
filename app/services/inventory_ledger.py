"""
Inventory ledger: the only code that changes MenuItem.quantity.

Every change is a guarded set-based UPDATE followed by the availability
recompute, both inside one database transaction. Nothing here reads a
quantity into Python and writes it back.
"""
import logging
from decimal import Decimal
from typing import Any, Iterable, Optional
from uuid import UUID

from tortoise.expressions import F
from tortoise.transactions import in_transaction

from app.core.exceptions import InsufficientStock, InvalidInput, NotFound
from app.models.menu import MenuItem

log = logging.getLogger("inventory_ledger")


async def sync_availability(menu_item_ids: Iterable[UUID], conn: Any) -> None:
    """Recomputes is_available = (quantity > 0) for the given items."""
    ids = list(menu_item_ids)
    if not ids:
        return
    await MenuItem.filter(id__in=ids, quantity__gt=0).using_db(conn).update(is_available=True)
    await MenuItem.filter(id__in=ids, quantity__lte=0).using_db(conn).update(is_available=False)


async def reserve(menu_item_id: UUID, outlet_id: UUID, quantity: int, conn: Any = None) -> Decimal:
    """
    Atomically takes ``quantity`` units of an available item of the outlet.

    Returns the unit price as it stood when the reservation was made.
    Raises InsufficientStock when the guarded decrement matches no row
    (someone else got there first) and NotFound for unknown items.
    When ``conn`` is given the caller owns the transaction.
    """
    if quantity < 1:
        raise InvalidInput("Quantity must be at least 1")

    if conn is not None:
        item = await _reserve(menu_item_id, outlet_id, quantity, conn)
    else:
        async with in_transaction() as own_conn:
            item = await _reserve(menu_item_id, outlet_id, quantity, own_conn)

    log.info(f"Reserved {quantity} x {menu_item_id} (remaining {item.quantity})")
    return item.price


async def _reserve(menu_item_id: UUID, outlet_id: UUID, quantity: int, conn: Any) -> MenuItem:
    updated = await MenuItem.filter(
        id=menu_item_id,
        outlet_id=outlet_id,
        is_available=True,
        quantity__gte=quantity,
    ).using_db(conn).update(quantity=F("quantity") - quantity)

    if not updated:
        item = await MenuItem.get_or_none(id=menu_item_id, outlet_id=outlet_id).using_db(conn)
        if item is None:
            raise NotFound(f"Menu item {menu_item_id} not found")
        raise InsufficientStock(
            f"{item.name} is no longer available in that quantity. "
            f"Available: {item.quantity if item.is_available else 0}, Requested: {quantity}",
            menu_item_id=menu_item_id,
            requested=quantity,
        )

    await sync_availability([menu_item_id], conn)
    return await MenuItem.get(id=menu_item_id).using_db(conn)


async def release(menu_item_id: UUID, quantity: int, conn: Any = None) -> bool:
    """
    Compensating increment. Returns False when the item no longer exists.

    When ``conn`` is given the caller owns the transaction, otherwise a new
    one is opened.
    """
    if conn is not None:
        return await _release(menu_item_id, quantity, conn)
    async with in_transaction() as own_conn:
        return await _release(menu_item_id, quantity, own_conn)


async def _release(menu_item_id: UUID, quantity: int, conn: Any) -> bool:
    updated = await MenuItem.filter(id=menu_item_id).using_db(conn).update(
        quantity=F("quantity") + quantity
    )
    if not updated:
        log.warning(f"Could not restore {quantity} x {menu_item_id}: item is gone")
        return False
    await sync_availability([menu_item_id], conn)
    return True


async def set_quantity(menu_item_id: UUID, quantity: int, conn: Any = None, outlet_id: Optional[UUID] = None) -> bool:
    """Operator restock: overwrite the count and recompute availability."""
    if quantity < 0:
        raise InvalidInput("Quantity must be a non-negative integer")

    async def _apply(db) -> bool:
        query = MenuItem.filter(id=menu_item_id)
        if outlet_id is not None:
            query = query.filter(outlet_id=outlet_id)
        updated = await query.using_db(db).update(quantity=quantity)
        if updated:
            await sync_availability([menu_item_id], db)
        return bool(updated)

    if conn is not None:
        return await _apply(conn)
    async with in_transaction() as own_conn:
        return await _apply(own_conn)
