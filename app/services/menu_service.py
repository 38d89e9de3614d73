"""
Menu listing and operator write paths.

Reads go through the menu availability cache. Every write that can change an
outlet's items or their stock invalidates that outlet's cache entries after
the database transaction has committed.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from tortoise.transactions import in_transaction

from app.core.exceptions import InvalidInput, NotFound
from app.events.outbox_utility import emit_inventory_changed
from app.models.menu import MenuCategory, MenuItem
from app.models.order import OrderItem
from app.models.outlet import Outlet
from app.models.payment import PaymentTransaction, TransactionStatus
from app.schemas.auth import Principal
from app.services import inventory_ledger
from app.services.access import require_outlet_access
from app.services.menu_cache import menu_cache

log = logging.getLogger("menu_service")

AVAILABILITY_FILTERS = ("all", "true", "false")
EDITABLE_FIELDS = ("name", "description", "category", "price")


def serialize_menu_item(item: MenuItem) -> Dict[str, Any]:
    return {
        "id": str(item.id),
        "outlet_id": str(item.outlet_id),
        "name": item.name,
        "description": item.description,
        "category": MenuCategory(item.category).value,
        "price": str(item.price),
        "quantity": item.quantity,
        "is_available": item.is_available,
    }


def _check_filters(category: str, available: str) -> None:
    if category != "all" and category not in {c.value for c in MenuCategory}:
        raise InvalidInput(f"Invalid category: {category}")
    if available not in AVAILABILITY_FILTERS:
        raise InvalidInput("available must be one of: all, true, false")


async def list_menu(outlet_id: UUID, category: str = "all", available: str = "all") -> Dict[str, Any]:
    """Returns {"menu_items": [...], "cached": bool} for the outlet."""
    category = category or "all"
    available = available or "all"
    _check_filters(category, available)

    cached = menu_cache.get(outlet_id, category, available)
    if cached is not None:
        return {"menu_items": cached, "cached": True}

    if not await Outlet.filter(id=outlet_id).exists():
        raise NotFound("Outlet not found")

    # Taken before the query so a concurrent invalidation voids this snapshot
    generation = menu_cache.generation(outlet_id)
    query = MenuItem.filter(outlet_id=outlet_id)
    if category != "all":
        query = query.filter(category=category)
    if available != "all":
        query = query.filter(is_available=(available == "true"))
    items = [serialize_menu_item(m) for m in await query.order_by("category", "name")]

    menu_cache.put(outlet_id, category, available, items, generation=generation)
    return {"menu_items": items, "cached": False}


async def get_menu_item(menu_item_id: UUID) -> MenuItem:
    item = await MenuItem.get_or_none(id=menu_item_id)
    if not item:
        raise NotFound("Menu item not found")
    return item


async def create_menu_item(
    principal: Principal,
    outlet_id: UUID,
    name: str,
    price: Decimal,
    quantity: int,
    category: MenuCategory,
    description: Optional[str] = None,
) -> MenuItem:
    require_outlet_access(principal, outlet_id)
    if not await Outlet.filter(id=outlet_id).exists():
        raise NotFound("Outlet not found")
    if price < 0:
        raise InvalidInput("Price must be a positive number")
    if quantity < 0:
        raise InvalidInput("Quantity must be a non-negative integer")

    async with in_transaction() as conn:
        item = await MenuItem.create(
            outlet_id=outlet_id,
            name=name,
            price=price,
            quantity=quantity,
            category=category,
            description=description,
            using_db=conn,
        )
        await inventory_ledger.sync_availability([item.id], conn)
        await emit_inventory_changed(outlet_id, [item.id], "menu.created", conn=conn)

    menu_cache.invalidate(outlet_id)
    log.info(f"Menu item '{name}' added to outlet {outlet_id}")
    return await MenuItem.get(id=item.id)


async def update_menu_item(principal: Principal, menu_item_id: UUID, changes: Dict[str, Any]) -> MenuItem:
    """
    Applies name/description/category/price/quantity changes. Availability is
    not accepted here; it follows the quantity.
    """
    item = await get_menu_item(menu_item_id)
    require_outlet_access(principal, item.outlet_id)

    if "is_available" in changes:
        raise InvalidInput("Availability is derived from quantity and cannot be set directly")
    unknown = set(changes) - set(EDITABLE_FIELDS) - {"quantity"}
    if unknown:
        raise InvalidInput(f"Unknown fields: {', '.join(sorted(unknown))}")
    if changes.get("price") is not None and changes["price"] < 0:
        raise InvalidInput("Price must be a positive number")

    static = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS and v is not None}
    quantity = changes.get("quantity")

    async with in_transaction() as conn:
        if static:
            await MenuItem.filter(id=menu_item_id).using_db(conn).update(**static)
        if quantity is not None:
            await inventory_ledger.set_quantity(menu_item_id, quantity, conn=conn)
            await emit_inventory_changed(item.outlet_id, [menu_item_id], "menu.updated", conn=conn)

    menu_cache.invalidate(item.outlet_id)
    return await MenuItem.get(id=menu_item_id)


async def _awaiting_payment(item: MenuItem) -> bool:
    """True while an open gateway payment of the outlet carries this item."""
    open_payments = await PaymentTransaction.filter(outlet_id=item.outlet_id, status=TransactionStatus.CREATED)
    target = str(item.id)
    return any(
        line.get("menu_item_id") == target
        for transaction in open_payments
        for line in (transaction.metadata or {}).get("items", [])
    )


async def delete_menu_item(principal: Principal, menu_item_id: UUID) -> None:
    item = await get_menu_item(menu_item_id)
    require_outlet_access(principal, item.outlet_id)
    # Orders are financial records; their lines must keep resolving
    if await OrderItem.filter(menu_item_id=menu_item_id).exists():
        raise InvalidInput("Menu item is referenced by existing orders and cannot be deleted")
    if await _awaiting_payment(item):
        raise InvalidInput("Menu item is part of a payment in progress and cannot be deleted")

    async with in_transaction() as conn:
        await MenuItem.filter(id=menu_item_id).using_db(conn).delete()
        await emit_inventory_changed(item.outlet_id, [menu_item_id], "menu.deleted", conn=conn)

    menu_cache.invalidate(item.outlet_id)
    log.info(f"Menu item {menu_item_id} deleted from outlet {item.outlet_id}")


async def bulk_update_quantities(principal: Principal, updates: List[Dict[str, Any]]) -> Dict[str, int]:
    """Sets many quantities at once and invalidates every outlet touched."""
    if not updates:
        raise InvalidInput("Updates array is required")
    for update in updates:
        if int(update["quantity"]) < 0:
            raise InvalidInput("Quantity must be a non-negative integer")

    ids = [UUID(str(u["id"])) for u in updates]
    items = await MenuItem.filter(id__in=ids)
    outlet_by_item = {m.id: m.outlet_id for m in items}
    for outlet_id in set(outlet_by_item.values()):
        require_outlet_access(principal, outlet_id)

    modified = 0
    try:
        async with in_transaction() as conn:
            for update in updates:
                menu_item_id = UUID(str(update["id"]))
                if menu_item_id not in outlet_by_item:
                    continue
                if await inventory_ledger.set_quantity(menu_item_id, int(update["quantity"]), conn=conn):
                    modified += 1
            for outlet_id in set(outlet_by_item.values()):
                touched = [mid for mid, oid in outlet_by_item.items() if oid == outlet_id]
                await emit_inventory_changed(outlet_id, touched, "menu.bulk_update", conn=conn)
    finally:
        for outlet_id in set(outlet_by_item.values()):
            menu_cache.invalidate(outlet_id)

    return {"matched_count": len(outlet_by_item), "modified_count": modified}
