import pytest
from decimal import Decimal
from uuid import uuid4

from app.core.exceptions import InvalidInput, NotFound, Unauthorized
from app.events.outbox_utility import INVENTORY_CHANGED
from app.models.menu import MenuCategory, MenuItem
from app.models.order import OrderType, PaymentType
from app.models.outbox import OutboxEvent
from app.models.payment import PaymentTransaction, TransactionStatus
from app.schemas.auth import Principal, Role
from app.services.menu_cache import menu_cache
from app.services.menu_service import (
    bulk_update_quantities,
    create_menu_item,
    delete_menu_item,
    list_menu,
    update_menu_item,
)
from app.services.order_service import place_order
from tests.factories import make_item


@pytest.mark.asyncio
async def test_listing_is_cached_until_a_write(admin, outlet, thali):
    first = await list_menu(outlet.id)
    second = await list_menu(outlet.id)
    assert first["cached"] is False
    assert second["cached"] is True

    await update_menu_item(admin, thali.id, {"quantity": 0})

    third = await list_menu(outlet.id)
    assert third["cached"] is False
    assert third["menu_items"][0]["is_available"] is False


@pytest.mark.asyncio
async def test_order_is_visible_on_next_listing(buyer, outlet, thali):
    await list_menu(outlet.id, available="true")

    await place_order(
        buyer, outlet.id, [{"menu_item_id": str(thali.id), "quantity": 50}], OrderType.DINE_IN, PaymentType.INDIVIDUAL
    )

    listing = await list_menu(outlet.id, available="true")
    assert listing["cached"] is False
    assert listing["menu_items"] == []


@pytest.mark.asyncio
async def test_filters(outlet, thali):
    await make_item(outlet, name="Filter Coffee", price="20.00", quantity=0, category=MenuCategory.BEVERAGES)

    beverages = await list_menu(outlet.id, category="beverages")
    assert [m["name"] for m in beverages["menu_items"]] == ["Filter Coffee"]
    available = await list_menu(outlet.id, available="true")
    assert [m["name"] for m in available["menu_items"]] == ["Veg Thali"]
    sold_out = await list_menu(outlet.id, available="false")
    assert [m["name"] for m in sold_out["menu_items"]] == ["Filter Coffee"]

    with pytest.raises(InvalidInput):
        await list_menu(outlet.id, category="pizza")
    with pytest.raises(InvalidInput):
        await list_menu(outlet.id, available="maybe")
    with pytest.raises(NotFound):
        await list_menu(uuid4())


@pytest.mark.asyncio
async def test_create_derives_availability(admin, outlet):
    sold_out = await create_menu_item(admin, outlet.id, "Gulab Jamun", Decimal("30.00"), 0, MenuCategory.DESSERTS)
    stocked = await create_menu_item(admin, outlet.id, "Samosa", Decimal("15.00"), 20, MenuCategory.SNACKS)

    assert sold_out.is_available is False
    assert stocked.is_available is True
    assert await OutboxEvent.filter(event_type=INVENTORY_CHANGED).count() == 2


@pytest.mark.asyncio
async def test_create_requires_outlet_access(buyer, outlet, other_outlet):
    foreign_admin = Principal(user_id="admin-2", role=Role.ADMIN, outlet_ids=[str(other_outlet.id)])
    with pytest.raises(Unauthorized):
        await create_menu_item(buyer, outlet.id, "Samosa", Decimal("15.00"), 1, MenuCategory.SNACKS)
    with pytest.raises(Unauthorized):
        await create_menu_item(foreign_admin, outlet.id, "Samosa", Decimal("15.00"), 1, MenuCategory.SNACKS)


@pytest.mark.asyncio
async def test_admin_without_assignments_has_global_access(outlet):
    unassigned = Principal(user_id="admin-3", role=Role.ADMIN)
    item = await create_menu_item(unassigned, outlet.id, "Samosa", Decimal("15.00"), 1, MenuCategory.SNACKS)
    assert item.outlet_id == outlet.id


@pytest.mark.asyncio
async def test_update_rejects_direct_availability(admin, thali):
    with pytest.raises(InvalidInput):
        await update_menu_item(admin, thali.id, {"is_available": True})
    with pytest.raises(InvalidInput):
        await update_menu_item(admin, thali.id, {"stock": 3})


@pytest.mark.asyncio
async def test_update_fields(admin, thali):
    item = await update_menu_item(admin, thali.id, {"price": Decimal("130.00"), "name": "Deluxe Thali"})
    assert item.price == Decimal("130.00")
    assert item.name == "Deluxe Thali"
    assert item.quantity == 50


@pytest.mark.asyncio
async def test_delete_refused_when_ordered(admin, buyer, outlet, thali):
    await place_order(
        buyer, outlet.id, [{"menu_item_id": str(thali.id), "quantity": 1}], OrderType.DINE_IN, PaymentType.INDIVIDUAL
    )
    with pytest.raises(InvalidInput):
        await delete_menu_item(admin, thali.id)
    assert await MenuItem.filter(id=thali.id).exists()


@pytest.mark.asyncio
async def test_delete_refused_while_payment_is_open(admin, outlet, thali):
    transaction = await PaymentTransaction.create(
        order_ref="CNT-OPEN-1",
        gateway_order_id="order_gw_open",
        amount=Decimal("120.00"),
        user_id="user-1",
        outlet=outlet,
        metadata={"items": [{"menu_item_id": str(thali.id), "quantity": 1, "unit_price": "120.00"}]},
    )
    with pytest.raises(InvalidInput):
        await delete_menu_item(admin, thali.id)
    assert await MenuItem.filter(id=thali.id).exists()

    await PaymentTransaction.filter(id=transaction.id).update(status=TransactionStatus.FAILED)
    await delete_menu_item(admin, thali.id)
    assert not await MenuItem.filter(id=thali.id).exists()


@pytest.mark.asyncio
async def test_delete_invalidates_cache(admin, outlet, thali):
    await list_menu(outlet.id)

    await delete_menu_item(admin, thali.id)

    listing = await list_menu(outlet.id)
    assert listing["cached"] is False
    assert listing["menu_items"] == []


@pytest.mark.asyncio
async def test_bulk_update(admin, outlet, thali):
    samosa = await make_item(outlet, name="Samosa", price="15.00", quantity=0, category=MenuCategory.SNACKS)
    menu_cache.put(outlet.id, "all", "all", [])

    result = await bulk_update_quantities(admin, [
        {"id": str(thali.id), "quantity": 0},
        {"id": str(samosa.id), "quantity": 40},
        {"id": str(uuid4()), "quantity": 5},
    ])

    assert result == {"matched_count": 2, "modified_count": 2}
    assert (await MenuItem.get(id=thali.id)).is_available is False
    assert (await MenuItem.get(id=samosa.id)).is_available is True
    assert menu_cache.get(outlet.id) is None


@pytest.mark.asyncio
async def test_bulk_update_validation(admin, thali):
    with pytest.raises(InvalidInput):
        await bulk_update_quantities(admin, [])
    with pytest.raises(InvalidInput):
        await bulk_update_quantities(admin, [{"id": str(thali.id), "quantity": -1}])
