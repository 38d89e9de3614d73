import asyncio
import pytest
from decimal import Decimal
from uuid import uuid4

from tortoise.transactions import in_transaction

from app.core.exceptions import InsufficientStock, InvalidInput, NotFound
from app.models.menu import MenuItem
from app.services import inventory_ledger
from tests.factories import make_item


@pytest.mark.asyncio
async def test_reserve_decrements_and_returns_price(thali, outlet):
    price = await inventory_ledger.reserve(thali.id, outlet.id, 3)

    assert price == Decimal("120.00")
    item = await MenuItem.get(id=thali.id)
    assert item.quantity == 47
    assert item.is_available is True


@pytest.mark.asyncio
async def test_reserving_last_unit_marks_unavailable(outlet):
    item = await make_item(outlet, name="Samosa", quantity=2)

    await inventory_ledger.reserve(item.id, outlet.id, 2)

    item = await MenuItem.get(id=item.id)
    assert item.quantity == 0
    assert item.is_available is False


@pytest.mark.asyncio
async def test_reserve_more_than_stock_changes_nothing(outlet):
    item = await make_item(outlet, name="Samosa", quantity=2)

    with pytest.raises(InsufficientStock) as excinfo:
        await inventory_ledger.reserve(item.id, outlet.id, 3)

    assert "Available: 2, Requested: 3" in excinfo.value.message
    assert (await MenuItem.get(id=item.id)).quantity == 2


@pytest.mark.asyncio
async def test_reserve_unknown_or_foreign_item(thali, other_outlet):
    with pytest.raises(NotFound):
        await inventory_ledger.reserve(uuid4(), thali.outlet_id, 1)
    # Item exists but belongs to another outlet
    with pytest.raises(NotFound):
        await inventory_ledger.reserve(thali.id, other_outlet.id, 1)


@pytest.mark.asyncio
async def test_reserve_rejects_non_positive_quantity(thali, outlet):
    with pytest.raises(InvalidInput):
        await inventory_ledger.reserve(thali.id, outlet.id, 0)


@pytest.mark.asyncio
async def test_concurrent_reservations_never_oversell(outlet):
    item = await make_item(outlet, name="Masala Dosa", quantity=5)

    results = await asyncio.gather(
        *[inventory_ledger.reserve(item.id, outlet.id, 1) for _ in range(8)],
        return_exceptions=True,
    )

    succeeded = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, InsufficientStock)]
    assert len(succeeded) == 5
    assert len(failed) == 3
    item = await MenuItem.get(id=item.id)
    assert item.quantity == 0
    assert item.is_available is False


@pytest.mark.asyncio
async def test_release_restores_availability(outlet):
    item = await make_item(outlet, name="Samosa", quantity=1)
    await inventory_ledger.reserve(item.id, outlet.id, 1)

    assert await inventory_ledger.release(item.id, 1) is True

    item = await MenuItem.get(id=item.id)
    assert item.quantity == 1
    assert item.is_available is True


@pytest.mark.asyncio
async def test_release_of_deleted_item_is_reported(db):
    assert await inventory_ledger.release(uuid4(), 1) is False


@pytest.mark.asyncio
async def test_set_quantity_derives_availability(thali):
    assert await inventory_ledger.set_quantity(thali.id, 0) is True
    assert (await MenuItem.get(id=thali.id)).is_available is False

    assert await inventory_ledger.set_quantity(thali.id, 10) is True
    item = await MenuItem.get(id=thali.id)
    assert item.quantity == 10
    assert item.is_available is True


@pytest.mark.asyncio
async def test_set_quantity_rejects_negative(thali):
    with pytest.raises(InvalidInput):
        await inventory_ledger.set_quantity(thali.id, -1)


@pytest.mark.asyncio
async def test_last_unit_has_exactly_one_winner(outlet):
    item = await make_item(outlet, name="Gulab Jamun", quantity=1)

    first, second = await asyncio.gather(
        inventory_ledger.reserve(item.id, outlet.id, 1),
        inventory_ledger.reserve(item.id, outlet.id, 1),
        return_exceptions=True,
    )

    outcomes = sorted([type(first).__name__, type(second).__name__])
    assert outcomes == ["Decimal", "InsufficientStock"]
    assert (await MenuItem.get(id=item.id)).quantity == 0


@pytest.mark.asyncio
async def test_reserve_inside_caller_transaction_rolls_back_with_it(thali, outlet):
    samosa = await make_item(outlet, name="Samosa", quantity=1)

    with pytest.raises(InsufficientStock):
        async with in_transaction() as conn:
            await inventory_ledger.reserve(thali.id, outlet.id, 2, conn=conn)
            await inventory_ledger.reserve(samosa.id, outlet.id, 2, conn=conn)

    assert (await MenuItem.get(id=thali.id)).quantity == 50
    assert (await MenuItem.get(id=samosa.id)).quantity == 1
