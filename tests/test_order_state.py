import asyncio
import pytest
from uuid import uuid4

from app.core.exceptions import InvalidTransition, NotFound, Unauthorized
from app.events.outbox_utility import ORDER_STATUS_CHANGED
from app.models.menu import MenuItem
from app.models.order import Order, OrderStatus, OrderType, PaymentType
from app.models.outbox import OutboxEvent
from app.schemas.auth import Principal, Role
from app.services.menu_cache import menu_cache
from app.services.order_service import place_order
from app.services.order_state import (
    OrderAction,
    approve_order,
    can_transition,
    cancel_order,
    complete_order,
    reject_order,
    transition,
)
from tests.factories import make_item


async def _order(principal, outlet, item, payment_type=PaymentType.ORGANIZATION, quantity=2):
    return await place_order(
        principal, outlet.id, [{"menu_item_id": str(item.id), "quantity": quantity}], OrderType.DINE_IN, payment_type
    )


@pytest.mark.parametrize("status,action,allowed", [
    (OrderStatus.PENDING, OrderAction.APPROVE, True),
    (OrderStatus.PENDING, OrderAction.REJECT, True),
    (OrderStatus.PENDING, OrderAction.CANCEL, True),
    (OrderStatus.PENDING, OrderAction.COMPLETE, False),
    (OrderStatus.APPROVED, OrderAction.COMPLETE, True),
    (OrderStatus.APPROVED, OrderAction.CANCEL, True),
    (OrderStatus.APPROVED, OrderAction.APPROVE, False),
    (OrderStatus.APPROVED, OrderAction.REJECT, False),
    (OrderStatus.COMPLETED, OrderAction.CANCEL, False),
    (OrderStatus.REJECTED, OrderAction.APPROVE, False),
    (OrderStatus.CANCELLED, OrderAction.COMPLETE, False),
])
def test_transition_table(status, action, allowed):
    assert can_transition(status, action) is allowed


@pytest.mark.asyncio
async def test_approve_then_complete(buyer, admin, outlet, thali):
    order = await _order(buyer, outlet, thali)

    approved = await approve_order(admin, order.id, notes="Team lunch")
    assert approved.status == OrderStatus.APPROVED
    assert approved.approved_by == "admin-1"
    assert approved.notes == "Team lunch"

    completed = await complete_order(admin, order.id)
    assert completed.status == OrderStatus.COMPLETED

    events = await OutboxEvent.filter(event_type=ORDER_STATUS_CHANGED).order_by("created_at")
    assert [(e.payload["old_status"], e.payload["new_status"]) for e in events] == [
        ("pending", "approved"),
        ("approved", "completed"),
    ]


@pytest.mark.asyncio
async def test_terminal_orders_are_immutable(buyer, admin, outlet, thali):
    order = await _order(buyer, outlet, thali, payment_type=PaymentType.INDIVIDUAL)
    await complete_order(admin, order.id)

    for action in OrderAction:
        with pytest.raises(InvalidTransition) as excinfo:
            await transition(admin, order.id, action)
        assert excinfo.value.current_status == "completed"
    assert (await Order.get(id=order.id)).status == OrderStatus.COMPLETED


@pytest.mark.asyncio
async def test_complete_requires_approval(buyer, admin, outlet, thali):
    order = await _order(buyer, outlet, thali)
    with pytest.raises(InvalidTransition):
        await complete_order(admin, order.id)


@pytest.mark.asyncio
async def test_concurrent_approve_and_reject_exactly_one_wins(buyer, admin, outlet, thali):
    order = await _order(buyer, outlet, thali)

    results = await asyncio.gather(
        approve_order(admin, order.id),
        reject_order(admin, order.id),
        return_exceptions=True,
    )

    winners = [r for r in results if isinstance(r, Order)]
    losers = [r for r in results if isinstance(r, InvalidTransition)]
    assert len(winners) == 1 and len(losers) == 1
    final = await Order.get(id=order.id)
    assert final.status == winners[0].status
    assert await OutboxEvent.filter(event_type=ORDER_STATUS_CHANGED).count() == 1


@pytest.mark.asyncio
async def test_cancel_restores_stock_and_invalidates_cache(buyer, outlet, thali):
    order = await _order(buyer, outlet, thali, payment_type=PaymentType.INDIVIDUAL, quantity=5)
    assert (await MenuItem.get(id=thali.id)).quantity == 45
    menu_cache.put(outlet.id, "all", "all", [{"id": str(thali.id), "quantity": 45}])

    cancelled = await cancel_order(buyer, order.id)

    assert cancelled.status == OrderStatus.CANCELLED
    assert (await MenuItem.get(id=thali.id)).quantity == 50
    assert menu_cache.get(outlet.id) is None


@pytest.mark.asyncio
async def test_cancel_makes_sold_out_item_available_again(buyer, outlet):
    item = await make_item(outlet, name="Samosa", quantity=2)
    order = await _order(buyer, outlet, item, payment_type=PaymentType.INDIVIDUAL, quantity=2)
    assert (await MenuItem.get(id=item.id)).is_available is False

    await cancel_order(buyer, order.id)

    item = await MenuItem.get(id=item.id)
    assert item.quantity == 2
    assert item.is_available is True


@pytest.mark.asyncio
async def test_double_cancel_restores_once(buyer, outlet, thali):
    order = await _order(buyer, outlet, thali, quantity=3)

    await cancel_order(buyer, order.id)
    with pytest.raises(InvalidTransition):
        await cancel_order(buyer, order.id)

    assert (await MenuItem.get(id=thali.id)).quantity == 50


@pytest.mark.asyncio
async def test_reject_keeps_reserved_stock(buyer, admin, outlet, thali):
    order = await _order(buyer, outlet, thali, quantity=4)

    await reject_order(admin, order.id)

    assert (await MenuItem.get(id=thali.id)).quantity == 46


@pytest.mark.asyncio
async def test_only_operators_of_the_outlet_decide(buyer, other_buyer, outlet, other_outlet, thali):
    order = await _order(buyer, outlet, thali)
    stranger = Principal(user_id="admin-2", role=Role.ADMIN, outlet_ids=[str(other_outlet.id)])

    with pytest.raises(Unauthorized):
        await approve_order(buyer, order.id)
    with pytest.raises(Unauthorized):
        await approve_order(stranger, order.id)
    with pytest.raises(Unauthorized):
        await cancel_order(other_buyer, order.id)
    assert (await Order.get(id=order.id)).status == OrderStatus.PENDING


@pytest.mark.asyncio
async def test_super_admin_can_act_anywhere(buyer, super_admin, outlet, thali):
    order = await _order(buyer, outlet, thali)
    assert (await approve_order(super_admin, order.id)).status == OrderStatus.APPROVED


@pytest.mark.asyncio
async def test_unknown_order(admin):
    with pytest.raises(NotFound):
        await approve_order(admin, uuid4())
