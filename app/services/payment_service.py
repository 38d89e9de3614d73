"""
Gateway payment channel: create the gateway order, then verify the signed
completion callback before any Order exists.

Unlike the individual and organization channels, where the Order is created
first, a gateway Order is only built after the callback's HMAC has been checked
against the secret of the outlet the Transaction belongs to. Stock is taken
from the ledger in the same database transaction that marks the payment paid.
"""
import hashlib
import hmac
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from tortoise.transactions import in_transaction

from app.core.config import DEFAULT_CURRENCY
from app.core.exceptions import (
    InsufficientStock,
    InvalidInput,
    InvalidTransition,
    NotFound,
    Unauthorized,
    VerificationFailed,
)
from app.events.outbox_utility import (
    PAYMENT_VERIFIED,
    create_outbox_event,
    emit_inventory_changed,
    emit_order_status_changed,
)
from app.models.menu import MenuItem
from app.models.order import Order, OrderItem, OrderStatus, OrderType, PaymentType
from app.models.outlet import Outlet
from app.models.payment import PaymentChannel, PaymentTransaction, TransactionStatus
from app.schemas.auth import Principal, Role
from app.services import inventory_ledger
from app.services.access import require_outlet_access
from app.services.gateway_client import GatewayClient, gateway_client
from app.services.menu_cache import menu_cache
from app.services.order_service import format_order_time, generate_order_ref, validate_lines
from app.services.outlet_directory import credentials_for, get_active_outlet

log = logging.getLogger("payment_service")
# Signature failures are security events and go to their own logger
security_log = logging.getLogger("payment.security")


@dataclass
class PaymentVerification:
    order: Order
    transaction: PaymentTransaction
    # False when the callback had already been applied
    created: bool


def compute_signature(secret: str, gateway_order_id: str, gateway_payment_id: str) -> str:
    """Hex HMAC-SHA256 over "<order_id>|<payment_id>"."""
    message = f"{gateway_order_id}|{gateway_payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_signature(secret: str, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
    expected = compute_signature(secret, gateway_order_id, gateway_payment_id)
    return hmac.compare_digest(expected.encode(), (signature or "").encode())


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1")))


async def quote_lines(outlet_id: UUID, items: List[Dict]) -> List[Dict]:
    """
    Prices the request from current menu prices. Stock is checked but not
    reserved; the client never supplies the amount.
    """
    lines = validate_lines(items)
    menu_items = await MenuItem.filter(id__in=[mid for mid, _ in lines], outlet_id=outlet_id)
    menu_map = {m.id: m for m in menu_items}

    quoted = []
    for menu_item_id, qty in lines:
        menu = menu_map.get(menu_item_id)
        if not menu:
            raise NotFound(f"Menu item {menu_item_id} not found")
        if not menu.is_available or menu.quantity < qty:
            raise InsufficientStock(
                f"{menu.name} is no longer available in that quantity. Available: {menu.quantity}, Requested: {qty}",
                menu_item_id=menu_item_id,
                requested=qty,
            )
        quoted.append({"menu_item_id": str(menu_item_id), "quantity": qty, "unit_price": str(menu.price)})
    return quoted


async def create_gateway_order(
    principal: Principal,
    outlet_id: UUID,
    items: List[Dict],
    order_type: OrderType,
    notes: Optional[str] = None,
    currency: str = DEFAULT_CURRENCY,
    client: Optional[GatewayClient] = None,
) -> PaymentTransaction:
    """
    Registers the payment with the gateway and records a ``created``
    Transaction holding the intended order. Nothing is written locally until
    the gateway has answered, so a failed call leaves no state behind.
    """
    outlet = await get_active_outlet(outlet_id)
    credentials = credentials_for(outlet)
    quoted = await quote_lines(outlet.id, items)
    total = sum((Decimal(line["unit_price"]) * line["quantity"] for line in quoted), Decimal("0"))
    order_ref = generate_order_ref()

    gateway_order = await (client or gateway_client).create_order(
        credentials,
        amount_minor=to_minor_units(total),
        currency=currency,
        receipt=order_ref,
        notes={"user_id": principal.user_id, "outlet_id": str(outlet.id), "order_type": OrderType(order_type).value},
    )

    transaction = await PaymentTransaction.create(
        order_ref=order_ref,
        gateway_order_id=gateway_order["id"],
        amount=total,
        currency=currency,
        status=TransactionStatus.CREATED,
        channel=PaymentChannel.GATEWAY,
        user_id=principal.user_id,
        outlet_id=outlet.id,
        metadata={
            "outlet_id": str(outlet.id),
            "order_type": OrderType(order_type).value,
            "notes": notes,
            "items": quoted,
            "total": str(total),
        },
    )
    log.info(f"Gateway order {gateway_order['id']} created for {order_ref} ({total} {currency})")
    return transaction


async def verify_payment(
    transaction_id: UUID,
    gateway_order_id: str,
    gateway_payment_id: str,
    signature: str,
) -> PaymentVerification:
    """
    Checks the gateway's signed callback and, on the first valid delivery,
    marks the Transaction paid and creates the completed Order from its
    captured payload. Repeat deliveries return the existing Order.
    """
    transaction = await PaymentTransaction.get_or_none(id=transaction_id)
    if not transaction:
        raise NotFound("Transaction not found")

    outlet = await Outlet.get_or_none(id=transaction.outlet_id)
    if outlet is None:
        raise NotFound("Outlet not found")
    # Always the secret of the Transaction's own outlet, never a default
    credentials = credentials_for(outlet)

    order_matches = hmac.compare_digest(transaction.gateway_order_id.encode(), (gateway_order_id or "").encode())
    if not order_matches or not verify_signature(
        credentials.key_secret, gateway_order_id, gateway_payment_id, signature
    ):
        security_log.warning(
            f"Payment signature rejected for transaction {transaction.id} "
            f"(outlet {outlet.id}, gateway order {gateway_order_id})"
        )
        raise VerificationFailed()

    if transaction.status == TransactionStatus.PAID:
        return await _already_applied(transaction)

    order = None
    paid = None
    try:
        async with in_transaction() as conn:
            updated = await PaymentTransaction.filter(
                id=transaction.id, status=TransactionStatus.CREATED
            ).using_db(conn).update(
                status=TransactionStatus.PAID,
                gateway_payment_id=gateway_payment_id,
                signature=signature,
                failure_reason=None,
            )
            if not updated:
                current = await PaymentTransaction.get(id=transaction.id).using_db(conn)
                if current.status != TransactionStatus.PAID:
                    raise InvalidTransition(
                        f"Transaction is {current.status.value}",
                        current_status=current.status.value,
                        action="pay",
                    )
                paid = current
            else:
                order = await _build_paid_order(transaction, gateway_payment_id, conn)
                await PaymentTransaction.filter(id=transaction.id).using_db(conn).update(order_id=order.id)
                await create_outbox_event(
                    aggregate_type="transaction",
                    aggregate_id=transaction.id,
                    event_type=PAYMENT_VERIFIED,
                    payload={
                        "transaction_id": str(transaction.id),
                        "order_id": str(order.id),
                        "order_ref": order.order_ref,
                        "gateway_payment_id": gateway_payment_id,
                        "amount": str(transaction.amount),
                    },
                    conn=conn,
                )
                await emit_order_status_changed(order.id, order.order_ref, None, OrderStatus.COMPLETED.value, conn=conn)
    except (InsufficientStock, NotFound) as exc:
        # Paid at the gateway but the stock is gone: the Transaction stays
        # 'created' with the payment id recorded so an operator can refund it
        await PaymentTransaction.filter(id=transaction.id, status=TransactionStatus.CREATED).update(
            gateway_payment_id=gateway_payment_id,
            failure_reason=f"Unfulfillable after payment: {exc.message}",
        )
        log.warning(
            f"Payment {gateway_payment_id} for {transaction.order_ref} verified but not fulfilled "
            f"({exc.message}); refund required"
        )
        raise

    if order is None:
        # Lost the race to a concurrent delivery of the same callback
        return await _already_applied(paid)

    menu_cache.invalidate(transaction.outlet_id)
    transaction = await PaymentTransaction.get(id=transaction.id)
    log.info(f"Payment {gateway_payment_id} verified; order {order.order_ref} completed")
    order = await Order.get(id=order.id).prefetch_related('items', 'items__menu_item')
    return PaymentVerification(order=order, transaction=transaction, created=True)


async def _already_applied(transaction: PaymentTransaction) -> PaymentVerification:
    log.info(f"Duplicate payment callback for transaction {transaction.id} ignored")
    order = await Order.get(order_ref=transaction.order_ref).prefetch_related('items', 'items__menu_item')
    return PaymentVerification(order=order, transaction=transaction, created=False)


async def _build_paid_order(transaction: PaymentTransaction, gateway_payment_id: str, conn) -> Order:
    """
    Takes the captured lines out of the ledger and writes the completed Order.
    Lines keep the price quoted when the payment was opened.
    """
    metadata = transaction.metadata or {}
    items = metadata.get("items") or []
    if not items:
        raise InvalidInput("Transaction carries no order items")

    lines = []
    for line in items:
        menu_item_id = UUID(line["menu_item_id"])
        qty = int(line["quantity"])
        await inventory_ledger.reserve(menu_item_id, transaction.outlet_id, qty, conn=conn)
        lines.append((menu_item_id, qty, Decimal(line["unit_price"])))

    order = await Order.create(
        order_ref=transaction.order_ref,
        user_id=transaction.user_id,
        outlet_id=transaction.outlet_id,
        order_type=OrderType(metadata.get("order_type", OrderType.TAKEAWAY.value)),
        payment_type=PaymentType.INDIVIDUAL,
        status=OrderStatus.COMPLETED,
        total_amount=transaction.amount,
        notes=metadata.get("notes") or f"Paid via gateway - Payment ID: {gateway_payment_id}",
        order_time=format_order_time(),
        using_db=conn,
    )
    for menu_item_id, qty, unit_price in lines:
        await OrderItem.create(
            order=order,
            menu_item_id=menu_item_id,
            quantity=qty,
            unit_price=unit_price,
            line_total=unit_price * qty,
            using_db=conn,
        )
    await emit_inventory_changed(
        transaction.outlet_id, [mid for mid, _, _ in lines], "payment.verified", conn=conn
    )
    return order


async def mark_failed(principal: Principal, transaction_id: UUID, reason: str) -> PaymentTransaction:
    """
    Gateway reported a failed payment: created -> failed, once. Only the buyer
    who opened the payment or an operator of its outlet may report it.
    """
    transaction = await PaymentTransaction.get_or_none(id=transaction_id)
    if transaction is None:
        raise NotFound("Transaction not found")
    if transaction.user_id != principal.user_id:
        require_outlet_access(principal, transaction.outlet_id)

    updated = await PaymentTransaction.filter(
        id=transaction_id, status=TransactionStatus.CREATED
    ).update(status=TransactionStatus.FAILED, failure_reason=reason)
    transaction = await PaymentTransaction.get(id=transaction_id)
    if not updated:
        raise InvalidTransition(
            f"Transaction is {transaction.status.value}",
            current_status=transaction.status.value,
            action="fail",
        )
    log.warning(f"Payment for {transaction.order_ref} failed: {reason}")
    return transaction


async def list_transactions(
    principal: Principal,
    outlet_id: Optional[UUID] = None,
    status: Optional[TransactionStatus] = None,
    limit: int = 20,
    page: int = 1,
) -> Tuple[List[PaymentTransaction], int]:
    """
    Operator view of payment attempts, newest first. Admins with assigned
    outlets only ever see those outlets.
    """
    if not principal.is_operator:
        raise Unauthorized("Access denied: operators only")
    if limit < 1 or page < 1:
        raise InvalidInput("limit and page must be positive")

    query = PaymentTransaction.all()
    if outlet_id:
        require_outlet_access(principal, outlet_id)
        query = query.filter(outlet_id=outlet_id)
    elif principal.role == Role.ADMIN and principal.outlet_ids:
        try:
            assigned = [UUID(o) for o in principal.outlet_ids]
        except ValueError:
            raise InvalidInput("Invalid outlet assignment")
        query = query.filter(outlet_id__in=assigned)
    if status:
        query = query.filter(status=status)

    total = await query.count()
    transactions = await query.order_by("-created_at").offset((page - 1) * limit).limit(limit)
    return transactions, total


async def public_key(outlet_id: UUID) -> Dict[str, str]:
    """Key id the checkout widget needs; the secret is never returned."""
    outlet = await get_active_outlet(outlet_id)
    credentials = credentials_for(outlet)
    return {"key": credentials.key_id, "outlet_id": str(outlet.id), "outlet_name": outlet.name}
