import logging
import math
from fastapi import APIRouter, Depends, Query
from app.api.deps import get_principal
from app.models.payment import TransactionStatus
from app.schemas.auth import Principal
from app.schemas.order import OrderDetailResponse, Pagination
from app.schemas.payment import (
    GatewayOrderRequest,
    GatewayOrderResponse,
    PaymentCallback,
    PaymentFailure,
    TransactionListResponse,
    TransactionResponse,
)
from app.schemas.response import SuccessResponse
from app.services.payment_service import (
    create_gateway_order,
    list_transactions,
    mark_failed,
    public_key,
    verify_payment,
)
from typing import Optional
from uuid import UUID

log = logging.getLogger("uvicorn")

router = APIRouter()


def _transaction_response(transaction) -> TransactionResponse:
    return TransactionResponse(
        transaction_id=transaction.id,
        order_ref=transaction.order_ref,
        status=transaction.status,
        amount=transaction.amount,
        currency=transaction.currency,
        order_id=transaction.order_id,
        outlet_id=transaction.outlet_id,
        user_id=transaction.user_id,
        gateway_order_id=transaction.gateway_order_id,
        gateway_payment_id=transaction.gateway_payment_id,
        failure_reason=transaction.failure_reason,
        created_at=str(transaction.created_at),
    )


@router.get("/config/{outlet_id}", response_model=SuccessResponse)
async def gateway_config_endpoint(outlet_id: UUID, principal: Principal = Depends(get_principal)):
    """Public gateway key of the outlet for the checkout widget."""
    return SuccessResponse(data=await public_key(outlet_id))


@router.post("/create-order", response_model=SuccessResponse)
async def create_gateway_order_endpoint(request_data: GatewayOrderRequest, principal: Principal = Depends(get_principal)):
    """
    Opens a gateway payment for the intended order. No Order exists until the
    payment is verified.
    """
    transaction = await create_gateway_order(
        principal,
        outlet_id=request_data.outlet_id,
        items=[{"menu_item_id": str(i.menu_item_id), "quantity": i.quantity} for i in request_data.items],
        order_type=request_data.order_type,
        notes=request_data.notes,
    )
    config = await public_key(transaction.outlet_id)
    data = GatewayOrderResponse(
        transaction_id=transaction.id,
        gateway_order_id=transaction.gateway_order_id,
        order_ref=transaction.order_ref,
        amount=transaction.amount,
        currency=transaction.currency,
        key=config["key"],
        outlet_id=transaction.outlet_id,
    ).model_dump(mode="json")
    return SuccessResponse(data=data)


@router.post("/verify-payment", response_model=SuccessResponse)
async def verify_payment_endpoint(callback: PaymentCallback):
    """
    Gateway completion callback. Safe to deliver more than once: repeats
    return the order created by the first delivery.
    """
    result = await verify_payment(
        transaction_id=callback.transaction_id,
        gateway_order_id=callback.gateway_order_id,
        gateway_payment_id=callback.gateway_payment_id,
        signature=callback.signature,
    )
    return SuccessResponse(data={
        "message": "Payment verified successfully" if result.created else "Payment already verified",
        "order": OrderDetailResponse.from_order(result.order).model_dump(mode="json"),
        "transaction": _transaction_response(result.transaction).model_dump(mode="json"),
    })


@router.post("/payment-failed", response_model=SuccessResponse)
async def payment_failed_endpoint(failure: PaymentFailure, principal: Principal = Depends(get_principal)):
    """Buyer (or an operator of the outlet) reports an abandoned or declined payment."""
    transaction = await mark_failed(principal, failure.transaction_id, failure.reason)
    return SuccessResponse(data=_transaction_response(transaction).model_dump(mode="json"))


@router.get("/transactions", response_model=SuccessResponse)
async def list_transactions_endpoint(
    outlet_id: Optional[UUID] = None,
    status_filter: Optional[TransactionStatus] = Query(None, alias="status"),
    limit: int = 20,
    page: int = 1,
    principal: Principal = Depends(get_principal),
):
    """Operator view of payment attempts, including unfinalized and failed ones."""
    transactions, total = await list_transactions(
        principal, outlet_id=outlet_id, status=status_filter, limit=limit, page=page
    )
    data = TransactionListResponse(
        transactions=[_transaction_response(t) for t in transactions],
        pagination=Pagination(
            current=page,
            total=math.ceil(total / limit) if limit else 0,
            count=len(transactions),
            total_records=total,
        ),
    ).model_dump(mode="json")
    return SuccessResponse(data=data)
