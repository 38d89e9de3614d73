import uuid
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field

from app.models.order import OrderType
from app.models.payment import TransactionStatus
from app.schemas.order import OrderItemRequest, Pagination


class GatewayOrderRequest(BaseModel):
    """Intended order for a gateway payment. The amount is priced server-side."""
    outlet_id: uuid.UUID
    items: List[OrderItemRequest]
    order_type: OrderType
    notes: Optional[str] = None

class GatewayOrderResponse(BaseModel):
    transaction_id: uuid.UUID
    gateway_order_id: str
    order_ref: str
    amount: Decimal
    currency: str
    key: str
    outlet_id: uuid.UUID

class PaymentCallback(BaseModel):
    """Fields reported by the gateway on payment completion."""
    transaction_id: uuid.UUID
    gateway_order_id: str = Field(..., min_length=1)
    gateway_payment_id: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)

class PaymentFailure(BaseModel):
    transaction_id: uuid.UUID
    reason: str = "Payment failed"

class TransactionResponse(BaseModel):
    transaction_id: uuid.UUID
    order_ref: str
    status: TransactionStatus
    amount: Decimal
    currency: str
    order_id: Optional[uuid.UUID] = None
    outlet_id: Optional[uuid.UUID] = None
    user_id: Optional[str] = None
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: Optional[str] = None

class TransactionListResponse(BaseModel):
    transactions: List[TransactionResponse]
    pagination: Pagination
