from pydantic import BaseModel, Field
from typing import List, Optional
import uuid
from decimal import Decimal

from app.models.order import OrderStatus, OrderType, PaymentType


class OrderItemRequest(BaseModel):
    """Schema for a single item in the order request."""
    menu_item_id: uuid.UUID
    quantity: int = Field(..., description="Units requested, at least 1.")

class OrderRequest(BaseModel):
    """Schema for the full order placement request body."""
    outlet_id: uuid.UUID
    items: List[OrderItemRequest]
    order_type: OrderType
    payment_type: PaymentType
    notes: Optional[str] = None

class OrderPlacementResponse(BaseModel):
    """Response schema for a placed order or a status change."""
    order_id: uuid.UUID
    order_ref: str
    status: OrderStatus
    total_amount: Decimal
    message: str

class OrderTransitionRequest(BaseModel):
    """Optional operator notes attached to a status change."""
    notes: Optional[str] = None

class OrderItemResponse(BaseModel):
    """Schema for an item inside the detailed order response."""
    menu_item_id: uuid.UUID
    name: str
    quantity: int
    price: str  # Use string for Decimal type serialization

class OrderDetailResponse(BaseModel):
    """Schema for fetching detailed order information."""
    id: uuid.UUID
    order_ref: str
    user_id: str
    outlet_id: uuid.UUID
    status: OrderStatus
    order_type: OrderType
    payment_type: PaymentType
    total_amount: Decimal
    approved_by: Optional[str] = None
    notes: Optional[str] = None
    order_time: str
    items: List[OrderItemResponse]
    created_at: str

    @classmethod
    def from_order(cls, order) -> "OrderDetailResponse":
        return cls(
            id=order.id,
            order_ref=order.order_ref,
            user_id=order.user_id,
            outlet_id=order.outlet_id,
            status=order.status,
            order_type=order.order_type,
            payment_type=order.payment_type,
            total_amount=order.total_amount,
            approved_by=order.approved_by,
            notes=order.notes,
            order_time=order.order_time,
            items=[
                OrderItemResponse(
                    menu_item_id=i.menu_item_id,
                    name=i.menu_item.name,
                    quantity=i.quantity,
                    price=str(i.unit_price),
                )
                for i in order.items
            ],
            created_at=str(order.created_at),
        )

class Pagination(BaseModel):
    current: int
    total: int
    count: int
    total_records: int

class OrderListResponse(BaseModel):
    orders: List[OrderDetailResponse]
    pagination: Pagination
