# app/models/__init__.py
from .outlet import Outlet
from .menu import MenuItem, MenuCategory
from .order import Order, OrderItem, OrderStatus, OrderType, PaymentType, TERMINAL_STATUSES
from .payment import PaymentTransaction, PaymentChannel, TransactionStatus
from .outbox import OutboxEvent

# Export all models
__all__ = [
    "MenuCategory",
    "MenuItem",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderType",
    "OutboxEvent",
    "Outlet",
    "PaymentChannel",
    "PaymentTransaction",
    "PaymentType",
    "TERMINAL_STATUSES",
    "TransactionStatus",
]
