from enum import Enum
from tortoise import fields, models
import uuid


class OrderStatus(str, Enum):
    PENDING = "pending"      # Organization bill waiting for sign-off
    APPROVED = "approved"    # Kitchen may act on it
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.REJECTED, OrderStatus.CANCELLED})


class OrderType(str, Enum):
    DINE_IN = "dine-in"
    TAKEAWAY = "takeaway"


class PaymentType(str, Enum):
    INDIVIDUAL = "individual"
    ORGANIZATION = "organization"


class Order(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    # Human readable, immutable reference (ORD-<epoch ms>-<suffix>)
    order_ref = fields.CharField(max_length=64, unique=True)
    user_id = fields.CharField(max_length=64)
    outlet = fields.ForeignKeyField("models.Outlet", related_name="orders")
    order_type = fields.CharEnumField(OrderType)
    payment_type = fields.CharEnumField(PaymentType)
    status = fields.CharEnumField(OrderStatus, default=OrderStatus.PENDING)
    total_amount = fields.DecimalField(max_digits=14, decimal_places=2, default=0)
    approved_by = fields.CharField(max_length=64, null=True)
    notes = fields.TextField(null=True)
    order_time = fields.CharField(max_length=16)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "orders"
        indexes = [
            ("outlet_id",),              # Outlet order queries
            ("status",),                 # Status-based filtering
            ("user_id",),                # User order history
            ("created_at",),             # Time-based queries
            ("user_id", "created_at"),   # Composite: user history, newest first
            ("outlet_id", "created_at"), # Composite: outlet queue
        ]


class OrderItem(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    order = fields.ForeignKeyField("models.Order", related_name="items")
    menu_item = fields.ForeignKeyField("models.MenuItem", related_name="order_items")
    quantity = fields.IntField()
    # Price captured at reservation time, never re-read from the menu
    unit_price = fields.DecimalField(max_digits=10, decimal_places=2)
    line_total = fields.DecimalField(max_digits=14, decimal_places=2)

    class Meta:
        table = "order_items"
        indexes = [
            ("order_id",),              # Order line items
            ("menu_item_id",),          # Menu item popularity
        ]
