from enum import Enum
from tortoise import fields, models
import uuid


class TransactionStatus(str, Enum):
    CREATED = "created"
    PAID = "paid"
    FAILED = "failed"


class PaymentChannel(str, Enum):
    GATEWAY = "gateway"
    QR = "qr"
    ORGANIZATION = "organization"


class PaymentTransaction(models.Model):
    """
    A payment attempt through an external channel. For the gateway channel it
    carries the intended order payload in ``metadata`` so the Order can be
    built only after the gateway signature has been verified.
    """
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    order_ref = fields.CharField(max_length=64, unique=True)
    gateway_order_id = fields.CharField(max_length=128, unique=True)
    gateway_payment_id = fields.CharField(max_length=128, null=True)
    signature = fields.CharField(max_length=256, null=True)
    amount = fields.DecimalField(max_digits=14, decimal_places=2)
    currency = fields.CharField(max_length=8, default="INR")
    status = fields.CharEnumField(TransactionStatus, default=TransactionStatus.CREATED)
    channel = fields.CharEnumField(PaymentChannel, default=PaymentChannel.GATEWAY)
    user_id = fields.CharField(max_length=64)
    outlet = fields.ForeignKeyField("models.Outlet", related_name="transactions")
    metadata = fields.JSONField(default=dict)
    failure_reason = fields.TextField(null=True)
    order = fields.ForeignKeyField("models.Order", related_name="transactions", null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "transactions"
        indexes = [
            ("status",),
            ("outlet_id", "created_at"),
        ]
