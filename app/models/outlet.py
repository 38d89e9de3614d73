from tortoise import fields, models
import uuid


class Outlet(models.Model):
    """A canteen / serving location with its own menu, stock and gateway account."""
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    name = fields.CharField(max_length=255)
    location = fields.CharField(max_length=255, default="")
    is_active = fields.BooleanField(default=True)
    # Per-outlet gateway credentials; the secret never leaves the server
    gateway_key_id = fields.CharField(max_length=128, null=True)
    gateway_key_secret = fields.CharField(max_length=256, null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "outlets"
        indexes = [
            ("is_active",),  # For filtering active outlets
        ]

    def __str__(self) -> str:
        return self.name
