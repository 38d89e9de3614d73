from tortoise import fields, models
import uuid


class OutboxEvent(models.Model):
    """
    Notification events written in the same database transaction as the
    inventory or order change they describe. The poller delivers them to
    downstream subscribers on a best-effort basis.
    """
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    aggregate_type = fields.CharField(max_length=64) # 'order', 'outlet' or 'transaction'
    aggregate_id = fields.UUIDField(null=True) # ID of the entity that generated the event
    event_type = fields.CharField(max_length=128) # e.g., 'inventory.changed.v1'
    payload = fields.JSONField() # The actual event data
    published = fields.BooleanField(default=False)
    attempts = fields.IntField(default=0)
    last_error = fields.TextField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "outbox_events"
        indexes = [
            ("published", "created_at"),  # Poller scan order
        ]
