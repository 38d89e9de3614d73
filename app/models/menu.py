from enum import Enum
from tortoise import fields, models
import uuid


class MenuCategory(str, Enum):
    MAIN = "main"
    SOUTH = "south"
    SNACKS = "snacks"
    BEVERAGES = "beverages"
    DESSERTS = "desserts"


class MenuItem(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    outlet = fields.ForeignKeyField("models.Outlet", related_name="menu_items")
    name = fields.CharField(max_length=255)
    description = fields.TextField(null=True)
    category = fields.CharEnumField(MenuCategory, default=MenuCategory.MAIN)
    price = fields.DecimalField(max_digits=10, decimal_places=2)
    quantity = fields.IntField(default=0)
    # Derived from quantity by the inventory ledger, never written on its own
    is_available = fields.BooleanField(default=False)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "menu_items"
        indexes = [
            ("outlet_id",),                  # Fast outlet menu queries
            ("is_available",),               # Filter available items
            ("outlet_id", "category"),       # Composite: outlet menu by category
            ("outlet_id", "is_available"),   # Composite: outlet's available items
        ]

    def __str__(self) -> str:
        return self.name
