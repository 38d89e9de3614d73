import uuid
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from app.models.menu import MenuCategory


class MenuItemCreate(BaseModel):
    outlet_id: uuid.UUID
    name: str = Field(..., min_length=1, description="Name of the menu item (e.g., Veg Thali).")
    price: Decimal = Field(..., ge=0, description="Selling price of the item.")
    quantity: int = Field(..., ge=0, description="Initial available stock quantity.")
    category: MenuCategory
    description: Optional[str] = None

class MenuItemUpdate(BaseModel):
    """Availability is not accepted: it always follows quantity."""
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[MenuCategory] = None
    price: Optional[Decimal] = Field(None, ge=0)
    quantity: Optional[int] = Field(None, ge=0)

class QuantityUpdate(BaseModel):
    id: uuid.UUID
    quantity: int = Field(..., ge=0)

class BulkQuantityUpdate(BaseModel):
    updates: List[QuantityUpdate] = Field(..., min_length=1)

class MenuItemResponse(BaseModel):
    id: uuid.UUID
    outlet_id: uuid.UUID
    name: str
    description: Optional[str] = None
    category: MenuCategory
    price: str
    quantity: int
    is_available: bool
