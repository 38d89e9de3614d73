from decimal import Decimal

from app.models.menu import MenuCategory, MenuItem


async def make_item(outlet, name="Veg Thali", price="120.00", quantity=50, category=MenuCategory.MAIN):
    return await MenuItem.create(
        outlet=outlet,
        name=name,
        price=Decimal(price),
        quantity=quantity,
        category=category,
        is_available=quantity > 0,
    )
