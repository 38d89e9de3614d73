# scripts/seed_data.py
import asyncio
import logging
from tortoise import Tortoise
from app.core.db import DB_URL, MODELS_MODULES
from app.models.menu import MenuCategory, MenuItem
from app.models.outlet import Outlet
from app.services.menu_cache import menu_cache

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("seed_data")

OUTLETS = [
    {"name": "Main Canteen", "location": "Block A, Ground Floor", "gateway_key_id": "rzp_test_main", "gateway_key_secret": "main_secret"},
    {"name": "Tech Park Cafe", "location": "Tower 2, Level 3", "gateway_key_id": "rzp_test_techpark", "gateway_key_secret": "techpark_secret"},
]

# name, category, price, quantity
MENU = [
    ("Veg Thali", MenuCategory.MAIN, "120.00", 50),
    ("Masala Dosa", MenuCategory.SOUTH, "60.00", 40),
    ("Samosa", MenuCategory.SNACKS, "15.00", 100),
    ("Filter Coffee", MenuCategory.BEVERAGES, "20.00", 80),
    ("Gulab Jamun", MenuCategory.DESSERTS, "30.00", 0),
]

async def init():
    await Tortoise.init(db_url=DB_URL, modules={"models": MODELS_MODULES})
    # don't generate schemas here (already created), but safe to call in dev:
    # await Tortoise.generate_schemas()

async def seed():
    for data in OUTLETS:
        defaults = {k: v for k, v in data.items() if k != "name"}
        outlet, _ = await Outlet.get_or_create(name=data["name"], defaults=defaults)
        log.info(f"Outlet: {outlet.name} {outlet.id}")

        for name, category, price, quantity in MENU:
            item, created = await MenuItem.get_or_create(
                outlet=outlet,
                name=name,
                defaults={"category": category, "price": price, "quantity": quantity, "is_available": quantity > 0},
            )
            if not created:
                # Re-running the seed restocks (idempotent)
                await MenuItem.filter(id=item.id).update(quantity=quantity, is_available=quantity > 0)
            log.info(f"  {name}: {quantity} @ {price}")

        menu_cache.invalidate(outlet.id)

    log.info("Menu seeded.")

async def main():
    await init()
    await seed()
    await Tortoise.close_connections()

if __name__ == "__main__":
    asyncio.run(main())
