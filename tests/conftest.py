import pytest
import pytest_asyncio
from tortoise import Tortoise

from app.core.db import MODELS_MODULES
from app.models.outlet import Outlet
from app.schemas.auth import Principal, Role
from app.services.menu_cache import menu_cache
from tests.factories import make_item


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory SQLite database per test."""
    await Tortoise.init(db_url="sqlite://:memory:", modules={"models": MODELS_MODULES})
    await Tortoise.generate_schemas()
    menu_cache.clear()
    yield
    menu_cache.clear()
    await Tortoise.close_connections()


@pytest_asyncio.fixture
async def outlet(db):
    return await Outlet.create(
        name="Main Canteen",
        location="Block A",
        gateway_key_id="rzp_test_main",
        gateway_key_secret="main_secret",
    )


@pytest_asyncio.fixture
async def other_outlet(db):
    return await Outlet.create(
        name="Tech Park Cafe",
        location="Tower 2",
        gateway_key_id="rzp_test_techpark",
        gateway_key_secret="techpark_secret",
    )


@pytest_asyncio.fixture
async def thali(outlet):
    return await make_item(outlet)


@pytest.fixture
def buyer():
    return Principal(user_id="user-1", role=Role.USER)


@pytest.fixture
def other_buyer():
    return Principal(user_id="user-2", role=Role.USER)


@pytest.fixture
def admin(outlet):
    return Principal(user_id="admin-1", role=Role.ADMIN, outlet_ids=[str(outlet.id)])


@pytest.fixture
def super_admin():
    return Principal(user_id="root", role=Role.SUPER_ADMIN)
