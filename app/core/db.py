from tortoise import Tortoise
from app.core.config import DB_URL
import logging
from logging import INFO

# Set logging level for Tortoise ORM
logging.getLogger('tortoise').setLevel(INFO)

# Define all models modules for the ORM
MODELS_MODULES = [
    "app.models.outlet",
    "app.models.menu",
    "app.models.order",
    "app.models.payment",
    "app.models.outbox",
]

async def init_db(db_url: str = DB_URL, generate_schemas: bool = True):
    """Initializes the Tortoise ORM connection and generates schemas."""
    try:
        await Tortoise.init(
            db_url=db_url,
            modules={"models": MODELS_MODULES},
        )
        if generate_schemas:
            # Generate the database schema (create tables)
            await Tortoise.generate_schemas()
        print("Database connection established and schemas generated.")
    except Exception as e:
        print(f"FATAL ERROR: Could not connect to database at {db_url}. Error: {e}")
        # Re-raise to prevent the application from starting without a database
        raise

async def close_db():
    """Closes all database connections."""
    await Tortoise.close_connections()
    print("Database connections closed.")
