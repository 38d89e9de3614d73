import os

# Database Configuration
# Uses default credentials for local Docker Compose setup
DB_URL = os.getenv("DATABASE_URL", "postgres://user:password@db:5432/canteen_db")

# Application Metadata
PROJECT_NAME = "Canteen Order Service"
VERSION = "1.0.0"

# Outbox Poller Configuration (delivers notification events)
POLLING_INTERVAL = int(os.getenv("POLLING_INTERVAL", 1)) # Poller checks for new events every N seconds
MAX_ATTEMPTS = int(os.getenv("MAX_ATTEMPTS", 5)) # Max retries for an event
BATCH_SIZE = int(os.getenv("BATCH_SIZE", 50)) # How many events to fetch per poll

# Menu availability cache: safety-net expiry, invalidation is the primary mechanism
MENU_CACHE_TTL = int(os.getenv("MENU_CACHE_TTL", 300))
MENU_CACHE_MAX_ENTRIES = int(os.getenv("MENU_CACHE_MAX_ENTRIES", 1000))

# Payment gateway (Razorpay-compatible REST API)
GATEWAY_BASE_URL = os.getenv("GATEWAY_BASE_URL", "https://api.razorpay.com")
GATEWAY_TIMEOUT = float(os.getenv("GATEWAY_TIMEOUT", 10))
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "INR")

# Orders
ORDER_TIMEZONE = os.getenv("ORDER_TIMEZONE", "Asia/Kolkata")
