import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Fail fast when the database is not configured.
DATABASE_URL = os.environ.get("DATABASE_URL")

if not DATABASE_URL:
    raise ValueError("DATABASE_URL is not set. Please check your .env file.")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
SQL_ECHO = os.environ.get("SQL_ECHO", "false").lower() in ("1", "true", "yes")

# Share of the total collected up front for "deposit_20" bookings
DEPOSIT_RATE = float(os.environ.get("DEPOSIT_RATE", "0.2"))

# Default span of the "copy slots to the next N days" tool
COPY_RANGE_DAYS = int(os.environ.get("COPY_RANGE_DAYS", "7"))

BOOKING_CODE_LENGTH = max(6, int(os.environ.get("BOOKING_CODE_LENGTH", "6")))

CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "*").split(",")
    if origin.strip()
]
