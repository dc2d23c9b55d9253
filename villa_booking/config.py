import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Completion sweep only logs what it would do
DRY_RUN = os.getenv("DRY_RUN", "false").lower() == "true"

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment")

SCHEMA = "booking"

ALLOWED_ORIGINS_RAW = os.getenv("ALLOWED_ORIGINS")
if not ALLOWED_ORIGINS_RAW:
    raise ValueError("ALLOWED_ORIGINS must be set in the environment")

ALLOWED_ORIGINS: list[str] = [
    origin.strip() for origin in ALLOWED_ORIGINS_RAW.split(",")
]

# Settlement processor
SETTLEMENT_API_URL = os.getenv("SETTLEMENT_API_URL", "https://payments.internal/v1/")
SETTLEMENT_API_KEY = os.getenv("SETTLEMENT_API_KEY")
SETTLEMENT_TIMEOUT_SECONDS = float(os.getenv("SETTLEMENT_TIMEOUT_SECONDS", "10"))

# Fees
SERVICE_FEE_PERCENT = Decimal(os.getenv("SERVICE_FEE_PERCENT", "10"))
TAX_PERCENT = Decimal(os.getenv("TAX_PERCENT", "0"))
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD").upper()
PAYOUT_TRANSFER_METHOD = os.getenv("PAYOUT_TRANSFER_METHOD", "bank_transfer")
