# app/settings.py
# Role: Process-wide configuration read from the environment (.env supported).

"""
Runtime settings.

All values come from environment variables; a local .env file is loaded
first so development setups don't need to export anything.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def env_truthy(name: str, default: str = "0") -> bool:
    v = os.getenv(name, default)
    return str(v).strip().lower() in ("1", "true", "yes", "y", "on")


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# SQLAlchemy URL; None means "use the SQLite file next to db.py"
DATABASE_URL = os.getenv("DATABASE_URL") or None

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Optional JSON overrides for the SMS pattern tables (see app/services/sms_rules.py)
SMS_RULES_FILE = os.getenv("SMS_RULES_FILE") or None

# Rows per UPDATE when a merchant rule is applied to history
RELABEL_CHUNK_SIZE = env_int("RELABEL_CHUNK_SIZE", 500)

# Messages per chunk during a bulk historical scan
SCAN_CHUNK_SIZE = env_int("SCAN_CHUNK_SIZE", 200)

# How far back the recurring-payment detector looks
SUBSCRIPTION_LOOKBACK_MONTHS = env_int("SUBSCRIPTION_LOOKBACK_MONTHS", 6)
