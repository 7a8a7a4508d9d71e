from __future__ import annotations

import os

# Every knob is an environment variable with a dev-friendly default.

def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./pickerpacker.db")
SQL_ECHO = _flag("SQL_ECHO", "false")

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALG = os.getenv("JWT_ALG", "HS256")
JWT_TTL_MIN = int(os.getenv("JWT_TTL_MIN", str(7 * 24 * 60)))  # 7d default
JWT_ISSUER = os.getenv("JWT_ISSUER", "pickerpacker")

GEO_FENCE_ENABLED = _flag("GEO_FENCE_ENABLED", "true")
GEO_FENCE_RADIUS_METERS = int(os.getenv("GEO_FENCE_RADIUS_METERS", "1000"))

# When true, creating an order whose lines cannot be fully reserved fails with
# InsufficientStock instead of recording a SHORT_ALLOCATION exception.
STRICT_ALLOCATION = _flag("STRICT_ALLOCATION", "false")

DEFAULT_WAREHOUSE = os.getenv("DEFAULT_WAREHOUSE", "WH1")
DEFAULT_ZONE = os.getenv("DEFAULT_ZONE", "Z1")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
