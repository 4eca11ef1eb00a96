"""
Environment-driven settings for the injector calibration backend.
"""

import os

DEFAULT_CORS_ORIGINS = [
    "http://localhost:5173",      # Vite default
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]


def _split_origins(value: str) -> list[str]:
    return [origin.strip() for origin in value.split(",") if origin.strip()]


_origins_env = os.environ.get("INJECTOR_CORS_ORIGINS")
CORS_ORIGINS = _split_origins(_origins_env) if _origins_env else DEFAULT_CORS_ORIGINS

MAX_SESSIONS = int(os.environ.get("INJECTOR_MAX_SESSIONS", "64"))

LOG_LEVEL = os.environ.get("INJECTOR_LOG_LEVEL", "INFO").upper()
