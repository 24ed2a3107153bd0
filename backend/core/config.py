"""Runtime settings read from the environment (and a local .env, if present)."""

from __future__ import annotations

import logging
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("uvicorn.error")


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip() or default


def _env_int(key: str, default: int) -> int:
    raw = _env(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %d", key, raw, default)
        return default


CACHE_TTL_MS = _env_int("CACHE_TTL_MS", 300_000)
CACHE_MAX_SIZE = _env_int("CACHE_MAX_SIZE", 100)
IMPORT_MAX_ROWS = _env_int("IMPORT_MAX_ROWS", 10_000)
SUGGEST_SAMPLE_ROWS = _env_int("SUGGEST_SAMPLE_ROWS", 50)
ANALYZE_SAMPLE_ROWS = _env_int("ANALYZE_SAMPLE_ROWS", 100)
