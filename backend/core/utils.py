"""
Shared utility helpers.

Pure functions: no LLM, no I/O, no side effects. Cell values arrive as a
loose union (number | string | boolean | null); everything here converts
them explicitly instead of relying on implicit coercion.
"""

from __future__ import annotations

import math
import re
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from core.models import Scalar


# ---------------------------------------------------------------------------
# Scalar conversion
# ---------------------------------------------------------------------------

# The whole string must be the number: "5px" and "12abc" are not numeric.
_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_ID_SHAPE_RE = re.compile(r"^[A-Z][0-9]+$", re.IGNORECASE)
_ID_HEADER_RE = re.compile(r"id$|^id|_id$|^customer|^user", re.IGNORECASE)


def is_missing(value: Any) -> bool:
    """None and float NaN both count as null."""
    if value is None:
        return True
    return isinstance(value, float) and math.isnan(value)


def try_parse_number(value: Scalar) -> Optional[float]:
    """Return the finite number *value* represents, or None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        num = float(value)
        return num if math.isfinite(num) else None
    if isinstance(value, str):
        text = value.strip()
        if not _NUMBER_RE.match(text):
            return None
        num = float(text)
        return num if math.isfinite(num) else None
    return None


def looks_like_date(value: Scalar) -> bool:
    """True for strings with a leading YYYY-MM-DD."""
    return isinstance(value, str) and _DATE_RE.match(value) is not None


def matches_id_shape(value: Scalar) -> bool:
    """True for codes like "C1001": one letter followed by digits."""
    return isinstance(value, str) and _ID_SHAPE_RE.match(value) is not None


def is_id_like_header(header: str) -> bool:
    return _ID_HEADER_RE.search(header) is not None


def numeric_values(values: Iterable[Scalar]) -> List[float]:
    """The parseable-numeric subset of *values*, in order."""
    out: List[float] = []
    for v in values:
        num = try_parse_number(v)
        if num is not None:
            out.append(num)
    return out


def hashable_key(value: Scalar) -> Any:
    """Key for distinct-value counting: 1 and "1" stay distinct, True and 1 too."""
    if is_missing(value):
        return (None,)
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, (int, float)):
        return ("num", float(value))
    return ("str", str(value))


def count_unique(values: Iterable[Scalar]) -> int:
    return len({hashable_key(v) for v in values})


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------

def population_variance(nums: List[float]) -> float:
    """Variance over the whole population; 0.0 for an empty list."""
    if not nums:
        return 0.0
    var = float(np.var(np.asarray(nums, dtype=float)))
    return var if math.isfinite(var) else 0.0


def safe_mean(nums: List[float]) -> Optional[float]:
    if not nums:
        return None
    return float(np.mean(np.asarray(nums, dtype=float)))


# ---------------------------------------------------------------------------
# DataFrame safety
# ---------------------------------------------------------------------------

def df_json_safe(df: pd.DataFrame) -> pd.DataFrame:
    """Replace +/-inf -> NaN, then NaN -> None so JSON serialization works."""
    if df.empty:
        return df
    tmp = df.replace([np.inf, -np.inf], np.nan)
    tmp = tmp.astype(object)
    return tmp.where(pd.notna(tmp), None)


def df_to_records_safe(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Convert DataFrame to list of dicts with JSON-safe values."""
    return df_json_safe(df).to_dict(orient="records")
