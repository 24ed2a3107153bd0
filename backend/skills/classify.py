"""
Column classification skill.

Assigns each column a semantic type (numeric / date / categorical) and,
orthogonally, flags identifier-like columns (customer codes, user ids) so
they never end up on a chart axis.

Rules are applied with identifier detection first; downstream pools drop an
identifier column even when its values are also numeric- or date-shaped.
"""

from __future__ import annotations

import logging
from typing import Sequence

from core.models import ColumnType, Scalar
from core.utils import (
    is_id_like_header,
    is_missing,
    looks_like_date,
    matches_id_shape,
    try_parse_number,
)

logger = logging.getLogger("uvicorn.error")


# ---------------------------------------------------------------------------
# Identifier detection
# ---------------------------------------------------------------------------

def looks_like_identifier(header: str, values: Sequence[Scalar]) -> bool:
    """
    True if the header reads as an id (``user_id``, ``id``, ``customer``...)
    or more than half of the non-null values are codes like ``"C1001"``.
    """
    if is_id_like_header(header):
        return True

    present = [v for v in values if not is_missing(v)]
    if not present:
        return False
    matches = sum(1 for v in present if matches_id_shape(v))
    return matches > len(present) * 0.5


# ---------------------------------------------------------------------------
# Type classification
# ---------------------------------------------------------------------------

def is_numeric_dominant(values: Sequence[Scalar]) -> bool:
    present = [v for v in values if not is_missing(v)]
    if not present:
        return False
    numeric = sum(1 for v in present if try_parse_number(v) is not None)
    return numeric > len(present) * 0.5


def is_date_dominant(values: Sequence[Scalar]) -> bool:
    strings = [v for v in values if isinstance(v, str)]
    if not strings:
        return False
    dates = sum(1 for v in strings if looks_like_date(v))
    return dates > len(strings) * 0.5


def classify(header: str, values: Sequence[Scalar]) -> ColumnType:
    """
    Infer the semantic type of one column.

    Numeric is tested before date; categorical is the default, including for
    an empty column.
    """
    if not values:
        return ColumnType.categorical
    if is_numeric_dominant(values):
        return ColumnType.numeric
    if is_date_dominant(values):
        return ColumnType.date
    return ColumnType.categorical
