"""
Chart data preparation skill.

Takes the rows of a dataset plus a ChartConfig and returns the ChartData the
frontend plots without further computation:

- bar/line/area/pie: identifier-coded x values (``C1001``...) with more than
  ten distinct values are bucketed into ``Group <first digit>`` rows.
- pie: one ``{name, value}`` slice per x value, capped at eight slices with
  the smallest collapsed into ``Other``.
- bar/line/area with group_by: pivoted to one row per x value and one key
  per group value.
- scatter: rows pass through.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from core.models import ChartConfig, ChartData, ChartKind, Row, Scalar
from core.utils import hashable_key, is_missing, matches_id_shape, try_parse_number

logger = logging.getLogger("uvicorn.error")

BUCKET_MIN_UNIQUE = 10
PIE_MAX_SLICES = 8
OTHER_SLICE = "Other"

_FIRST_DIGIT_RE = re.compile(r"\d")
_BUCKETABLE_KINDS = (ChartKind.bar, ChartKind.line, ChartKind.area, ChartKind.pie)


# ---------------------------------------------------------------------------
# Identifier bucketing
# ---------------------------------------------------------------------------

def should_bucket(rows: Sequence[Row], config: ChartConfig) -> bool:
    """True when the x values are many distinct identifier codes."""
    if config.chart_kind not in _BUCKETABLE_KINDS:
        return False
    xs = [row.get(config.x_field) for row in rows]
    xs = [x for x in xs if not is_missing(x)]
    if not xs or not all(matches_id_shape(x) for x in xs):
        return False
    return len({hashable_key(x) for x in xs}) > BUCKET_MIN_UNIQUE


def bucket_label(value: str) -> str:
    match = _FIRST_DIGIT_RE.search(value)
    return f"Group {match.group(0)}" if match else "Group ?"


def bucket_rows(rows: Sequence[Row], config: ChartConfig) -> List[Dict[str, Any]]:
    """
    One row per ``Group <digit>``, ordered by digit. Each y field is summed
    for pie charts and averaged otherwise; non-numeric y values are ignored.
    """
    use_sum = config.chart_kind == ChartKind.pie
    y_fields = config.y_fields
    buckets: Dict[str, Dict[str, List[float]]] = {}

    for row in rows:
        x = row.get(config.x_field)
        if is_missing(x):
            continue
        acc = buckets.setdefault(bucket_label(str(x)), {y: [] for y in y_fields})
        for y in y_fields:
            num = try_parse_number(row.get(y))
            if num is not None:
                acc[y].append(num)

    out: List[Dict[str, Any]] = []
    for label in sorted(buckets):
        entry: Dict[str, Any] = {config.x_field: label}
        for y, nums in buckets[label].items():
            if use_sum:
                entry[y] = float(sum(nums))
            else:
                entry[y] = sum(nums) / len(nums) if nums else None
        out.append(entry)
    return out


# ---------------------------------------------------------------------------
# Pie slices
# ---------------------------------------------------------------------------

def pie_slices(rows: Sequence[Row], x_field: str, y_field: str) -> List[Dict[str, Any]]:
    """Sum y per x value, in first-appearance order."""
    totals: Dict[Any, Dict[str, Any]] = {}
    for row in rows:
        name = row.get(x_field)
        if is_missing(name):
            continue
        slice_ = totals.setdefault(hashable_key(name), {"name": name, "value": 0.0})
        num = try_parse_number(row.get(y_field))
        if num is not None:
            slice_["value"] += num
    return list(totals.values())


def cap_slices(slices: List[Dict[str, Any]], max_slices: int = PIE_MAX_SLICES) -> List[Dict[str, Any]]:
    """
    Keep the ``max_slices - 1`` largest slices and merge the rest into
    ``Other``. Inputs within the cap are returned unchanged. The total is
    conserved.
    """
    if len(slices) <= max_slices:
        return slices
    ranked = sorted(slices, key=lambda s: s["value"], reverse=True)
    kept = ranked[: max_slices - 1]
    rest = ranked[max_slices - 1:]
    kept.append({"name": OTHER_SLICE, "value": sum(s["value"] for s in rest)})
    return kept


# ---------------------------------------------------------------------------
# Group-by pivot
# ---------------------------------------------------------------------------

def pivot_rows(rows: Sequence[Row], x_field: str, y_field: str, group_by: str) -> List[Dict[str, Any]]:
    """One row per x value with one key per group value; collisions are summed."""
    pivoted: Dict[Any, Dict[str, Any]] = {}
    for row in rows:
        x = row.get(x_field)
        entry = pivoted.setdefault(hashable_key(x), {x_field: x})
        group_key = _group_key(row.get(group_by))
        if group_key == x_field:
            # a series named like the x column would overwrite the x value
            group_key = f"{group_by}={group_key}"
        value = row.get(y_field)
        num = try_parse_number(value)
        prev = try_parse_number(entry.get(group_key))
        if num is not None and prev is not None:
            entry[group_key] = prev + num
        else:
            entry[group_key] = num if num is not None else value
    return list(pivoted.values())


def _group_key(value: Scalar) -> str:
    if is_missing(value):
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def prepare_chart_data(rows: Sequence[Row], config: ChartConfig) -> ChartData:
    """Shape *rows* for the chart described by *config*."""
    bucketed = should_bucket(rows, config)
    data: List[Dict[str, Any]]

    if bucketed:
        data = bucket_rows(rows, config)
        logger.info("Bucketed identifier axis %r into %d groups", config.x_field, len(data))
    else:
        data = [dict(row) for row in rows]

    y_field: Optional[str] = config.y_fields[0] if config.y_fields else None

    if config.chart_kind == ChartKind.pie and y_field:
        data = cap_slices(pie_slices(data, config.x_field, y_field))
    elif (
        config.chart_kind in (ChartKind.bar, ChartKind.line, ChartKind.area)
        and config.group_by
        and not bucketed
        and isinstance(config.y_field, str)
    ):
        data = pivot_rows(data, config.x_field, config.y_field, config.group_by)

    return ChartData(
        config=config,
        rows=data,
        bucketed=bucketed,
        synthetic=config.is_synthetic,
    )
