"""
Dataset profiling skill.

Builds a DatasetProfile (per-column ColumnProfile plus the candidate pools
used by chart field selection) from a Dataset. Profiles are derived and
ephemeral: recompute them whenever the dataset changes.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from core.models import ColumnProfile, ColumnType, Dataset, DatasetProfile
from core.utils import count_unique, is_missing, looks_like_date, numeric_values, safe_mean
from skills.classify import classify, looks_like_identifier
from skills.score import has_non_zero_values, score

logger = logging.getLogger("uvicorn.error")

# Cardinality band considered legible for legends / grouping.
GOOD_CATEGORY_MIN = 2
GOOD_CATEGORY_MAX = 15


# ---------------------------------------------------------------------------
# Column profile
# ---------------------------------------------------------------------------

def profile_column(dataset: Dataset, header: str) -> ColumnProfile:
    """Classify and measure a single column."""
    row_count = len(dataset.rows)
    values = dataset.column(header)
    present = [v for v in values if not is_missing(v)]
    nums = numeric_values(present)

    col_type = classify(header, values)
    stats: Dict[str, Optional[float]] = {"min": None, "max": None, "mean": None}
    if col_type == ColumnType.numeric and nums:
        stats = {"min": min(nums), "max": max(nums), "mean": safe_mean(nums)}

    return ColumnProfile(
        name=header,
        type=col_type,
        row_count=row_count,
        non_null_count=len(present),
        # absent keys count as one distinct "missing" value
        unique_count=count_unique(row.get(header) for row in dataset.rows),
        numeric_count=len(nums),
        date_count=sum(1 for v in present if looks_like_date(v)),
        string_count=sum(1 for v in present if isinstance(v, str)),
        has_non_zero_values=has_non_zero_values(present),
        is_identifier=looks_like_identifier(header, values),
        score=score(present),
        **stats,
    )


# ---------------------------------------------------------------------------
# Candidate pools
# ---------------------------------------------------------------------------

def _is_numeric_candidate(col: ColumnProfile) -> bool:
    return (
        col.type == ColumnType.numeric
        and not col.is_identifier
        and col.has_non_zero_values
        and col.numeric_count > col.row_count * 0.5
    )


def _is_date_candidate(col: ColumnProfile) -> bool:
    return (
        col.type == ColumnType.date
        and not col.is_identifier
        and col.date_count > col.row_count * 0.5
    )


def build_profile(dataset: Dataset) -> DatasetProfile:
    """
    Profile every column and compute the candidate pools once per dataset.

    numeric_fields is ordered best score first (stable for ties), so the
    selector can simply take the head of the list.
    """
    columns = [profile_column(dataset, h) for h in dataset.headers]

    numeric = [c for c in columns if _is_numeric_candidate(c)]
    numeric_fields = [c.name for c in sorted(numeric, key=lambda c: c.score, reverse=True)]
    date_fields = [c.name for c in columns if _is_date_candidate(c)]

    taken = set(numeric_fields) | set(date_fields)
    category_fields = [c.name for c in columns if not c.is_identifier and c.name not in taken]
    by_name = {c.name: c for c in columns}
    good_category_fields = [
        name for name in category_fields
        if GOOD_CATEGORY_MIN <= by_name[name].unique_count <= GOOD_CATEGORY_MAX
    ]

    logger.debug(
        "Profile: %d rows, numeric=%s date=%s category=%s good=%s",
        len(dataset.rows), numeric_fields, date_fields, category_fields, good_category_fields,
    )

    return DatasetProfile(
        headers=list(dataset.headers),
        row_count=len(dataset.rows),
        columns=columns,
        numeric_fields=numeric_fields,
        date_fields=date_fields,
        category_fields=category_fields,
        good_category_fields=good_category_fields,
    )


# ---------------------------------------------------------------------------
# Dashboard statistics
# ---------------------------------------------------------------------------

def dataset_stats(dataset: Dataset, profile: Optional[DatasetProfile] = None) -> Dict[str, Dict[str, Any]]:
    """Per-column summary in the shape the dashboard's stats panel reads."""
    profile = profile or build_profile(dataset)
    stats: Dict[str, Dict[str, Any]] = {}
    for col in profile.columns:
        entry: Dict[str, Any] = {
            "type": col.type.value,
            "uniqueValues": col.unique_count,
            "hasNonZeroValues": col.has_non_zero_values,
            "isIdentifier": col.is_identifier,
        }
        if col.type == ColumnType.numeric:
            entry.update({"min": col.min, "max": col.max, "mean": col.mean})
        stats[col.name] = entry
    return stats
