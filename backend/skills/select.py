"""
Chart field selection (deterministic, no LLM).

select_fields() picks x-axis, y-axis and group-by for a chart kind from the
dataset's candidate pools. Explicit overrides win field by field; only the
fields left unspecified are auto-selected.

When no real numeric column can feed a required axis, a deterministic
placeholder column ``demo_<kind>_value`` is derived from row order on a copy
of the dataset. Such columns are listed in ``ChartConfig.synthetic_fields``
so the UI can label the chart as placeholder data; they are never offered as
suggestions.
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Union

import numpy as np

from core.models import (
    ChartConfig,
    ChartKind,
    ChartOverrides,
    ChartSelection,
    Dataset,
    DatasetProfile,
)
from skills.profile import build_profile

logger = logging.getLogger("uvicorn.error")

_TIME_SERIES_KINDS = (ChartKind.bar, ChartKind.line, ChartKind.area)


# ---------------------------------------------------------------------------
# Synthetic placeholder columns
# ---------------------------------------------------------------------------

def synthetic_field_name(chart_kind: ChartKind, axis: str = "") -> str:
    if axis:
        return f"demo_{chart_kind.value}_{axis}_value"
    return f"demo_{chart_kind.value}_value"


def synthetic_values(
    chart_kind: ChartKind,
    n: int,
    rng: Optional[np.random.Generator] = None,
) -> List[float]:
    """Deterministic per-kind shape: sine wave, five repeating buckets, or uniform noise."""
    if chart_kind in _TIME_SERIES_KINDS:
        return [math.sin(i * 0.3) * 50 + 50 for i in range(n)]
    if chart_kind == ChartKind.pie:
        return [float(10 + (i % 5) * 20) for i in range(n)]
    rng = rng if rng is not None else np.random.default_rng()
    return [float(v) for v in rng.random(n) * 100]


def synthesize_field(
    dataset: Dataset,
    chart_kind: ChartKind,
    *,
    axis: str = "",
    rng: Optional[np.random.Generator] = None,
) -> tuple[Dataset, str]:
    """Append a placeholder column to a copy of *dataset*; returns (copy, name)."""
    name = synthetic_field_name(chart_kind, axis)
    values = synthetic_values(chart_kind, len(dataset.rows), rng)
    logger.warning(
        "No usable numeric field for %s chart; synthesizing placeholder column %r",
        chart_kind.value, name,
    )
    return dataset.with_column(name, values), name


# ---------------------------------------------------------------------------
# Axis preferences
# ---------------------------------------------------------------------------

def _default_title(chart_kind: ChartKind) -> str:
    return f"{chart_kind.value.capitalize()} Chart"


def _fallback_x(profile: DatasetProfile) -> str:
    return profile.headers[0] if profile.headers else ""


def _category_x(profile: DatasetProfile) -> Optional[str]:
    if profile.good_category_fields:
        return profile.good_category_fields[0]
    if profile.category_fields:
        return profile.category_fields[0]
    return None


def _time_series_x(profile: DatasetProfile) -> str:
    if profile.date_fields:
        return profile.date_fields[0]
    return _category_x(profile) or _fallback_x(profile)


def _group_by_for(profile: DatasetProfile, x_field: Optional[str]) -> Optional[str]:
    for field in profile.good_category_fields:
        if field != x_field:
            return field
    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def select_fields(
    dataset: Dataset,
    chart_kind: Union[ChartKind, str],
    overrides: Optional[ChartOverrides] = None,
    *,
    profile: Optional[DatasetProfile] = None,
    rng: Optional[np.random.Generator] = None,
) -> ChartSelection:
    """
    Build the ChartConfig for *chart_kind*.

    Policy:
      bar/line/area  x: date > good category > any category > first header
                     y: best-scored numeric, else synthesized
                     group-by: a good category other than x
      pie            x: good category > any category; y: best numeric
      scatter        x/y: the two best numerics, synthesizing what is missing;
                     group-by: first good category

    Returns the config together with the working dataset, which differs
    from the input only when a placeholder column had to be synthesized.
    """
    chart_kind = ChartKind(chart_kind)
    overrides = overrides or ChartOverrides()
    profile = profile or build_profile(dataset)

    working = dataset
    synthetic: List[str] = []

    def synth(axis: str = "") -> str:
        nonlocal working
        working, name = synthesize_field(working, chart_kind, axis=axis, rng=rng)
        synthetic.append(name)
        return name

    numeric = profile.numeric_fields
    want_x = overrides.x_field is None
    want_y = overrides.y_field is None

    x_field: Optional[str] = None
    y_field: Optional[str] = None
    group_by: Optional[str] = None

    if chart_kind in _TIME_SERIES_KINDS:
        if want_x:
            x_field = _time_series_x(profile)
        if want_y:
            y_field = numeric[0] if numeric else synth()
        group_by = _group_by_for(profile, overrides.x_field or x_field)

    elif chart_kind == ChartKind.pie:
        if want_x:
            x_field = _category_x(profile) or _fallback_x(profile)
        if want_y:
            y_field = numeric[0] if numeric else synth()

    else:  # scatter
        if want_x:
            x_field = numeric[0] if numeric else synth("x")
        if want_y:
            y_field = numeric[1] if len(numeric) >= 2 else None
            if y_field is None:
                y_field = synth()
        group_by = profile.good_category_fields[0] if profile.good_category_fields else None

    # Overridden axes were left unselected above; with_overrides fills them in.
    config = ChartConfig(
        chart_kind=chart_kind,
        x_field=x_field if x_field is not None else overrides.x_field,
        y_field=y_field if y_field is not None else overrides.y_field,
        group_by=group_by,
        title=_default_title(chart_kind),
        synthetic_fields=tuple(synthetic),
    ).with_overrides(overrides)
    logger.info(
        "Selected %s chart: x=%s y=%s group_by=%s synthetic=%s",
        chart_kind.value, config.x_field, config.y_field, config.group_by, list(config.synthetic_fields),
    )
    return ChartSelection(config=config, dataset=working)
