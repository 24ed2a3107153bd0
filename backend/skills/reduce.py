"""
Dataset reduction skill.

Down-samples rows handed to a renderer and optionally projects them onto a
subset of fields. Used at import time (evenly, IMPORT_MAX_ROWS) and by the
reduce endpoint.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

from core.models import ReduceOptions, Row, SamplingStrategy

logger = logging.getLogger("uvicorn.error")


# ---------------------------------------------------------------------------
# Sampling strategies
# ---------------------------------------------------------------------------

def _sample_first(rows: Sequence[Row], n: int, rng: Optional[np.random.Generator]) -> List[Row]:
    return list(rows[:n])


def _sample_last(rows: Sequence[Row], n: int, rng: Optional[np.random.Generator]) -> List[Row]:
    return list(rows[len(rows) - n:])


def _sample_random(rows: Sequence[Row], n: int, rng: Optional[np.random.Generator]) -> List[Row]:
    """Draw without replacement; rows come back in draw order."""
    rng = rng if rng is not None else np.random.default_rng()
    picks = rng.choice(len(rows), size=n, replace=False)
    return [rows[int(i)] for i in picks]


def _sample_evenly(rows: Sequence[Row], n: int, rng: Optional[np.random.Generator]) -> List[Row]:
    """Index stride sampling: row floor(i * len / n) for i in [0, n)."""
    total = len(rows)
    out: List[Row] = []
    for i in range(n):
        idx = (i * total) // n
        if idx < total:
            out.append(rows[idx])
    return out


_SAMPLERS: Dict[SamplingStrategy, Callable[..., List[Row]]] = {
    SamplingStrategy.first: _sample_first,
    SamplingStrategy.last: _sample_last,
    SamplingStrategy.random: _sample_random,
    SamplingStrategy.evenly: _sample_evenly,
}


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------

def project_rows(rows: Sequence[Row], fields: Optional[Sequence[str]]) -> List[Row]:
    """Keep only *fields*; keys absent from a row stay absent."""
    if fields is None:
        return list(rows)
    return [{f: row[f] for f in fields if f in row} for row in rows]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def reduce_rows(
    rows: Sequence[Row],
    options: Optional[ReduceOptions] = None,
    *,
    rng: Optional[np.random.Generator] = None,
) -> List[Row]:
    """
    Sample *rows* down to ``options.max_rows`` and project onto
    ``options.fields``.

    Inputs at or under the limit are only projected. A non-positive limit
    yields an empty list. Relative order is preserved except for ``random``.
    """
    options = options or ReduceOptions()
    if options.max_rows <= 0:
        return []

    if len(rows) <= options.max_rows:
        return project_rows(rows, options.fields)

    sampler = _SAMPLERS[options.sampling_strategy]
    sampled = sampler(rows, options.max_rows, rng)
    logger.info(
        "Reduced %d rows to %d (%s)",
        len(rows), len(sampled), options.sampling_strategy.value,
    )
    return project_rows(sampled, options.fields)
