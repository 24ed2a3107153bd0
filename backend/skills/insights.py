"""
Narrative analysis skill.

Sends a row sample to the LLM collaborator for trends, anomalies,
correlations and insights. When the collaborator is unavailable the result
is a deterministic statistics summary flagged ``source="fallback"``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

import numpy as np

from core.config import ANALYZE_SAMPLE_ROWS
from core.models import (
    AnalysisFocus,
    AnalysisOptions,
    AnalysisResult,
    ColumnType,
    Dataset,
    DatasetProfile,
)
from core.utils import try_parse_number
from skills.profile import build_profile

logger = logging.getLogger("uvicorn.error")

# Track whether we've already warned about LLM unavailability this session
_llm_warn_logged = False

NON_JSON_SUMMARY = "AI analysis completed but returned in non-JSON format."
ANOMALY_Z = 3.0
STRONG_CORRELATION = 0.5
_SECTIONS = ("trends", "anomalies", "correlations", "insights")


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

def build_system_prompt(options: AnalysisOptions) -> str:
    from app.prompts import ANALYZE_SYSTEM_PROMPT

    prompt = ANALYZE_SYSTEM_PROMPT
    if options.focus_on != AnalysisFocus.all:
        prompt += f" Focus primarily on identifying {options.focus_on.value}."
    if options.time_field:
        prompt += f" Pay special attention to time-based patterns using the '{options.time_field}' field."
    if options.value_fields:
        prompt += f" Analyze numerical trends and patterns in these fields: {', '.join(options.value_fields)}."
    if options.category_fields:
        prompt += f" Consider these as categorical fields for segmentation: {', '.join(options.category_fields)}."
    return prompt


def build_user_message(dataset: Dataset, sample_rows: int = ANALYZE_SAMPLE_ROWS) -> str:
    from app.prompts import ANALYZE_RESPONSE_FORMAT

    sample = dataset.rows[:sample_rows]
    return (
        f"Here is the dataset with {len(sample)} rows (from total of {len(dataset.rows)} rows) "
        f"and the following columns: {', '.join(dataset.headers)}\n\n"
        f"Data sample:\n{json.dumps(sample, indent=2, default=str)}\n\n"
        f"{ANALYZE_RESPONSE_FORMAT}"
    )


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [v if isinstance(v, str) else json.dumps(v, default=str) for v in value]
    return [str(value)]


def coerce_analysis(payload: Any) -> AnalysisResult:
    """Normalise LLM JSON into an AnalysisResult; non-object payloads become one insight."""
    if not isinstance(payload, dict):
        return AnalysisResult(
            insights=[json.dumps(payload, default=str)],
            summary=NON_JSON_SUMMARY,
        )
    summary = payload.get("summary")
    return AnalysisResult(
        **{name: _as_str_list(payload.get(name)) for name in _SECTIONS},
        summary=summary if isinstance(summary, str) else "",
    )


# ---------------------------------------------------------------------------
# Deterministic fallback
# ---------------------------------------------------------------------------

def _paired_numbers(dataset: Dataset, a: str, b: str) -> tuple[np.ndarray, np.ndarray]:
    xs, ys = [], []
    for row in dataset.rows:
        x = try_parse_number(row.get(a))
        y = try_parse_number(row.get(b))
        if x is not None and y is not None:
            xs.append(x)
            ys.append(y)
    return np.asarray(xs, dtype=float), np.asarray(ys, dtype=float)


def _value_fields(profile: DatasetProfile, options: AnalysisOptions) -> List[str]:
    if options.value_fields:
        picked = []
        for name in options.value_fields:
            col = profile.column(name)
            if col is not None and col.type == ColumnType.numeric:
                picked.append(name)
        if picked:
            return picked
    return list(profile.numeric_fields)


def _time_field(profile: DatasetProfile, options: AnalysisOptions) -> Optional[str]:
    if options.time_field and profile.column(options.time_field) is not None:
        return options.time_field
    return profile.date_fields[0] if profile.date_fields else None


def _trend_lines(dataset: Dataset, time_field: Optional[str], fields: List[str]) -> List[str]:
    if not time_field:
        return []
    ordered = sorted(
        (row for row in dataset.rows if row.get(time_field) is not None),
        key=lambda row: str(row.get(time_field)),
    )
    half = len(ordered) // 2
    if half == 0:
        return []
    lines = []
    for field in fields[:3]:
        first = [try_parse_number(r.get(field)) for r in ordered[:half]]
        last = [try_parse_number(r.get(field)) for r in ordered[half:]]
        first = [v for v in first if v is not None]
        last = [v for v in last if v is not None]
        if not first or not last:
            continue
        a, b = float(np.mean(first)), float(np.mean(last))
        direction = "rises" if b > a else "falls" if b < a else "stays flat"
        lines.append(
            f"{field} {direction} from an average of {a:.2f} in the earlier half of "
            f"{time_field} to {b:.2f} in the later half."
        )
    return lines


def _anomaly_lines(dataset: Dataset, fields: List[str]) -> List[str]:
    lines = []
    for field in fields[:5]:
        nums = np.asarray(
            [v for v in (try_parse_number(x) for x in dataset.column(field)) if v is not None],
            dtype=float,
        )
        if nums.size < 3:
            continue
        std = float(nums.std())
        if std == 0:
            continue
        outliers = int((np.abs(nums - nums.mean()) / std > ANOMALY_Z).sum())
        if outliers:
            lines.append(
                f"{field} has {outliers} value(s) more than {ANOMALY_Z:g} standard deviations from the mean."
            )
    return lines


def _correlation_lines(dataset: Dataset, fields: List[str]) -> List[str]:
    lines = []
    top = fields[:4]
    for i, a in enumerate(top):
        for b in top[i + 1:]:
            xs, ys = _paired_numbers(dataset, a, b)
            if xs.size < 3 or xs.std() == 0 or ys.std() == 0:
                continue
            r = float(np.corrcoef(xs, ys)[0, 1])
            if abs(r) >= STRONG_CORRELATION:
                sign = "positively" if r > 0 else "negatively"
                lines.append(f"{a} and {b} are {sign} correlated (r={r:.2f}).")
    return lines


def _insight_lines(profile: DatasetProfile, fields: List[str]) -> List[str]:
    lines = []
    for field in fields[:3]:
        col = profile.column(field)
        if col is None or col.min is None or col.max is None or col.mean is None:
            continue
        lines.append(f"{field} ranges from {col.min:g} to {col.max:g} with a mean of {col.mean:.2f}.")
    for field in profile.good_category_fields[:2]:
        col = profile.column(field)
        if col is not None:
            lines.append(f"{field} splits the data into {col.unique_count} groups.")
    return lines


def fallback_analysis(
    dataset: Dataset,
    options: Optional[AnalysisOptions] = None,
    profile: Optional[DatasetProfile] = None,
) -> AnalysisResult:
    """Statistics-only analysis; sections outside ``options.focus_on`` stay empty."""
    options = options or AnalysisOptions()
    profile = profile or build_profile(dataset)
    fields = _value_fields(profile, options)

    sections = {
        "trends": _trend_lines(dataset, _time_field(profile, options), fields),
        "anomalies": _anomaly_lines(dataset, fields),
        "correlations": _correlation_lines(dataset, fields),
        "insights": _insight_lines(profile, fields),
    }
    if options.focus_on != AnalysisFocus.all:
        sections = {k: (v if k == options.focus_on.value else []) for k, v in sections.items()}

    summary = (
        f"{profile.row_count} rows and {len(profile.headers)} columns: "
        f"{len(profile.numeric_fields)} numeric, {len(profile.date_fields)} date and "
        f"{len(profile.category_fields)} categorical fields usable for charts."
    )
    return AnalysisResult(**sections, summary=summary, source="fallback")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def analyze_dataset(
    dataset: Dataset,
    options: Optional[AnalysisOptions] = None,
    *,
    llm: Any = None,
    profile: Optional[DatasetProfile] = None,
    sample_rows: int = ANALYZE_SAMPLE_ROWS,
) -> AnalysisResult:
    """
    Ask the LLM to analyze a sample of *dataset*.

    Falls back to ``fallback_analysis`` if the LLM is unavailable.
    """
    options = options or AnalysisOptions()
    try:
        from app.llm import get_client

        client = llm if llm is not None else get_client()
        payload = client.chat_json(build_system_prompt(options), build_user_message(dataset, sample_rows))
        result = coerce_analysis(payload)
        logger.info("LLM analysis returned %d insights", len(result.insights))
        return result

    except Exception as e:
        global _llm_warn_logged
        if not _llm_warn_logged:
            logger.warning("LLM analysis unavailable, using deterministic fallback: %s", e)
            _llm_warn_logged = True
        return fallback_analysis(dataset, options, profile)
