"""
Visualization suggestion skill.

Asks the LLM collaborator for chart suggestions and falls back to a
deterministic generator built on the profiler's candidate pools. Both paths
return the same Suggestion shape, so callers cannot tell them apart.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from core.config import SUGGEST_SAMPLE_ROWS
from core.models import ChartKind, Dataset, DatasetProfile, Suggestion, SuggestionConfig
from skills.profile import build_profile

logger = logging.getLogger("uvicorn.error")

# Track whether we've already warned about LLM unavailability this session
_llm_warn_logged = False


# ---------------------------------------------------------------------------
# Deterministic fallback
# ---------------------------------------------------------------------------

def _suggestion(kind: ChartKind, x: str, y: str, title: str, description: str,
                group_by: Optional[str] = None) -> Suggestion:
    return Suggestion(
        chart_type=kind,
        config=SuggestionConfig(x_axis=x, y_axis=y, group_by=group_by, title=title),
        description=description,
    )


def fallback_suggestions(dataset: Dataset, profile: Optional[DatasetProfile] = None) -> List[Suggestion]:
    """
    Suggestions derived from the candidate pools alone:

    - line over time (and a bar by time period for a second measure)
    - bar and pie by the first legible category
    - scatter between the two best measures
    - line over time grouped by category
    - a bare overview bar when nothing else applies
    """
    profile = profile or build_profile(dataset)
    dates = profile.date_fields
    nums = profile.numeric_fields
    cats = profile.good_category_fields
    out: List[Suggestion] = []

    if dates and nums:
        out.append(_suggestion(
            ChartKind.line, dates[0], nums[0],
            f"{nums[0]} Over Time",
            f"Shows how {nums[0]} changes over time.",
        ))
        if len(nums) > 1:
            out.append(_suggestion(
                ChartKind.bar, dates[0], nums[1],
                f"{nums[1]} by Time Period",
                f"Compares {nums[1]} across different time periods.",
            ))

    if cats and nums:
        out.append(_suggestion(
            ChartKind.bar, cats[0], nums[0],
            f"{nums[0]} by {cats[0]}",
            f"Compares {nums[0]} across different {cats[0]} categories.",
        ))
        out.append(_suggestion(
            ChartKind.pie, cats[0], nums[0],
            f"Distribution of {nums[0]} by {cats[0]}",
            f"Shows the distribution of {nums[0]} across {cats[0]} categories.",
        ))

    if len(nums) >= 2:
        out.append(_suggestion(
            ChartKind.scatter, nums[0], nums[1],
            f"Relationship Between {nums[0]} and {nums[1]}",
            f"Explores the potential correlation between {nums[0]} and {nums[1]}.",
        ))

    if cats and dates and nums:
        out.append(_suggestion(
            ChartKind.line, dates[0], nums[0],
            f"{nums[0]} Over Time by {cats[0]}",
            f"Compares how {nums[0]} trends over time across different {cats[0]} categories.",
            group_by=cats[0],
        ))

    if not out and nums:
        x = next((h for h in profile.headers if h != nums[0]), profile.headers[0])
        out.append(_suggestion(
            ChartKind.bar, x, nums[0],
            f"{nums[0]} Overview",
            f"A basic overview of {nums[0]} values.",
        ))

    return out


# ---------------------------------------------------------------------------
# LLM output coercion
# ---------------------------------------------------------------------------

def _candidate_items(payload: Any) -> List[Dict[str, Any]]:
    """Accept {"suggestions": [...]}, a bare list, or any dict of objects."""
    if isinstance(payload, dict):
        if isinstance(payload.get("suggestions"), list):
            items = payload["suggestions"]
        elif "chartType" in payload:
            items = [payload]
        else:
            items = list(payload.values())
    elif isinstance(payload, list):
        items = payload
    else:
        items = []
    return [it for it in items if isinstance(it, dict)]


def coerce_suggestions(payload: Any, headers: List[str]) -> List[Suggestion]:
    """
    Turn raw LLM JSON into Suggestions, dropping entries whose chart type is
    unknown or whose axes are not real columns. An unknown group-by is
    cleared rather than dropping the entry.
    """
    known = set(headers)
    out: List[Suggestion] = []
    for item in _candidate_items(payload):
        cfg = item.get("config") if isinstance(item.get("config"), dict) else item
        x, y = cfg.get("xAxis"), cfg.get("yAxis")
        if not isinstance(x, str) or not isinstance(y, str) or x not in known or y not in known:
            logger.debug("Dropping suggestion with unknown fields: x=%r y=%r", x, y)
            continue
        group_by = cfg.get("groupBy")
        if not isinstance(group_by, str) or group_by not in known:
            group_by = None
        try:
            out.append(Suggestion(
                chart_type=item.get("chartType"),
                config=SuggestionConfig(
                    x_axis=x,
                    y_axis=y,
                    group_by=group_by,
                    title=str(cfg.get("title") or f"{y} by {x}"),
                ),
                description=str(item.get("description") or item.get("rationale") or ""),
            ))
        except ValidationError:
            logger.debug("Dropping suggestion with unknown chart type: %r", item.get("chartType"))
    return out


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def build_suggest_message(dataset: Dataset, sample_rows: int = SUGGEST_SAMPLE_ROWS) -> str:
    sample = dataset.rows[:sample_rows]
    return (
        f"Headers: {json.dumps(dataset.headers)}\n"
        f"Data sample ({len(sample)} of {len(dataset.rows)} rows): "
        f"{json.dumps(sample, default=str)}"
    )


def suggest_visualizations(
    dataset: Dataset,
    *,
    llm: Any = None,
    profile: Optional[DatasetProfile] = None,
    sample_rows: int = SUGGEST_SAMPLE_ROWS,
) -> List[Suggestion]:
    """
    LLM suggestions for *dataset*, or the deterministic fallback when the
    collaborator is unavailable, fails, or returns nothing usable.

    *llm* is anything with ``chat_json(system_prompt, user_message)``.
    """
    try:
        from app.llm import LLMError, get_client
        from app.prompts import SUGGEST_SYSTEM_PROMPT

        client = llm if llm is not None else get_client()
        payload = client.chat_json(SUGGEST_SYSTEM_PROMPT, build_suggest_message(dataset, sample_rows))
        suggestions = coerce_suggestions(payload, dataset.headers)
        if not suggestions:
            raise LLMError("no usable suggestions in LLM response")
        logger.info("LLM suggested %d visualizations", len(suggestions))
        return suggestions

    except Exception as e:
        global _llm_warn_logged
        if not _llm_warn_logged:
            logger.warning("LLM suggestions unavailable, using deterministic fallback: %s", e)
            _llm_warn_logged = True
        return fallback_suggestions(dataset, profile)
