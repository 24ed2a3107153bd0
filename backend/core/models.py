"""
Core Pydantic models for the chart field-selection engine.

All domain types live here so every module shares the same vocabulary.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

# A loosely-typed cell value as it arrives from an import.
Scalar = Union[bool, int, float, str, None]
Row = Dict[str, Scalar]


class DatasetError(ValueError):
    """Raised when a dataset violates its structural invariants."""


# ---------------------------------------------------------------------------
# Dataset
# ---------------------------------------------------------------------------

class Dataset(BaseModel):
    headers: List[str]
    rows: List[Row] = Field(default_factory=list)

    def __init__(self, **data: Any) -> None:
        super().__init__(**data)
        # outside pydantic validation: DatasetError must reach callers unwrapped
        self._check_shape()

    def _check_shape(self) -> None:
        seen = set()
        for h in self.headers:
            if h in seen:
                raise DatasetError(f"Duplicate header '{h}'.")
            seen.add(h)
        for i, row in enumerate(self.rows):
            extra = [k for k in row if k not in seen]
            if extra:
                raise DatasetError(f"Row {i} has keys not in headers: {extra}")

    def column(self, header: str) -> List[Scalar]:
        """Values of one column; absent keys are skipped, not read as null."""
        return [row[header] for row in self.rows if header in row]

    def with_column(self, header: str, values: List[Scalar]) -> "Dataset":
        """Return a copy with *header* appended (or replaced) on every row."""
        headers = list(self.headers)
        if header not in headers:
            headers.append(header)
        rows = []
        for row, value in zip(self.rows, values):
            new_row = dict(row)
            new_row[header] = value
            rows.append(new_row)
        return Dataset.model_construct(headers=headers, rows=rows)


# ---------------------------------------------------------------------------
# Column & profile
# ---------------------------------------------------------------------------

class ColumnType(str, Enum):
    numeric = "numeric"
    date = "date"
    categorical = "categorical"


class ColumnProfile(BaseModel):
    name: str
    type: ColumnType = ColumnType.categorical
    row_count: int = 0
    non_null_count: int = 0
    unique_count: int = 0
    numeric_count: int = 0
    date_count: int = 0
    string_count: int = 0
    has_non_zero_values: bool = False
    is_identifier: bool = False
    score: float = 0.0
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None


class DatasetProfile(BaseModel):
    headers: List[str]
    row_count: int
    columns: List[ColumnProfile]
    numeric_fields: List[str] = Field(default_factory=list)   # best score first
    date_fields: List[str] = Field(default_factory=list)
    category_fields: List[str] = Field(default_factory=list)
    good_category_fields: List[str] = Field(default_factory=list)

    def column(self, name: str) -> Optional[ColumnProfile]:
        for col in self.columns:
            if col.name == name:
                return col
        return None


# ---------------------------------------------------------------------------
# Chart configuration
# ---------------------------------------------------------------------------

class ChartKind(str, Enum):
    bar = "bar"
    line = "line"
    area = "area"
    pie = "pie"
    scatter = "scatter"


class Margin(BaseModel):
    model_config = ConfigDict(frozen=True)

    top: int = 20
    right: int = 30
    left: int = 40
    bottom: int = 40


class ChartOverrides(BaseModel):
    """Caller-supplied fields; anything left as None is auto-selected."""
    model_config = ConfigDict(populate_by_name=True)

    x_field: Optional[str] = Field(None, alias="xAxis")
    y_field: Optional[Union[str, List[str]]] = Field(None, alias="yAxis")
    group_by: Optional[str] = Field(None, alias="groupBy")
    title: Optional[str] = None
    color_scheme: Optional[str] = Field(None, alias="colorScheme")
    margin: Optional[Margin] = None


class ChartConfig(BaseModel):
    """Immutable chart configuration handed to the renderer."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    chart_kind: ChartKind = Field(..., alias="type")
    x_field: str = Field(..., alias="xAxis")
    y_field: Union[str, Tuple[str, ...]] = Field(..., alias="yAxis")
    group_by: Optional[str] = Field(None, alias="groupBy")
    title: str = ""
    color_scheme: str = Field("default", alias="colorScheme")
    margin: Margin = Field(default_factory=Margin)
    # Columns fabricated because no real field qualified; renderers label these.
    synthetic_fields: Tuple[str, ...] = Field((), alias="syntheticFields")

    @property
    def is_synthetic(self) -> bool:
        return bool(self.synthetic_fields)

    @property
    def y_fields(self) -> List[str]:
        if isinstance(self.y_field, str):
            return [self.y_field]
        return list(self.y_field)

    def with_overrides(self, overrides: Optional[ChartOverrides]) -> "ChartConfig":
        """Return a new config with every non-None override applied."""
        if overrides is None:
            return self
        update: Dict[str, Any] = {}
        for name in ("x_field", "group_by", "title", "color_scheme", "margin"):
            value = getattr(overrides, name)
            if value is not None:
                update[name] = value
        if overrides.y_field is not None:
            y = overrides.y_field
            update["y_field"] = y if isinstance(y, str) else tuple(y)
        if not update:
            return self
        return self.model_copy(update=update)


class ChartSelection(BaseModel):
    config: ChartConfig
    dataset: Dataset          # working copy; may carry synthetic columns


class ChartData(BaseModel):
    config: ChartConfig
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    bucketed: bool = False
    synthetic: bool = False


# ---------------------------------------------------------------------------
# Suggestions (shape shared by the LLM and the deterministic fallback)
# ---------------------------------------------------------------------------

class SuggestionConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    x_axis: str = Field(..., alias="xAxis")
    y_axis: str = Field(..., alias="yAxis")
    group_by: Optional[str] = Field(None, alias="groupBy")
    title: str = ""


class Suggestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chart_type: ChartKind = Field(..., alias="chartType")
    config: SuggestionConfig
    description: str = ""


# ---------------------------------------------------------------------------
# Reduction
# ---------------------------------------------------------------------------

class SamplingStrategy(str, Enum):
    first = "first"
    last = "last"
    random = "random"
    evenly = "evenly"


class ReduceOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    max_rows: int = Field(10_000, alias="maxRows")
    sampling_strategy: SamplingStrategy = Field(SamplingStrategy.evenly, alias="samplingStrategy")
    fields: Optional[List[str]] = None


# ---------------------------------------------------------------------------
# Narrative analysis
# ---------------------------------------------------------------------------

class AnalysisFocus(str, Enum):
    trends = "trends"
    anomalies = "anomalies"
    correlations = "correlations"
    insights = "insights"
    all = "all"


class AnalysisOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    focus_on: AnalysisFocus = Field(AnalysisFocus.all, alias="focusOn")
    time_field: Optional[str] = Field(None, alias="timeField")
    value_fields: List[str] = Field(default_factory=list, alias="valueFields")
    category_fields: List[str] = Field(default_factory=list, alias="categoryFields")


class AnalysisResult(BaseModel):
    trends: List[str] = Field(default_factory=list)
    anomalies: List[str] = Field(default_factory=list)
    correlations: List[str] = Field(default_factory=list)
    insights: List[str] = Field(default_factory=list)
    summary: str = ""
    source: str = "llm"       # "llm" or "fallback"


# ---------------------------------------------------------------------------
# HTTP request bodies
# ---------------------------------------------------------------------------

class DatasetImport(BaseModel):
    name: Optional[str] = None
    headers: List[str]
    rows: List[Row] = Field(default_factory=list)


class ChartRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chart_kind: ChartKind = Field(..., alias="chartKind")
    overrides: ChartOverrides = Field(default_factory=ChartOverrides)


# ---------------------------------------------------------------------------
# Stored datasets
# ---------------------------------------------------------------------------

class DatasetMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    dataset_id: str = Field(..., alias="datasetId")
    name: str
    headers: List[str]
    row_count: int = Field(..., alias="rowCount")
    # before import-time down-sampling
    original_row_count: int = Field(..., alias="originalRowCount")


class StoredDataset(BaseModel):
    meta: DatasetMeta
    dataset: Dataset
