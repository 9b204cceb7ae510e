"""Schema for filters, strata, sampling configurations and analysis results.

Everything here is plain pydantic data so a sampling configuration can be
persisted as JSON and re-evaluated against a different dataset later.
DataFrames only appear inside history snapshots, which are never persisted.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
import pandas as pd


REMAINDER_ID = "other"
REMAINDER_LABEL = "Remainder"

# A requested stratum size: an absolute count (int) or a "N%" string.
SampleSize = Union[int, float, str]


class ColumnType(str, Enum):
    """Inferred column type."""
    NUMERIC = "numeric"
    CATEGORICAL = "categorical"


class NumericCondition(str, Enum):
    """Comparators available to a numeric column filter."""
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    BETWEEN = "between"


class NumericOperator(str, Enum):
    """Comparators available to a numeric stratification rule."""
    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"


OPERATOR_SYMBOLS = {
    NumericOperator.EQ: "=",
    NumericOperator.NEQ: "≠",
    NumericOperator.GT: ">",
    NumericOperator.GTE: "≥",
    NumericOperator.LT: "<",
    NumericOperator.LTE: "≤",
}


class SortDirection(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


class PreviewMode(str, Enum):
    FIRST = "first"
    LAST = "last"
    RANDOM = "random"          # non-deterministic unless seeded


class SamplingMethod(str, Enum):
    RANDOM = "random"
    SYSTEMATIC = "systematic"
    STRATIFIED = "stratified"


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

class CategoricalFilter(BaseModel):
    """Allow-list of raw cell values (exact match, no string normalisation)."""
    type: Literal["categorical"] = "categorical"
    values: List[Any] = Field(default_factory=list)


class NumericFilter(BaseModel):
    """Comparator filter on the parsed numeric value of a cell."""
    type: Literal["numeric"] = "numeric"
    condition: NumericCondition = NumericCondition.EQUALS
    value1: Optional[float] = None
    value2: Optional[float] = None


Filter = Annotated[Union[CategoricalFilter, NumericFilter], Field(discriminator="type")]


class SortSpec(BaseModel):
    key: str
    direction: SortDirection = SortDirection.ASCENDING


# ---------------------------------------------------------------------------
# Stratification
# ---------------------------------------------------------------------------

class CategoricalStratum(BaseModel):
    """One distinct (stringified) value of a categorical level."""
    value: str
    count: int = 0
    sample_size: SampleSize = 0
    error: Optional[str] = None

    @property
    def key(self) -> str:
        return self.value


class NumericStratum(BaseModel):
    """A comparator rule of a numeric level, or the trailing remainder."""
    id: str
    operator: Optional[NumericOperator] = None    # None for the remainder
    threshold: Optional[float] = None
    label: str = ""
    count: int = 0
    sample_size: SampleSize = ""
    error: Optional[str] = None

    @property
    def key(self) -> str:
        return self.id

    @property
    def is_remainder(self) -> bool:
        return self.id == REMAINDER_ID


Stratum = Union[NumericStratum, CategoricalStratum]


class StratificationLevel(BaseModel):
    """A partition of the current view on one column.

    Categorical levels hold one stratum per distinct value; numeric levels
    hold an ordered rule list terminated by exactly one remainder stratum.
    """
    id: str
    column: str = ""
    column_type: ColumnType = ColumnType.CATEGORICAL
    strata: List[Stratum] = Field(default_factory=list)


class SamplingConfig(BaseModel):
    """The persisted unit of a sampling setup."""
    method: SamplingMethod = SamplingMethod.RANDOM
    sample_size: int = 10
    is_percentage: bool = False
    systematic_interval: int = 5
    levels: List[StratificationLevel] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

class Snapshot(BaseModel):
    """Immutable (rows, headers) state of a dataset."""
    data: pd.DataFrame
    headers: List[str]

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)


# ---------------------------------------------------------------------------
# Statistics, charts and AI results
# ---------------------------------------------------------------------------

class ColumnSummary(BaseModel):
    mean: float
    median: float
    mode: List[float] = Field(default_factory=list)
    std_dev: Optional[float] = None
    min: float
    max: float
    q1: float
    q3: float
    iqr: float


class ColumnInfo(BaseModel):
    """Profile of one column over the current view."""
    missing_count: int = 0
    type: ColumnType = ColumnType.CATEGORICAL
    stats: Optional[ColumnSummary] = None
    outlier_labels: List[Any] = Field(default_factory=list)   # index labels


class KpiSummary(BaseModel):
    total_records: int = 0
    total_columns: int = 0
    numeric_columns: int = 0
    missing_values: int = 0


class DuplicateGroup(BaseModel):
    row: Dict[str, Any]
    count: int


class DuplicateReport(BaseModel):
    groups: List[DuplicateGroup] = Field(default_factory=list)
    total_to_remove: int = 0


class BlankSummary(BaseModel):
    empty_columns: List[str] = Field(default_factory=list)
    empty_rows: int = 0

    @property
    def is_clean(self) -> bool:
        return not self.empty_columns and self.empty_rows == 0


class ChartType(str, Enum):
    BAR = "bar"
    BAR_HORIZONTAL = "bar-horizontal"
    PIE = "pie"
    DONUT = "donut"
    LINE = "line"
    TICKET = "ticket"


class Aggregation(str, Enum):
    COUNT = "count"
    SUM = "sum"
    AVG = "avg"
    DISTINCT = "distinct"


class ChartConfig(BaseModel):
    """Configuration for a single dashboard chart."""
    id: str
    type: ChartType = ChartType.BAR
    title: str = ""
    x_col: str = ""
    y_col: str = ""
    agg: Aggregation = Aggregation.COUNT


class ChatMessage(BaseModel):
    sender: Literal["user", "ai"]
    text: str


class AnalysisRequest(BaseModel):
    """Payload handed to the LLM agents."""
    headers: List[str]
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    question: str = ""
    history: List[ChatMessage] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    """Narrative analysis split into display lines plus any chart specs."""
    lines: List[str] = Field(default_factory=list)
    charts: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None
