"""
Frame and query descriptor types.

Descriptors are built by the caller for one dispatch and never mutated;
frames are the only objects handed back to the caller.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum, IntEnum, StrEnum
from typing import Any, Optional, Union

import pandas as pd


class QueryType(StrEnum):
    """Query kinds understood by the backend proxy."""

    TEST_QUERY = ""
    NAMED_QUERY = "NamedQuery"
    EXECUTION_QUERY = "ExecutionQuery"
    GET_NAMED_QUERY_METRICS = "GetNamedQueryMetrics"


class FormatType(StrEnum):
    TIME_SERIES = "timeseries"
    TABLE = "table"


class DeclaredType(IntEnum):
    """Column types reported in result metadata."""

    NULL = 0
    DOUBLE = 1
    INT = 2
    BOOL = 3
    STRING = 4
    BYTES = 5


class FieldType(str, Enum):
    TIME = "time"
    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING = "string"


@dataclass(frozen=True)
class QueryDescriptor:
    """
    One query of a dispatch. Unset (None) attributes are filled from
    defaults when the query is dispatched.
    """

    ref_id: str
    query_type: Optional[QueryType] = None
    named_query: Optional[str] = None
    execution_id: Optional[str] = None
    format: Optional[FormatType] = None
    time_column: Optional[str] = None
    metric_column: Optional[str] = None
    value_columns: Optional[tuple[str, ...]] = None
    use_cache: Optional[bool] = None
    hide: bool = False

    @property
    def enabled(self) -> bool:
        return not self.hide


DEFAULT_QUERY = dict(
    named_query="",
    query_type=QueryType.TEST_QUERY,
    time_column="time",
    metric_column="metric",
    value_columns=(),
    execution_id="",
    format=FormatType.TIME_SERIES,
    use_cache=True,
)


def fill_defaults(descriptor: QueryDescriptor) -> QueryDescriptor:
    """Return a copy of the descriptor with every unset attribute defaulted."""
    return replace(
        descriptor,
        **{
            k: v
            for k, v in DEFAULT_QUERY.items()
            if getattr(descriptor, k) is None
        },
    )


def _to_epoch_ms(v: Union[datetime, int, str]) -> str:
    if isinstance(v, datetime):
        if v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        return str(int(v.timestamp() * 1000))
    if isinstance(v, str) and not v.lstrip("-").isdigit():
        return _to_epoch_ms(datetime.fromisoformat(v))
    return str(int(v))


@dataclass(frozen=True)
class TimeRange:
    from_ms: str
    to_ms: str

    @classmethod
    def of(
        cls, start: Union[datetime, int, str], end: Union[datetime, int, str]
    ) -> "TimeRange":
        """Build a range from datetimes, epoch milliseconds or ISO-8601 strings."""
        return cls(_to_epoch_ms(start), _to_epoch_ms(end))


@dataclass
class Field:
    name: str
    type: FieldType
    values: list[Any] = field(default_factory=list)


@dataclass
class OutputFrame:
    ref_id: str
    fields: list[Field] = field(default_factory=list)
    name: Optional[str] = None

    @property
    def length(self) -> int:
        return len(self.fields[0].values) if self.fields else 0

    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def to_dataframe(self) -> pd.DataFrame:
        df = pd.DataFrame({f.name: f.values for f in self.fields})
        for f in self.fields:
            if f.type != FieldType.TIME:
                continue
            values = df[f.name]
            epoch_ms = pd.to_numeric(values, errors="coerce")
            if epoch_ms.notna().sum() == values.notna().sum():
                df[f.name] = pd.to_datetime(epoch_ms, unit="ms", utc=True)
            else:
                # string time columns keep their text, e.g. "2024-01-01 00:00:00"
                df[f.name] = pd.to_datetime(values, utc=True, errors="coerce")
        return df


@dataclass(frozen=True)
class MetricFindValue:
    text: Any
    value: Any
    label: Any


class HealthStatus(StrEnum):
    SUCCESS = "success"
    FAILED = "failed"
    ERROR = "error"


@dataclass(frozen=True)
class HealthCheckResult:
    status: HealthStatus
    message: str
