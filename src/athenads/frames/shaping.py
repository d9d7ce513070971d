"""
Result shaping - converts raw Athena result sets into series and table payloads.

This is the backend half of the pipeline: it turns a ``GetQueryResults``
document (a header row followed by varchar rows) into the ``QueryResult``
shape the dispatcher consumes, so saved engine output can be rendered
offline and proxies can reuse the same rules.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field

from athenads.api.models import (
    ColumnInfo,
    QueryResult,
    ResultMeta,
    SeriesPayload,
    TableColumn,
    TablePayload,
)
from athenads.errors import MalformedTableError
from athenads.frames.types import (
    DeclaredType,
    FormatType,
    QueryDescriptor,
    TimeRange,
    fill_defaults,
)

logger = structlog.get_logger(__name__)

TIMESTAMP_LAYOUTS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M:%S.%f")

ATHENA_TYPES = {
    "varchar": DeclaredType.STRING,
    "char": DeclaredType.STRING,
    "string": DeclaredType.STRING,
    "timestamp": DeclaredType.INT,
    "bigint": DeclaredType.INT,
    "integer": DeclaredType.INT,
    "int": DeclaredType.INT,
    "smallint": DeclaredType.INT,
    "tinyint": DeclaredType.INT,
    "double": DeclaredType.DOUBLE,
    "float": DeclaredType.DOUBLE,
    "real": DeclaredType.DOUBLE,
    "decimal": DeclaredType.DOUBLE,
    "boolean": DeclaredType.BOOL,
}

NUMERIC_TYPES = (DeclaredType.INT, DeclaredType.DOUBLE)


class _AthenaModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AthenaColumnInfo(_AthenaModel):
    name: str = Field(alias="Name")
    type: str = Field(default="varchar", alias="Type")


class AthenaDatum(_AthenaModel):
    var_char_value: Optional[str] = Field(default=None, alias="VarCharValue")


class AthenaRow(_AthenaModel):
    data: List[AthenaDatum] = Field(default_factory=list, alias="Data")


class AthenaResultSetMetadata(_AthenaModel):
    column_info: List[AthenaColumnInfo] = Field(
        default_factory=list, alias="ColumnInfo"
    )


class AthenaResultSet(_AthenaModel):
    rows: List[AthenaRow] = Field(default_factory=list, alias="Rows")
    metadata: AthenaResultSetMetadata = Field(
        default_factory=AthenaResultSetMetadata, alias="ResultSetMetadata"
    )


@dataclass
class RawResult:
    """Column metadata plus data rows (header row removed) of one execution."""

    columns: List[ColumnInfo] = field(default_factory=list)
    rows: List[List[Optional[str]]] = field(default_factory=list)


def athena_to_declared_type(athena_type: str) -> DeclaredType:
    base = athena_type.split("(", 1)[0].strip().lower()
    return ATHENA_TYPES.get(base, DeclaredType.STRING)


def parse_result_set(doc: Union[Dict[str, Any], AthenaResultSet]) -> RawResult:
    """
    Parse a GetQueryResults response (or its ``ResultSet`` member).

    The first row of an Athena result set repeats the column names and is
    dropped.
    """
    if isinstance(doc, dict):
        doc = AthenaResultSet.model_validate(doc.get("ResultSet", doc))

    columns = [
        ColumnInfo(col_name=c.name, col_type=int(athena_to_declared_type(c.type)))
        for c in doc.metadata.column_info
    ]
    rows = [[d.var_char_value for d in row.data] for row in doc.rows[1:]]
    return RawResult(columns=columns, rows=rows)


def parse_timestamp(value: Optional[str]) -> datetime:
    if value is None:
        raise ValueError("Unable to parse empty timestamp")
    for layout in TIMESTAMP_LAYOUTS:
        try:
            return datetime.strptime(value, layout).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    raise ValueError(f"Unable to parse timestamp {value!r}")


def _epoch_ms(t: datetime) -> int:
    return int(t.timestamp()) * 1000


def _parse_float(value: Optional[str]) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def checked_rows(raw: RawResult, ref_id: Optional[str] = None):
    """Yield the data rows, raising if one does not match the column metadata."""
    for i, row in enumerate(raw.rows):
        if len(row) != len(raw.columns):
            raise MalformedTableError(
                f"Result set row {i} has {len(row)} values, expected {len(raw.columns)}",
                ref_id=ref_id,
            )
        yield row


def format_series_name(metric: str, value_column: str) -> str:
    return f"{metric} {value_column}" if metric else value_column


def to_series(
    raw: RawResult,
    descriptor: QueryDescriptor,
    time_range: Optional[TimeRange] = None,
) -> List[SeriesPayload]:
    """
    Pivot rows into series keyed by ``"<metric> <value column>"``.

    Args:
        raw: Parsed result set
        descriptor: Query with defaults filled in
        time_range: Rows whose time falls outside the range are dropped

    Returns:
        Series in first-seen order, points sorted by timestamp

    Raises:
        ValueError: If a time column value cannot be parsed
        MalformedTableError: If a row does not match the column metadata
    """
    value_columns = {c.strip() for c in descriptor.value_columns or () if c.strip()}
    start = int(time_range.from_ms) if time_range else None
    end = int(time_range.to_ms) if time_range else None

    series: Dict[str, SeriesPayload] = {}
    for row in checked_rows(raw, descriptor.ref_id):
        timestamp, exact_ms, metric = 0, None, ""
        tags, values = {}, {}
        for info, cell in zip(raw.columns, row):
            name = info.col_name
            if name == descriptor.time_column:
                t = parse_timestamp(cell)
                timestamp = _epoch_ms(t)
                exact_ms = int(t.timestamp() * 1000)
            elif name == descriptor.metric_column:
                metric = cell or ""
            elif info.col_type not in NUMERIC_TYPES:
                tags[name] = cell
            elif not value_columns or name in value_columns:
                values[name] = _parse_float(cell)

        if exact_ms is not None and start is not None:
            if exact_ms < start or exact_ms > end:
                continue

        for column, value in values.items():
            series_name = format_series_name(metric, column)
            if series_name not in series:
                series[series_name] = SeriesPayload(name=series_name, tags=tags)
            series[series_name].points.append([value, timestamp])

    for s in series.values():
        s.points.sort(key=lambda p: p[1])
    return list(series.values())


def _coerce_cell(cell: Optional[str], declared: DeclaredType) -> Any:
    match declared:
        case DeclaredType.INT:
            try:
                return _epoch_ms(parse_timestamp(cell))
            except (TypeError, ValueError):
                pass
            try:
                return int(cell)
            except (TypeError, ValueError):
                return 0
        case DeclaredType.DOUBLE:
            return _parse_float(cell)
        case DeclaredType.BOOL:
            return cell.lower() == "true" if cell is not None else None
    return cell


def to_table(raw: RawResult, ref_id: Optional[str] = None) -> TablePayload:
    return TablePayload(
        columns=[TableColumn(text=c.col_name) for c in raw.columns],
        rows=[
            [
                _coerce_cell(cell, DeclaredType(info.col_type))
                for info, cell in zip(raw.columns, row)
            ]
            for row in checked_rows(raw, ref_id)
        ],
    )


def shape_result(
    raw: RawResult,
    descriptor: QueryDescriptor,
    time_range: Optional[TimeRange] = None,
) -> QueryResult:
    """Shape a parsed result set according to the descriptor's format."""
    descriptor = fill_defaults(descriptor)
    result = QueryResult(
        ref_id=descriptor.ref_id, meta=ResultMeta(col_infos=list(raw.columns))
    )
    match descriptor.format:
        case FormatType.TIME_SERIES:
            result.series = to_series(raw, descriptor, time_range)
        case FormatType.TABLE:
            result.tables = [to_table(raw, descriptor.ref_id)]
        case _:
            raise ValueError(f"Unexpected format type {descriptor.format!r}")

    logger.debug(
        "result_shaped",
        ref_id=descriptor.ref_id,
        format=str(descriptor.format),
        rows=len(raw.rows),
    )
    return result
