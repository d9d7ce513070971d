"""
Result Classifier - reports which payload kinds a query result carries.
"""

from dataclasses import dataclass, field
from enum import Flag
from typing import Optional

from athenads.api.models import ColumnInfo, QueryResult, SeriesPayload, TablePayload


class ResultShape(Flag):
    EMPTY = 0
    SERIES = 1
    TABLES = 2


@dataclass
class ClassifiedResult:
    shape: ResultShape
    series: list[SeriesPayload] = field(default_factory=list)
    tables: list[TablePayload] = field(default_factory=list)
    col_infos: list[ColumnInfo] = field(default_factory=list)

    @property
    def has_series(self) -> bool:
        return bool(self.shape & ResultShape.SERIES)

    @property
    def has_tables(self) -> bool:
        return bool(self.shape & ResultShape.TABLES)

    @property
    def is_empty(self) -> bool:
        return self.shape == ResultShape.EMPTY


def classify(result: Optional[QueryResult]) -> ClassifiedResult:
    """
    Classify a single query result.

    Series and tables are independent: a result may carry both, either or
    neither. Missing keys and empty lists both count as absent.
    """
    if result is None:
        return ClassifiedResult(shape=ResultShape.EMPTY)

    shape = ResultShape.EMPTY
    series = list(result.series or [])
    tables = list(result.tables or [])
    if series:
        shape |= ResultShape.SERIES
    if tables:
        shape |= ResultShape.TABLES

    col_infos = list(result.meta.col_infos) if result.meta is not None else []
    return ClassifiedResult(
        shape=shape, series=series, tables=tables, col_infos=col_infos
    )
