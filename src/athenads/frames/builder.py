"""
Frame Builder - converts result tables and series into output frames.
"""

from typing import Iterable, Optional, Sequence

import structlog

from athenads.api.models import ColumnInfo, SeriesPayload, TablePayload
from athenads.errors import MalformedTableError
from athenads.frames.resolver import resolve_field_type
from athenads.frames.types import Field, FieldType, OutputFrame

logger = structlog.get_logger(__name__)

SERIES_TIME_FIELD = "Time"


def find_column_info(
    col_infos: Iterable[ColumnInfo], name: str
) -> Optional[ColumnInfo]:
    """Linear, case-sensitive lookup; the first matching entry wins."""
    for info in col_infos:
        if info.col_name == name:
            return info
    return None


class FrameBuilder:
    """
    Builds output frames from classified query results.

    Tables become one frame each with a field per column. Each series becomes
    its own two-field frame (time, value).
    """

    def build_table(
        self,
        table: TablePayload,
        col_infos: Sequence[ColumnInfo],
        ref_id: str,
        time_column: Optional[str] = None,
    ) -> OutputFrame:
        """
        Build a frame from a table payload.

        Args:
            table: Table with ordered columns and rows
            col_infos: Column metadata used to look up declared types
            ref_id: Ref id of the originating query
            time_column: Column to type as time, None to disable the override

        Returns:
            OutputFrame with one field per column

        Raises:
            MalformedTableError: If a row length differs from the column count
        """
        n_columns = len(table.columns)
        for i, row in enumerate(table.rows):
            if len(row) != n_columns:
                raise MalformedTableError(
                    f"Row {i} has {len(row)} values but the table has "
                    f"{n_columns} columns",
                    ref_id=ref_id,
                )

        fields = []
        for index, column in enumerate(table.columns):
            info = find_column_info(col_infos, column.text)
            fields.append(
                Field(
                    name=column.text,
                    type=resolve_field_type(
                        column.text,
                        info.col_type if info is not None else None,
                        time_column,
                    ),
                    values=[row[index] for row in table.rows],
                )
            )

        logger.debug(
            "table_frame_built",
            ref_id=ref_id,
            columns=n_columns,
            rows=len(table.rows),
        )
        return OutputFrame(ref_id=ref_id, fields=fields)

    def build_series(self, series: SeriesPayload, ref_id: str) -> OutputFrame:
        times, values = [], []
        for i, point in enumerate(series.points):
            if len(point) != 2:
                raise MalformedTableError(
                    f"Point {i} of series {series.name!r} is not a "
                    f"[value, timestamp] pair",
                    ref_id=ref_id,
                )
            value, timestamp = point
            values.append(value)
            times.append(timestamp)

        return OutputFrame(
            ref_id=ref_id,
            name=series.name,
            fields=[
                Field(name=SERIES_TIME_FIELD, type=FieldType.TIME, values=times),
                Field(name=series.name, type=FieldType.NUMBER, values=values),
            ],
        )
