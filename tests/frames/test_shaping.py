import pytest

from athenads.errors import MalformedTableError
from athenads.frames.shaping import (
    athena_to_declared_type,
    format_series_name,
    parse_result_set,
    shape_result,
    to_series,
    to_table,
)
from athenads.frames.types import (
    DeclaredType,
    FormatType,
    QueryDescriptor,
    TimeRange,
    fill_defaults,
)


def result_set(columns, rows):
    """GetQueryResults document: header row first, all values as varchar"""
    header = {"Data": [{"VarCharValue": name} for name, _ in columns]}
    return {
        "ResultSet": {
            "ResultSetMetadata": {
                "ColumnInfo": [{"Name": n, "Type": t} for n, t in columns]
            },
            "Rows": [header]
            + [{"Data": [{"VarCharValue": v} for v in row]} for row in rows],
        }
    }


METRICS = result_set(
    [("time", "timestamp"), ("metric", "varchar"), ("host", "varchar"),
     ("cpu", "double"), ("mem", "bigint")],
    [
        ["1970-01-01 00:00:02", "web", "h1", "0.5", "10"],
        ["1970-01-01 00:00:01", "web", "h1", "0.4", "12"],
        ["1970-01-01 00:00:01", "db", "h2", "0.9", "30"],
    ],
)


@pytest.mark.parametrize(
    "athena_type,expected",
    [
        ("varchar", DeclaredType.STRING),
        ("timestamp", DeclaredType.INT),
        ("bigint", DeclaredType.INT),
        ("double", DeclaredType.DOUBLE),
        ("decimal(10,2)", DeclaredType.DOUBLE),
        ("boolean", DeclaredType.BOOL),
        ("array", DeclaredType.STRING),
    ],
)
def test_athena_type_mapping(athena_type, expected):
    assert athena_to_declared_type(athena_type) == expected


def test_parse_result_set_drops_header():
    raw = parse_result_set(METRICS)
    assert [c.col_name for c in raw.columns] == ["time", "metric", "host", "cpu", "mem"]
    assert raw.columns[3].col_type == DeclaredType.DOUBLE
    assert len(raw.rows) == 3
    assert raw.rows[0][0] == "1970-01-01 00:00:02"


def test_parse_result_set_header_only():
    raw = parse_result_set(result_set([("a", "varchar")], []))
    assert raw.rows == []


def test_series_name():
    assert format_series_name("", "cpu") == "cpu"
    assert format_series_name("web", "cpu") == "web cpu"


class TestToSeries:
    def test_pivot_by_metric_and_value_column(self):
        series = to_series(
            parse_result_set(METRICS), fill_defaults(QueryDescriptor(ref_id="A"))
        )
        by_name = {s.name: s for s in series}
        assert list(by_name) == ["web cpu", "web mem", "db cpu", "db mem"]
        assert by_name["web cpu"].points == [[0.4, 1000], [0.5, 2000]]
        assert by_name["db mem"].points == [[30.0, 1000]]
        assert by_name["web cpu"].tags == {"host": "h1"}

    def test_value_columns_filter(self):
        descriptor = fill_defaults(QueryDescriptor(ref_id="A", value_columns=("mem",)))
        series = to_series(parse_result_set(METRICS), descriptor)
        assert [s.name for s in series] == ["web mem", "db mem"]

    def test_rows_outside_range_dropped(self):
        series = to_series(
            parse_result_set(METRICS),
            fill_defaults(QueryDescriptor(ref_id="A", value_columns=("cpu",))),
            TimeRange("1500", "5000"),
        )
        assert [(s.name, s.points) for s in series] == [("web cpu", [[0.5, 2000]])]

    def test_bad_timestamp(self):
        raw = parse_result_set(
            result_set([("time", "timestamp"), ("v", "double")], [["yesterday", "1"]])
        )
        with pytest.raises(ValueError):
            to_series(raw, fill_defaults(QueryDescriptor(ref_id="A")))


def test_to_table_coerces_cells():
    raw = parse_result_set(
        result_set(
            [("t", "timestamp"), ("n", "bigint"), ("d", "double"),
             ("s", "varchar"), ("b", "boolean")],
            [
                ["1970-01-01 00:00:03.250", "7", "1.5", "x", "true"],
                ["bad", "oops", None, None, "false"],
            ],
        )
    )
    t = to_table(raw)
    assert [c.text for c in t.columns] == ["t", "n", "d", "s", "b"]
    assert t.rows == [[3000, 7, 1.5, "x", True], [0, 0, 0.0, None, False]]


def test_shape_result_by_format():
    raw = parse_result_set(METRICS)
    ts = shape_result(raw, QueryDescriptor(ref_id="A"))
    assert ts.tables is None and len(ts.series) == 4
    assert [c.col_name for c in ts.meta.col_infos][0] == "time"

    tbl = shape_result(raw, QueryDescriptor(ref_id="B", format=FormatType.TABLE))
    assert tbl.series is None and len(tbl.tables) == 1
    assert tbl.ref_id == "B"


@pytest.mark.parametrize(
    "row", [["1970-01-01 00:00:01"], ["1970-01-01 00:00:01", "1", "2"]]
)
@pytest.mark.parametrize("fmt", [FormatType.TIME_SERIES, FormatType.TABLE])
def test_row_length_mismatch(row, fmt):
    raw = parse_result_set(
        result_set([("time", "timestamp"), ("v", "double")], [row])
    )
    with pytest.raises(MalformedTableError) as e:
        shape_result(raw, QueryDescriptor(ref_id="A", format=fmt))
    assert e.value.ref_id == "A"
    assert "row 0" in str(e.value)
