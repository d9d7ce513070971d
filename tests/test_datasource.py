"""
Unit tests for the datasource entry points: query, named-query lookup and
health check.
"""

import asyncio

import pytest

from conftest import make_response

from athenads.datasource import AthenaDataSource
from athenads.errors import (
    MalformedTableError,
    MissingResultError,
    QueryResultError,
    TransportError,
)
from athenads.frames.types import (
    FieldType,
    FormatType,
    HealthStatus,
    MetricFindValue,
    QueryDescriptor,
    TimeRange,
)


@pytest.fixture
def datasource(mock_client):
    return AthenaDataSource(client=mock_client, datasource_id=1)


class TestQuery:
    @pytest.mark.asyncio
    async def test_frames_flattened_in_submission_order(self, datasource, mock_client):
        mock_client.query.return_value = make_response(
            {
                "B": {"series": [{"name": "b1"}, {"name": "b2"}]},
                "A": {
                    "tables": [
                        {"columns": [{"text": "x"}], "rows": [["1"]]},
                        {"columns": [{"text": "y"}], "rows": [["2"]]},
                    ]
                },
            }
        )
        frames = await datasource.query(
            [
                QueryDescriptor(ref_id="A", format=FormatType.TABLE),
                QueryDescriptor(ref_id="B"),
            ],
            TimeRange.of(0, 1000),
        )
        assert [(f.ref_id, f.name) for f in frames] == [
            ("A", None),
            ("A", None),
            ("B", "b1"),
            ("B", "b2"),
        ]
        assert frames[0].fields[0].type == FieldType.STRING

    @pytest.mark.asyncio
    async def test_uses_configured_datasource_id(
        self, mock_settings_instance, mock_client
    ):
        mock_client.query.return_value = make_response({"A": {}})
        await AthenaDataSource(client=mock_client).query(
            [QueryDescriptor(ref_id="A")], TimeRange("0", "1")
        )
        request = mock_client.query.call_args[0][0]
        assert request.queries[0].datasource_id == 7


class TestNamedQueries:
    @pytest.mark.asyncio
    async def test_rows_to_values(self, datasource, mock_client):
        mock_client.query.return_value = make_response(
            {
                "metricFindQuery": {
                    "tables": [
                        {
                            "columns": [{"text": "text"}, {"text": "value"}],
                            "rows": [["a", "1"], ["b", "2"]],
                        }
                    ]
                }
            }
        )
        values = await datasource.list_named_queries()
        assert values == [
            MetricFindValue(text="a", value="1", label="1"),
            MetricFindValue(text="b", value="2", label="2"),
        ]

        request = mock_client.query.call_args[0][0]
        assert request.from_ is None and request.to is None
        body = request.to_json()
        assert "from" not in body and "to" not in body
        assert body["queries"][0]["refId"] == "metricFindQuery"
        assert body["queries"][0]["queryType"] == "GetNamedQueryMetrics"
        assert body["queries"][0]["format"] == "table"

    @pytest.mark.asyncio
    async def test_missing_table(self, datasource, mock_client):
        mock_client.query.return_value = make_response({"metricFindQuery": {}})
        with pytest.raises(MalformedTableError):
            await datasource.list_named_queries()

    @pytest.mark.asyncio
    async def test_result_error(self, datasource, mock_client):
        mock_client.query.return_value = make_response(
            {"metricFindQuery": {"error": "AccessDeniedException: not authorized"}}
        )
        with pytest.raises(QueryResultError) as e:
            await datasource.list_named_queries()
        assert e.value.ref_id == "metricFindQuery"
        assert "not authorized" in str(e.value)

    @pytest.mark.asyncio
    async def test_missing_entry(self, datasource, mock_client):
        mock_client.query.return_value = make_response({})
        with pytest.raises(MissingResultError):
            await datasource.list_named_queries()

    @pytest.mark.asyncio
    async def test_short_row(self, datasource, mock_client):
        mock_client.query.return_value = make_response(
            {"metricFindQuery": {"tables": [{"columns": [], "rows": [["a"]]}]}}
        )
        with pytest.raises(MalformedTableError):
            await datasource.list_named_queries()


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_success(self, datasource, mock_client):
        mock_client.query.return_value = make_response({"A": {}}, status=200)
        result = await datasource.check_health()
        assert result.status == HealthStatus.SUCCESS

        body = mock_client.query.call_args[0][0].to_json()
        assert "from" not in body
        assert body["queries"][0]["queryType"] == ""
        assert body["queries"][0]["useCache"] is True

    @pytest.mark.asyncio
    async def test_non_ok_status_fails(self, datasource, mock_client):
        mock_client.query.return_value = make_response({}, status=204)
        result = await datasource.check_health()
        assert result.status == HealthStatus.FAILED

    @pytest.mark.parametrize(
        "error",
        [TransportError("refused"), RuntimeError("unexpected"), asyncio.TimeoutError()],
    )
    @pytest.mark.asyncio
    async def test_exception_is_error(self, datasource, mock_client, error):
        mock_client.query.side_effect = error
        result = await datasource.check_health()
        assert result.status == HealthStatus.ERROR


def blocking_query(started: asyncio.Event):
    """A query() side effect that never completes until cancelled"""

    async def query(request):
        started.set()
        await asyncio.Event().wait()
        return make_response({"A": {}})

    return query


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_query_propagates(self, datasource, mock_client):
        started = asyncio.Event()
        mock_client.query.side_effect = blocking_query(started)

        task = asyncio.create_task(
            datasource.query([QueryDescriptor(ref_id="A")], TimeRange.of(0, 1000))
        )
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert task.cancelled()
        mock_client.query.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_health_check_does_not_swallow_cancellation(
        self, datasource, mock_client
    ):
        started = asyncio.Event()
        mock_client.query.side_effect = blocking_query(started)

        task = asyncio.create_task(datasource.check_health())
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert task.cancelled()
