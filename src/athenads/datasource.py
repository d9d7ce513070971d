"""
Athena datasource - query, named-query lookup and health check entry points.
"""

from http import HTTPStatus
from typing import Iterable, Optional

import structlog

from athenads.api.transport import AthenaAsyncHttpClient
from athenads.config import settings
from athenads.dispatcher import QueryDispatcher
from athenads.errors import (
    MalformedTableError,
    MissingResultError,
    QueryResultError,
)
from athenads.frames.types import (
    FormatType,
    HealthCheckResult,
    HealthStatus,
    MetricFindValue,
    OutputFrame,
    QueryDescriptor,
    QueryType,
    TimeRange,
)

logger = structlog.get_logger(__name__)

METRIC_FIND_REF_ID = "metricFindQuery"
HEALTH_CHECK_REF_ID = "A"


class AthenaDataSource:
    """
    Entry point for the connector.

    Wraps a QueryDispatcher and exposes the three operations callers use:
    running queries, listing named queries and checking connectivity.
    """

    def __init__(
        self,
        client: Optional[AthenaAsyncHttpClient] = None,
        datasource_id: Optional[int] = None,
    ):
        if client is None:
            client = AthenaAsyncHttpClient()
        if datasource_id is None and (athena := settings.instance().athena):
            datasource_id = athena.datasource_id
        self.dispatcher = QueryDispatcher(client, datasource_id=datasource_id)

    async def query(
        self, descriptors: Iterable[QueryDescriptor], time_range: TimeRange
    ) -> list[OutputFrame]:
        """Run the queries and return their frames flattened in submission order."""
        by_ref_id = await self.dispatcher.dispatch(descriptors, time_range)
        return [frame for frames in by_ref_id.values() for frame in frames]

    async def list_named_queries(self) -> list[MetricFindValue]:
        """
        List the named queries registered in the configured work group.

        Returns:
            One MetricFindValue per named query, in response order

        Raises:
            TransportError: If the request fails
            MissingResultError: If the response has no metricFindQuery entry
            QueryResultError: If the backend reported an error for the lookup
            MalformedTableError: If the expected table or its columns are missing
        """
        descriptor = QueryDescriptor(
            ref_id=METRIC_FIND_REF_ID,
            query_type=QueryType.GET_NAMED_QUERY_METRICS,
            format=FormatType.TABLE,
        )
        response = await self.dispatcher.send(self.dispatcher.prepare([descriptor]))

        result = response.results.get(METRIC_FIND_REF_ID)
        if result is None:
            raise MissingResultError(METRIC_FIND_REF_ID)
        if result.error:
            raise QueryResultError(METRIC_FIND_REF_ID, result.error)
        if not result.tables:
            raise MalformedTableError(
                "Named query lookup returned no table", ref_id=METRIC_FIND_REF_ID
            )

        values = []
        for i, row in enumerate(result.tables[0].rows):
            if len(row) < 2:
                raise MalformedTableError(
                    f"Named query row {i} has {len(row)} values, expected 2",
                    ref_id=METRIC_FIND_REF_ID,
                )
            values.append(MetricFindValue(text=row[0], value=row[1], label=row[1]))

        logger.info("named_queries_listed", count=len(values))
        return values

    async def check_health(self) -> HealthCheckResult:
        """Send a no-op query; errors are reported in the result, never raised."""
        try:
            response = await self.dispatcher.send(
                self.dispatcher.prepare([QueryDescriptor(ref_id=HEALTH_CHECK_REF_ID)])
            )
        except Exception as e:
            logger.warning("health_check_error", error=str(e))
            return HealthCheckResult(status=HealthStatus.ERROR, message=f"Error: {e}")

        if response.status == HTTPStatus.OK:
            return HealthCheckResult(status=HealthStatus.SUCCESS, message="Success")

        logger.warning("health_check_failed", status=response.status)
        return HealthCheckResult(
            status=HealthStatus.FAILED, message=f"Failed: HTTP {response.status}"
        )
