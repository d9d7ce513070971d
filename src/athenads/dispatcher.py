"""
Query Dispatcher - batches queries into one request and maps results back.

Flow:
1. Drop hidden queries and fill defaults
2. Send one batched request with the time range
3. Look up each query's result by ref id
4. Classify the result and build series frames, then table frames
"""

from typing import Iterable, Optional, Sequence

import structlog

from athenads.api.models import (
    OutboundQuery,
    QueryRequest,
    QueryResponse,
    QueryResult,
)
from athenads.api.transport import AthenaAsyncHttpClient
from athenads.errors import MissingResultError, QueryResultError
from athenads.frames.builder import FrameBuilder
from athenads.frames.classifier import classify
from athenads.frames.types import (
    FormatType,
    OutputFrame,
    QueryDescriptor,
    TimeRange,
    fill_defaults,
)

logger = structlog.get_logger(__name__)


def to_outbound(
    descriptor: QueryDescriptor, datasource_id: Optional[int]
) -> OutboundQuery:
    return OutboundQuery(
        datasource_id=datasource_id,
        ref_id=descriptor.ref_id,
        query_type=str(descriptor.query_type),
        named_query=descriptor.named_query,
        time_column=descriptor.time_column,
        metric_column=descriptor.metric_column,
        value_columns=",".join(descriptor.value_columns),
        execution_id=descriptor.execution_id,
        format=str(descriptor.format),
        use_cache=descriptor.use_cache,
    )


def frame_time_column(descriptor: QueryDescriptor) -> Optional[str]:
    """Time column override for table frames, applied to time series queries only."""
    if descriptor.format == FormatType.TIME_SERIES:
        return descriptor.time_column
    return None


def result_to_frames(
    result: QueryResult, descriptor: QueryDescriptor, builder: FrameBuilder
) -> list[OutputFrame]:
    """Series frames first, then table frames, each in response order."""
    classified = classify(result)
    frames = [builder.build_series(s, descriptor.ref_id) for s in classified.series]
    frames += [
        builder.build_table(
            t, classified.col_infos, descriptor.ref_id, frame_time_column(descriptor)
        )
        for t in classified.tables
    ]
    logger.debug(
        "query_result_converted",
        ref_id=descriptor.ref_id,
        shape=str(classified.shape),
        frames=len(frames),
    )
    return frames


class QueryDispatcher:
    """
    Dispatches query descriptors to the backend proxy.

    Each call is independent: descriptors, request and frames are local to
    the call, so concurrent dispatches share no state.
    """

    def __init__(
        self,
        client: AthenaAsyncHttpClient,
        datasource_id: Optional[int] = None,
        builder: Optional[FrameBuilder] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            client: Transport used to send query requests
            datasource_id: Identifier attached to every outbound query
            builder: Frame builder, a default one is created when omitted
        """
        self.client = client
        self.datasource_id = datasource_id
        self.builder = builder or FrameBuilder()

    def prepare(self, descriptors: Iterable[QueryDescriptor]) -> list[QueryDescriptor]:
        prepared = [fill_defaults(d) for d in descriptors if d.enabled]
        seen = set()
        for d in prepared:
            if d.ref_id in seen:
                raise ValueError(f"Duplicate query refId {d.ref_id!r}")
            seen.add(d.ref_id)
        return prepared

    def build_request(
        self,
        descriptors: Sequence[QueryDescriptor],
        time_range: Optional[TimeRange] = None,
    ) -> QueryRequest:
        return QueryRequest(
            from_=time_range.from_ms if time_range else None,
            to=time_range.to_ms if time_range else None,
            queries=[to_outbound(d, self.datasource_id) for d in descriptors],
        )

    async def send(
        self,
        descriptors: Sequence[QueryDescriptor],
        time_range: Optional[TimeRange] = None,
    ) -> QueryResponse:
        """Send already prepared descriptors as one request. TransportError propagates."""
        request = self.build_request(descriptors, time_range)
        logger.info(
            "dispatching_queries",
            ref_ids=[d.ref_id for d in descriptors],
            time_range=(request.from_, request.to),
        )
        return await self.client.query(request)

    async def dispatch(
        self,
        descriptors: Iterable[QueryDescriptor],
        time_range: Optional[TimeRange] = None,
    ) -> dict[str, list[OutputFrame]]:
        """
        Dispatch descriptors and convert their results to frames.

        Args:
            descriptors: Queries to run, hidden ones are skipped
            time_range: Range attached to the request

        Returns:
            Frames per ref id, in descriptor submission order

        Raises:
            TransportError: If the request fails
            MissingResultError: If a submitted ref id has no result entry
            QueryResultError: If the backend reported an error for a query
            MalformedTableError: If a table or series is malformed
        """
        prepared = self.prepare(descriptors)
        if not prepared:
            logger.debug("no_enabled_queries")
            return {}

        by_ref_id = {d.ref_id: d for d in prepared}
        response = await self.send(prepared, time_range)

        missing = [ref_id for ref_id in by_ref_id if ref_id not in response.results]
        if missing:
            logger.error("missing_query_results", ref_ids=missing)
            raise MissingResultError(missing[0])

        frames = {}
        for ref_id, descriptor in by_ref_id.items():
            result = response.results[ref_id]
            if result.error:
                logger.error("query_result_error", ref_id=ref_id, error=result.error)
                raise QueryResultError(ref_id, result.error)

            frames[ref_id] = result_to_frames(result, descriptor, self.builder)
        return frames
