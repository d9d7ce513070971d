"""
Error taxonomy for the Athena datasource connector.

Unrecognized column types never raise; they degrade to string fields.
"""

from typing import Optional


class AthenaDatasourceError(Exception):
    """Base class for all connector errors."""


class TransportError(AthenaDatasourceError):
    """The outbound query request failed (network, HTTP status, unparseable body)."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class MissingResultError(AthenaDatasourceError):
    """The response carries no result entry for a submitted ref id."""

    def __init__(self, ref_id: str):
        super().__init__(f"No result returned for query refId={ref_id!r}")
        self.ref_id = ref_id


class MalformedTableError(AthenaDatasourceError):
    """A table or series in the response does not have the expected shape."""

    def __init__(self, message: str, ref_id: Optional[str] = None):
        if ref_id is not None:
            message = f"{message} (refId={ref_id!r})"
        super().__init__(message)
        self.ref_id = ref_id


class QueryResultError(AthenaDatasourceError):
    """The backend reported an error for one query of the batch."""

    def __init__(self, ref_id: str, error: str):
        super().__init__(f"{error} (refId={ref_id!r})")
        self.ref_id = ref_id
        self.error = error
