"""
Frame conversion components for the Athena datasource.

This package contains the result transformation pipeline:
- Types: Query descriptors, time ranges and output frames
- Resolver: Field type inference from declared column types
- Classifier: Series/table presence in a query result
- Builder: Table and series to frame conversion
- Shaping: Raw Athena result sets to series/table payloads
"""

from .types import (
    FieldType,
    FormatType,
    OutputFrame,
    QueryDescriptor,
    QueryType,
    TimeRange,
    fill_defaults,
)
from .resolver import resolve_field_type
from .classifier import classify, ClassifiedResult, ResultShape
from .builder import FrameBuilder

__all__ = [
    "FieldType",
    "FormatType",
    "OutputFrame",
    "QueryDescriptor",
    "QueryType",
    "TimeRange",
    "fill_defaults",
    "resolve_field_type",
    "classify",
    "ClassifiedResult",
    "ResultShape",
    "FrameBuilder",
]
