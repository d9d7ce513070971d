"""
Field Type Resolver - maps declared column types to frame field types.
"""

from typing import Optional, Union

from athenads.frames.types import DeclaredType, FieldType

_DECLARED_TO_FIELD = {
    DeclaredType.BOOL: FieldType.BOOLEAN,
    DeclaredType.INT: FieldType.NUMBER,
    DeclaredType.DOUBLE: FieldType.NUMBER,
}


def as_declared_type(
    declared: Optional[Union[DeclaredType, int, str]],
) -> Optional[DeclaredType]:
    """
    Coerce a metadata column type (enum value, int or name) to a DeclaredType.

    Returns None for anything that is not recognized.
    """
    if declared is None or isinstance(declared, DeclaredType):
        return declared
    if isinstance(declared, bool):
        return None
    if isinstance(declared, str):
        if declared.strip().isdigit():
            declared = int(declared)
        else:
            return DeclaredType.__members__.get(declared.strip().upper())
    try:
        return DeclaredType(declared)
    except (ValueError, TypeError):
        return None


def resolve_field_type(
    column_name: str,
    declared_type: Optional[Union[DeclaredType, int, str]] = None,
    time_column: Optional[str] = None,
) -> FieldType:
    """
    Infer the field type for a result column.

    The time column is always a time field whatever its declared type.
    Unknown declared types resolve to string.
    """
    if time_column is not None and column_name == time_column:
        return FieldType.TIME
    return _DECLARED_TO_FIELD.get(as_declared_type(declared_type), FieldType.STRING)
