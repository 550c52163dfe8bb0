"""Identifier coercion helpers"""
from typing import Optional, Union
from uuid import UUID

from catalog.core.exceptions import NotFoundError


def to_uuid(value: Union[UUID, str, None], label: str = "Category") -> Optional[UUID]:
    """
    Coerce an id supplied by a caller into a UUID.

    None passes through. A malformed id can never resolve, so it is reported
    as not found.
    """
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise NotFoundError(f"{label} not found: {value}")
