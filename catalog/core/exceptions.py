"""Error taxonomy for the category hierarchy engine.

``NotFoundError`` and ``ValidationError`` are terminal for a mutation and are
raised before anything is written. ``ServerError`` wraps store failures.
Cache failures never surface as exceptions.
"""

from enum import Enum
from typing import Optional


class ValidationReason(str, Enum):
    """Discriminated reasons a mutation is rejected."""

    SELF_PARENT = "SelfParent"
    CYCLIC_REFERENCE = "CyclicReference"
    PARENT_NOT_FOUND = "ParentNotFound"
    CATEGORY_HAS_CHILDREN = "CategoryHasChildren"
    CATEGORY_HAS_PRODUCTS = "CategoryHasProducts"
    DUPLICATE_SLUG = "DuplicateSlug"
    INVALID_NAME = "InvalidName"


class CatalogError(Exception):
    """Base exception for catalog errors."""

    error_type = "CatalogError"

    def __init__(self, message: str, *, reason: Optional[str] = None) -> None:
        self.message = message
        self.reason = reason
        super().__init__(message)

    def to_dict(self) -> dict:
        payload = {"error": self.error_type, "message": self.message}
        if self.reason:
            payload["reason"] = self.reason
        return payload


class NotFoundError(CatalogError):
    """Raised when a category id or slug does not resolve."""

    error_type = "NotFound"


class ValidationError(CatalogError):
    """Raised when a mutation would break a structural invariant."""

    error_type = "ValidationError"

    def __init__(self, message: str, *, reason: ValidationReason) -> None:
        super().__init__(message, reason=reason.value)
        self.validation_reason = reason


class ServerError(CatalogError):
    """Raised when the durable store fails."""

    error_type = "ServerError"

    def __init__(self, message: str, *, cause: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.cause = cause
