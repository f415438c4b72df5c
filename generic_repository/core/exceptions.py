"""
Exceptions raised by the generic repository.

Only hard failures are represented here. Staging operations (insert,
update, remove) never raise; they report failure as ``False``. Lookups
that find nothing return ``None`` rather than raising.
"""

from typing import Any, Optional


class RepositoryException(Exception):
    """Base exception for all repository errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class InvalidFieldError(RepositoryException, AttributeError):
    """Raised when a named field is not a mapped column of the entity, or cannot be used as asked."""

    def __init__(self, entity: str, property_name: Any, reason: Optional[str] = None):
        details = {"entity": entity, "property_name": property_name}
        if reason:
            message = f"Field {property_name!r} of '{entity}' {reason}"
            details["reason"] = reason
        else:
            message = f"'{entity}' has no mapped field named {property_name!r}"
        super().__init__(message=message, details=details)


class AggregateOnEmptySetError(RepositoryException, ValueError):
    """Raised when an aggregate without a zero-element is computed over no rows."""

    def __init__(self, entity: str, aggregate: str):
        super().__init__(
            message=f"Cannot compute {aggregate} of '{entity}': sequence contains no elements",
            details={"entity": entity, "aggregate": aggregate},
        )


class PersistenceError(RepositoryException):
    """Raised when committing staged changes fails."""

    def __init__(self, entity: str, reason: Optional[str] = None):
        message = f"Saving changes for '{entity}' failed"
        if reason:
            message += f": {reason}"
        super().__init__(
            message=message, details={"entity": entity, "reason": reason}
        )
