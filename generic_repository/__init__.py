"""
Generic repository over SQLAlchemy async sessions.

One parameterized repository exposes query, staging and persistence
operations for any mapped entity class, without type-specific code.
"""

from generic_repository.core.exceptions import (
    AggregateOnEmptySetError,
    InvalidFieldError,
    PersistenceError,
    RepositoryException,
)
from generic_repository.repositories.generic import GenericRepository
from generic_repository.repositories.interfaces import IGenericRepository

__all__ = [
    "GenericRepository",
    "IGenericRepository",
    "RepositoryException",
    "InvalidFieldError",
    "AggregateOnEmptySetError",
    "PersistenceError",
]
