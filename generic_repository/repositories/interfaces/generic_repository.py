"""
Generic Repository Interface (IGenericRepository)

Abstract base class defining the operation set every entity-typed
repository supports: paged and filtered retrieval, counting, lookups,
aggregates, existence checks, staging of inserts/updates/removals and
persistence of staged changes.

Implementation guide:
- Query and staging methods are async
- Staging methods (insert, update, remove) never raise; they return False
- save/save_deferred are the only operations with a durability side effect
- Predicates and selectors are SQL expressions, passed to the store unevaluated
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, Iterable, List, Optional, TypeVar

from sqlalchemy import ColumnElement


T = TypeVar("T")


class IGenericRepository(ABC, Generic[T]):
    """
    Abstract interface for data access over one entity type.

    Store-default order is primary-key ascending; every order-sensitive
    operation (paging, get_last, skip-while, take-while) relies on it.
    """

    # Query

    @abstractmethod
    async def get_all(
        self,
        take: Optional[int] = None,
        skip: int = 0,
        where: Optional[ColumnElement[bool]] = None
    ) -> List[T]:
        """
        Get a page of entities, optionally filtered.

        The filter is applied first, then ``skip`` rows are skipped, then
        at most ``take`` rows are returned.

        Args:
            take: Page size; None returns every remaining row
            skip: Number of rows to skip
            where: Optional predicate, e.g. ``Item.score > 10``

        Returns:
            List of entities in store-default order

        Raises:
            ValueError: If take or skip is negative
        """
        pass

    @abstractmethod
    async def filter(self, query: str, property_name: str) -> List[T]:
        """
        Get entities whose named field textually contains ``query``.

        Matching is case-insensitive; SQL wildcards in ``query`` match literally.

        Raises:
            InvalidFieldError: If property_name is not a mapped field
        """
        pass

    @abstractmethod
    async def get_all_skip_while(
        self,
        where: ColumnElement[bool],
        take: int,
        skip: int = 0
    ) -> List[T]:
        """
        Skip the leading run of entities for which ``where`` holds.

        Returns the entities from the first one that does not satisfy the
        predicate onward, then applies skip and take.
        """
        pass

    @abstractmethod
    async def get_all_take_while(
        self,
        where: ColumnElement[bool],
        take: int,
        skip: int = 0
    ) -> List[T]:
        """
        Take the leading run of entities for which ``where`` holds.

        Stops at the first entity that does not satisfy the predicate,
        then applies skip and take.
        """
        pass

    @abstractmethod
    async def count(self, where: Optional[ColumnElement[bool]] = None) -> int:
        """Count all entities, or those matching ``where``."""
        pass

    @abstractmethod
    async def get(self, ident: Any) -> Optional[T]:
        """
        Get a single entity by primary key.

        Args:
            ident: Primary key value (a tuple for composite keys)

        Returns:
            Entity if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_where(self, where: ColumnElement[bool]) -> Optional[T]:
        """Get the first entity matching ``where``, or None."""
        pass

    @abstractmethod
    async def get_last(self) -> Optional[T]:
        """Get the last entity in store-default order, or None when empty."""
        pass

    @abstractmethod
    async def average(
        self,
        selector: ColumnElement[Any],
        where: Optional[ColumnElement[bool]] = None
    ) -> Any:
        """
        Average a numeric selector over the collection.

        Raises:
            AggregateOnEmptySetError: If there are no rows
        """
        pass

    @abstractmethod
    async def sum(
        self,
        selector: ColumnElement[Any],
        where: Optional[ColumnElement[bool]] = None
    ) -> Any:
        """Sum a numeric selector over the collection; 0 when there are no rows."""
        pass

    @abstractmethod
    async def group_by(self, property_name: str) -> Dict[Any, List[T]]:
        """
        Partition every entity by the runtime value of a named field.

        Returns:
            Mapping of field value to the entities holding it. Keys appear
            in the order they are first seen in store-default order.

        Raises:
            InvalidFieldError: If property_name is not a mapped field
        """
        pass

    @abstractmethod
    async def max(self, property_name: str) -> Any:
        """
        Get the largest value of a named field.

        Raises:
            InvalidFieldError: If property_name is not a mapped field
            AggregateOnEmptySetError: If there are no rows
        """
        pass

    @abstractmethod
    async def min(self, property_name: str) -> Any:
        """
        Get the smallest value of a named field.

        Raises:
            InvalidFieldError: If property_name is not a mapped field
            AggregateOnEmptySetError: If there are no rows
        """
        pass

    @abstractmethod
    async def exists(self, where: ColumnElement[bool]) -> bool:
        """Check whether at least one entity matches ``where``."""
        pass

    # Command

    @abstractmethod
    async def insert(self, item: T) -> bool:
        """Stage a new entity for insertion. Returns False on failure."""
        pass

    @abstractmethod
    async def insert_many(self, items: Iterable[T]) -> bool:
        """
        Stage several new entities for insertion.

        Nothing is staged when any element is invalid.
        """
        pass

    @abstractmethod
    async def update(self, item: T) -> bool:
        """
        Stage changes of an existing entity.

        Returns False when the entity's key does not exist in the store.
        """
        pass

    @abstractmethod
    async def update_many(self, items: Iterable[T]) -> bool:
        """Stage changes of several entities. True only if every one was staged."""
        pass

    @abstractmethod
    async def remove(self, item: T) -> bool:
        """
        Stage removal of an entity.

        Returns False when the entity is already staged for removal or its
        key does not exist in the store.
        """
        pass

    @abstractmethod
    async def remove_many(self, items: Iterable[T]) -> bool:
        """Stage removal of several entities. True only if every one was staged."""
        pass

    # Save

    @abstractmethod
    async def save(self) -> None:
        """
        Commit all staged changes and wait for the commit to finish.

        Raises:
            PersistenceError: If the commit fails
        """
        pass

    @abstractmethod
    def save_deferred(self) -> "asyncio.Task[None]":
        """
        Schedule a commit of all staged changes.

        Returns:
            Task the caller awaits for completion; awaiting it raises
            PersistenceError if the commit fails

        Note:
            Must be called from a running event loop.
        """
        pass
