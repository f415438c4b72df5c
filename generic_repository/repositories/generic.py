"""
Generic repository for any SQLAlchemy mapped entity.

Implements IGenericRepository by delegating to an injected AsyncSession.
Queries are translated into SQLAlchemy statements over the mapped class;
staging operations go through the session's unit of work and report
failure as False; save commits the session and raises on failure.
"""

import asyncio
import time
from collections.abc import Hashable
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Type

from sqlalchemy import Boolean, ColumnElement, Select, String, cast, false, func, inspect, not_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapper

from generic_repository.core.config import Settings, get_settings
from generic_repository.core.exceptions import (
    AggregateOnEmptySetError,
    InvalidFieldError,
    PersistenceError,
)
from generic_repository.core.logging_config import get_logger, log_with_context
from generic_repository.repositories.interfaces.generic_repository import IGenericRepository, T
from generic_repository.utils.dynamic_fields import build_field_expression, get_field


logger = get_logger(__name__)


def _escape_like(value: str) -> str:
    """Escape LIKE wildcards so they match literally (escape char is backslash)."""
    return (
        value.replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
    )


class GenericRepository(IGenericRepository[T]):
    """
    Repository over one mapped entity class.

    The repository owns nothing: the session tracks pending changes and
    executes queries, the mapped class stands for the table. Store-default
    order is primary-key ascending.

    Attributes:
        session: SQLAlchemy async session the repository delegates to
        model: Mapped entity class
        settings: Repository settings (logging, rollback on save failure)

    Example:
        >>> repo = GenericRepository(session, Item)
        >>> await repo.insert(Item(name="widget", score=10))
        True
        >>> await repo.save()
        >>> await repo.get_all(take=10, where=Item.score >= 10)
        [Item(id=1, name='widget')]
    """

    def __init__(
        self,
        session: AsyncSession,
        model: Type[T],
        settings: Optional[Settings] = None
    ):
        """
        Initialize repository with database session and entity class.

        Args:
            session: SQLAlchemy async session
            model: SQLAlchemy mapped class
            settings: Optional settings; defaults to the global settings

        Raises:
            TypeError: If model is not a mapped class
        """
        mapper = inspect(model, raiseerr=False)
        if not isinstance(mapper, Mapper):
            raise TypeError(f"{model!r} is not a mapped class")

        self.session = session
        self.model = model
        self.settings = settings or get_settings()
        self._mapper = mapper
        self._primary_key = tuple(
            getattr(model, mapper.get_property_by_column(column).key)
            for column in mapper.primary_key
        )

    @property
    def entity_name(self) -> str:
        return self.model.__name__

    # Query

    async def get_all(
        self,
        take: Optional[int] = None,
        skip: int = 0,
        where: Optional[ColumnElement[bool]] = None
    ) -> List[T]:
        """
        Get a page of entities in primary-key order.

        Args:
            take: Page size; None returns every remaining row
            skip: Rows skipped before the page starts
            where: Optional filter applied before paging

        Returns:
            List of entities (empty if none match)

        Raises:
            ValueError: If take or skip is negative
        """
        stmt = self._page(self._select(where), take, skip)
        return await self._fetch_all(stmt, "get_all")

    async def filter(self, query: str, property_name: str) -> List[T]:
        """Case-insensitive "contains" match of ``query`` against a named field."""
        column = build_field_expression(self.model, property_name)
        pattern = f"%{_escape_like(str(query))}%"
        stmt = self._select(cast(column, String).ilike(pattern, escape="\\"))
        return await self._fetch_all(stmt, "filter", property_name=property_name)

    async def get_all_skip_while(
        self,
        where: ColumnElement[bool],
        take: int,
        skip: int = 0
    ) -> List[T]:
        """
        Drop the leading run of entities satisfying ``where``, then page.

        Raises:
            ValueError: If the entity has a composite primary key
        """
        key = self._single_key("get_all_skip_while")
        # No boundary means the predicate holds for every row: nothing remains.
        boundary = self._first_failing_key(key, where)
        stmt = self._page(self._select(key >= boundary), take, skip)
        return await self._fetch_all(stmt, "get_all_skip_while")

    async def get_all_take_while(
        self,
        where: ColumnElement[bool],
        take: int,
        skip: int = 0
    ) -> List[T]:
        """
        Keep only the leading run of entities satisfying ``where``, then page.

        A predicate evaluating to NULL ends the run.

        Raises:
            ValueError: If the entity has a composite primary key
        """
        key = self._single_key("get_all_take_while")
        boundary = self._first_failing_key(key, where)
        stmt = self._page(
            self._select(or_(boundary.is_(None), key < boundary)), take, skip
        )
        return await self._fetch_all(stmt, "get_all_take_while")

    async def count(self, where: Optional[ColumnElement[bool]] = None) -> int:
        stmt = select(func.count()).select_from(self.model)
        if where is not None:
            stmt = stmt.where(where)
        result = await self._execute(stmt, "count")
        return result.scalar_one()

    async def get(self, ident: Any) -> Optional[T]:
        """
        Get entity by primary key.

        Args:
            ident: Primary key value, or a tuple for composite keys

        Returns:
            Entity if found, None otherwise (also None for a None key)
        """
        if ident is None:
            return None
        started = time.perf_counter()
        item = await self.session.get(self.model, ident)
        self._log_query("get", started)
        return item

    async def get_where(self, where: ColumnElement[bool]) -> Optional[T]:
        result = await self._execute(self._select(where).limit(1), "get_where")
        return result.scalars().first()

    async def get_last(self) -> Optional[T]:
        stmt = (
            select(self.model)
            .order_by(*(key.desc() for key in self._primary_key))
            .limit(1)
        )
        result = await self._execute(stmt, "get_last")
        return result.scalars().first()

    async def average(
        self,
        selector: ColumnElement[Any],
        where: Optional[ColumnElement[bool]] = None
    ) -> Any:
        return await self._aggregate(func.avg(selector), "average", where=where)

    async def sum(
        self,
        selector: ColumnElement[Any],
        where: Optional[ColumnElement[bool]] = None
    ) -> Any:
        """Sum ``selector`` over matching rows; 0 when nothing matches."""
        stmt = select(func.sum(selector)).select_from(self.model)
        if where is not None:
            stmt = stmt.where(where)
        result = await self._execute(stmt, "sum")
        total = result.scalar_one()
        return 0 if total is None else total

    async def group_by(self, property_name: str) -> Dict[Any, List[T]]:
        """
        Partition every entity by the value of a named field.

        Values of the field become dict keys, so they must be hashable;
        JSON columns holding lists or dicts cannot be grouped on.

        Args:
            property_name: Mapped attribute name, matched exactly

        Returns:
            Mapping of field value to entities, keys in first-seen order

        Raises:
            InvalidFieldError: If the field is not mapped, or holds an
                unhashable value
        """
        build_field_expression(self.model, property_name)
        items = await self._fetch_all(
            self._select(), "group_by", property_name=property_name
        )

        groups: Dict[Any, List[T]] = {}
        for item in items:
            value = get_field(item, property_name)
            if not isinstance(value, Hashable):
                raise InvalidFieldError(
                    self.entity_name,
                    property_name,
                    reason=f"holds an unhashable {type(value).__name__} value and cannot be grouped on",
                )
            groups.setdefault(value, []).append(item)
        return groups

    async def max(self, property_name: str) -> Any:
        column = build_field_expression(self.model, property_name)
        return await self._aggregate(
            func.max(column), "max", property_name=property_name
        )

    async def min(self, property_name: str) -> Any:
        column = build_field_expression(self.model, property_name)
        return await self._aggregate(
            func.min(column), "min", property_name=property_name
        )

    async def exists(self, where: ColumnElement[bool]) -> bool:
        stmt = select(select(self.model).where(where).exists())
        result = await self._execute(stmt, "exists")
        return bool(result.scalar_one())

    # Command

    async def insert(self, item: T) -> bool:
        """
        Stage a new entity for insertion.

        Args:
            item: Transient entity of this repository's type

        Returns:
            True if staged; False if the item is None, of another type,
            shares its key with an entity the session already tracks, or
            the session refuses it
        """
        return await self._stage("insert", self._stage_insert, item)

    async def insert_many(self, items: Iterable[T]) -> bool:
        """
        Stage several new entities, all or nothing.

        If any element is rejected, elements staged earlier in the batch
        are taken back out of the session before returning False.
        """
        batch = self._batch("insert_many", items)
        if batch is None:
            return False

        staged: List[T] = []
        for item in batch:
            tracked = item in self.session
            if not await self._stage("insert_many", self._stage_insert, item):
                for added in staged:
                    self.session.expunge(added)
                return False
            if not tracked:
                staged.append(item)
        return True

    async def update(self, item: T) -> bool:
        """
        Stage changes of an existing entity.

        A tracked instance needs nothing further; its attribute changes are
        already recorded. A detached or transient instance is merged onto
        the stored row with the same key.

        Args:
            item: Entity carrying the new field values

        Returns:
            True if staged; False if the item is None, of another type,
            staged for removal, or no stored row has its key
        """
        return await self._stage("update", self._stage_update, item)

    async def update_many(self, items: Iterable[T]) -> bool:
        """Stage changes of several entities; True only if every one was staged."""
        batch = self._batch("update_many", items)
        if batch is None:
            return False
        results = [await self._stage("update", self._stage_update, item) for item in batch]
        return all(results)

    async def remove(self, item: T) -> bool:
        """
        Stage removal of an entity.

        Removing an entity whose insertion is still staged cancels the
        insertion instead.

        Args:
            item: Entity to remove, matched by primary key

        Returns:
            True if staged; False if the item is None, of another type,
            already staged for removal, or no stored row has its key
        """
        return await self._stage("remove", self._stage_remove, item)

    async def remove_many(self, items: Iterable[T]) -> bool:
        """Stage removal of several entities; True only if every one was staged."""
        batch = self._batch("remove_many", items)
        if batch is None:
            return False
        results = [await self._stage("remove", self._stage_remove, item) for item in batch]
        return all(results)

    # Save

    async def save(self) -> None:
        """
        Commit every staged change and wait for the commit to finish.

        On failure the session is rolled back (unless
        ``rollback_on_save_failure`` is off), dropping all staged changes.

        Raises:
            PersistenceError: If the commit fails; chained to the
                SQLAlchemy error
        """
        started = time.perf_counter()
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            logger.error(
                "Saving staged changes failed",
                exc_info=True,
                extra={"entity": self.entity_name, "operation": "save", "reason": str(e)},
            )
            if self.settings.rollback_on_save_failure:
                await self.session.rollback()
            raise PersistenceError(self.entity_name, str(e)) from e

        self._log_query("save", started)

    def save_deferred(self) -> "asyncio.Task[None]":
        """
        Schedule ``save`` on the running event loop.

        Returns:
            Task completing when the commit finishes; awaiting it raises
            PersistenceError on failure

        Raises:
            RuntimeError: If called without a running event loop
        """
        return asyncio.get_running_loop().create_task(self.save())

    # Statement helpers

    def _select(self, where: Optional[ColumnElement[bool]] = None) -> Select:
        """Select every entity in store-default order, optionally filtered."""
        stmt = select(self.model)
        if where is not None:
            stmt = stmt.where(where)
        return stmt.order_by(*self._primary_key)

    @staticmethod
    def _page(stmt: Select, take: Optional[int], skip: int) -> Select:
        """Apply skip, then take."""
        if skip < 0:
            raise ValueError(f"skip must be >= 0, got {skip}")
        if take is not None and take < 0:
            raise ValueError(f"take must be >= 0, got {take}")
        if skip:
            stmt = stmt.offset(skip)
        if take is not None:
            stmt = stmt.limit(take)
        return stmt

    def _single_key(self, operation: str) -> ColumnElement[Any]:
        if len(self._primary_key) != 1:
            raise ValueError(
                f"{operation} requires a single-column primary key; "
                f"'{self.entity_name}' has {len(self._primary_key)}"
            )
        return self._primary_key[0]

    def _first_failing_key(self, key: ColumnElement[Any], where: ColumnElement[bool]):
        """Scalar subquery: key of the first row, in key order, where ``where`` is not true."""
        holds = func.coalesce(where, false(), type_=Boolean)
        return (
            select(func.min(key))
            .select_from(self.model)
            .where(not_(holds))
            .correlate(None)
            .scalar_subquery()
        )

    async def _aggregate(
        self,
        expression: ColumnElement[Any],
        aggregate: str,
        where: Optional[ColumnElement[bool]] = None,
        property_name: Optional[str] = None
    ) -> Any:
        """Compute an aggregate that has no zero-element; fail on an empty set."""
        stmt = select(expression, func.count()).select_from(self.model)
        if where is not None:
            stmt = stmt.where(where)
        result = await self._execute(stmt, aggregate, property_name=property_name)
        value, rows = result.one()
        if rows == 0:
            raise AggregateOnEmptySetError(self.entity_name, aggregate)
        return value

    async def _execute(self, stmt, operation: str, property_name: Optional[str] = None):
        started = time.perf_counter()
        result = await self.session.execute(stmt)
        self._log_query(operation, started, property_name=property_name)
        return result

    async def _fetch_all(
        self,
        stmt: Select,
        operation: str,
        property_name: Optional[str] = None
    ) -> List[T]:
        result = await self._execute(stmt, operation, property_name=property_name)
        return list(result.scalars().all())

    def _log_query(self, operation: str, started: float, property_name: Optional[str] = None) -> None:
        log_with_context(
            logger,
            "debug",
            "Store call completed",
            entity=self.entity_name,
            operation=operation,
            property_name=property_name,
            latency_ms=round((time.perf_counter() - started) * 1000, 3),
        )

    # Staging helpers

    def _rejection(self, item: Any) -> Optional[str]:
        """Reason an item cannot be staged by this repository, or None."""
        if item is None:
            return "item is None"
        if not isinstance(item, self.model):
            return f"expected {self.entity_name}, got {type(item).__name__}"
        return None

    def _batch(self, operation: str, items: Optional[Iterable[T]]) -> Optional[List[T]]:
        """Materialize and validate a batch; None (after logging) if any element is invalid."""
        if items is None:
            self._soft_failure(operation, "items is None")
            return None
        batch = list(items)
        for item in batch:
            reason = self._rejection(item)
            if reason is not None:
                self._soft_failure(operation, reason)
                return None
        return batch

    async def _stage(
        self,
        operation: str,
        stage: Callable[[T], Awaitable[Optional[str]]],
        item: T
    ) -> bool:
        reason = self._rejection(item)
        if reason is None:
            try:
                reason = await stage(item)
            except SQLAlchemyError as e:
                reason = str(e)
        if reason is not None:
            return self._soft_failure(operation, reason)
        return True

    def _soft_failure(self, operation: str, reason: str) -> bool:
        if self.settings.log_soft_failures:
            log_with_context(
                logger,
                "warning",
                "Staging failed, reporting False",
                entity=self.entity_name,
                operation=operation,
                reason=reason,
            )
        return False

    async def _stage_insert(self, item: T) -> Optional[str]:
        conflict = self._key_conflict(item)
        if conflict is not None:
            return conflict
        self.session.add(item)
        return None

    def _key_conflict(self, item: T) -> Optional[str]:
        """
        Reason the item's key clashes with another instance in the session, or None.

        Items without a complete key (e.g. autoincrement ids not yet
        assigned) cannot clash.
        """
        key = self._mapper.identity_key_from_instance(item)
        if any(value is None for value in key[1]):
            return None

        existing = self.session.identity_map.get(key)
        if (
            existing is not None
            and existing is not item
            and not self._is_staged_for_removal(existing)
        ):
            return "an instance with this key is already tracked"

        for pending in self.session.new:
            if pending is item:
                continue
            if inspect(pending).mapper.identity_key_from_instance(pending) == key:
                return "an instance with this key is already staged for insertion"
        return None

    async def _stage_update(self, item: T) -> Optional[str]:
        if self._is_staged_for_removal(item):
            return "item is staged for removal"
        if item in self.session:
            # Attribute changes of tracked instances are recorded by the session.
            return None
        if await self._merge_stored(item) is None:
            return "no stored row with this key"
        return None

    async def _stage_remove(self, item: T) -> Optional[str]:
        if self._is_staged_for_removal(item):
            return "item is already staged for removal"
        if item in self.session:
            if inspect(item).pending:
                # Never flushed: dropping it cancels the insertion.
                self.session.expunge(item)
            else:
                await self.session.delete(item)
            return None

        merged = await self._merge_stored(item)
        if merged is None:
            return "no stored row with this key"
        await self.session.delete(merged)
        return None

    async def _merge_stored(self, item: T) -> Optional[T]:
        """
        Merge a detached or transient item onto its stored row.

        Returns the session's instance, or None (leaving the session
        untouched) when the store has no row with the item's key.
        """
        merged = await self.session.merge(item)
        if inspect(merged).pending:
            self.session.expunge(merged)
            return None
        return merged

    def _is_staged_for_removal(self, item: T) -> bool:
        return item in self.session.deleted or inspect(item).deleted
