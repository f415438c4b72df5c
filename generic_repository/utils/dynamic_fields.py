"""
Dynamic field helpers.

Resolve entity fields by name at runtime, for operations whose field is
only known as a string (grouping, min/max by name, text filtering).

Two contracts, deliberately different:

- ``build_field_expression`` is strict. It returns the mapped column
  attribute usable inside a SQLAlchemy statement and raises
  ``InvalidFieldError`` when the name is not a mapped column.
- ``get_field`` is lenient. It reads a value from any object and
  returns ``None`` when the object or the field is missing.
"""

from functools import lru_cache
from typing import Any, FrozenSet, Mapping, Optional

from sqlalchemy import inspect
from sqlalchemy.orm import InstrumentedAttribute

from generic_repository.core.exceptions import InvalidFieldError


@lru_cache(maxsize=None)
def mapped_field_names(model: type) -> FrozenSet[str]:
    """
    Return the names of the mapped column attributes of ``model``.

    Built once per class from the SQLAlchemy mapper.

    Raises:
        TypeError: If ``model`` is not a mapped class
    """
    mapper = inspect(model, raiseerr=False)
    if mapper is None or not hasattr(mapper, "column_attrs"):
        raise TypeError(f"{model!r} is not a mapped class")
    return frozenset(attr.key for attr in mapper.column_attrs)


def build_field_expression(model: type, property_name: str) -> InstrumentedAttribute:
    """
    Build a column accessor for ``property_name`` on ``model``.

    Args:
        model: SQLAlchemy mapped class
        property_name: Name of a mapped column attribute

    Returns:
        The instrumented attribute (e.g. ``Item.score``), usable in
        ``select``, ``where``, ``order_by`` and aggregate functions

    Raises:
        InvalidFieldError: If the name is not a mapped column of ``model``

    Example:
        >>> build_field_expression(Item, "score")
        <sqlalchemy.orm.attributes.InstrumentedAttribute object ...>
    """
    if not isinstance(property_name, str) or property_name not in mapped_field_names(model):
        raise InvalidFieldError(model.__name__, property_name)
    return getattr(model, property_name)


def get_field(source: Any, property_name: str) -> Optional[Any]:
    """
    Read the current value of a field from any object.

    Mappings are read by key, other objects by attribute.

    Returns:
        The field value, or None if ``source`` is None or has no such field
    """
    if source is None:
        return None
    if isinstance(source, Mapping):
        return source.get(property_name)
    return getattr(source, property_name, None)
