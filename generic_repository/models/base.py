"""
Optional declarative base and mixin for entity models.

Entities handed to a GenericRepository only need to be SQLAlchemy mapped
classes. These helpers are a convenience for projects without a base of
their own.
"""

from typing import Any

from sqlalchemy import inspect
from sqlalchemy.orm import declarative_base


# SQLAlchemy declarative base for entity models
Base = declarative_base()


class ModelMixin:
    """
    Mixin providing common model utilities.

    Adds serialization and a compact representation keyed on the primary key.
    """

    def to_dict(self) -> dict[str, Any]:
        """
        Convert model instance to dictionary.

        Returns:
            Dictionary of mapped column attribute names to values

        Note:
            Only includes column attributes, not relationships.
        """
        return {
            attr.key: getattr(self, attr.key)
            for attr in inspect(type(self)).column_attrs
        }

    def __repr__(self) -> str:
        """
        String representation of model instance.

        Returns:
            String like "Item(id=1, name='widget')"
        """
        mapper = inspect(type(self))
        keys = [column.key for column in mapper.primary_key]
        keys += [key for key in ("name", "title") if key in mapper.column_attrs]
        attrs = ", ".join(
            f"{key}={getattr(self, key, None)!r}" for key in keys
        )
        return f"{self.__class__.__name__}({attrs})"
