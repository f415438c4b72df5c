"""Runtime helpers for dynamically named entity fields."""

from generic_repository.utils.dynamic_fields import (
    build_field_expression,
    get_field,
    mapped_field_names,
)

__all__ = [
    "build_field_expression",
    "get_field",
    "mapped_field_names",
]
