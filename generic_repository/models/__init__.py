"""
Optional entity base classes.

Import models from this module to share one declarative base.
"""

from generic_repository.models.base import Base, ModelMixin

__all__ = [
    "Base",
    "ModelMixin",
]
