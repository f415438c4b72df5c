"""Repository interface contracts (ABCs)"""

from generic_repository.repositories.interfaces.generic_repository import IGenericRepository

__all__ = [
    'IGenericRepository',
]
