"""
Service layer for business logic.

Services are imported from their own modules by the API layer; this package
only re-exports the exception types shared by all of them.
"""

from backend.src.services.exceptions import (
    ServiceError,
    NotFoundError,
    ConflictError,
    ValidationError,
    SaveInProgressError,
    PersistenceError,
)

__all__ = [
    "ServiceError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
    "SaveInProgressError",
    "PersistenceError",
]
