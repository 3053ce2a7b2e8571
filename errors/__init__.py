"""Custom exception hierarchy for the project evaluation service."""

from errors.exceptions import (
    LoadError,
    NotFoundError,
    PersistenceError,
    ServiceError,
    ValidationError,
)

__all__ = [
    "LoadError",
    "NotFoundError",
    "PersistenceError",
    "ServiceError",
    "ValidationError",
]
