"""
Utilities module: Exceptions.
"""

from shared.utils.exceptions import (
    AppException,
    NotFoundError,
    ClientNotFoundError,
    ValidationError,
    ServiceUnavailableError,
)

__all__ = [
    "AppException",
    "NotFoundError",
    "ClientNotFoundError",
    "ValidationError",
    "ServiceUnavailableError",
]
