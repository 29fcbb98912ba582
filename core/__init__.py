"""Core infrastructure: error hierarchy, result type and error-handling helpers."""
from __future__ import annotations

from .exceptions import (
    AliasConflictError,
    AliasEngineError,
    ConfigurationError,
    CorruptDataError,
    NoDataError,
    StorageUnavailableError,
    StoreError,
)
from .result import Failure, Result, Success

__all__ = [
    "AliasEngineError",
    "AliasConflictError",
    "ConfigurationError",
    "StoreError",
    "NoDataError",
    "StorageUnavailableError",
    "CorruptDataError",
    "Result",
    "Success",
    "Failure",
]
