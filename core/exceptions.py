"""Custom exception hierarchy for the alias engine."""
from __future__ import annotations


class AliasEngineError(Exception):
    """Base exception for all alias engine errors."""
    pass


class ConfigurationError(AliasEngineError):
    """Raised when configuration is invalid or missing."""
    pass


class AliasConflictError(AliasEngineError):
    """Raised when a normalized alias is already bound to another species."""

    def __init__(self, norm: str, existing_species: str, proposed_species: str):
        super().__init__(
            f"alias '{norm}' already bound to species {existing_species}, "
            f"refusing to rebind to {proposed_species}"
        )
        self.norm = norm
        self.existing_species = existing_species
        self.proposed_species = proposed_species


class StoreError(AliasEngineError):
    """Base class for persistence failures.

    Subclasses tell the caller which recovery policy applies:
    ``NoDataError`` means nothing was stored yet, ``StorageUnavailableError``
    is transient and worth retrying, ``CorruptDataError`` means the stored
    bytes must be discarded in favour of the next source.
    """
    pass


class NoDataError(StoreError):
    """Raised when the requested file or dataset does not exist."""
    pass


class StorageUnavailableError(StoreError):
    """Raised when the storage backend cannot be reached or written."""
    pass


class CorruptDataError(StoreError):
    """Raised when persisted data fails validation or decoding."""
    pass
