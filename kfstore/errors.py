"""Exception types raised by the store and its backends.

Backend I/O failures (`OSError`, `sqlite3.Error`) are not wrapped; they
propagate to the caller unchanged.
"""
from __future__ import annotations


class StoreError(Exception):
    """Base class for all store errors."""


class InvalidKeyError(StoreError, ValueError):
    """The key cannot be parsed into a valid location."""


class ContainmentError(InvalidKeyError):
    """The key resolves to a location outside the store root."""


class ReservedNameError(InvalidKeyError):
    """A key segment collides with a name the store reserves for itself."""


class NotFoundError(StoreError, KeyError):
    """The key, entry or container does not exist.

    Subclasses `KeyError` so callers using the usual mapping convention
    (`except KeyError`) keep working.
    """

    def __str__(self) -> str:
        # KeyError quotes its argument; keep messages readable.
        return str(self.args[0]) if self.args else ""


class TypeMismatchError(StoreError, TypeError):
    """A leaf was used as a container or the other way around."""


class ConflictError(StoreError, ValueError):
    """The operation is not valid at this location."""


class InitializationError(StoreError, OSError):
    """The store root cannot be established."""


class LockTimeout(StoreError, TimeoutError):
    """The lock marker could not be acquired within the configured timeout."""
