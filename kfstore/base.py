"""Storage backend interface definitions.

Defines the StorageBackend abstract class implemented by the filesystem
and embedded-engine backends. Both accept caller keys as strings or parsed
`Leaf`/`Container` keys and store opaque bytes.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Union

from .keys import Key

KeyLike = Union[str, Key]


class StorageBackend(ABC):
    """Abstract hierarchical storage backend.

    The two backends differ on purpose in two defaults, which are exposed as
    class attributes so the facade can report them:

    - `recursive_default`: whether `list_keys` walks the whole subtree
      (leaf names only) or returns direct children.
    - `missing_ok_default`: whether `delete` of an absent key is silent.
    """

    recursive_default: bool = True
    missing_ok_default: bool = True

    @property
    @abstractmethod
    def base_dir(self) -> Path:
        """Absolute root location of the store."""

    @abstractmethod
    def save(self, key: KeyLike, value: Optional[bytes] = None) -> None:
        """Store `value` at a leaf key, or create a container key.

        A non-empty value with a container key raises `ConflictError`.
        """

    @abstractmethod
    def load(self, key: KeyLike) -> bytes:
        """Return the bytes stored at a leaf key.

        Should raise `NotFoundError` if the key does not exist.
        """

    @abstractmethod
    def list_keys(self, key: KeyLike = "", recursive: Optional[bool] = None) -> List[str]:
        """Return entry names under the container `key`."""

    @abstractmethod
    def delete(self, key: KeyLike, missing_ok: Optional[bool] = None) -> None:
        """Delete a leaf, or a container and everything beneath it."""

    @abstractmethod
    def exists(self, key: KeyLike) -> bool:
        """Return True if `key` exists with the kind its form names."""

    def close(self) -> None:
        """Release backend resources. No-op unless overridden."""
