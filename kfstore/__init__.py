"""Embeddable hierarchical key-value store."""

from .base import StorageBackend
from .bucket_backend import BucketStorageBackend
from .config import BackendKind, StoreConfig, default_base_dir, load_config, save_config
from .errors import (
    ConflictError,
    ContainmentError,
    InitializationError,
    InvalidKeyError,
    LockTimeout,
    NotFoundError,
    ReservedNameError,
    StoreError,
    TypeMismatchError,
)
from .file_backend import FileStorageBackend
from .keys import Container, Leaf, parse_key
from .object_store import ObjectStore, create_object_store
from .store import Store, create_store, open_store

__all__ = [
    "Store",
    "open_store",
    "create_store",
    "StoreConfig",
    "BackendKind",
    "default_base_dir",
    "load_config",
    "save_config",
    "StorageBackend",
    "FileStorageBackend",
    "BucketStorageBackend",
    "Leaf",
    "Container",
    "parse_key",
    "ObjectStore",
    "create_object_store",
    "StoreError",
    "InvalidKeyError",
    "ContainmentError",
    "ReservedNameError",
    "NotFoundError",
    "TypeMismatchError",
    "ConflictError",
    "InitializationError",
    "LockTimeout",
]
