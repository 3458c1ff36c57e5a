"""Public store facade.

`Store` exposes the hierarchical key-value operations and dispatches them to
the backend chosen at construction time. For the filesystem backend with
locking enabled, every operation holds the store's `MarkerLock` for its
whole duration.

Example:
    >>> with Store("/tmp/kf", backend="embedded") as s:
    ...     s.save("users/alice/email", b"alice@example.com")
    ...     s.load("users/alice/email")
    b'alice@example.com'
"""
from __future__ import annotations
import logging
from contextlib import nullcontext
from pathlib import Path
from typing import Any, ContextManager, List, Optional

from .base import KeyLike, StorageBackend
from .bucket_backend import BucketStorageBackend
from .config import BackendKind, StoreConfig
from .file_backend import FileStorageBackend
from .locking import DEFAULT_POLL_INTERVAL, DEFAULT_TIMEOUT, MarkerLock
from .logging_config import set_log_level

logger = logging.getLogger(__name__)


class Store:
    def __init__(
        self,
        base_dir: Optional[str | Path] = None,
        *,
        backend: BackendKind | str = BackendKind.FILESYSTEM,
        locking: bool = False,
        lock_timeout: Optional[float] = DEFAULT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.config = StoreConfig(
            base_dir=None if base_dir is None else str(base_dir),
            backend=backend,
            locking=locking,
            lock_timeout=lock_timeout,
            poll_interval=poll_interval,
        )
        root = self.config.resolved_base_dir()
        self._lock: Optional[MarkerLock] = None
        if self.config.backend is BackendKind.EMBEDDED:
            self._backend: StorageBackend = BucketStorageBackend(root)
        else:
            self._backend = FileStorageBackend(root)
            if self.config.locking:
                self._lock = MarkerLock(
                    self._backend.base_dir,
                    timeout=self.config.lock_timeout,
                    poll_interval=self.config.poll_interval,
                )
        logger.info(
            "Opened %s store at %s (locking=%s)",
            self.config.backend.value,
            self._backend.base_dir,
            self._lock is not None,
        )

    @classmethod
    def from_config(cls, cfg: StoreConfig) -> "Store":
        if cfg.log_level:
            set_log_level(cfg.log_level)
        return cls(
            cfg.base_dir,
            backend=cfg.backend,
            locking=cfg.locking,
            lock_timeout=cfg.lock_timeout,
            poll_interval=cfg.poll_interval,
        )

    @property
    def backend_kind(self) -> BackendKind:
        return self.config.backend

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    @property
    def lock(self) -> Optional[MarkerLock]:
        """The marker lock, or None when locking is disabled or not applicable."""
        return self._lock

    @property
    def base_dir(self) -> Path:
        return self._backend.base_dir

    def _guard(self) -> ContextManager[Any]:
        return self._lock.hold() if self._lock is not None else nullcontext()

    def save(self, key: KeyLike, value: Optional[bytes] = None) -> None:
        with self._guard():
            self._backend.save(key, value)

    def load(self, key: KeyLike) -> bytes:
        with self._guard():
            return self._backend.load(key)

    def list_keys(self, key: KeyLike = "", recursive: Optional[bool] = None) -> List[str]:
        """List names under a container.

        With `recursive` left as None the backend default applies: the
        filesystem backend returns every leaf name in the subtree, the
        embedded backend returns the direct children (buckets and entries).
        """
        with self._guard():
            return self._backend.list_keys(key, recursive=recursive)

    def delete(self, key: KeyLike, missing_ok: Optional[bool] = None) -> None:
        """Delete a leaf or a whole container.

        With `missing_ok` left as None the backend default applies: silent
        on the filesystem backend, `NotFoundError` on the embedded backend.
        """
        with self._guard():
            self._backend.delete(key, missing_ok=missing_ok)

    def exists(self, key: KeyLike) -> bool:
        with self._guard():
            return self._backend.exists(key)

    def close(self) -> None:
        self._backend.close()
        logger.info("Closed store at %s", self._backend.base_dir)

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Store(base_dir={str(self.base_dir)!r}, backend={self.config.backend.value!r})"


def create_store(cfg: StoreConfig) -> Store:
    """Construct a `Store` from a `StoreConfig`, applying its `log_level`."""
    return Store.from_config(cfg)


def open_store(**options: Any) -> Store:
    """Construct a `Store` from keyword options (see `StoreConfig`)."""
    return Store.from_config(StoreConfig(**options))
