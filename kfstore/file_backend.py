"""Filesystem storage backend.

The root directory mirrors the key hierarchy one to one: every container
key is a directory and every leaf key is a regular file holding the raw
value bytes. Writes go to a temporary file in the target directory which is
then renamed over the leaf, so readers never see a partial value.
"""
from __future__ import annotations
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

from .base import KeyLike, StorageBackend
from .errors import (
    ConflictError,
    InitializationError,
    NotFoundError,
    TypeMismatchError,
)
from .keys import (
    TMP_PREFIX,
    Container,
    as_container,
    is_reserved,
    parse_key,
    resolve_path,
)

logger = logging.getLogger(__name__)

FILE_MODE = 0o644


def init_root(base_dir: str | Path) -> Path:
    """Normalize `base_dir` to an absolute path and make sure it is a directory."""
    root = Path(os.path.abspath(os.path.expanduser(str(base_dir))))
    if root.exists() and not root.is_dir():
        raise InitializationError(f"there is a file in the way: {root}")
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise InitializationError(f"cannot create store root {root}: {e}") from e
    return root


def _raise(err: OSError) -> None:
    raise err


class FileStorageBackend(StorageBackend):
    recursive_default = True
    missing_ok_default = True

    def __init__(self, base_dir: str | Path) -> None:
        self._base_dir = init_root(base_dir)
        logger.debug("FileStorageBackend rooted at %s", self._base_dir)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def _makedirs(self, path: Path, key: Container) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except (FileExistsError, NotADirectoryError) as e:
            raise TypeMismatchError(f"a leaf is in the way of container {str(key)!r}") from e

    def save(self, key: KeyLike, value: Optional[bytes] = None) -> None:
        k = parse_key(key)
        path = resolve_path(self._base_dir, k)
        if isinstance(k, Container):
            if value:
                raise ConflictError(f"cannot store a value at container location {str(k)!r}")
            self._makedirs(path, k)
            logger.debug("Created container %s", path)
            return

        data = b"" if value is None else bytes(value)
        self._makedirs(path.parent, k.parent)
        if path.is_dir():
            raise TypeMismatchError(f"{str(k)!r} is a container, not a leaf")

        fd, tmp = tempfile.mkstemp(prefix=TMP_PREFIX, dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp, FILE_MODE)
            os.replace(tmp, path)
        except BaseException:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
            raise
        logger.debug("Wrote %s (%d bytes)", path, len(data))

    def load(self, key: KeyLike) -> bytes:
        k = parse_key(key)
        if isinstance(k, Container):
            raise TypeMismatchError(f"{str(k)!r} names a container, not a leaf")
        path = resolve_path(self._base_dir, k)
        try:
            with open(path, "rb") as f:
                data = f.read()
        except (FileNotFoundError, NotADirectoryError) as e:
            raise NotFoundError(f"key not found: {k}") from e
        except IsADirectoryError as e:
            raise TypeMismatchError(f"{str(k)!r} is a container, not a leaf") from e
        logger.debug("Loaded %s (%d bytes)", path, len(data))
        return data

    def list_keys(self, key: KeyLike = "", recursive: Optional[bool] = None) -> List[str]:
        k = as_container(key)
        if recursive is None:
            recursive = self.recursive_default
        path = resolve_path(self._base_dir, k)
        if not path.is_dir():
            if path.exists():
                raise TypeMismatchError(f"{str(k)!r} is a leaf, not a container")
            raise NotFoundError(f"uninitialized container: {k}")

        if not recursive:
            return sorted(p.name for p in path.iterdir() if not is_reserved(p.name))

        names: List[str] = []
        for _dirpath, dirnames, filenames in os.walk(path, onerror=_raise):
            dirnames[:] = sorted(d for d in dirnames if not is_reserved(d))
            names.extend(f for f in sorted(filenames) if not is_reserved(f))
        return names

    def delete(self, key: KeyLike, missing_ok: Optional[bool] = None) -> None:
        k = parse_key(key)
        if k.is_root:
            raise ConflictError("refusing to delete the store root")
        if missing_ok is None:
            missing_ok = self.missing_ok_default
        path = resolve_path(self._base_dir, k)
        if isinstance(k, Container) and (path.is_file() or path.is_symlink()):
            raise TypeMismatchError(f"{str(k)!r} is a leaf, not a container")
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            path.unlink()
        elif not missing_ok:
            raise NotFoundError(f"key not found: {k}")
        else:
            return
        logger.debug("Deleted %s", path)

    def exists(self, key: KeyLike) -> bool:
        k = parse_key(key)
        path = resolve_path(self._base_dir, k)
        if isinstance(k, Container):
            return path.is_dir()
        return path.is_file()
