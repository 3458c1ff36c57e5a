"""Hierarchical key parsing and path resolution.

Keys are slash-delimited strings such as ``"group/sub/item"``. A key is
parsed into one of two tagged types:

- `Leaf` addresses a single stored value (a file, or a bucket entry).
- `Container` addresses a grouping node (a directory, or a bucket). A raw key
  ending in ``/``, ``/.`` or ``/..`` is a container key; so is the empty
  key, which names the store root.

Keys are cleaned lexically (``.``/``..`` collapsed, redundant separators
removed) before they are ever joined to a base location. A key that still
points above the root after cleaning is rejected with `ContainmentError`;
it is never clamped.
"""
from __future__ import annotations
import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

from .errors import ContainmentError, InvalidKeyError, ReservedNameError

SEPARATOR = "/"

# Every name with this prefix belongs to the store itself.
RESERVED_PREFIX = ".kfstore"
LOCK_FILENAME = RESERVED_PREFIX + ".lock"
DB_FILENAME = RESERVED_PREFIX + ".db"
TMP_PREFIX = RESERVED_PREFIX + "-tmp-"


def is_reserved(name: str) -> bool:
    return name.startswith(RESERVED_PREFIX)


@dataclass(frozen=True)
class Key:
    segments: Tuple[str, ...]

    @property
    def name(self) -> str:
        """Last segment, or the empty string for the root."""
        return self.segments[-1] if self.segments else ""

    @property
    def parent(self) -> "Container":
        return Container(self.segments[:-1])

    @property
    def is_root(self) -> bool:
        return not self.segments

    def __str__(self) -> str:
        return SEPARATOR.join(self.segments)


@dataclass(frozen=True)
class Leaf(Key):
    def __post_init__(self) -> None:
        if not self.segments:
            raise InvalidKeyError("a leaf key needs at least one segment")
        _check_segments(self.segments)


@dataclass(frozen=True)
class Container(Key):
    def __post_init__(self) -> None:
        _check_segments(self.segments)

    def __str__(self) -> str:
        return SEPARATOR.join(self.segments) + SEPARATOR if self.segments else ""


def _check_segments(segments: Tuple[str, ...]) -> None:
    for seg in segments:
        if not isinstance(seg, str):
            raise TypeError(f"key segments must be str, got {type(seg).__name__}")
        if seg in ("", ".", "..") or SEPARATOR in seg:
            raise ContainmentError(f"invalid key segment {seg!r}")
        if "\x00" in seg:
            raise InvalidKeyError("key segments may not contain NUL characters")
        if is_reserved(seg):
            raise ReservedNameError(f"{seg!r} is reserved for the store")


def clean_key(raw: str) -> str:
    """Lexically clean `raw` relative to the root.

    Leading separators are dropped so that a key can never be treated as an
    absolute path. Returns ``""`` for the root.
    """
    cleaned = posixpath.normpath(raw.lstrip(SEPARATOR))
    if cleaned == ".":
        return ""
    if cleaned == ".." or cleaned.startswith(".." + SEPARATOR):
        raise ContainmentError(f"key {raw!r} escapes the store root")
    return cleaned


def parse_key(raw: Union[str, Key]) -> Key:
    """Parse a caller key into a `Leaf` or `Container`."""
    if isinstance(raw, (Leaf, Container)):
        return raw
    if not isinstance(raw, str):
        raise TypeError(f"key must be str, got {type(raw).__name__}")
    cleaned = clean_key(raw)
    segments = tuple(cleaned.split(SEPARATOR)) if cleaned else ()
    # a trailing separator, "." or ".." names a directory-like location
    last = raw.rsplit(SEPARATOR, 1)[-1]
    if not segments or last in ("", ".", ".."):
        return Container(segments)
    return Leaf(segments)


def as_container(raw: Union[str, Key]) -> Container:
    """Parse `raw` and treat it as a container, with or without a trailing separator."""
    key = parse_key(raw)
    if isinstance(key, Container):
        return key
    return Container(key.segments)


def resolve_path(base: Path, key: Key) -> Path:
    """Join a parsed key to `base`. The result always lies within `base`."""
    return base.joinpath(*key.segments)
