"""Store configuration.

`StoreConfig` holds the options recognized when a `Store` is constructed.
It can be kept in a YAML file (`load_config` / `save_config`) so an
embedding application can ship its store settings next to its other
configuration.
"""
from __future__ import annotations
from dataclasses import dataclass, asdict, fields
from enum import Enum
from pathlib import Path
from typing import Any, Optional
import yaml

from .locking import DEFAULT_POLL_INTERVAL, DEFAULT_TIMEOUT

DEFAULT_DIRNAME = ".kf"


class BackendKind(str, Enum):
    FILESYSTEM = "filesystem"
    EMBEDDED = "embedded"


def default_base_dir() -> Path:
    """Return the default store root, ``~/.kf``."""
    return Path.home() / DEFAULT_DIRNAME


@dataclass
class StoreConfig:
    base_dir: Optional[str] = None
    backend: BackendKind = BackendKind.FILESYSTEM
    locking: bool = False
    lock_timeout: Optional[float] = DEFAULT_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    log_level: Optional[str] = None

    def __post_init__(self) -> None:
        try:
            self.backend = BackendKind(self.backend)
        except ValueError as e:
            raise ValueError(f"unknown backend {self.backend!r}") from e
        if self.locking and self.backend is BackendKind.EMBEDDED:
            raise ValueError("locking applies to the filesystem backend only")

    def resolved_base_dir(self) -> Path:
        return Path(self.base_dir).expanduser() if self.base_dir else default_base_dir()

    def to_dict(self) -> dict:
        data = asdict(self)
        data["backend"] = self.backend.value
        return data


def config_from_mapping(data: Any) -> StoreConfig:
    if not isinstance(data, dict):
        raise ValueError("invalid config format: expected mapping")
    known = {f.name for f in fields(StoreConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"invalid config format: unknown option(s) {', '.join(unknown)}")
    return StoreConfig(**data)


def load_config(path: str | Path) -> StoreConfig:
    """Read a `StoreConfig` from a YAML file."""
    with Path(path).open("r", encoding="utf-8") as f:
        raw = f.read()
    try:
        data: Any = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ValueError("invalid config format: parse error") from e
    return config_from_mapping(data or {})


def save_config(path: str | Path, cfg: StoreConfig) -> None:
    payload = yaml.safe_dump(cfg.to_dict(), sort_keys=False)
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(payload, encoding="utf-8")
