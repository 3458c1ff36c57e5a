"""Store Python objects at leaf keys using a `Serializer`."""
from __future__ import annotations
from typing import Any, List, Optional

from .base import KeyLike
from .interfaces import StorageProtocol
from .keys import Container, parse_key
from .serializer import Serializer, get_serializer
from .store import open_store


class ObjectStore:
    """Serialize/deserialize values through a byte store.

    The wrapped store keeps its own semantics (key parsing, locking,
    transactions); this class only converts values on the way in and out.
    """

    def __init__(self, store: StorageProtocol, serializer: Serializer) -> None:
        self.store = store
        self.serializer = serializer

    def save(self, key: KeyLike, value: Any) -> None:
        if isinstance(parse_key(key), Container):
            raise ValueError("objects can only be stored at leaf keys")
        self.store.save(key, self.serializer.dump(value))

    def load(self, key: KeyLike) -> Any:
        return self.serializer.load(self.store.load(key))

    def delete(self, key: KeyLike, missing_ok: Optional[bool] = None) -> None:
        self.store.delete(key, missing_ok=missing_ok)

    def list_keys(self, key: KeyLike = "", recursive: Optional[bool] = None) -> List[str]:
        return self.store.list_keys(key, recursive=recursive)

    def exists(self, key: KeyLike) -> bool:
        return self.store.exists(key)

    def close(self) -> None:
        self.store.close()


def create_object_store(
    serializer: str = "pickle",
    *,
    password: str | None = None,
    key: bytes | None = None,
    **store_options: Any,
) -> ObjectStore:
    """Open a store and wrap it with the named serializer.

    `password` / `key` configure the ``"encrypted"`` serializer; the remaining
    keyword options are `StoreConfig` fields.
    """
    if serializer == "encrypted":
        ser = get_serializer(serializer, password=password, key=key)
    else:
        ser = get_serializer(serializer)
    return ObjectStore(open_store(**store_options), ser)
