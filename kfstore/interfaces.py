from pathlib import Path
from typing import Protocol, Any, List, Optional, runtime_checkable


@runtime_checkable
class StorageProtocol(Protocol):
    """Storage protocol mirroring `kfstore.base.StorageBackend`.

    Implementations should follow the semantics documented on the abstract
    base class in `kfstore.base` (NotFoundError for missing keys, one
    transaction or one lock hold per call, etc.). `Store` satisfies it too,
    so wrappers such as `ObjectStore` accept either.
    """

    @property
    def base_dir(self) -> Path: ...

    def save(self, key: Any, value: Optional[bytes] = None) -> None: ...

    def load(self, key: Any) -> bytes: ...

    def delete(self, key: Any, missing_ok: Optional[bool] = None) -> None: ...

    def list_keys(self, key: Any = "", recursive: Optional[bool] = None) -> List[str]: ...

    def exists(self, key: Any) -> bool: ...

    def close(self) -> None: ...
