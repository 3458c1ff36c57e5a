"""Value serializers for storing Python objects in the byte store.

The store itself only keeps opaque bytes. `ObjectStore` pairs a store with
one of these serializers so callers can save and load Python values.
"""
from __future__ import annotations
from typing import Any, Callable, Dict, Protocol
import base64
import json
import os
import pickle
import yaml


class Serializer(Protocol):
    """Serialize/deserialize Python values to and from bytes.

    Implementations should be symmetric: `dump` -> bytes, `load` <- bytes.
    """

    def dump(self, value: Any) -> bytes: ...

    def load(self, data: bytes) -> Any: ...


class PickleSerializer:
    """Binary pickle. Only load data written by a trusted store."""

    def dump(self, value: Any) -> bytes:
        return pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)

    def load(self, data: bytes) -> Any:
        return pickle.loads(data)


class JSONSerializer:
    def dump(self, value: Any) -> bytes:
        return json.dumps(value, sort_keys=True).encode("utf-8")

    def load(self, data: bytes) -> Any:
        return json.loads(data.decode("utf-8"))


class YAMLSerializer:
    def dump(self, value: Any) -> bytes:
        return yaml.safe_dump(value, sort_keys=False).encode("utf-8")

    def load(self, data: bytes) -> Any:
        return yaml.safe_load(data.decode("utf-8"))


class EncryptedSerializer:
    """Serializer that encrypts payloads using Fernet (symmetric, authenticated).

    Provide either `key` (a Fernet key, see `Fernet.generate_key`) or
    `password`. In password mode each payload carries its own random salt and
    the PBKDF2 iteration count, so the key can be derived again on load. The
    inner encoding is delegated to `base_serializer` (JSON by default).
    """

    def __init__(
        self,
        *,
        key: bytes | None = None,
        password: str | None = None,
        iterations: int = 390000,
        base_serializer: Serializer | None = None,
    ) -> None:
        if key is None and password is None:
            raise ValueError("EncryptedSerializer requires either `key` or `password`")
        self._key = key
        self._password = password
        self._iterations = iterations
        self.base_serializer = base_serializer or JSONSerializer()

    def _derive_key(self, password: str, salt: bytes, iterations: int) -> bytes:
        from cryptography.hazmat.primitives import hashes
        from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=iterations,
        )
        return base64.urlsafe_b64encode(kdf.derive(password.encode("utf-8")))

    def dump(self, value: Any) -> bytes:
        from cryptography.fernet import Fernet

        inner = self.base_serializer.dump(value)
        if self._password is not None:
            salt = os.urandom(16)
            ct = Fernet(self._derive_key(self._password, salt, self._iterations)).encrypt(inner)
            frame = {
                "v": 1,
                "mode": "password",
                "kdf": "pbkdf2",
                "iterations": self._iterations,
                "salt": base64.urlsafe_b64encode(salt).decode("ascii"),
                "ct": ct.decode("ascii"),
            }
        else:
            ct = Fernet(self._key).encrypt(inner)
            frame = {"v": 1, "mode": "key", "ct": ct.decode("ascii")}
        return json.dumps(frame).encode("utf-8")

    def load(self, data: bytes) -> Any:
        from cryptography.fernet import Fernet

        frame = json.loads(data.decode("utf-8"))
        mode = frame.get("mode")
        if mode == "password":
            if self._password is None:
                raise ValueError("serializer was not configured with a password")
            salt = base64.urlsafe_b64decode(frame["salt"].encode("ascii"))
            iterations = frame.get("iterations", self._iterations)
            f = Fernet(self._derive_key(self._password, salt, iterations))
        elif mode == "key":
            if self._key is None:
                raise ValueError("serializer was not configured with a key")
            f = Fernet(self._key)
        else:
            raise ValueError("unknown frame format")
        return self.base_serializer.load(f.decrypt(frame["ct"].encode("ascii")))


_SERIALIZERS: Dict[str, Callable[..., Serializer]] = {
    "pickle": PickleSerializer,
    "json": JSONSerializer,
    "yaml": YAMLSerializer,
    "encrypted": EncryptedSerializer,
}


def get_serializer(name: str, **options: Any) -> Serializer:
    """Build a serializer by name. Options are passed to its constructor."""
    try:
        factory = _SERIALIZERS[name]
    except KeyError:
        raise ValueError(f"unknown serializer {name!r}") from None
    return factory(**options)
