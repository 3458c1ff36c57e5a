import pytest
from cryptography.fernet import Fernet

from kfstore.serializer import (
    EncryptedSerializer,
    JSONSerializer,
    PickleSerializer,
    YAMLSerializer,
    get_serializer,
)


def test_text_serializers_produce_readable_bytes():
    assert JSONSerializer().dump({"b": 1, "a": [1, 2]}) == b'{"a": [1, 2], "b": 1}'
    assert YAMLSerializer().load(b"a: 1\nb: [x, y]\n") == {"a": 1, "b": ["x", "y"]}


def test_pickle_keeps_python_types():
    value = {"t": (1, 2), "s": {3}}
    assert PickleSerializer().load(PickleSerializer().dump(value)) == value


def test_encrypted_with_password():
    ser = EncryptedSerializer(password="pw", iterations=1000)
    blob = ser.dump({"secret": "x"})
    assert b"secret" not in blob
    assert ser.load(blob) == {"secret": "x"}
    wrong = EncryptedSerializer(password="other", iterations=1000)
    with pytest.raises(Exception):
        wrong.load(blob)


def test_encrypted_with_key():
    key = Fernet.generate_key()
    ser = EncryptedSerializer(key=key, base_serializer=YAMLSerializer())
    assert ser.load(ser.dump(["a", "b"])) == ["a", "b"]
    # a password-only serializer cannot read key-mode frames
    with pytest.raises(ValueError):
        EncryptedSerializer(password="pw").load(ser.dump(1))


def test_encrypted_needs_key_or_password():
    with pytest.raises(ValueError):
        EncryptedSerializer()


def test_get_serializer():
    assert isinstance(get_serializer("json"), JSONSerializer)
    assert isinstance(get_serializer("encrypted", password="pw"), EncryptedSerializer)
    with pytest.raises(ValueError):
        get_serializer("xml")
