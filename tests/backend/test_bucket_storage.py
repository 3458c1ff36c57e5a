import sqlite3
import threading

import pytest

from kfstore.bucket_backend import TOP_BUCKET, BucketStorageBackend
from kfstore.errors import (
    ConflictError,
    InitializationError,
    NotFoundError,
    StoreError,
    TypeMismatchError,
)
from kfstore.keys import DB_FILENAME


@pytest.fixture
def backend(tmp_path):
    b = BucketStorageBackend(tmp_path / "root")
    yield b
    b.close()


def test_single_database_file_with_top_bucket(backend):
    assert (backend.base_dir / DB_FILENAME).is_file()
    conn = sqlite3.connect(str(backend.db_path))
    try:
        rows = conn.execute("SELECT name FROM buckets WHERE parent IS NULL").fetchall()
    finally:
        conn.close()
    assert rows == [(TOP_BUCKET,)]


def test_put_and_get(backend):
    backend.save("group/sub/item", b"payload")
    assert backend.load("group/sub/item") == b"payload"
    backend.save("group/sub/item", b"again")
    assert backend.load("group/sub/item") == b"again"
    backend.save("top", b"t")
    assert backend.load("top") == b"t"


def test_empty_value_is_distinct_from_absent(backend):
    backend.save("a/empty", b"")
    assert backend.load("a/empty") == b""
    backend.save("a/none")
    assert backend.load("a/none") == b""
    with pytest.raises(NotFoundError, match="key not found"):
        backend.load("a/absent")


def test_missing_bucket_on_read(backend):
    with pytest.raises(NotFoundError, match="bucket does not exist"):
        backend.load("no/such/key")
    # reads never create buckets
    assert backend.list_keys("") == []


def test_bucket_and_entry_names_do_not_overlap(backend):
    backend.save("a/b", b"x")
    with pytest.raises(TypeMismatchError):
        backend.save("a/b/c", b"y")
    with pytest.raises(TypeMismatchError):
        backend.save("a/b/")
    backend.save("d/e/")
    with pytest.raises(TypeMismatchError):
        backend.save("d/e", b"z")
    with pytest.raises(TypeMismatchError):
        backend.load("d/e")
    with pytest.raises(TypeMismatchError):
        backend.load("a/b/c")
    # the failed writes rolled back
    assert backend.list_keys("a") == ["b"]


def test_container_creation(backend):
    backend.save("a/b/")
    assert backend.list_keys("a") == ["b"]
    assert backend.list_keys("a/b") == []
    with pytest.raises(ConflictError):
        backend.save("a/b/", b"value")


def test_list_keys_is_one_level(backend):
    backend.save("a/b/c", b"1")
    backend.save("a/d", b"2")
    assert backend.list_keys("a") == ["b", "d"]
    assert backend.list_keys("a", recursive=True) == ["c", "d"]
    assert backend.list_keys("") == ["a"]


def test_list_keys_errors(backend):
    with pytest.raises(NotFoundError):
        backend.list_keys("nope")
    backend.save("leaf", b"x")
    with pytest.raises(TypeMismatchError):
        backend.list_keys("leaf")


def test_delete_entry_and_bucket(backend):
    backend.save("a/b/c", b"1")
    backend.save("a/b/d/e", b"2")
    backend.save("a/f", b"3")
    backend.delete("a/f")
    assert backend.list_keys("a") == ["b"]
    backend.delete("a/b/")
    assert backend.list_keys("a") == []
    with pytest.raises(NotFoundError):
        backend.load("a/b/d/e")


def test_delete_cascades_in_database(backend):
    backend.save("a/b/c/d", b"1")
    backend.delete("a/")
    conn = sqlite3.connect(str(backend.db_path))
    try:
        buckets = conn.execute("SELECT COUNT(*) FROM buckets").fetchone()[0]
        entries = conn.execute("SELECT COUNT(*) FROM entries").fetchone()[0]
    finally:
        conn.close()
    assert (buckets, entries) == (1, 0)


def test_delete_missing_is_an_error(backend):
    backend.save("a/b", b"1")
    backend.delete("a/b")
    with pytest.raises(NotFoundError):
        backend.delete("a/b")
    with pytest.raises(NotFoundError):
        backend.delete("x/")
    with pytest.raises(NotFoundError):
        backend.delete("x/y/z")
    backend.delete("a/b", missing_ok=True)
    backend.delete("x/y/z", missing_ok=True)


def test_delete_kind_mismatch_and_root(backend):
    backend.save("a/b", b"1")
    with pytest.raises(TypeMismatchError):
        backend.delete("a/b/")
    with pytest.raises(TypeMismatchError):
        backend.delete("a")
    assert backend.load("a/b") == b"1"
    with pytest.raises(ConflictError):
        backend.delete("")


def test_exists(backend):
    backend.save("a/b", b"")
    assert backend.exists("a/b") is True
    assert backend.exists("a/") is True
    assert backend.exists("a") is False
    assert backend.exists("a/b/") is False
    assert backend.exists("a/b/c") is False
    assert backend.exists("") is True


def test_reopen_keeps_data(tmp_path):
    b = BucketStorageBackend(tmp_path)
    b.save("k/v", b"persisted")
    b.close()
    b2 = BucketStorageBackend(tmp_path)
    try:
        assert b2.load("k/v") == b"persisted"
    finally:
        b2.close()


def test_closed_backend_refuses_operations(tmp_path):
    b = BucketStorageBackend(tmp_path)
    b.close()
    b.close()
    with pytest.raises(StoreError):
        b.load("k")


def test_init_failures(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_bytes(b"x")
    with pytest.raises(InitializationError):
        BucketStorageBackend(blocker)
    # a directory where the database file should be
    root = tmp_path / "root"
    (root / DB_FILENAME).mkdir(parents=True)
    with pytest.raises(InitializationError):
        BucketStorageBackend(root)


def test_failed_schema_setup_closes_connection(tmp_path, monkeypatch):
    opened = []
    real_connect = sqlite3.connect

    def connect(*args, **kwargs):
        conn = real_connect(*args, **kwargs)
        opened.append(conn)
        return conn

    monkeypatch.setattr("kfstore.bucket_backend.sqlite3.connect", connect)
    monkeypatch.setattr("kfstore.bucket_backend.SCHEMA", "CREATE TABLE broken (")
    with pytest.raises(InitializationError):
        BucketStorageBackend(tmp_path)
    assert len(opened) == 1
    with pytest.raises(sqlite3.ProgrammingError):
        opened[0].execute("SELECT 1")


def test_concurrent_writers_share_one_connection(backend):
    def worker(n):
        for i in range(25):
            backend.save(f"w{n}/k{i}", str(i).encode())

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert backend.list_keys("") == ["w0", "w1", "w2", "w3"]
    assert len(backend.list_keys("", recursive=True)) == 100
