from __future__ import annotations

import io
import threading
from datetime import datetime, timezone

import pytest
from botocore.exceptions import ClientError

from cloudsync.exceptions import ConfigurationError, InvalidKeyError, PreconditionFailedError, S3Error, StorageError
from cloudsync.settings import StorageSettings
from cloudsync.storage import compute_etag, format_etag, normalize_etag, parse_if_match
from cloudsync.storage.factory import create_object_store
from cloudsync.storage.local import LocalStorage
from cloudsync.storage.memory import MemoryStorage
from cloudsync.storage.s3 import S3Storage


@pytest.fixture(params=["memory", "local"])
def object_store(request, tmp_path):
    if request.param == "memory":
        return MemoryStorage()
    return LocalStorage(tmp_path / "objects")


def test_etag_helpers() -> None:
    assert normalize_etag(' "abc" ') == "abc"
    assert format_etag("abc") == '"abc"'
    assert format_etag('"abc"') == '"abc"'
    assert parse_if_match(None) is None
    assert parse_if_match("*") is None
    assert parse_if_match('""') is None
    assert parse_if_match('"abc"') == "abc"


def test_put_get_head_delete(object_store) -> None:
    assert object_store.head("a/b.json") is None
    assert object_store.get("a/b.json") is None

    meta = object_store.put("a/b.json", b'{"v":1}')
    assert meta.etag == compute_etag(b'{"v":1}')
    assert meta.size == 7

    head = object_store.head("a/b.json")
    assert head.etag == meta.etag
    assert head.last_modified.tzinfo is not None
    assert object_store.get("a/b.json").body == b'{"v":1}'

    assert object_store.delete("a/b.json") is True
    assert object_store.delete("a/b.json") is False
    assert object_store.head("a/b.json") is None


def test_content_change_changes_revision(object_store) -> None:
    first = object_store.put("k", b"one")
    second = object_store.put("k", b"two")

    assert first.etag != second.etag


def test_conditional_write(object_store) -> None:
    first = object_store.put("k", b"one")

    second = object_store.put("k", b"two", if_match=format_etag(first.etag))
    with pytest.raises(PreconditionFailedError):
        object_store.put("k", b"three", if_match=first.etag)

    assert object_store.get("k").body == b"two"
    assert object_store.head("k").etag == second.etag


def test_conditional_write_to_absent_key_creates(object_store) -> None:
    meta = object_store.put("fresh", b"data", if_match="whatever")

    assert object_store.head("fresh").etag == meta.etag


def test_racing_conditional_writers_only_one_wins() -> None:
    store = MemoryStorage()
    base = store.put("k", b"base")
    barrier = threading.Barrier(8)
    results: list[str] = []

    def writer(index: int) -> None:
        barrier.wait()
        try:
            store.put("k", f"writer-{index}".encode(), if_match=base.etag)
            results.append("ok")
        except PreconditionFailedError:
            results.append("conflict")

    threads = [threading.Thread(target=writer, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count("ok") == 1
    assert results.count("conflict") == 7


@pytest.mark.parametrize(
    "first, second",
    [("x", "x/y"), ("p/q", "p"), ("a/", "a"), ("a/./b", "a/b")],
)
def test_keys_are_independent_objects(object_store, first, second) -> None:
    object_store.put(first, b"first")
    object_store.put(second, b"second")

    assert object_store.get(first).body == b"first"
    assert object_store.get(second).body == b"second"

    assert object_store.delete(first) is True
    assert object_store.head(first) is None
    assert object_store.get(second).body == b"second"


@pytest.mark.parametrize("key", [".", "..", "k" * 300])
def test_local_storage_rejects_unmappable_keys(tmp_path, key) -> None:
    store = LocalStorage(tmp_path / "objects")

    with pytest.raises(InvalidKeyError):
        store.put(key, b"x")


def test_local_storage_keeps_dotted_keys_inside_root(tmp_path) -> None:
    store = LocalStorage(tmp_path / "objects")
    store.put("../escape.json", b"x")

    assert not (tmp_path / "escape.json").exists()
    assert store.get("../escape.json").body == b"x"
    assert [p.name for p in (tmp_path / "objects").iterdir()] == ["..%2Fescape.json"]


def test_local_storage_leaves_no_temp_files(tmp_path) -> None:
    store = LocalStorage(tmp_path / "objects")
    store.put("dir/file.json", b"x")
    store.put("dir/file.json", b"y")

    assert sorted(p.name for p in (tmp_path / "objects").iterdir()) == ["dir%2Ffile.json"]


def test_local_storage_errors_do_not_reveal_paths(tmp_path, monkeypatch) -> None:
    store = LocalStorage(tmp_path / "objects")

    def fail(*args, **kwargs):
        raise OSError(28, "No space left on device", str(tmp_path / "objects"))

    monkeypatch.setattr("cloudsync.storage.local.tempfile.mkstemp", fail)
    with pytest.raises(StorageError) as excinfo:
        store.put("k", b"x")

    assert excinfo.value.message == "Failed to write k: No space left on device"
    assert str(tmp_path) not in excinfo.value.message


def _client_error(code: str, operation: str = "PutObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeS3Client:
    """Just enough of boto3's S3 client, with If-Match/If-None-Match semantics."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.calls: list[tuple[str, dict]] = []

    def _etag(self, key: str) -> str:
        return '"%s"' % compute_etag(self.objects[key])

    def head_object(self, Bucket, Key):
        self.calls.append(("head_object", {"Key": Key}))
        if Key not in self.objects:
            raise _client_error("404", "HeadObject")
        return {
            "ETag": self._etag(Key),
            "LastModified": datetime(2026, 10, 16, tzinfo=timezone.utc),
            "ContentLength": len(self.objects[Key]),
        }

    def get_object(self, Bucket, Key):
        self.calls.append(("get_object", {"Key": Key}))
        if Key not in self.objects:
            raise _client_error("NoSuchKey", "GetObject")
        return {
            "ETag": self._etag(Key),
            "LastModified": datetime(2026, 10, 16, tzinfo=timezone.utc),
            "Body": io.BytesIO(self.objects[Key]),
        }

    def put_object(self, Bucket, Key, Body, **conditions):
        self.calls.append(("put_object", {"Key": Key, **conditions}))
        if "IfMatch" in conditions:
            if Key not in self.objects:
                raise _client_error("NoSuchKey")
            if self._etag(Key) != conditions["IfMatch"]:
                raise _client_error("PreconditionFailed")
        if conditions.get("IfNoneMatch") == "*" and Key in self.objects:
            raise _client_error("PreconditionFailed")
        self.objects[Key] = Body
        return {"ETag": self._etag(Key)}

    def delete_object(self, Bucket, Key):
        self.calls.append(("delete_object", {"Key": Key}))
        self.objects.pop(Key, None)
        return {}


@pytest.fixture
def fake_s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def s3_store(fake_s3) -> S3Storage:
    return S3Storage("bucket", prefix="/sync/", client=fake_s3)


def test_s3_round_trip_uses_prefix(s3_store, fake_s3) -> None:
    meta = s3_store.put("a.json", b"{}")

    assert "sync/a.json" in fake_s3.objects
    assert meta.etag == compute_etag(b"{}")
    assert s3_store.head("a.json").etag == meta.etag
    assert s3_store.get("a.json").body == b"{}"
    assert s3_store.head("missing") is None
    assert s3_store.get("missing") is None


def test_s3_conditional_write_is_delegated(s3_store, fake_s3) -> None:
    first = s3_store.put("a.json", b"one")
    s3_store.put("a.json", b"two", if_match=first.etag)

    with pytest.raises(PreconditionFailedError):
        s3_store.put("a.json", b"three", if_match=first.etag)

    assert fake_s3.objects["sync/a.json"] == b"two"
    assert ("put_object", {"Key": "sync/a.json", "IfMatch": '"%s"' % first.etag}) in fake_s3.calls


def test_s3_conditional_write_to_absent_key_creates_exclusively(s3_store, fake_s3) -> None:
    meta = s3_store.put("new.json", b"data", if_match="stale")

    assert meta.etag == compute_etag(b"data")
    assert fake_s3.calls[-1] == ("put_object", {"Key": "sync/new.json", "IfNoneMatch": "*"})


def test_s3_delete(s3_store) -> None:
    s3_store.put("a.json", b"{}")

    assert s3_store.delete("a.json") is True
    assert s3_store.delete("a.json") is False


def test_s3_backend_errors_are_wrapped(fake_s3) -> None:
    def broken(**kwargs):
        raise _client_error("AccessDenied", "HeadObject")

    fake_s3.head_object = broken
    store = S3Storage("bucket", client=fake_s3)

    with pytest.raises(S3Error):
        store.head("a.json")


def test_factory_builds_configured_backend(tmp_path) -> None:
    assert isinstance(create_object_store(StorageSettings(backend="memory")), MemoryStorage)
    local = create_object_store(StorageSettings(backend="local", root=tmp_path / "objs"))
    assert isinstance(local, LocalStorage)
    assert (tmp_path / "objs").is_dir()


def test_factory_requires_bucket_for_s3() -> None:
    with pytest.raises(ConfigurationError):
        create_object_store(StorageSettings(backend="s3"))
