"""
Tests for the blob store adapters.

Tests cover:
- FSBlobStore: prepare, atomic create, read, list, no header support
- MemoryBlobStore: headers, describe, injected failures
- overwrite_same semantics on both stores
"""
import threading

import pytest

from phonos_ms.tts.storage import BlobStoreError, FSBlobStore, MemoryBlobStore


class TestFSBlobStore:

    def test_roundtrip(self, tmp_path):
        store = FSBlobStore(str(tmp_path))
        directory = f"{store.root_path()}/phonos-render/0/8"
        store.prepare(directory)

        path = f"{directory}/a.mp3"
        assert not store.exists(path)
        store.create(path, b"mp3-bytes")

        assert store.exists(path)
        assert store.read(path) == b"mp3-bytes"
        assert store.list_files(directory) == ["a.mp3"]

    def test_no_temp_file_left(self, tmp_path):
        store = FSBlobStore(str(tmp_path))
        store.prepare(str(tmp_path / "d"))
        store.create(str(tmp_path / "d" / "a.mp3"), b"x")
        assert sorted(p.name for p in (tmp_path / "d").iterdir()) == ["a.mp3"]

    def test_read_missing_returns_none(self, tmp_path):
        store = FSBlobStore(str(tmp_path))
        assert store.read(str(tmp_path / "missing.mp3")) is None

    def test_overwrite_same(self, tmp_path):
        store = FSBlobStore(str(tmp_path))
        path = str(tmp_path / "a.mp3")
        store.create(path, b"one")
        store.create(path, b"two", overwrite_same=True)
        assert store.read(path) == b"two"

        with pytest.raises(BlobStoreError):
            store.create(path, b"three", overwrite_same=False)

    def test_headers_unsupported(self, tmp_path):
        store = FSBlobStore(str(tmp_path))
        assert store.supports_headers is False
        path = str(tmp_path / "a.mp3")
        store.create(path, b"x", headers={"X-Delete-At": "1"})
        assert store.get_headers(path) == {}
        with pytest.raises(BlobStoreError):
            store.describe(path, {"X-Delete-At": "2"})

    def test_prepare_failure(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_bytes(b"")
        store = FSBlobStore(str(tmp_path))
        with pytest.raises(BlobStoreError, match="cannot create directory"):
            store.prepare(str(blocker / "sub"))

    def test_list_missing_directory(self, tmp_path):
        assert FSBlobStore(str(tmp_path)).list_files(str(tmp_path / "nope")) == []

    def test_concurrent_writers_same_path(self, tmp_path):
        """Racing writers of one key all succeed and leave a whole file."""
        store = FSBlobStore(str(tmp_path))
        path = str(tmp_path / "a.mp3")
        payload = b"\x01" * (1024 * 1024)
        errors = []

        def writer():
            for _ in range(20):
                try:
                    store.create(path, payload, overwrite_same=True)
                except BlobStoreError as e:
                    errors.append(e)

        threads = [threading.Thread(target=writer) for _ in range(4)]
        for th in threads:
            th.start()
        for th in threads:
            th.join()

        assert errors == []
        assert store.read(path) == payload
        assert sorted(p.name for p in tmp_path.iterdir()) == ["a.mp3"]


class TestMemoryBlobStore:

    def test_headers(self):
        store = MemoryBlobStore()
        path = f"{store.root_path()}/phonos-render/0/8/a.mp3"
        store.create(path, b"x", headers={"X-Delete-At": "100"})
        assert store.get_headers(path) == {"X-Delete-At": "100"}

        store.describe(path, {"X-Delete-At": "200"})
        assert store.get_headers(path) == {"X-Delete-At": "200"}

    def test_describe_missing(self):
        with pytest.raises(BlobStoreError):
            MemoryBlobStore().describe("mem://phonos/a.mp3", {"X-Delete-At": "1"})

    def test_injected_failures(self):
        store = MemoryBlobStore()
        store.fail_prepare = "permission denied"
        with pytest.raises(BlobStoreError, match="permission denied"):
            store.prepare("mem://phonos/d")

        store.fail_create = "disk full"
        with pytest.raises(BlobStoreError, match="disk full"):
            store.create("mem://phonos/d/a.mp3", b"x")

    def test_list_direct_children_only(self):
        store = MemoryBlobStore()
        store.create("mem://phonos/d/a.mp3", b"x")
        store.create("mem://phonos/d/b.mp3", b"x")
        store.create("mem://phonos/d/sub/c.mp3", b"x")
        assert store.list_files("mem://phonos/d") == ["a.mp3", "b.mp3"]

    def test_overwrite_same(self):
        store = MemoryBlobStore()
        store.create("mem://phonos/a.mp3", b"one")
        store.create("mem://phonos/a.mp3", b"two")
        assert store.read("mem://phonos/a.mp3") == b"two"
        with pytest.raises(BlobStoreError):
            store.create("mem://phonos/a.mp3", b"three", overwrite_same=False)
