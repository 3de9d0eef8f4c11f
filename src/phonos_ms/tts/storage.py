"""
Blob Store Adapters for rendered audio.

The engine only talks to a BlobStore; it never opens files itself. Two
implementations are provided:

    FSBlobStore      Local filesystem. Atomic writes (temp file + rename).
                     No attribute headers, so expiry stamping is skipped.
    MemoryBlobStore  In-process dict. Supports headers (``X-Delete-At``),
                     used by tests and by setups that front a header-aware
                     object store.

Paths are plain ``/``-separated strings rooted at ``root_path()``:

    {root}/phonos-render/
        0/8/
            08h2h100e3dgycsfj2my0oc8ll84q3a.mp3

Failures are raised as BlobStoreError carrying a readable message; the
engine wraps that message into DirectoryError or StorageError.

Usage:
    store = FSBlobStore("./storage")
    store.prepare(props.storage_path)
    store.create(props.full_path, mp3_bytes, overwrite_same=True)
    data = store.read(props.full_path)
"""
from __future__ import annotations

import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from phonos_ms.core.logging import get_logger, verbose
from phonos_ms.utils.timeit import timeit

_LOG = get_logger("phonos-ms.storage")


class BlobStoreError(Exception):
    """A blob store operation failed."""
    pass


class BlobStore(ABC):
    """
    Key/value storage over ``/``-separated paths.

    Attributes:
        supports_headers: Whether ``create``/``describe`` honour headers
            such as ``X-Delete-At``.
    """
    supports_headers: bool = False

    @abstractmethod
    def root_path(self) -> str:
        ...

    @abstractmethod
    def prepare(self, directory: str) -> None:
        """Make sure ``directory`` can receive files."""
        ...

    @abstractmethod
    def exists(self, path: str) -> bool:
        ...

    @abstractmethod
    def create(
        self,
        path: str,
        data: bytes,
        overwrite_same: bool = True,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        """
        Store ``data`` at ``path``.

        With ``overwrite_same`` an existing file at the same path is
        replaced; without it an existing file is an error.
        """
        ...

    @abstractmethod
    def read(self, path: str) -> Optional[bytes]:
        """Return file contents, or None if the file does not exist."""
        ...

    @abstractmethod
    def describe(self, path: str, headers: Dict[str, str]) -> None:
        """Replace header attributes on an existing file."""
        ...

    @abstractmethod
    def list_files(self, directory: str) -> List[str]:
        """File names directly inside ``directory``."""
        ...

    def get_headers(self, path: str) -> Dict[str, str]:
        return {}


class FSBlobStore(BlobStore):
    """Filesystem-backed store rooted at ``base_dir``."""

    supports_headers = False

    def __init__(self, base_dir: str):
        self._base_dir = str(base_dir).rstrip("/") or "/"

    def root_path(self) -> str:
        return self._base_dir

    def prepare(self, directory: str) -> None:
        try:
            Path(directory).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BlobStoreError(f"cannot create directory {directory}: {e.strerror or e}") from e

    def exists(self, path: str) -> bool:
        return Path(path).is_file()

    def create(
        self,
        path: str,
        data: bytes,
        overwrite_same: bool = True,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        p = Path(path)
        if p.exists() and not overwrite_same:
            raise BlobStoreError(f"file already exists: {path}")

        tmp_name = None
        with timeit("storage_write") as t:
            try:
                # Per-writer temp file, renamed into place whole
                with tempfile.NamedTemporaryFile(
                    dir=str(p.parent), prefix=p.name + ".", suffix=".tmp", delete=False
                ) as tf:
                    tmp_name = tf.name
                    tf.write(data)
                os.chmod(tmp_name, 0o644)
                os.replace(tmp_name, p)
            except OSError as e:
                if tmp_name is not None:
                    Path(tmp_name).unlink(missing_ok=True)
                raise BlobStoreError(f"cannot write {path}: {e.strerror or e}") from e

        verbose(_LOG, "stored", path=path, bytes=len(data), seconds=round(t.timing.seconds, 4))

    def read(self, path: str) -> Optional[bytes]:
        p = Path(path)
        if not p.is_file():
            return None
        try:
            return p.read_bytes()
        except OSError as e:
            raise BlobStoreError(f"cannot read {path}: {e.strerror or e}") from e

    def describe(self, path: str, headers: Dict[str, str]) -> None:
        raise BlobStoreError("filesystem store does not support headers")

    def list_files(self, directory: str) -> List[str]:
        d = Path(directory)
        if not d.is_dir():
            return []
        return sorted(f.name for f in d.iterdir() if f.is_file() and not f.name.endswith(".tmp"))


class MemoryBlobStore(BlobStore):
    """
    In-process store with header support.

    Thread-safe. ``fail_prepare`` and ``fail_create`` inject errors for
    exercising the engine's failure paths.
    """

    supports_headers = True

    def __init__(self, root: str = "mem://phonos"):
        self._root = root.rstrip("/")
        self._files: Dict[str, bytes] = {}
        self._headers: Dict[str, Dict[str, str]] = {}
        self._dirs: set[str] = set()
        self._lock = threading.Lock()
        self.fail_prepare: Optional[str] = None
        self.fail_create: Optional[str] = None

    def root_path(self) -> str:
        return self._root

    def prepare(self, directory: str) -> None:
        if self.fail_prepare:
            raise BlobStoreError(self.fail_prepare)
        with self._lock:
            self._dirs.add(directory.rstrip("/"))

    def exists(self, path: str) -> bool:
        with self._lock:
            return path in self._files

    def create(
        self,
        path: str,
        data: bytes,
        overwrite_same: bool = True,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        if self.fail_create:
            raise BlobStoreError(self.fail_create)
        with self._lock:
            if path in self._files and not overwrite_same:
                raise BlobStoreError(f"file already exists: {path}")
            self._files[path] = bytes(data)
            self._headers[path] = dict(headers or {})

    def read(self, path: str) -> Optional[bytes]:
        with self._lock:
            return self._files.get(path)

    def describe(self, path: str, headers: Dict[str, str]) -> None:
        with self._lock:
            if path not in self._files:
                raise BlobStoreError(f"no such file: {path}")
            self._headers[path].update(headers)

    def get_headers(self, path: str) -> Dict[str, str]:
        with self._lock:
            return dict(self._headers.get(path, {}))

    def list_files(self, directory: str) -> List[str]:
        prefix = directory.rstrip("/") + "/"
        with self._lock:
            return sorted(
                p[len(prefix):] for p in self._files
                if p.startswith(prefix) and "/" not in p[len(prefix):]
            )
