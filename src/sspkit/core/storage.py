"""Content store collaborator.

Flat key -> bytes storage used for catalogs, profiles and SSP documents.
``FileContentStore`` maps keys onto files under a root directory and writes
atomically. ``BoundedContentStore`` wraps any store so that every call is
bounded by a timeout and surfaces failures as ``StorageUnavailable``.
"""

from __future__ import annotations

import os
import tempfile
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from pathlib import Path
from typing import Callable, Protocol, TypeVar, runtime_checkable

from ..errors import StorageUnavailable

T = TypeVar("T")


class ContentNotFound(Exception):
    """No content stored under ``key``."""

    def __init__(self, key: str):
        super().__init__(f"No content at {key}")
        self.key = key


@runtime_checkable
class ContentStore(Protocol):
    """Protocol every storage backend implements."""

    def read(self, key: str) -> bytes: ...

    def write(self, key: str, data: bytes) -> None: ...

    def list(self, prefix: str) -> list[str]: ...


class FileContentStore:
    """Directory-backed store. Keys are '/'-separated paths relative to root."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        root = self.root.resolve()
        path = (root / key).resolve()
        if path != root and root not in path.parents:
            raise ContentNotFound(key)
        return path

    def read(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return path.read_bytes()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            raise ContentNotFound(key) from None

    def write(self, key: str, data: bytes) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)

        # Temp file in the target directory so os.replace stays atomic
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def list(self, prefix: str) -> list[str]:
        base = self._path(prefix) if prefix else self.root.resolve()
        if not base.is_dir():
            return []
        root = self.root.resolve()
        keys = [
            p.relative_to(root).as_posix()
            for p in base.rglob("*")
            if p.is_file() and not p.name.startswith(".")
        ]
        return sorted(keys)


class BoundedContentStore:
    """Run each store call on a worker thread, bounded by ``timeout`` seconds.

    ``ContentNotFound`` passes through. Timeouts and ``OSError`` become
    ``StorageUnavailable``. Nothing is retried.
    """

    def __init__(self, store: ContentStore, timeout: float = 5.0, max_workers: int = 4):
        self.store = store
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="sspkit-io")

    def _call(self, operation: str, key: str, fn: Callable[..., T], *args) -> T:
        future = self._executor.submit(fn, *args)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeout:
            future.cancel()
            raise StorageUnavailable(operation, key, f"timed out after {self.timeout}s") from None
        except OSError as e:
            raise StorageUnavailable(operation, key, e.strerror or str(e)) from e

    def read(self, key: str) -> bytes:
        return self._call("read", key, self.store.read, key)

    def write(self, key: str, data: bytes) -> None:
        self._call("write", key, self.store.write, key, data)

    def list(self, prefix: str) -> list[str]:
        return self._call("list", prefix, self.store.list, prefix)

    def close(self) -> None:
        self._executor.shutdown(wait=False)
