"""
Key-Value Storage
=================
Small get/set port over durable storage, shared by the goal store and the
notification scheduler.

- MemoryStorage: dict-backed, used by tests.
- FileStorage: one UTF-8 file per key inside a data directory.

Both optionally enforce a byte quota over the sum of all stored values,
mirroring the size ceiling of browser local storage.
"""

import os
import errno
from abc import ABC, abstractmethod
from typing import Dict, Optional

from .errors import StorageError, StorageQuotaExceeded
from .logger import get_logger

logger = get_logger("storage")


class KeyValueStorage(ABC):
    """Interface for the durable storage used by the tracker."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Stored value for `key`, or None if it was never set."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store `value`; raises StorageQuotaExceeded if it does not fit."""

    def _check_quota(self, key: str, value: str, quota: Optional[int]):
        if not quota:
            return
        size = self._used_bytes_without(key) + len(value.encode("utf-8"))
        if size > quota:
            raise StorageQuotaExceeded(key, size, quota)

    def _used_bytes_without(self, key: str) -> int:
        return 0


class MemoryStorage(KeyValueStorage):
    """In-memory storage. `quota` is in bytes; None means unlimited."""

    def __init__(self, initial: Optional[Dict[str, str]] = None,
                 quota: Optional[int] = None):
        self.data: Dict[str, str] = dict(initial or {})
        self.quota = quota

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self._check_quota(key, value, self.quota)
        self.data[key] = value

    def _used_bytes_without(self, key: str) -> int:
        return sum(len(v.encode("utf-8")) for k, v in self.data.items() if k != key)


class FileStorage(KeyValueStorage):
    """
    Stores each key as `<data_dir>/<key>.json`.
    Writes go to a temp file first and are swapped in, so a failed write
    leaves the previous value readable.
    """

    def __init__(self, data_dir: str, quota: Optional[int] = None):
        self.data_dir = data_dir
        self.quota = quota
        os.makedirs(data_dir, exist_ok=True)

    def _path(self, key: str) -> str:
        return os.path.join(self.data_dir, f"{key}.json")

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Could not read '{key}': {e}") from e

    def set(self, key: str, value: str) -> None:
        self._check_quota(key, value, self.quota)
        path = self._path(key)
        tmp_path = path + ".tmp"
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                f.write(value)
            os.replace(tmp_path, path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            if e.errno in (errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)):
                raise StorageQuotaExceeded(key) from e
            raise StorageError(f"Could not write '{key}': {e}") from e
        logger.debug("Wrote %s (%d chars)", key, len(value))

    def _used_bytes_without(self, key: str) -> int:
        total = 0
        for name in os.listdir(self.data_dir):
            if not name.endswith(".json") or name == f"{key}.json":
                continue
            total += os.path.getsize(os.path.join(self.data_dir, name))
        return total
