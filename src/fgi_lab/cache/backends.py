"""Key/value backends holding cache entries in permanent and ephemeral partitions."""

from __future__ import annotations

import json
import os
import threading
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol

from fgi_lab.cache.models import EPHEMERAL, PERMANENT, CacheEntry

PARTITIONS = (PERMANENT, EPHEMERAL)


class KeyValueBackend(Protocol):
    def get(self, partition: str, key: str) -> Optional[CacheEntry]:
        ...

    def set(self, partition: str, entry: CacheEntry) -> None:
        ...

    def delete(self, partition: str, key: str) -> bool:
        ...

    def keys(self, partition: str) -> list[str]:
        ...

    def touch(self, partition: str, key: str, accessed_at: datetime) -> Optional[CacheEntry]:
        ...


def _check_partition(partition: str) -> None:
    if partition not in PARTITIONS:
        raise ValueError(f"Unknown cache partition: {partition}")


class InMemoryBackend:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: dict[str, dict[str, CacheEntry]] = {partition: {} for partition in PARTITIONS}

    def get(self, partition: str, key: str) -> Optional[CacheEntry]:
        _check_partition(partition)
        with self._lock:
            return self._data[partition].get(key)

    def set(self, partition: str, entry: CacheEntry) -> None:
        _check_partition(partition)
        with self._lock:
            self._data[partition][entry.key] = entry

    def delete(self, partition: str, key: str) -> bool:
        _check_partition(partition)
        with self._lock:
            return self._data[partition].pop(key, None) is not None

    def keys(self, partition: str) -> list[str]:
        _check_partition(partition)
        with self._lock:
            return sorted(self._data[partition])

    def touch(self, partition: str, key: str, accessed_at: datetime) -> Optional[CacheEntry]:
        _check_partition(partition)
        with self._lock:
            entry = self._data[partition].get(key)
            if entry is None:
                return None
            entry = replace(entry, access_count=entry.access_count + 1, last_accessed=accessed_at)
            self._data[partition][key] = entry
            return entry


class DirectoryBackend:
    """One JSON file per entry; permanent entries live in a ``permanent/`` subdirectory."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self._lock = threading.Lock()
        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / PERMANENT).mkdir(parents=True, exist_ok=True)

    def _dir(self, partition: str) -> Path:
        _check_partition(partition)
        if partition == PERMANENT:
            return self.root / PERMANENT
        return self.root

    def _path(self, partition: str, key: str) -> Path:
        return self._dir(partition) / f"{key}.json"

    def get(self, partition: str, key: str) -> Optional[CacheEntry]:
        path = self._path(partition, key)
        try:
            payload = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        return CacheEntry.from_dict(json.loads(payload))

    def set(self, partition: str, entry: CacheEntry) -> None:
        path = self._path(partition, entry.key)
        tmp_path = path.with_name(f"{path.name}.{os.getpid()}.{threading.get_ident()}.tmp")
        tmp_path.write_text(json.dumps(entry.to_dict(), indent=2), encoding="utf-8")
        os.replace(tmp_path, path)

    def delete(self, partition: str, key: str) -> bool:
        try:
            self._path(partition, key).unlink()
        except FileNotFoundError:
            return False
        return True

    def keys(self, partition: str) -> list[str]:
        return sorted(path.stem for path in self._dir(partition).glob("*.json"))

    def touch(self, partition: str, key: str, accessed_at: datetime) -> Optional[CacheEntry]:
        # read-modify-write is serialized within this process only
        with self._lock:
            entry = self.get(partition, key)
            if entry is None:
                return None
            entry = replace(entry, access_count=entry.access_count + 1, last_accessed=accessed_at)
            self.set(partition, entry)
            return entry
