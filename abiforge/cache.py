"""On-disk ABI cache used as a fallback when a live fetch fails.

Layout: one file per cache key, ``<cache_dir>/<key>.json``, holding the raw
ABI JSON value with no envelope.
"""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

DEFAULT_CACHE_DIR = Path.home() / ".abiforge" / "plugins" / "fetch" / "cache"


class AbiCache:
    """Best-effort ABI cache rooted at *directory*.

    Writes for the same key are serialized and land atomically, so a reader
    never observes a half-written file.
    """

    def __init__(self, directory: str | Path = DEFAULT_CACHE_DIR) -> None:
        self.directory = Path(directory).expanduser()
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def ensure(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def read(self, key: str) -> Any | None:
        """Return the cached value for *key*, or ``None`` on a miss."""
        path = self.path_for(key)
        if not path.is_file():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None

    def write(self, key: str, value: Any) -> None:
        """Atomically replace the entry for *key* with *value*."""
        path = self.path_for(key)
        with self._lock_for(key):
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(value, f)
                os.replace(tmp, path)
            except BaseException:
                with contextlib.suppress(OSError):
                    os.unlink(tmp)
                raise
