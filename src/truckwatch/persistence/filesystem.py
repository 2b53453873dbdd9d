"""File-based persistence for cached distances, usage counters and appointments."""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Any, Protocol

from ..config import settings

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class DocumentStore(Protocol):
    """Whole-document key-value storage."""

    def read_json(self, key: str) -> Any | None: ...

    def write_json(self, key: str, data: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class FileStorage:
    """Thin wrapper around the data root storing one JSON document per key.

    Writes replace the whole document atomically (temp file + rename), so a crash
    mid-write leaves the previous version intact.
    """

    def __init__(self, root: Path | None = None) -> None:
        self.root = (root or settings.data_root).resolve()
        self.store_root = self.root / "store"
        self.store_root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key '{key}'")
        return self.store_root / f"{key}.json"

    def read_json(self, key: str) -> Any | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except json.JSONDecodeError as exc:
            logger.error(f"Stored document '{key}' is corrupt, ignoring it: {exc}")
            return None

    def write_json(self, key: str, data: Any, *, indent: int = 2) -> None:
        path = self.path_for(key)
        with self._lock:
            fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=self.store_root)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(data, handle, ensure_ascii=False, indent=indent)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise

    def delete(self, key: str) -> None:
        with self._lock:
            self.path_for(key).unlink(missing_ok=True)
