"""Durable key-value store shared by the execution contexts.

The foreground integration and the background monitor run in separate
processes and exchange nothing but these keys. Each key lives in its own
file and is replaced atomically, so writers touching different keys never
clobber each other and writers racing on the same key resolve as
last-write-wins.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
import re
import tempfile
import threading

from .exceptions import PersistenceUnavailable

_LOGGER = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_]+(\.[A-Za-z0-9_]+)*$")


class StateBus:
    """Interface of the shared store."""

    def get(self, key: str) -> str | None:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def snapshot(self) -> dict[str, str]:
        raise NotImplementedError


class MemoryStateBus(StateBus):
    """In-process store, used by tests and single-context setups."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return dict(self._data)


class DirectoryStateBus(StateBus):
    """Store keeping one file per key inside a shared directory."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _key_path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid state key: {key!r}")
        return self.path / key

    def get(self, key: str) -> str | None:
        key_path = self._key_path(key)
        try:
            return key_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as err:
            raise PersistenceUnavailable(f"Cannot read {key} from {self.path}: {err}") from err

    def set(self, key: str, value: str) -> None:
        key_path = self._key_path(key)
        tmp_name = None
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.path, prefix=f".{key}.", delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(value)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, key_path)
        except OSError as err:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise PersistenceUnavailable(f"Cannot write {key} to {self.path}: {err}") from err
        _LOGGER.debug("Wrote %s", key)

    def delete(self, key: str) -> None:
        try:
            self._key_path(key).unlink(missing_ok=True)
        except OSError as err:
            raise PersistenceUnavailable(f"Cannot delete {key} from {self.path}: {err}") from err

    def snapshot(self) -> dict[str, str]:
        if not self.path.is_dir():
            return {}
        data = {}
        for entry in sorted(self.path.iterdir()):
            if entry.name.startswith(".") or not _KEY_PATTERN.match(entry.name):
                continue
            value = self.get(entry.name)
            if value is not None:
                data[entry.name] = value
        return data
