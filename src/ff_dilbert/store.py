from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterator, MutableMapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from .comic import is_comic_id
from .http_client import load_json

LOGGER = logging.getLogger("ff_dilbert.store")

DATA_FILENAME = "data"

_ELECTRON_RE = re.compile(r"Electron", re.IGNORECASE)


class PersistenceMode(str, Enum):
    OFF = "off"
    SERVER = "server"
    CLIENT = "client"
    ELECTRON = "electron"


def resolve_persistence_mode(
    mode: PersistenceMode | str | None,
    *,
    user_agent: str | None = None,
) -> PersistenceMode:
    """Collapse the configured mode to off/server/client.

    ``electron`` means "client storage when hosted in a desktop shell": it
    becomes ``client`` only when the host's user agent says so.
    """

    try:
        resolved = PersistenceMode(mode) if mode else PersistenceMode.OFF
    except ValueError:
        LOGGER.warning("Unknown persistence mode %r; persistence disabled", mode)
        return PersistenceMode.OFF

    if resolved is PersistenceMode.ELECTRON:
        if user_agent and _ELECTRON_RE.search(user_agent):
            return PersistenceMode.CLIENT
        return PersistenceMode.OFF
    return resolved


def storage_key(*parts: str) -> str:
    """Join path parts with ``/``, collapse ``//`` and drop a trailing ``/``."""

    key = "/".join(str(p) for p in parts)
    key = re.sub(r"/{2,}", "/", key)
    if key.endswith("/") and len(key) > 1:
        key = key[:-1]
    return key


def _record_from(data: Any) -> dict[str, str] | None:
    if not isinstance(data, dict):
        return None
    comic_id = data.get("id")
    if not isinstance(comic_id, str):
        return None
    return {"id": comic_id}


class PersistenceStore(Protocol):
    def read(self) -> dict[str, str] | None: ...

    def write(self, record: dict[str, Any]) -> None: ...


class NullStore:
    def read(self) -> dict[str, str] | None:
        return None

    def write(self, record: dict[str, Any]) -> None:
        return None


@dataclass
class FileStore:
    """Server-side store: ``{base_path}/{persistence_id}/data``."""

    base_path: Path
    persistence_id: str
    enabled: bool = field(default=True, init=False)

    @property
    def directory(self) -> Path:
        return Path(storage_key(str(self.base_path), self.persistence_id))

    @property
    def data_path(self) -> Path:
        return self.directory / DATA_FILENAME

    def prepare(self) -> None:
        directory = self.directory
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except FileExistsError:
            pass
        except OSError as e:
            LOGGER.warning("Cannot create %s: %s; persistence disabled", directory, e)
            self.enabled = False
            return
        if not directory.is_dir():
            LOGGER.warning("%s is not a directory; persistence disabled", directory)
            self.enabled = False

    def read(self) -> dict[str, str] | None:
        if not self.enabled or not self.data_path.exists():
            return None
        record = _record_from(load_json(self.data_path))
        if record is None:
            LOGGER.warning("Ignoring unreadable persisted state at %s", self.data_path)
        return record

    def write(self, record: dict[str, Any]) -> None:
        if not self.enabled:
            return
        try:
            self.data_path.parent.mkdir(parents=True, exist_ok=True)
            self.data_path.write_text(json.dumps(record), encoding="utf-8")
        except OSError as e:
            LOGGER.warning("Failed to persist %s: %s", self.data_path, e)


@dataclass
class KeyValueStore:
    """Client-side store: a JSON string under ``{persistence_id}/data``."""

    storage: MutableMapping[str, str]
    persistence_id: str

    @property
    def key(self) -> str:
        return storage_key(self.persistence_id, DATA_FILENAME)

    def read(self) -> dict[str, str] | None:
        raw = self.storage.get(self.key)
        if not raw:
            return None
        try:
            return _record_from(json.loads(raw))
        except (TypeError, json.JSONDecodeError):
            LOGGER.warning("Ignoring unreadable persisted state under %s", self.key)
            return None

    def write(self, record: dict[str, Any]) -> None:
        if not is_comic_id(record.get("id")):
            return
        self.storage[self.key] = json.dumps(record)


class JsonFileStorage(MutableMapping[str, str]):
    """Client storage area kept as a single JSON object on disk.

    Every change rewrites the whole file.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        data = load_json(path) or {}
        self._data: dict[str, str] = {
            str(k): v for k, v in data.items() if isinstance(v, str)
        }

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __setitem__(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self._flush()

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def _flush(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps(self._data, indent=2, ensure_ascii=False), encoding="utf-8"
            )
        except OSError as e:
            LOGGER.warning("Failed to write client storage %s: %s", self.path, e)
