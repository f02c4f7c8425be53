"""
Durable cart storage.

The cart survives restarts as a JSON list of item dicts. Corrupt or
missing files load as an empty cart.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Protocol

import structlog

log = structlog.get_logger()


class CartStorage(Protocol):
    def load(self) -> list[dict[str, Any]]: ...
    def save(self, items: list[dict[str, Any]]) -> None: ...


class MemoryCartStorage:
    __slots__ = ("_items",)

    def __init__(self, items: list[dict[str, Any]] | None = None) -> None:
        self._items = [dict(item) for item in items or ()]

    def load(self) -> list[dict[str, Any]]:
        return [dict(item) for item in self._items]

    def save(self, items: list[dict[str, Any]]) -> None:
        self._items = [dict(item) for item in items]


class JsonFileCartStorage:
    """Whole-file JSON, replaced atomically on every save."""

    __slots__ = ("_path",)

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[dict[str, Any]]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            log.warning("cart.storage_unreadable", path=str(self._path), error=str(e))
            return []
        if not isinstance(data, list):
            log.warning("cart.storage_malformed", path=str(self._path))
            return []
        return [item for item in data if isinstance(item, dict)]

    def save(self, items: list[dict[str, Any]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        tmp.write_text(json.dumps(items), encoding="utf-8")
        os.replace(tmp, self._path)
