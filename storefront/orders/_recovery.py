"""
Recovery log — durable record of payments captured without an order.

One JSON object per line, fsynced on append.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Protocol

import structlog

from storefront.orders._types import RecoveryRecord

log = structlog.get_logger()


class RecoveryLog(Protocol):
    def append(self, record: RecoveryRecord) -> None: ...
    def read_all(self) -> list[RecoveryRecord]: ...


class MemoryRecoveryLog:
    def __init__(self) -> None:
        self._records: list[RecoveryRecord] = []

    def append(self, record: RecoveryRecord) -> None:
        self._records.append(record)

    def read_all(self) -> list[RecoveryRecord]:
        return list(self._records)


class JsonLinesRecoveryLog:
    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def append(self, record: RecoveryRecord) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(record.to_dict()) + "\n")
            fh.flush()
            os.fsync(fh.fileno())

    def read_all(self) -> list[RecoveryRecord]:
        if not self._path.exists():
            return []
        records: list[RecoveryRecord] = []
        with self._path.open(encoding="utf-8") as fh:
            for number, line in enumerate(fh, start=1):
                if not line.strip():
                    continue
                try:
                    records.append(RecoveryRecord.from_dict(json.loads(line)))
                except (ValueError, KeyError, TypeError) as e:
                    log.warning("recovery.corrupt_line", path=str(self._path), line=number, error=str(e))
        return records
