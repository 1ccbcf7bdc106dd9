"""JSON-file backup catalog."""

import asyncio
import json
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .._utils import logger
from ..models import BackupRecord
from .base import BaseBackupCatalog


class JsonBackupCatalog(BaseBackupCatalog):
    """Catalog persisted as a single JSON document.

    Writers are serialized by a lock and replace the file atomically;
    the in-memory snapshot is swapped only after the write is durable, so
    readers always see either the previous or the new state.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._write_lock = asyncio.Lock()
        self._records: Dict[str, BackupRecord] = self._load()

    def _load(self) -> Dict[str, BackupRecord]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        records = {
            record_id: BackupRecord.model_validate(doc)
            for record_id, doc in data.get("records", {}).items()
        }
        logger.info(f"Loaded backup catalog {self.path} with {len(records)} records")
        return records

    def _persist(self, records: Dict[str, BackupRecord]) -> None:
        payload = {
            "version": 1,
            "records": {rid: r.model_dump(mode="json") for rid, r in records.items()},
        }
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)

    async def insert(self, record: BackupRecord) -> None:
        async with self._write_lock:
            if record.id in self._records:
                raise ValueError(f"Backup record already exists: {record.id}")
            records = dict(self._records)
            records[record.id] = record
            self._persist(records)
            self._records = records
        logger.debug(f"Catalogued backup record {record.id} ({record.name})")

    async def find_by_id(self, record_id: str) -> Optional[BackupRecord]:
        return self._records.get(record_id)

    async def list_recent(self, n: Optional[int] = 10) -> List[BackupRecord]:
        records = sorted(self._records.values(), key=lambda r: r.timestamp, reverse=True)
        return records if n is None else records[:n]

    async def list_older_than(self, cutoff: datetime) -> List[BackupRecord]:
        return [r for r in self._records.values() if r.timestamp < cutoff]

    async def delete_by_ids(self, record_ids: Iterable[str]) -> int:
        record_ids = set(record_ids)
        async with self._write_lock:
            records = {rid: r for rid, r in self._records.items() if rid not in record_ids}
            deleted = len(self._records) - len(records)
            if deleted:
                self._persist(records)
                self._records = records
        return deleted

    async def aggregate_total_size(self) -> int:
        return sum(r.total_size_bytes for r in self._records.values())

    async def count(self) -> int:
        return len(self._records)
