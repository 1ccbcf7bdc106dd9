"""Storage interfaces: remote object store and backup catalog."""

from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from ..models import BackupRecord, DeleteResult, ObjectEntry


class BaseObjectStore:
    """Opaque key -> blob store with at-least-once semantics.

    A ``put`` may succeed remotely even when the caller observes an error,
    so every operation here must be safe to repeat. Deleting a key that no
    longer exists is not an error.
    """

    async def put(
        self,
        key: str,
        source_path: Path,
        *,
        server_side_encryption: Optional[str] = None,
        storage_class: Optional[str] = None,
    ) -> None:
        """Upload the file at ``source_path`` under ``key``."""
        raise NotImplementedError

    async def get(self, key: str, dest_path: Path) -> int:
        """Download ``key`` into ``dest_path``.

        Returns:
            Number of bytes written

        Raises:
            ObjectNotFoundError: If the key does not exist
        """
        raise NotImplementedError

    async def list(self, prefix: str = "") -> List[ObjectEntry]:
        raise NotImplementedError

    async def delete_many(self, keys: Iterable[str]) -> DeleteResult:
        """Delete keys, reporting per-key failures instead of raising."""
        raise NotImplementedError

    async def exists(self, key: str) -> bool:
        raise NotImplementedError

    async def close(self) -> None:
        pass


class BaseBackupCatalog:
    """Persistent store of ``BackupRecord`` documents.

    Many concurrent readers, one serialized writer (the orchestrator).
    Records are never mutated in place.
    """

    async def insert(self, record: BackupRecord) -> None:
        raise NotImplementedError

    async def find_by_id(self, record_id: str) -> Optional[BackupRecord]:
        raise NotImplementedError

    async def list_recent(self, n: Optional[int] = 10) -> List[BackupRecord]:
        """Return the newest ``n`` records (all when ``n`` is None), newest first."""
        raise NotImplementedError

    async def list_older_than(self, cutoff: datetime) -> List[BackupRecord]:
        raise NotImplementedError

    async def delete_by_ids(self, record_ids: Iterable[str]) -> int:
        raise NotImplementedError

    async def delete_older_than(self, cutoff: datetime) -> int:
        expired = await self.list_older_than(cutoff)
        return await self.delete_by_ids([r.id for r in expired])

    async def aggregate_total_size(self) -> int:
        raise NotImplementedError

    async def count(self) -> int:
        raise NotImplementedError

    async def close(self) -> None:
        pass
