"""Base test suite for backup catalog implementations."""

import pytest
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from nano_backup.models import BackupType
from .fixtures import BASE_TIME, make_record


@dataclass
class CatalogContract:
    """Contract that all backup catalogs must fulfill."""

    supports_persistence: bool = True
    preserves_extra_fields: bool = True


class BaseBackupCatalogTestSuite(ABC):
    """Abstract test suite all catalog implementations must pass."""

    @pytest.fixture
    @abstractmethod
    async def catalog(self) -> Any:
        """Provide catalog instance for testing."""
        pass

    @pytest.fixture
    @abstractmethod
    def contract(self) -> CatalogContract:
        """Define catalog capabilities contract."""
        pass

    @pytest.mark.asyncio
    async def test_insert_and_find(self, catalog):
        record = make_record("db-backup-daily-a")
        await catalog.insert(record)

        found = await catalog.find_by_id(record.id)
        assert found.model_dump() == record.model_dump()
        assert found.components.database.remote_key == record.components.database.remote_key

        assert await catalog.find_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_duplicate_insert_rejected(self, catalog):
        record = make_record("db-backup-daily-a")
        await catalog.insert(record)

        with pytest.raises(ValueError):
            await catalog.insert(record)
        assert await catalog.count() == 1

    @pytest.mark.asyncio
    async def test_list_recent_newest_first(self, catalog, sample_records):
        for record in reversed(sample_records):
            await catalog.insert(record)

        recent = await catalog.list_recent(3)
        assert [r.name for r in recent] == [
            "db-backup-daily-4",
            "db-backup-daily-3",
            "db-backup-daily-2",
        ]

        everything = await catalog.list_recent(None)
        assert len(everything) == 5
        assert everything[-1].name == "db-backup-daily-0"

    @pytest.mark.asyncio
    async def test_list_recent_empty(self, catalog):
        assert await catalog.list_recent() == []
        assert await catalog.count() == 0
        assert await catalog.aggregate_total_size() == 0

    @pytest.mark.asyncio
    async def test_list_older_than_is_strict(self, catalog, sample_records):
        for record in sample_records:
            await catalog.insert(record)

        cutoff = BASE_TIME + timedelta(days=2)
        older = await catalog.list_older_than(cutoff)

        # The record stamped exactly at the cutoff is still retained
        assert sorted(r.name for r in older) == ["db-backup-daily-0", "db-backup-daily-1"]

    @pytest.mark.asyncio
    async def test_delete_older_than(self, catalog, sample_records):
        for record in sample_records:
            await catalog.insert(record)

        deleted = await catalog.delete_older_than(BASE_TIME + timedelta(days=3))
        assert deleted == 3
        assert await catalog.count() == 2

        # Idempotent
        assert await catalog.delete_older_than(BASE_TIME + timedelta(days=3)) == 0

    @pytest.mark.asyncio
    async def test_delete_by_ids(self, catalog, sample_records):
        for record in sample_records:
            await catalog.insert(record)

        deleted = await catalog.delete_by_ids([sample_records[0].id, sample_records[1].id, "missing"])
        assert deleted == 2
        assert await catalog.find_by_id(sample_records[0].id) is None
        assert await catalog.find_by_id(sample_records[2].id) is not None
        assert await catalog.delete_by_ids([]) == 0

    @pytest.mark.asyncio
    async def test_aggregate_total_size(self, catalog, sample_records):
        for record in sample_records:
            await catalog.insert(record)

        assert await catalog.aggregate_total_size() == 100 + 200 + 300 + 400 + 500
        assert await catalog.count() == 5

    @pytest.mark.asyncio
    async def test_full_record_round_trip(self, catalog):
        record = make_record("full-backup-weekly-a", backup_type=BackupType.FULL, size=10)
        await catalog.insert(record)

        found = await catalog.find_by_id(record.id)
        assert found.type == BackupType.FULL
        assert found.total_size_bytes == 30
        assert found.components.configuration.remote_key.endswith("-config.json.enc")

    @pytest.mark.asyncio
    async def test_extra_fields_preserved(self, catalog, contract):
        if not contract.preserves_extra_fields:
            pytest.skip("Catalog does not keep unknown fields")

        base = make_record("db-backup-daily-a")
        record = type(base).model_validate({**base.model_dump(), "operator_note": "pre-migration"})
        await catalog.insert(record)

        found = await catalog.find_by_id(record.id)
        assert getattr(found, "operator_note") == "pre-migration"
