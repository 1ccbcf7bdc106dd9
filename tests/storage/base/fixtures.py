"""Shared fixtures and test data for storage testing."""

import pytest
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from nano_backup.models import (
    BackupArtifact,
    BackupComponents,
    BackupRecord,
    BackupType,
    ComponentKind,
    ScheduleClass,
)

BASE_TIME = datetime(2026, 1, 15, 2, 0, 0, tzinfo=timezone.utc)


def make_record(
    name: str,
    timestamp: Optional[datetime] = None,
    backup_type: BackupType = BackupType.DATABASE,
    size: int = 100,
    schedule_class: ScheduleClass = ScheduleClass.DAILY,
) -> BackupRecord:
    """Build a valid record whose artifacts point at predictable remote keys."""
    timestamp = timestamp or BASE_TIME

    def artifact(kind: ComponentKind, suffix: str) -> BackupArtifact:
        return BackupArtifact(
            kind=kind,
            schedule_class=schedule_class,
            created_at=timestamp,
            size_bytes=size,
            checksum="0" * 64,
            archive_checksum="1" * 64,
            remote_key=f"{kind.value}/{schedule_class.value}/{name}{suffix}.enc",
        )

    if backup_type == BackupType.DATABASE:
        components = BackupComponents(database=artifact(ComponentKind.DATABASE, ".tar.gz"))
    else:
        components = BackupComponents(
            database=artifact(ComponentKind.DATABASE, "-db.tar.gz"),
            files=artifact(ComponentKind.FILES, "-files.tar.gz"),
            configuration=artifact(ComponentKind.CONFIGURATION, "-config.json"),
        )

    return BackupRecord(
        name=name,
        type=backup_type,
        schedule_class=schedule_class,
        timestamp=timestamp,
        components=components,
        total_size_bytes=sum(a.size_bytes for a in components.present()),
    )


@pytest.fixture
def temp_storage_dir():
    """Temporary directory for storage files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_records():
    """Five daily database records, one day apart, oldest first."""
    return [
        make_record(f"db-backup-daily-{i}", BASE_TIME + timedelta(days=i), size=100 * (i + 1))
        for i in range(5)
    ]
