"""Data models for backup, restore and cleanup operations."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Dict, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _new_id() -> str:
    return uuid.uuid4().hex


class ComponentKind(str, Enum):
    DATABASE = "database"
    FILES = "files"
    CONFIGURATION = "configuration"


class BackupType(str, Enum):
    DATABASE = "database"
    FULL = "full"


class ScheduleClass(str, Enum):
    MANUAL = "manual"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class PipelineStage(str, Enum):
    DUMP = "DUMP"
    SERIALIZE = "SERIALIZE"
    ARCHIVE = "ARCHIVE"
    CHECKSUM = "CHECKSUM"
    ENCRYPT = "ENCRYPT"
    UPLOAD = "UPLOAD"
    CATALOG = "CATALOG"
    CLEANUP_LOCAL = "CLEANUP_LOCAL"
    LOOKUP = "LOOKUP"
    DOWNLOAD = "DOWNLOAD"
    CHECKSUM_VERIFY = "CHECKSUM_VERIFY"
    DECRYPT = "DECRYPT"
    UNARCHIVE = "UNARCHIVE"
    APPLY = "APPLY"
    DELETE_REMOTE = "DELETE_REMOTE"


class RestoreStatus(str, Enum):
    RESTORED = "restored"
    SKIPPED = "skipped"
    FAILED = "failed"


class BackupArtifact(BaseModel):
    """A single encrypted, checksummed blob stored remotely.

    An artifact without ``remote_key`` is the explicit empty artifact of a
    full backup whose uploads directory did not exist.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str = Field(default_factory=_new_id)
    kind: ComponentKind
    schedule_class: ScheduleClass
    created_at: datetime
    size_bytes: int = Field(0, ge=0, description="Size of the encrypted object")
    checksum: Optional[str] = Field(None, description="SHA-256 hex digest of the encrypted bytes")
    archive_checksum: Optional[str] = Field(None, description="SHA-256 hex digest of the plaintext payload")
    remote_key: Optional[str] = None
    statistics: Dict[str, int] = Field(default_factory=dict)
    local_staging_paths: List[str] = Field(default_factory=list, exclude=True)

    @property
    def is_empty(self) -> bool:
        return self.remote_key is None


class BackupComponents(BaseModel):
    model_config = ConfigDict(frozen=True)

    database: Optional[BackupArtifact] = None
    files: Optional[BackupArtifact] = None
    configuration: Optional[BackupArtifact] = None

    def get(self, kind: ComponentKind) -> Optional[BackupArtifact]:
        return getattr(self, kind.value)

    def present(self) -> Iterator[BackupArtifact]:
        for kind in ComponentKind:
            artifact = self.get(kind)
            if artifact is not None:
                yield artifact


class BackupRecord(BaseModel):
    """Catalog entry for one orchestrated run; the unit addressed by restore."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str = Field(default_factory=_new_id)
    name: str
    type: BackupType
    schedule_class: ScheduleClass
    timestamp: datetime
    components: BackupComponents
    total_size_bytes: int = Field(0, ge=0)

    @model_validator(mode="after")
    def _check_components(self) -> "BackupRecord":
        c = self.components
        if self.type == BackupType.DATABASE:
            if c.database is None or c.files is not None or c.configuration is not None:
                raise ValueError("database backups must contain exactly the database component")
        elif c.database is None or c.files is None or c.configuration is None:
            raise ValueError("full backups must contain database, files and configuration components")

        expected = sum(a.size_bytes for a in c.present())
        if self.total_size_bytes != expected:
            raise ValueError(f"total_size_bytes {self.total_size_bytes} != sum of components {expected}")
        return self

    def remote_keys(self) -> List[str]:
        return [a.remote_key for a in self.components.present() if a.remote_key]


class RestoreOptions(BaseModel):
    restore_database: bool = True
    restore_files: bool = True
    restore_config: bool = False

    def wants(self, kind: ComponentKind) -> bool:
        return {
            ComponentKind.DATABASE: self.restore_database,
            ComponentKind.FILES: self.restore_files,
            ComponentKind.CONFIGURATION: self.restore_config,
        }[kind]


class ComponentRestoreResult(BaseModel):
    component: ComponentKind
    status: RestoreStatus
    stage: Optional[str] = None
    error: Optional[str] = None
    detail: Optional[str] = None


class RestoreResult(BaseModel):
    record_id: str
    record_name: str
    components: Dict[ComponentKind, ComponentRestoreResult] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return all(r.status != RestoreStatus.FAILED for r in self.components.values())


class CleanupResult(BaseModel):
    cutoff: datetime
    deleted_records: int = 0
    deleted_objects: int = 0
    orphaned_objects: int = 0
    pending_record_ids: List[str] = Field(default_factory=list)


class BackupStatus(BaseModel):
    recent_records: List[BackupRecord]
    total_records: int
    total_size_bytes: int
    retention_days: int
    next_scheduled_run: Optional[datetime] = None


class ObjectEntry(BaseModel):
    key: str
    size: int
    last_modified: datetime


class DeleteResult(BaseModel):
    deleted: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)
