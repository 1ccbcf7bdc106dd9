__version__ = "0.1.0"
__author__ = "nano-backup contributors"
__url__ = "https://github.com/nano-backup/nano-backup"

from .config import BackupConfig, DatabaseConfig, ScheduleConfig, StorageConfig
from .errors import (
    BackupError,
    BackupNotFoundError,
    CatalogInconsistency,
    ConcurrencyConflict,
    DecryptionError,
    IntegrityFailure,
    ObjectNotFoundError,
    StageFailure,
)
from .models import (
    BackupArtifact,
    BackupRecord,
    BackupStatus,
    BackupType,
    CleanupResult,
    ComponentKind,
    RestoreOptions,
    RestoreResult,
    ScheduleClass,
)
from .orchestrator import BackupOrchestrator
from .scheduler import BackupJob, BackupScheduler, next_scheduled_run

__all__ = [
    "BackupConfig",
    "DatabaseConfig",
    "ScheduleConfig",
    "StorageConfig",
    "BackupError",
    "BackupNotFoundError",
    "CatalogInconsistency",
    "ConcurrencyConflict",
    "DecryptionError",
    "IntegrityFailure",
    "ObjectNotFoundError",
    "StageFailure",
    "BackupArtifact",
    "BackupRecord",
    "BackupStatus",
    "BackupType",
    "CleanupResult",
    "ComponentKind",
    "RestoreOptions",
    "RestoreResult",
    "ScheduleClass",
    "BackupOrchestrator",
    "BackupJob",
    "BackupScheduler",
    "next_scheduled_run",
]
