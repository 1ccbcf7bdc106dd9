"""Structured error types for backup, restore and cleanup operations."""

from typing import Optional


class BackupError(Exception):
    """Base exception for backup subsystem errors.

    Carries the pipeline stage and component that failed so callers can
    branch on the failure instead of parsing messages.
    """

    def __init__(self, message: str, stage: Optional[str] = None, component: Optional[str] = None):
        super().__init__(message)
        self.stage = stage
        self.component = component
        # Set on the raised error when a restore attempted several components
        self.restore_result = None


class StageFailure(BackupError):
    """A pipeline stage failed (dump, archive, encrypt, upload, download, ...)."""

    def __init__(self, stage: str, component: Optional[str], cause: BaseException):
        where = f"{component}/{stage}" if component else stage
        super().__init__(f"Stage {where} failed: {type(cause).__name__}: {cause}", stage, component)
        self.cause = cause


class IntegrityFailure(BackupError):
    """Checksum mismatch. Always fatal, never retried automatically."""

    def __init__(self, component: Optional[str], expected: str, actual: str,
                 key: Optional[str] = None, stage: str = "CHECKSUM_VERIFY"):
        super().__init__(
            f"Checksum mismatch for {component or 'artifact'}"
            f"{f' ({key})' if key else ''}: expected {expected}, got {actual}",
            stage,
            component,
        )
        self.expected = expected
        self.actual = actual
        self.key = key


class ConcurrencyConflict(BackupError):
    """Another backup, restore or cleanup is already in progress."""

    def __init__(self, requested: str, running: Optional[str]):
        super().__init__(f"Cannot start {requested}: {running or 'another operation'} already running")
        self.requested = requested
        self.running = running


class CatalogInconsistency(BackupError):
    """A catalog record references an artifact no longer present in remote storage."""

    def __init__(self, record_id: str, remote_key: str, component: Optional[str] = None,
                 stage: Optional[str] = None):
        super().__init__(
            f"Record {record_id} references missing remote object {remote_key}",
            stage,
            component,
        )
        self.record_id = record_id
        self.remote_key = remote_key


class BackupNotFoundError(BackupError):
    def __init__(self, record_id: str):
        super().__init__(f"Backup not found: {record_id}", stage="LOOKUP")
        self.record_id = record_id


class DecryptionError(Exception):
    """Ciphertext could not be authenticated (wrong key, corrupted or truncated)."""


class ObjectNotFoundError(Exception):
    def __init__(self, key: str):
        super().__init__(f"Object not found: {key}")
        self.key = key
