"""Backup, restore and retention orchestration."""

import asyncio
import inspect
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from ._storage import BaseBackupCatalog, BaseObjectStore, StorageFactory
from ._utils import ENCRYPTED_SUFFIX, build_remote_key, generate_backup_name, logger, remove_paths, utc_now
from .archive import create_archive, extract_archive
from .checksum import compute_checksum
from .cipher import StreamCipher
from .config import BackupConfig
from .errors import (
    BackupError,
    BackupNotFoundError,
    CatalogInconsistency,
    ConcurrencyConflict,
    IntegrityFailure,
    ObjectNotFoundError,
    StageFailure,
)
from .exporters import ConfigExporter, FilesExporter, MongoExporter
from .models import (
    BackupArtifact,
    BackupComponents,
    BackupRecord,
    BackupStatus,
    BackupType,
    CleanupResult,
    ComponentKind,
    ComponentRestoreResult,
    DeleteResult,
    PipelineStage,
    RestoreOptions,
    RestoreResult,
    RestoreStatus,
    ScheduleClass,
)
from .scheduler import next_scheduled_run


class BackupOrchestrator:
    """Drive the backup, restore and cleanup pipelines.

    Backup, restore and cleanup are mutually exclusive: a request made
    while another one runs fails immediately with ``ConcurrencyConflict``.
    Status queries never wait on a running operation.
    """

    def __init__(
        self,
        config: BackupConfig,
        catalog: BaseBackupCatalog,
        object_store: BaseObjectStore,
        cipher: StreamCipher,
        database_exporter: MongoExporter,
        files_exporter: FilesExporter,
        config_exporter: ConfigExporter,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize orchestrator.

        Args:
            config: Backup configuration
            catalog: Catalog the run records are written to
            object_store: Remote store for encrypted artifacts
            cipher: Cipher used to seal artifacts
            database_exporter: Dumps and restores the primary datastore
            files_exporter: Resolves and restores the uploads directory
            config_exporter: Serializes and restores the settings snapshot
            clock: Source of the current UTC time
        """
        self.config = config
        self.catalog = catalog
        self.object_store = object_store
        self.cipher = cipher
        self.database_exporter = database_exporter
        self.files_exporter = files_exporter
        self.config_exporter = config_exporter
        self.clock = clock

        self.staging_dir = Path(config.staging_dir)
        self._lock = asyncio.Lock()
        self._running: Optional[str] = None

    @classmethod
    def from_config(cls, config: BackupConfig) -> "BackupOrchestrator":
        """Build an orchestrator with backends selected by ``config``.

        Raises:
            ValueError: If no encryption key is configured
        """
        from . import __version__

        if not config.encryption_key:
            raise ValueError("BACKUP_ENCRYPTION_KEY is required; refusing to create unrecoverable backups")

        return cls(
            config=config,
            catalog=StorageFactory.create_catalog(config.storage),
            object_store=StorageFactory.create_object_store(config.storage),
            cipher=StreamCipher(config.encryption_key),
            database_exporter=MongoExporter(config.database),
            files_exporter=FilesExporter(config.uploads_dir),
            config_exporter=ConfigExporter(
                settings_provider=config.to_dict,
                environment=config.environment,
                version=__version__,
                restore_dir=config.config_restore_dir,
            ),
        )

    async def close(self) -> None:
        await self.catalog.close()
        await self.object_store.close()

    @property
    def running_operation(self) -> Optional[str]:
        return self._running

    @asynccontextmanager
    async def _exclusive(self, operation: str):
        if self._lock.locked():
            raise ConcurrencyConflict(operation, self._running)
        async with self._lock:
            self._running = operation
            try:
                yield
            finally:
                self._running = None

    async def _run_stage(
        self,
        stage: PipelineStage,
        component: Optional[ComponentKind],
        operation: Callable,
        *args,
        timeout: Optional[float] = None,
        **kwargs,
    ):
        """Run one pipeline step, mapping failures to ``StageFailure``.

        Synchronous operations (archiving, hashing, encryption) run in a
        worker thread so the event loop keeps serving status reads and
        scheduler ticks. ``BackupError`` subclasses raised inside pass
        through unchanged and cancellation is never intercepted.
        """
        component_name = component.value if component else None
        if inspect.iscoroutinefunction(operation):
            pending = operation(*args, **kwargs)
        else:
            pending = asyncio.to_thread(operation, *args, **kwargs)
        try:
            if timeout is not None:
                result = await asyncio.wait_for(pending, timeout)
            else:
                result = await pending
            if inspect.isawaitable(result):
                result = await result
            return result
        except BackupError:
            raise
        except asyncio.TimeoutError as e:
            if timeout is None:
                raise StageFailure(stage.value, component_name, e) from e
            raise StageFailure(
                stage.value, component_name, TimeoutError(f"{stage.value} exceeded {timeout}s")
            ) from e
        except Exception as e:
            raise StageFailure(stage.value, component_name, e) from e

    # ===== Backup =====

    async def perform_database_backup(
        self, schedule_class: Union[ScheduleClass, str] = ScheduleClass.MANUAL
    ) -> BackupRecord:
        """Back up the primary datastore.

        Stages: DUMP, ARCHIVE, CHECKSUM, ENCRYPT, UPLOAD, CATALOG, CLEANUP_LOCAL.

        Returns:
            The catalogued BackupRecord
        """
        return await self._run_backup(BackupType.DATABASE, ScheduleClass(schedule_class))

    async def perform_full_backup(
        self, schedule_class: Union[ScheduleClass, str] = ScheduleClass.MANUAL
    ) -> BackupRecord:
        """Back up the datastore, uploaded files and configuration as one record.

        Any component failure fails the whole run and no record is written.

        Returns:
            The catalogued BackupRecord
        """
        return await self._run_backup(BackupType.FULL, ScheduleClass(schedule_class))

    trigger_database_backup = perform_database_backup
    trigger_full_backup = perform_full_backup

    async def _run_backup(self, backup_type: BackupType, schedule_class: ScheduleClass) -> BackupRecord:
        async with self._exclusive(f"{backup_type.value} backup"):
            started = self.clock()
            prefix = "db-backup" if backup_type == BackupType.DATABASE else "full-backup"
            name = generate_backup_name(prefix, schedule_class.value, started)
            record_id = uuid.uuid4().hex
            run_dir = self.staging_dir / f"{name}-{record_id[:8]}"
            uploaded: List[str] = []

            logger.info(f"Starting {backup_type.value} backup: {name}")

            try:
                run_dir.mkdir(parents=True, exist_ok=True)

                components: Dict[str, BackupArtifact] = {}
                db_artifact_name = name if backup_type == BackupType.DATABASE else f"{name}-db"
                components["database"] = await self._backup_database(
                    db_artifact_name, schedule_class, started, run_dir, uploaded
                )
                if backup_type == BackupType.FULL:
                    components["files"] = await self._backup_files(
                        f"{name}-files", schedule_class, started, run_dir, uploaded
                    )
                    components["configuration"] = await self._backup_configuration(
                        f"{name}-config", schedule_class, started, run_dir, uploaded
                    )

                record = BackupRecord(
                    id=record_id,
                    name=name,
                    type=backup_type,
                    schedule_class=schedule_class,
                    timestamp=started,
                    components=BackupComponents(**components),
                    total_size_bytes=sum(a.size_bytes for a in components.values()),
                )
                await self._run_stage(PipelineStage.CATALOG, None, self.catalog.insert, record)

            except (Exception, asyncio.CancelledError) as e:
                logger.error(f"Backup {name} failed: {e}")
                if uploaded:
                    await self._discard_uploads(uploaded)
                raise

            finally:
                remove_paths([run_dir])

            logger.info(f"Backup complete: {name} ({record.total_size_bytes:,} bytes, id={record.id})")
            return record

    async def _backup_database(
        self,
        artifact_name: str,
        schedule_class: ScheduleClass,
        started: datetime,
        run_dir: Path,
        uploaded: List[str],
    ) -> BackupArtifact:
        kind = ComponentKind.DATABASE
        dump_dir = await self._run_stage(
            PipelineStage.DUMP,
            kind,
            self.database_exporter.export,
            run_dir / "dump",
            timeout=self.config.database.dump_timeout,
        )
        statistics = self.database_exporter.get_statistics(dump_dir)

        archive_path = run_dir / f"{artifact_name}.tar.gz"
        await self._run_stage(PipelineStage.ARCHIVE, kind, create_archive, dump_dir, archive_path)
        remove_paths([dump_dir])

        return await self._seal_and_upload(kind, schedule_class, started, archive_path, statistics, uploaded)

    async def _backup_files(
        self,
        artifact_name: str,
        schedule_class: ScheduleClass,
        started: datetime,
        run_dir: Path,
        uploaded: List[str],
    ) -> BackupArtifact:
        kind = ComponentKind.FILES
        source_dir = await self._run_stage(PipelineStage.ARCHIVE, kind, self.files_exporter.export)
        if source_dir is None:
            return BackupArtifact(
                kind=kind,
                schedule_class=schedule_class,
                created_at=started,
                statistics={"files": 0, "bytes": 0},
            )

        statistics = self.files_exporter.get_statistics(source_dir)
        archive_path = run_dir / f"{artifact_name}.tar.gz"
        await self._run_stage(PipelineStage.ARCHIVE, kind, create_archive, source_dir, archive_path)

        return await self._seal_and_upload(kind, schedule_class, started, archive_path, statistics, uploaded)

    async def _backup_configuration(
        self,
        artifact_name: str,
        schedule_class: ScheduleClass,
        started: datetime,
        run_dir: Path,
        uploaded: List[str],
    ) -> BackupArtifact:
        kind = ComponentKind.CONFIGURATION
        snapshot_path = await self._run_stage(
            PipelineStage.SERIALIZE, kind, self.config_exporter.export, run_dir / f"{artifact_name}.json"
        )
        statistics = {"bytes": snapshot_path.stat().st_size}

        return await self._seal_and_upload(kind, schedule_class, started, snapshot_path, statistics, uploaded)

    async def _seal_and_upload(
        self,
        kind: ComponentKind,
        schedule_class: ScheduleClass,
        started: datetime,
        payload_path: Path,
        statistics: Dict[str, int],
        uploaded: List[str],
    ) -> BackupArtifact:
        """Checksum, encrypt and upload one payload file."""
        archive_checksum = await self._run_stage(PipelineStage.CHECKSUM, kind, compute_checksum, payload_path)

        encrypted_path = payload_path.with_name(payload_path.name + ENCRYPTED_SUFFIX)
        await self._run_stage(PipelineStage.ENCRYPT, kind, self.cipher.encrypt_file, payload_path, encrypted_path)
        checksum = await self._run_stage(PipelineStage.ENCRYPT, kind, compute_checksum, encrypted_path)
        size_bytes = encrypted_path.stat().st_size

        key = build_remote_key(kind.value, schedule_class.value, payload_path.name)
        # Recorded before the put: a failed put may still have landed remotely
        uploaded.append(key)
        await self._run_stage(
            PipelineStage.UPLOAD,
            kind,
            self.object_store.put,
            key,
            encrypted_path,
            server_side_encryption=self.config.storage.server_side_encryption,
            storage_class=self.config.storage.storage_class,
            timeout=self.config.transfer_timeout,
        )
        logger.info(f"Uploaded {kind.value} artifact: {key} ({size_bytes:,} bytes)")

        return BackupArtifact(
            kind=kind,
            schedule_class=schedule_class,
            created_at=started,
            size_bytes=size_bytes,
            checksum=checksum,
            archive_checksum=archive_checksum,
            remote_key=key,
            statistics=statistics,
            local_staging_paths=[str(payload_path), str(encrypted_path)],
        )

    async def _discard_uploads(self, keys: List[str]) -> None:
        try:
            result = await self.object_store.delete_many(keys)
        except Exception as e:
            logger.warning(f"Failed to remove uploads of failed run {keys}: {e}")
            return
        for key, reason in result.failed.items():
            logger.warning(f"Failed to remove upload of failed run {key}: {reason}")

    # ===== Restore =====

    async def restore_from_backup(
        self, record_id: str, options: Optional[RestoreOptions] = None
    ) -> RestoreResult:
        """Restore the requested components of a catalogued backup.

        Every requested component is attempted. If any fails, the first
        failure is raised with the complete ``RestoreResult`` attached as
        ``restore_result``.

        Args:
            record_id: Catalog id of the backup to restore
            options: Components to restore (defaults: database and files)

        Returns:
            RestoreResult with per-component outcome

        Raises:
            BackupNotFoundError: If no record has ``record_id``
        """
        options = options or RestoreOptions()

        async with self._exclusive("restore"):
            record = await self._run_stage(PipelineStage.LOOKUP, None, self.catalog.find_by_id, record_id)
            if record is None:
                raise BackupNotFoundError(record_id)

            logger.info(f"Starting restore: {record.name} ({record.id})")
            if options.restore_database and record.components.database is not None:
                logger.warning(
                    f"Restoring database from {record.name} drops existing collections; "
                    "no pre-restore snapshot is taken"
                )

            result = RestoreResult(record_id=record.id, record_name=record.name)
            first_error: Optional[BackupError] = None
            run_dir = self.staging_dir / f"restore-{record.name}-{uuid.uuid4().hex[:8]}"

            try:
                for kind in ComponentKind:
                    artifact = record.components.get(kind)
                    if not options.wants(kind):
                        outcome = ComponentRestoreResult(
                            component=kind, status=RestoreStatus.SKIPPED, detail="not requested"
                        )
                    elif artifact is None:
                        outcome = ComponentRestoreResult(
                            component=kind, status=RestoreStatus.SKIPPED, detail="not part of this backup"
                        )
                    elif artifact.is_empty:
                        logger.warning(f"Skipping empty {kind.value} component of {record.name}")
                        outcome = ComponentRestoreResult(
                            component=kind, status=RestoreStatus.SKIPPED, detail="empty artifact"
                        )
                    else:
                        try:
                            detail = await self._restore_component(record, artifact, run_dir / kind.value)
                            outcome = ComponentRestoreResult(
                                component=kind, status=RestoreStatus.RESTORED, detail=detail
                            )
                        except BackupError as e:
                            logger.error(f"Restore of {kind.value} from {record.name} failed: {e}")
                            outcome = ComponentRestoreResult(
                                component=kind, status=RestoreStatus.FAILED, stage=e.stage, error=str(e)
                            )
                            first_error = first_error or e
                    result.components[kind] = outcome
            finally:
                remove_paths([run_dir])

            if first_error is not None:
                first_error.restore_result = result
                raise first_error

            logger.info(f"Restore complete: {record.name}")
            return result

    restore = restore_from_backup

    async def _restore_component(self, record: BackupRecord, artifact: BackupArtifact, work_dir: Path) -> str:
        kind = artifact.kind
        key = artifact.remote_key
        work_dir.mkdir(parents=True, exist_ok=True)

        encrypted_path = work_dir / Path(key).name
        try:
            await self._run_stage(
                PipelineStage.DOWNLOAD,
                kind,
                self.object_store.get,
                key,
                encrypted_path,
                timeout=self.config.transfer_timeout,
            )
        except StageFailure as e:
            if isinstance(e.cause, ObjectNotFoundError):
                raise CatalogInconsistency(record.id, key, kind.value, PipelineStage.DOWNLOAD.value) from e.cause
            raise

        actual = await self._run_stage(PipelineStage.CHECKSUM_VERIFY, kind, compute_checksum, encrypted_path)
        if artifact.checksum and actual != artifact.checksum:
            raise IntegrityFailure(kind.value, artifact.checksum, actual, key)

        payload_path = work_dir / Path(key).name[: -len(ENCRYPTED_SUFFIX)]
        await self._run_stage(PipelineStage.DECRYPT, kind, self.cipher.decrypt_file, encrypted_path, payload_path)
        remove_paths([encrypted_path])

        if artifact.archive_checksum:
            actual = await self._run_stage(PipelineStage.CHECKSUM_VERIFY, kind, compute_checksum, payload_path)
            if actual != artifact.archive_checksum:
                raise IntegrityFailure(kind.value, artifact.archive_checksum, actual, key)

        if kind == ComponentKind.CONFIGURATION:
            target = await self._run_stage(
                PipelineStage.APPLY, kind, self.config_exporter.restore, payload_path, record.name
            )
            return f"snapshot written to {target}"

        extracted_dir = work_dir / "extracted"
        files = await self._run_stage(PipelineStage.UNARCHIVE, kind, extract_archive, payload_path, extracted_dir)

        if kind == ComponentKind.DATABASE:
            await self._run_stage(
                PipelineStage.APPLY,
                kind,
                self.database_exporter.restore,
                extracted_dir,
                timeout=self.config.database.dump_timeout,
            )
        else:
            await self._run_stage(PipelineStage.APPLY, kind, self.files_exporter.restore, extracted_dir)

        return f"{len(files)} files restored"

    # ===== Retention =====

    async def cleanup_old_backups(self) -> CleanupResult:
        """Delete backups older than the retention window.

        Remote artifacts are deleted first; a record is removed from the
        catalog only when all of its artifacts are confirmed gone. Records
        with failed deletions are kept and retried on the next run.
        Unreferenced artifacts older than the cutoff (left by failed runs)
        are removed as well.

        Returns:
            CleanupResult with deletion counts
        """
        async with self._exclusive("cleanup"):
            cutoff = self.clock() - timedelta(days=self.config.retention_days)
            logger.info(f"Starting cleanup of backups older than {cutoff.isoformat()}")

            expired = await self._run_stage(PipelineStage.LOOKUP, None, self.catalog.list_older_than, cutoff)
            expired_ids = {r.id for r in expired}
            live = await self._run_stage(PipelineStage.LOOKUP, None, self.catalog.list_recent, None)

            expired_keys = {key for r in expired for key in r.remote_keys()}
            referenced = {key for r in live if r.id not in expired_ids for key in r.remote_keys()}

            orphans: List[str] = []
            for kind in ComponentKind:
                entries = await self._run_stage(
                    PipelineStage.LOOKUP, kind, self.object_store.list, f"{kind.value}/"
                )
                for entry in entries:
                    if entry.last_modified < cutoff and entry.key not in referenced and entry.key not in expired_keys:
                        orphans.append(entry.key)

            to_delete = sorted(expired_keys | set(orphans))
            deletion = DeleteResult()
            if to_delete:
                deletion = await self._run_stage(
                    PipelineStage.DELETE_REMOTE, None, self.object_store.delete_many, to_delete
                )
            for key, reason in deletion.failed.items():
                logger.warning(f"Failed to delete remote object {key}: {reason}")

            failed = set(deletion.failed)
            removable = [r.id for r in expired if not failed.intersection(r.remote_keys())]
            pending = [r.id for r in expired if failed.intersection(r.remote_keys())]

            deleted_records = 0
            if removable:
                deleted_records = await self._run_stage(
                    PipelineStage.CATALOG, None, self.catalog.delete_by_ids, removable
                )

            result = CleanupResult(
                cutoff=cutoff,
                deleted_records=deleted_records,
                deleted_objects=len(deletion.deleted),
                orphaned_objects=len([key for key in orphans if key not in failed]),
                pending_record_ids=pending,
            )
            logger.info(
                f"Cleanup complete: {result.deleted_records} records, {result.deleted_objects} objects deleted "
                f"({result.orphaned_objects} orphaned, {len(pending)} pending)"
            )
            return result

    # ===== Status =====

    async def get_status(self, recent: int = 10) -> BackupStatus:
        """Summarize the catalog and the next scheduled backup."""
        return BackupStatus(
            recent_records=await self.catalog.list_recent(recent),
            total_records=await self.catalog.count(),
            total_size_bytes=await self.catalog.aggregate_total_size(),
            retention_days=self.config.retention_days,
            next_scheduled_run=next_scheduled_run(self.config.schedule, self.clock()),
        )

    async def find_inconsistencies(self) -> List[CatalogInconsistency]:
        """Report catalogued artifacts that are missing from the object store."""
        problems = []
        for record in await self.catalog.list_recent(None):
            for artifact in record.components.present():
                if artifact.remote_key and not await self.object_store.exists(artifact.remote_key):
                    logger.warning(f"Record {record.id} references missing object {artifact.remote_key}")
                    problems.append(CatalogInconsistency(record.id, artifact.remote_key, artifact.kind.value))
        return problems
