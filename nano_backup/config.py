"""Configuration management for nano-backup."""

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class DatabaseConfig:
    """Primary datastore dump/restore tool configuration."""
    uri: str = "mongodb://localhost:27017/app"
    dump_command: str = "mongodump"
    restore_command: str = "mongorestore"
    dump_timeout: float = 3600.0  # seconds, applies to dump and restore

    @classmethod
    def from_env(cls) -> 'DatabaseConfig':
        """Create config from environment variables."""
        return cls(
            uri=os.getenv("MONGODB_URI", "mongodb://localhost:27017/app"),
            dump_command=os.getenv("BACKUP_DUMP_COMMAND", "mongodump"),
            restore_command=os.getenv("BACKUP_RESTORE_COMMAND", "mongorestore"),
            dump_timeout=float(os.getenv("BACKUP_DUMP_TIMEOUT", "3600"))
        )

    def __post_init__(self):
        """Validate configuration."""
        if not self.uri:
            raise ValueError("database uri must not be empty")
        if self.dump_timeout <= 0:
            raise ValueError(f"dump_timeout must be positive, got {self.dump_timeout}")


@dataclass(frozen=True)
class StorageConfig:
    """Object store and catalog backend configuration."""
    object_store_backend: str = "s3"  # s3, local
    bucket: str = "nano-backups"
    region: str = "ap-south-1"
    endpoint_url: Optional[str] = None
    server_side_encryption: str = "AES256"
    storage_class: str = "STANDARD_IA"  # artifacts are rarely read
    local_root: str = "./backup_store"

    catalog_backend: str = "json"  # json, redis
    catalog_path: str = "./backups/catalog.json"

    # Redis catalog settings
    redis_url: str = "redis://localhost:6379"
    redis_password: Optional[str] = None
    redis_prefix: str = "nano_backup:catalog:"
    redis_max_connections: int = 10
    redis_socket_timeout: float = 5.0

    @classmethod
    def from_env(cls) -> 'StorageConfig':
        """Create config from environment variables."""
        return cls(
            object_store_backend=os.getenv("BACKUP_OBJECT_STORE", "s3"),
            bucket=os.getenv("BACKUP_S3_BUCKET", "nano-backups"),
            region=os.getenv("AWS_REGION", "ap-south-1"),
            endpoint_url=os.getenv("BACKUP_S3_ENDPOINT_URL", None),
            server_side_encryption=os.getenv("BACKUP_S3_SSE", "AES256"),
            storage_class=os.getenv("BACKUP_S3_STORAGE_CLASS", "STANDARD_IA"),
            local_root=os.getenv("BACKUP_LOCAL_STORE", "./backup_store"),
            catalog_backend=os.getenv("BACKUP_CATALOG", "json"),
            catalog_path=os.getenv("BACKUP_CATALOG_PATH", "./backups/catalog.json"),
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379"),
            redis_password=os.getenv("REDIS_PASSWORD", None),
            redis_prefix=os.getenv("BACKUP_REDIS_PREFIX", "nano_backup:catalog:"),
            redis_max_connections=int(os.getenv("REDIS_MAX_CONNECTIONS", "10")),
            redis_socket_timeout=float(os.getenv("REDIS_SOCKET_TIMEOUT", "5.0"))
        )

    def __post_init__(self):
        """Validate configuration."""
        valid_object_stores = {"s3", "local"}
        valid_catalogs = {"json", "redis"}

        if self.object_store_backend not in valid_object_stores:
            raise ValueError(f"Unknown object store backend: {self.object_store_backend}. Available: {valid_object_stores}")
        if self.catalog_backend not in valid_catalogs:
            raise ValueError(f"Unknown catalog backend: {self.catalog_backend}. Available: {valid_catalogs}")
        if self.object_store_backend == "s3" and not self.bucket:
            raise ValueError("bucket is required for the s3 object store")


@dataclass(frozen=True)
class ScheduleConfig:
    """Calendar cadences for the scheduled jobs (crontab syntax)."""
    timezone: str = "Asia/Kolkata"
    daily_database: str = "0 2 * * *"
    weekly_full: str = "0 1 * * sun"
    monthly_full: str = "0 0 1 * *"
    cleanup: str = "0 3 * * *"

    @classmethod
    def from_env(cls) -> 'ScheduleConfig':
        """Create config from environment variables."""
        return cls(
            timezone=os.getenv("BACKUP_TIMEZONE", "Asia/Kolkata"),
            daily_database=os.getenv("BACKUP_CRON_DAILY", "0 2 * * *"),
            weekly_full=os.getenv("BACKUP_CRON_WEEKLY", "0 1 * * sun"),
            monthly_full=os.getenv("BACKUP_CRON_MONTHLY", "0 0 1 * *"),
            cleanup=os.getenv("BACKUP_CRON_CLEANUP", "0 3 * * *")
        )

    def __post_init__(self):
        """Validate configuration."""
        for name in ("daily_database", "weekly_full", "monthly_full", "cleanup"):
            expr = getattr(self, name)
            if len(expr.split()) != 5:
                raise ValueError(f"{name} must be a 5-field crontab expression, got {expr!r}")


@dataclass(frozen=True)
class BackupConfig:
    """Main backup subsystem configuration."""
    encryption_key: str = field(default="", repr=False)
    retention_days: int = 90
    staging_dir: str = "./backups"
    uploads_dir: str = "./uploads"
    config_restore_dir: str = "./backups/restored-config"
    transfer_timeout: float = 1800.0  # seconds per object-store put/get
    environment: str = "development"

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)

    @classmethod
    def from_env(cls) -> 'BackupConfig':
        """Create complete config from environment variables."""
        return cls(
            encryption_key=os.getenv("BACKUP_ENCRYPTION_KEY", ""),
            retention_days=int(os.getenv("BACKUP_RETENTION_DAYS", "90")),
            staging_dir=os.getenv("BACKUP_LOCAL_PATH", "./backups"),
            uploads_dir=os.getenv("UPLOADS_PATH", "./uploads"),
            config_restore_dir=os.getenv("BACKUP_CONFIG_RESTORE_PATH", "./backups/restored-config"),
            transfer_timeout=float(os.getenv("BACKUP_TRANSFER_TIMEOUT", "1800")),
            environment=os.getenv("APP_ENV", "development"),
            database=DatabaseConfig.from_env(),
            storage=StorageConfig.from_env(),
            schedule=ScheduleConfig.from_env()
        )

    def __post_init__(self):
        """Validate configuration."""
        if self.retention_days < 0:
            raise ValueError(f"retention_days must be non-negative, got {self.retention_days}")
        if self.transfer_timeout <= 0:
            raise ValueError(f"transfer_timeout must be positive, got {self.transfer_timeout}")

    def to_dict(self) -> dict:
        """Convert config to a plain dictionary.

        Secrets are included as-is; callers that persist the result are
        expected to redact it first (see ``ConfigExporter``).
        """
        return {
            'environment': self.environment,
            'encryption_key': self.encryption_key,
            'retention_days': self.retention_days,
            'staging_dir': self.staging_dir,
            'uploads_dir': self.uploads_dir,
            'transfer_timeout': self.transfer_timeout,
            'database': {
                'uri': self.database.uri,
                'dump_command': self.database.dump_command,
                'restore_command': self.database.restore_command,
                'dump_timeout': self.database.dump_timeout,
            },
            'storage': {
                'object_store_backend': self.storage.object_store_backend,
                'bucket': self.storage.bucket,
                'region': self.storage.region,
                'endpoint_url': self.storage.endpoint_url,
                'server_side_encryption': self.storage.server_side_encryption,
                'storage_class': self.storage.storage_class,
                'catalog_backend': self.storage.catalog_backend,
                'redis_url': self.storage.redis_url,
                'redis_password': self.storage.redis_password,
            },
            'schedule': {
                'timezone': self.schedule.timezone,
                'daily_database': self.schedule.daily_database,
                'weekly_full': self.schedule.weekly_full,
                'monthly_full': self.schedule.monthly_full,
                'cleanup': self.schedule.cleanup,
            },
        }
