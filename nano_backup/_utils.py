import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Union

logger = logging.getLogger("nano-backup")

ENCRYPTED_SUFFIX = ".enc"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_backup_name(prefix: str, schedule_class: str, now: Optional[datetime] = None) -> str:
    """Generate a human-readable, timestamp-derived run name.

    Args:
        prefix: Run prefix, e.g. ``db-backup`` or ``full-backup``
        schedule_class: Cadence label of the run
        now: Timestamp to derive the name from (defaults to current UTC time)

    Returns:
        Name in format: <prefix>-<schedule>-YYYY-MM-DDTHH-MM-SS-mmmZ
    """
    now = now or utc_now()
    millis = now.microsecond // 1000
    return f"{prefix}-{schedule_class}-{now:%Y-%m-%dT%H-%M-%S}-{millis:03d}Z"


def build_remote_key(component: str, schedule_class: str, artifact_name: str) -> str:
    """Build the object-store key for an artifact.

    Keys follow ``<component>/<schedule>/<artifact_name>.enc`` where
    ``artifact_name`` already carries its format extension.
    """
    return f"{component}/{schedule_class}/{artifact_name}{ENCRYPTED_SUFFIX}"


def remove_paths(paths: Iterable[Union[str, Path]]) -> None:
    """Remove local files or directories, logging (not raising) failures."""
    for path in paths:
        path = Path(path)
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            elif path.exists() or path.is_symlink():
                path.unlink()
        except OSError as e:
            logger.error(f"Failed to cleanup local path {path}: {e}")
