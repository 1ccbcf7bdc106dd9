"""Configuration snapshot exporter."""

import json
import os
import re
from pathlib import Path
from typing import Any, Callable, Dict

from .._utils import logger, utc_now

REDACTED = "***REDACTED***"

_SECRET_KEY_PATTERN = re.compile(r"secret|password|passwd|token|credential|(^|_)key$|api_key", re.IGNORECASE)
_URL_CREDENTIALS_PATTERN = re.compile(r"(?P<scheme>[a-zA-Z][a-zA-Z0-9+.-]*://)(?P<user>[^:/@\s]*):[^@\s]*@")


def redact_settings(value: Any, key: str = "") -> Any:
    """Return a copy of ``value`` with secrets masked.

    Values under secret-looking keys are replaced entirely; credentials
    embedded in connection URLs are masked in any string.
    """
    if isinstance(value, dict):
        return {k: redact_settings(v, str(k)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact_settings(v) for v in value]
    if key and _SECRET_KEY_PATTERN.search(key) and value not in (None, ""):
        return REDACTED
    if isinstance(value, str):
        return _URL_CREDENTIALS_PATTERN.sub(rf"\g<scheme>\g<user>:{REDACTED}@", value)
    return value


class ConfigExporter:
    """Serialize and restore a redacted snapshot of operational settings."""

    def __init__(
        self,
        settings_provider: Callable[[], Dict[str, Any]],
        environment: str,
        version: str,
        restore_dir: str,
    ):
        """Initialize exporter.

        Args:
            settings_provider: Callable returning the current settings tree
            environment: Deployment environment name recorded in the snapshot
            version: Application version recorded in the snapshot
            restore_dir: Directory restored snapshots are written to for review
        """
        self.settings_provider = settings_provider
        self.environment = environment
        self.version = version
        self.restore_dir = Path(restore_dir)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "environment": self.environment,
            "timestamp": utc_now().isoformat(),
            "version": self.version,
            "settings": redact_settings(self.settings_provider()),
        }

    async def export(self, output_path: Path) -> Path:
        """Write the redacted snapshot as JSON.

        Args:
            output_path: File to write

        Returns:
            Path to the snapshot file
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(self.snapshot(), f, indent=2, sort_keys=True, default=str)

        logger.info(f"Configuration snapshot written: {output_path}")
        return output_path

    async def restore(self, snapshot_path: Path, name: str) -> Path:
        """Place a restored snapshot where operators can review it.

        Secrets were never captured, so the snapshot is not applied to the
        running process.

        Args:
            snapshot_path: Decrypted snapshot file
            name: Backup name used to label the restored file

        Returns:
            Path to the restored snapshot
        """
        with open(snapshot_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        self.restore_dir.mkdir(parents=True, exist_ok=True)
        target = self.restore_dir / f"{name}-config.json"
        tmp_path = target.with_name(target.name + ".partial")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        os.replace(tmp_path, target)

        logger.info(f"Configuration snapshot restored for review: {target}")
        return target
