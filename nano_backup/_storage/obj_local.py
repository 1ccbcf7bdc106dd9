"""Directory-backed object store for single-node deployments and tests."""

import os
import shutil
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional

from .._utils import logger
from ..errors import ObjectNotFoundError
from ..models import DeleteResult, ObjectEntry
from .base import BaseObjectStore


class LocalObjectStore(BaseObjectStore):
    """Stores each object as a file under ``root``, keyed by relative path."""

    def __init__(self, root: str):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        parts = PurePosixPath(key).parts
        if not parts or key.startswith("/") or ".." in parts:
            raise ValueError(f"Invalid object key: {key!r}")
        return self.root.joinpath(*parts)

    async def put(
        self,
        key: str,
        source_path: Path,
        *,
        server_side_encryption: Optional[str] = None,
        storage_class: Optional[str] = None,
    ) -> None:
        target = self._path(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(target.name + ".partial")
        try:
            shutil.copyfile(source_path, partial)
            os.replace(partial, target)
        except BaseException:
            partial.unlink(missing_ok=True)
            raise
        logger.debug(f"Stored object {key} ({target.stat().st_size:,} bytes)")

    async def get(self, key: str, dest_path: Path) -> int:
        source = self._path(key)
        if not source.is_file():
            raise ObjectNotFoundError(key)
        shutil.copyfile(source, dest_path)
        return Path(dest_path).stat().st_size

    async def list(self, prefix: str = "") -> List[ObjectEntry]:
        entries = []
        for path in sorted(self.root.rglob("*")):
            if not path.is_file() or path.name.endswith(".partial"):
                continue
            key = path.relative_to(self.root).as_posix()
            if not key.startswith(prefix):
                continue
            stat = path.stat()
            entries.append(ObjectEntry(
                key=key,
                size=stat.st_size,
                last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            ))
        return entries

    async def delete_many(self, keys: Iterable[str]) -> DeleteResult:
        result = DeleteResult()
        for key in keys:
            try:
                self._path(key).unlink(missing_ok=True)
                result.deleted.append(key)
            except (OSError, ValueError) as e:
                result.failed[key] = str(e)
        return result

    async def exists(self, key: str) -> bool:
        return self._path(key).is_file()
