"""Uploaded-files backup/restore exporter."""

import shutil
from pathlib import Path
from typing import Dict, Optional

from .._utils import logger, utc_now


class FilesExporter:
    """Export and restore the uploads directory."""

    def __init__(self, uploads_dir: str):
        """Initialize exporter.

        Args:
            uploads_dir: Directory holding user-uploaded files
        """
        self.uploads_dir = Path(uploads_dir)

    async def export(self) -> Optional[Path]:
        """Resolve the directory to pack.

        The uploads directory is archived in place; nothing is copied.

        Returns:
            Path to the uploads directory, or None if it is absent or empty
        """
        if not self.uploads_dir.is_dir():
            logger.warning(f"Uploads directory not found: {self.uploads_dir}, files component will be empty")
            return None

        if not any(p.is_file() for p in self.uploads_dir.rglob("*")):
            logger.warning(f"Uploads directory is empty: {self.uploads_dir}, files component will be empty")
            return None

        return self.uploads_dir

    async def restore(self, extracted_dir: Path) -> None:
        """Replace the uploads directory with restored content.

        The new tree is staged beside the live directory and swapped in by
        rename, so the live directory is never left half-written.

        Args:
            extracted_dir: Directory produced by extracting the files archive
        """
        if not extracted_dir.is_dir():
            raise FileNotFoundError(f"Extracted files directory not found: {extracted_dir}")

        target = self.uploads_dir
        target.parent.mkdir(parents=True, exist_ok=True)

        stamp = f"{utc_now():%Y%m%d%H%M%S%f}"
        incoming = target.with_name(f"{target.name}.restoring-{stamp}")
        previous = target.with_name(f"{target.name}.replaced-{stamp}")

        # Staging may live on another filesystem; move into place first
        shutil.move(str(extracted_dir), str(incoming))
        try:
            if target.exists():
                target.rename(previous)
            incoming.rename(target)
        except OSError:
            if previous.exists() and not target.exists():
                previous.rename(target)
            shutil.rmtree(incoming, ignore_errors=True)
            raise

        if previous.exists():
            shutil.rmtree(previous, ignore_errors=True)

        logger.info(f"Uploads directory restored: {target}")

    def get_statistics(self, source_dir: Optional[Path] = None) -> Dict[str, int]:
        """Count files and bytes under the uploads directory.

        Returns:
            Dictionary with file count and total size
        """
        root = source_dir or self.uploads_dir
        if not root.is_dir():
            return {"files": 0, "bytes": 0}

        files = [p for p in root.rglob("*") if p.is_file()]
        return {
            "files": len(files),
            "bytes": sum(p.stat().st_size for p in files),
        }
