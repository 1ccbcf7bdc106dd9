"""MongoDB dump/restore exporter using the mongodump/mongorestore tools."""

import asyncio
import re
from pathlib import Path
from typing import Dict, List

from .._utils import logger
from ..config import DatabaseConfig

_STDERR_TAIL = 2000


def _mask_uri(text: str) -> str:
    """Hide credentials embedded in connection strings."""
    return re.sub(r"(mongodb(?:\+srv)?://[^:/@\s]+):[^@\s]+@", r"\1:***@", text)


class MongoExporter:
    """Export and restore the primary datastore with the MongoDB database tools.

    The dump format itself belongs to the tools; this class only invokes
    them and reports what they produced.
    """

    def __init__(self, config: DatabaseConfig):
        """Initialize exporter.

        Args:
            config: Database connection and tool configuration
        """
        self.config = config

    async def export(self, output_dir: Path) -> Path:
        """Dump the database into ``output_dir``.

        Args:
            output_dir: Directory the dump tool writes into

        Returns:
            Path to the dump directory
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        await self._run([
            self.config.dump_command,
            f"--uri={self.config.uri}",
            f"--out={output_dir}",
        ])
        logger.info(f"Database dump complete: {output_dir}")
        return output_dir

    async def restore(self, dump_dir: Path) -> None:
        """Restore the database from a dump directory.

        Existing collections are dropped before import. This replaces live
        data and cannot be undone.

        Args:
            dump_dir: Directory produced by ``export``
        """
        if not dump_dir.is_dir():
            raise FileNotFoundError(f"Dump directory not found: {dump_dir}")

        await self._run([
            self.config.restore_command,
            f"--uri={self.config.uri}",
            "--drop",
            str(dump_dir),
        ])
        logger.info(f"Database restore complete from: {dump_dir}")

    def get_statistics(self, dump_dir: Path) -> Dict[str, int]:
        """Count dumped collections and bytes.

        Returns:
            Dictionary with collection count and dump size
        """
        collections = list(dump_dir.rglob("*.bson"))
        dump_bytes = sum(p.stat().st_size for p in dump_dir.rglob("*") if p.is_file())
        return {
            "collections": len(collections),
            "dump_bytes": dump_bytes,
        }

    async def _run(self, args: List[str]) -> None:
        logger.debug(f"Running: {_mask_uri(' '.join(args))}")

        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            # Timeouts arrive here too (asyncio.wait_for cancels the awaiting task)
            process.kill()
            await process.wait()
            logger.warning(f"{args[0]} was cancelled and killed")
            raise

        if process.returncode != 0:
            tail = _mask_uri(stderr.decode("utf-8", errors="replace")[-_STDERR_TAIL:])
            raise RuntimeError(f"{args[0]} exited with code {process.returncode}: {tail.strip()}")
