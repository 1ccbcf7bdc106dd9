"""tar.gz packing and extraction for backup payloads."""

import os
import tarfile
from pathlib import Path, PurePosixPath
from typing import List

from ._utils import logger


def _relative_name(member_name: str) -> str:
    # PurePosixPath drops the leading "./" that arcname="." produces
    return PurePosixPath(member_name).as_posix()


def create_archive(source_dir: Path, output_path: Path) -> int:
    """Create tar.gz archive from directory.

    The archive is written under a ``.partial`` name and only renamed to
    ``output_path`` once complete, so an interrupted run never leaves a
    file that looks like a finished archive.

    Args:
        source_dir: Directory to archive
        output_path: Output archive path

    Returns:
        Size of created archive in bytes
    """
    source_dir = Path(source_dir)
    output_path = Path(output_path)
    if not source_dir.is_dir():
        raise NotADirectoryError(f"Archive source is not a directory: {source_dir}")

    logger.info(f"Creating archive: {output_path}")

    partial_path = output_path.with_name(output_path.name + ".partial")
    try:
        with tarfile.open(partial_path, "w:gz") as tar:
            tar.add(source_dir, arcname=".")
        os.replace(partial_path, output_path)
    except BaseException:
        partial_path.unlink(missing_ok=True)
        raise

    archive_size = output_path.stat().st_size
    logger.info(f"Archive created: {archive_size:,} bytes")

    return archive_size


def _check_member(member: tarfile.TarInfo, output_dir: Path) -> None:
    target = (output_dir / member.name).resolve()
    if target != output_dir and output_dir not in target.parents:
        raise ValueError(f"Archive member escapes extraction directory: {member.name}")
    if member.issym() or member.islnk():
        link_base = target.parent if member.issym() else output_dir
        link_target = (link_base / member.linkname).resolve()
        if link_target != output_dir and output_dir not in link_target.parents:
            raise ValueError(f"Archive link points outside extraction directory: {member.name}")
    if member.isdev():
        raise ValueError(f"Archive contains device file: {member.name}")


def extract_archive(archive_path: Path, output_dir: Path) -> List[str]:
    """Extract tar.gz archive to directory.

    Args:
        archive_path: Path to archive
        output_dir: Directory to extract to

    Returns:
        Relative paths of the extracted files

    Raises:
        ValueError: If a member would be written outside ``output_dir``
    """
    output_dir = Path(output_dir)
    logger.info(f"Extracting archive: {archive_path} to {output_dir}")

    output_dir.mkdir(parents=True, exist_ok=True)
    root = output_dir.resolve()

    with tarfile.open(archive_path, "r:gz") as tar:
        members = tar.getmembers()
        for member in members:
            _check_member(member, root)
        if hasattr(tarfile, "data_filter"):
            tar.extractall(root, members=members, filter="data")
        else:
            tar.extractall(root, members=members)

    files = sorted(_relative_name(m.name) for m in members if m.isfile())
    logger.info(f"Archive extracted successfully ({len(files)} files)")
    return files


def list_archive(archive_path: Path) -> List[str]:
    """List relative paths of the regular files in an archive."""
    with tarfile.open(archive_path, "r:gz") as tar:
        return sorted(_relative_name(m.name) for m in tar.getmembers() if m.isfile())
