"""
Archivers for the backup source directory.

Both produce a gzip compressed tar rooted at the directory's own name:
- TarCommandArchiver: runs the external `tar` binary
- TarfileArchiver: builds the same archive in-process with tarfile
"""

import os
import logging
import subprocess
import tarfile
from datetime import datetime
from typing import Optional

from sshbackup.exceptions import ArchiveError, NotFoundError


logger = logging.getLogger(__name__)

ARCHIVE_EXTENSION = 'tar.gz'


def generate_archive_filename(source_dir: str, now: Optional[datetime] = None) -> str:
    """
    Generate a timestamped archive filename.

    Format: {source_name}_backup_{YYYYMMDD_HHMMSS}.tar.gz

    Args:
        source_dir: Directory being archived
        now: Timestamp to embed (default: current local time)

    Returns:
        Filename (without path)
    """
    timestamp = (now or datetime.now()).strftime('%Y%m%d_%H%M%S')

    # ".ssh" becomes "ssh"; anything else unsafe becomes "_"
    name = os.path.basename(os.path.normpath(source_dir)).lstrip('.') or 'source'
    safe_name = "".join(
        c if c.isalnum() or c in ('-', '_') else '_'
        for c in name
    )

    return f"{safe_name}_backup_{timestamp}.{ARCHIVE_EXTENSION}"


def get_archive_size(archive_path: str) -> int:
    """
    Get the size of an archive file in bytes.

    Raises:
        ArchiveError: If file doesn't exist or cannot be accessed
    """
    try:
        return os.path.getsize(archive_path)
    except FileNotFoundError:
        raise ArchiveError(f"Archive not found: {archive_path}")
    except OSError as e:
        raise ArchiveError(f"Failed to get archive size: {e}")


def _remove_partial(path: str):
    if os.path.exists(path):
        try:
            os.remove(path)
        except OSError as e:
            logger.warning(f"Failed to remove partial archive {path}: {e}")


class Archiver:
    """
    Base archiver.

    Subclasses implement _write_archive(); create() handles validation,
    naming and removal of partial output.
    """

    def create(self, source_dir: str, temp_dir: str) -> str:
        """
        Archive source_dir into a new file in temp_dir.

        Args:
            source_dir: Directory to archive
            temp_dir: Directory where the archive is written

        Returns:
            Full path to the created archive file

        Raises:
            NotFoundError: If source_dir does not exist
            ArchiveError: If archive creation fails
        """
        source_dir = os.path.normpath(os.path.abspath(source_dir))
        if not os.path.isdir(source_dir):
            raise NotFoundError(f"The source directory does not exist at {source_dir}")

        archive_path = os.path.join(temp_dir, generate_archive_filename(source_dir))

        # Partial archive is removed on every exit before the caller owns it
        try:
            try:
                self._write_archive(source_dir, archive_path)
            except (OSError, tarfile.TarError) as e:
                raise ArchiveError(f"Failed to create archive: {e}") from e
            size_bytes = get_archive_size(archive_path)
        except BaseException:
            _remove_partial(archive_path)
            raise

        logger.info(f"Archive created: {os.path.basename(archive_path)} ({size_bytes} bytes)")
        return archive_path

    def _write_archive(self, source_dir: str, archive_path: str):
        raise NotImplementedError


class TarCommandArchiver(Archiver):
    """Archives with `tar -czf <dest> -C <parent> <name>`."""

    def __init__(self, tar_binary: str = 'tar'):
        self.tar_binary = tar_binary

    def _write_archive(self, source_dir: str, archive_path: str):
        command = [
            self.tar_binary, '-czf', archive_path,
            '-C', os.path.dirname(source_dir), os.path.basename(source_dir)
        ]
        logger.debug(f"Running: {' '.join(command)}")

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                errors='replace',
                check=False
            )
        except FileNotFoundError as e:
            raise ArchiveError(f"Archive tool not found: {self.tar_binary}") from e

        if result.returncode != 0:
            detail = result.stderr.strip() or f"exit status {result.returncode}"
            raise ArchiveError(f"Failed to create archive: {detail}")


class TarfileArchiver(Archiver):
    """Archives with the tarfile module."""

    def _write_archive(self, source_dir: str, archive_path: str):
        with tarfile.open(archive_path, 'w:gz') as tar:
            # Add with just the basename as arcname so paths stay relative
            tar.add(source_dir, arcname=os.path.basename(source_dir), recursive=True)


ARCHIVERS = {
    'tar': TarCommandArchiver,
    'tarfile': TarfileArchiver,
}


def create_archiver(name: str) -> Archiver:
    """
    Factory for archivers by configuration name.

    Raises:
        ValueError: If name is not a known archiver
    """
    if name not in ARCHIVERS:
        raise ValueError(f"Invalid archiver: {name}. Valid options: {list(ARCHIVERS.keys())}")
    return ARCHIVERS[name]()
