"""Disk space measurement and validation for staging locations."""

import os
import posixpath
import shutil
from dataclasses import dataclass

from ..constants import SPACE_BUFFER_PERCENT
from .exceptions import DiskSpaceCheckError, DiskSpaceError, RemoteCommandError
from .remote_session import RemoteSession
from .security.shell_safety import RemoteCommand, sanitize_remote_path


@dataclass(frozen=True)
class DiskSpaceInfo:
    """Capacity figures of a filesystem, in bytes."""

    total: int
    available: int
    used: int


def required_space(size_bytes: int) -> int:
    """Space needed to stage ``size_bytes`` of volume data.

    Assumes no compression and adds a flat buffer, using integer arithmetic
    so the result is exact:

        >>> required_space(1_000_000)
        1100000
    """
    return size_bytes * (100 + SPACE_BUFFER_PERCENT) // 100


def _existing_ancestor(path: str) -> str:
    current = os.path.abspath(path)
    while not os.path.exists(current):
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    return current


def local_disk_space(path: str) -> DiskSpaceInfo:
    """Measure the filesystem holding ``path`` (or its nearest existing ancestor).

    Raises:
        DiskSpaceCheckError: If the filesystem cannot be queried
    """
    probe_path = _existing_ancestor(path)
    try:
        usage = shutil.disk_usage(probe_path)
    except OSError as e:
        raise DiskSpaceCheckError(f"failed to get disk space for {probe_path}: {e}") from e
    return DiskSpaceInfo(total=usage.total, available=usage.free, used=usage.used)


def parse_df_output(output: str) -> DiskSpaceInfo:
    """Parse POSIX ``df -Pk`` output into byte counts.

    Raises:
        DiskSpaceCheckError: If the output does not have the expected shape
    """
    lines = output.strip().splitlines()
    if len(lines) < 2:
        raise DiskSpaceCheckError(f"unexpected df output: {output!r}")

    fields = lines[1].split()
    if len(fields) < 4:
        raise DiskSpaceCheckError(f"unexpected df output format: {lines[1]!r}")

    try:
        total_kb, used_kb, available_kb = (int(value) for value in fields[1:4])
    except ValueError as e:
        raise DiskSpaceCheckError(f"failed to parse df output: {e}") from e

    return DiskSpaceInfo(
        total=total_kb * 1024,
        available=available_kb * 1024,
        used=used_kb * 1024,
    )


async def remote_disk_space(session: RemoteSession, path: str) -> DiskSpaceInfo:
    """Measure the remote filesystem holding ``path``.

    Raises:
        DiskSpaceCheckError: If ``df`` fails or its output cannot be parsed
    """
    safe_path = sanitize_remote_path(path)
    try:
        output = await session.run_command(RemoteCommand("df", "-Pk", safe_path))
    except RemoteCommandError as e:
        raise DiskSpaceCheckError(f"failed to get remote disk space: {e}") from e
    return parse_df_output(output)


def staging_parent(remote_staging_dir: str) -> str:
    """Existing directory to measure for a not-yet-created remote staging dir."""
    return posixpath.dirname(sanitize_remote_path(remote_staging_dir).rstrip("/")) or "/"


def validate_disk_space(location: str, required: int, available: int) -> None:
    """Raise DiskSpaceError when ``available`` is below ``required``."""
    if available < required:
        raise DiskSpaceError(location, required, available)
