"""Removal of staging directories and archives."""

import os
import posixpath
import shutil
from typing import Any

from ...models.volume import VolumeArchive
from ..exceptions import VolumeMigratorError
from ..logging_config import component_logger
from ..remote_session import RemoteSession


def cleanup_local(staging_dir: str, logger: Any | None = None) -> None:
    """Remove the local staging directory and everything in it.

    Raises:
        VolumeMigratorError: If the directory exists but cannot be removed
    """
    component_logger(logger, "cleanup").debug("Cleaning up local staging directory", path=staging_dir)
    try:
        shutil.rmtree(staging_dir)
    except FileNotFoundError:
        return
    except OSError as e:
        raise VolumeMigratorError(f"failed to clean up local staging directory {staging_dir}: {e}") from e


async def cleanup_remote(session: RemoteSession, staging_dir: str, logger: Any | None = None) -> None:
    """Remove the remote staging directory.

    Raises:
        UnsafePathError: If the directory is a protected system path
        VolumeMigratorError: If removal fails
    """
    component_logger(logger, "cleanup").debug("Cleaning up remote staging directory", path=staging_dir)
    try:
        await session.remove_dir(staging_dir)
    except VolumeMigratorError as e:
        raise VolumeMigratorError(
            f"failed to clean up remote staging directory {staging_dir}: {e}"
        ) from e


def cleanup_archives(archives: list[VolumeArchive], logger: Any | None = None) -> None:
    """Remove the local archive files; already-missing files are ignored."""
    log = component_logger(logger, "cleanup")
    for archive in archives:
        log.debug("Removing archive", volume=archive.volume_name, path=archive.local_path)
        try:
            os.remove(archive.local_path)
        except FileNotFoundError:
            continue
        except OSError as e:
            raise VolumeMigratorError(
                f"failed to remove archive for volume {archive.volume_name}: {e}"
            ) from e


async def cleanup_remote_archives(
    session: RemoteSession,
    archives: list[VolumeArchive],
    remote_staging_dir: str,
    logger: Any | None = None,
) -> None:
    """Remove the transferred archive files from the remote staging directory."""
    log = component_logger(logger, "cleanup")
    for archive in archives:
        remote_path = archive.remote_path or posixpath.join(
            remote_staging_dir, os.path.basename(archive.local_path)
        )
        log.debug("Removing remote archive", volume=archive.volume_name, remote_path=remote_path)
        try:
            await session.remove_file(remote_path)
        except VolumeMigratorError as e:
            raise VolumeMigratorError(
                f"failed to remove remote archive for volume {archive.volume_name}: {e}"
            ) from e
