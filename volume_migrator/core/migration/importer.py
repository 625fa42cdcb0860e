"""Import of transferred archives into volumes on the remote host."""

import posixpath
from typing import Any

from paramiko.ssh_exception import SSHException

from ...constants import HELPER_BACKUP_MOUNT, HELPER_DATA_MOUNT
from ..exceptions import (
    InvalidVolumeNameError,
    RemoteCommandError,
    VolumeImportError,
    VolumeMigratorError,
)
from ..logging_config import component_logger
from ..remote_session import RemoteSession
from ..security.shell_safety import sanitize_remote_path, validate_identifier
from ..settings import settings


class VolumeImporter:
    """Creates a remote volume and populates it from an archive."""

    def __init__(
        self,
        session: RemoteSession,
        helper_image: str | None = None,
        logger: Any | None = None,
    ):
        self.session = session
        self.helper_image = helper_image or settings.helper_image
        self.logger = component_logger(logger, "volume_importer")

    def build_import_args(self, volume_name: str, remote_archive_path: str) -> list[str]:
        """Arguments of the ``docker run`` invocation unpacking the archive."""
        safe_path = sanitize_remote_path(remote_archive_path)
        archive_dir = posixpath.dirname(safe_path)
        archive_file = posixpath.basename(safe_path)
        return [
            "run",
            "--rm",
            "-v",
            f"{volume_name}:{HELPER_DATA_MOUNT}",
            "-v",
            f"{archive_dir}:{HELPER_BACKUP_MOUNT}",
            self.helper_image,
            "tar",
            "xzf",
            f"{HELPER_BACKUP_MOUNT}/{archive_file}",
            "-C",
            HELPER_DATA_MOUNT,
        ]

    async def import_volume(self, volume_name: str, remote_archive_path: str) -> None:
        """Create ``volume_name`` on the remote host and extract the archive into it.

        If extraction fails and this call created the volume, the volume is
        removed on a best-effort basis and the extraction error is raised. A
        volume that already existed is populated in place and never removed.

        Raises:
            InvalidVolumeNameError: If the name fails identifier validation
            VolumeImportError: If creating or populating the volume fails
        """
        if not validate_identifier(volume_name):
            raise InvalidVolumeNameError(volume_name)

        self.logger.debug("Importing volume on remote host", volume=volume_name)

        created = not await self.volume_exists(volume_name)
        if created:
            try:
                await self.session.run_managed_command("volume", "create", volume_name)
            except RemoteCommandError as e:
                raise VolumeImportError(
                    f"failed to create volume {volume_name} on remote: {e}"
                ) from e
        else:
            self.logger.warning(
                "Volume already exists on remote host, importing into it", volume=volume_name
            )

        try:
            await self.session.run_managed_command(
                *self.build_import_args(volume_name, remote_archive_path)
            )
        except RemoteCommandError as e:
            if created:
                await self._remove_volume(volume_name)
            raise VolumeImportError(f"failed to import data into volume {volume_name}: {e}") from e

        self.logger.info("Imported volume", volume=volume_name)

    async def _remove_volume(self, volume_name: str) -> None:
        try:
            await self.session.run_managed_command("volume", "rm", volume_name)
        except (VolumeMigratorError, SSHException, OSError) as e:
            self.logger.warning(
                "Failed to cleanup volume after import failure", volume=volume_name, error=str(e)
            )

    async def volume_exists(self, volume_name: str) -> bool:
        """Whether a volume with this name already exists on the remote host."""
        if not validate_identifier(volume_name):
            raise InvalidVolumeNameError(volume_name)
        try:
            output = await self.session.run_managed_command("volume", "inspect", volume_name)
        except RemoteCommandError:
            return False
        return bool(output.strip())
