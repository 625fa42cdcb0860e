"""Export of local volumes into compressed archives."""

import os
from typing import Any

from ...constants import ARCHIVE_SUFFIX, HELPER_BACKUP_MOUNT, HELPER_DATA_MOUNT
from ...models.volume import VolumeArchive
from ...utils import format_size
from ..docker_runtime import DockerRuntime
from ..exceptions import ExportError, InvalidVolumeNameError, LocalCommandError
from ..logging_config import component_logger
from ..security.shell_safety import validate_identifier
from ..settings import settings


def archive_name(volume_name: str) -> str:
    return f"{volume_name}{ARCHIVE_SUFFIX}"


class VolumeExporter:
    """Archives a volume with a throw-away helper container.

    The volume is mounted read-only so running containers keep working.
    """

    def __init__(
        self,
        runtime: DockerRuntime,
        helper_image: str | None = None,
        logger: Any | None = None,
    ):
        self.runtime = runtime
        self.helper_image = helper_image or settings.helper_image
        self.logger = component_logger(logger, "volume_exporter")

    def build_export_args(self, volume_name: str, output_dir: str) -> list[str]:
        """Arguments of the ``docker run`` invocation producing the archive."""
        return [
            "run",
            "--rm",
            "-v",
            f"{volume_name}:{HELPER_DATA_MOUNT}:ro",
            "-v",
            f"{output_dir}:{HELPER_BACKUP_MOUNT}",
            self.helper_image,
            "tar",
            "czf",
            f"{HELPER_BACKUP_MOUNT}/{archive_name(volume_name)}",
            "-C",
            HELPER_DATA_MOUNT,
            ".",
        ]

    async def export(self, volume_name: str, output_dir: str) -> VolumeArchive:
        """Export one volume to ``<output_dir>/<volume>.tar.gz``.

        Raises:
            InvalidVolumeNameError: If the name fails identifier validation
            ExportError: If the helper container fails or no archive appears
        """
        if not validate_identifier(volume_name):
            raise InvalidVolumeNameError(volume_name)

        output_dir = os.path.abspath(output_dir)
        archive_path = os.path.join(output_dir, archive_name(volume_name))
        self.logger.debug("Exporting volume", volume=volume_name, output_path=archive_path)

        try:
            os.makedirs(output_dir, mode=0o755, exist_ok=True)
        except OSError as e:
            raise ExportError(f"failed to create output directory {output_dir}: {e}") from e

        try:
            await self.runtime.exec(*self.build_export_args(volume_name, output_dir))
        except LocalCommandError as e:
            raise ExportError(f"failed to export volume {volume_name}: {e}") from e

        if not os.path.isfile(archive_path):
            raise ExportError(f"archive {archive_path} was not created")

        size_bytes = os.path.getsize(archive_path)
        self.logger.info(
            "Exported volume", volume=volume_name, archive=archive_path, size=format_size(size_bytes)
        )
        return VolumeArchive(volume_name=volume_name, local_path=archive_path, size_bytes=size_bytes)

    async def export_all(self, volume_names: list[str], output_dir: str) -> list[VolumeArchive]:
        """Export volumes one at a time, stopping at the first failure."""
        archives = []
        for volume_name in volume_names:
            archives.append(await self.export(volume_name, output_dir))
        return archives
