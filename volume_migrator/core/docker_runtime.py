"""Local container runtime adapter driven through the docker CLI."""

import json
from typing import Any

from ..constants import UNKNOWN_MOUNT_PATH, UNKNOWN_SIZE
from ..models.volume import Volume
from ..utils import parse_size_to_bytes
from .exceptions import (
    ContainerNotFoundError,
    LocalCommandError,
    VolumeMigratorError,
    VolumeNotFoundError,
)
from .logging_config import component_logger
from .privilege import PrivilegeDetector
from .settings import settings
from .subprocess_manager import SubprocessManager, SubprocessResult

_CONTAINER_MISSING_MARKERS = ("No such object", "No such container")


class DockerRuntime:
    """Volume and container introspection on the local host.

    Every docker invocation goes through the local PrivilegeDetector, so
    :meth:`initialize` must complete before any other call.
    """

    def __init__(
        self,
        subprocess_manager: SubprocessManager | None = None,
        privilege: PrivilegeDetector | None = None,
        logger: Any | None = None,
    ):
        self.logger = component_logger(logger, "docker_runtime")
        self.subprocess = subprocess_manager or SubprocessManager(logger=logger)
        self.privilege = privilege or PrivilegeDetector(
            probe=self._probe, context="local", logger=logger
        )

    async def _probe(self, args: list[str]) -> bool:
        return await self.subprocess.succeeds(args, timeout=settings.probe_timeout)

    async def initialize(self) -> None:
        """Detect whether local docker commands need elevation.

        Raises:
            PrivilegeDetectionError: If docker is not accessible at all
        """
        await self.privilege.detect()

    @property
    def requires_elevation(self) -> bool:
        return self.privilege.required

    async def exec(self, *args: str) -> str:
        """Run a docker subcommand and return its standard output.

        Raises:
            LocalCommandError: If the command exits non-zero
        """
        result = await self._run(*args)
        result.check_returncode()
        return result.stdout

    async def _run(self, *args: str) -> SubprocessResult:
        return await self.subprocess.run_command(self.privilege.managed(*args), check=False)

    async def inspect_container(self, name: str) -> dict[str, Any]:
        """Return the inspect document of a container.

        Raises:
            ContainerNotFoundError: If the container does not exist
            VolumeMigratorError: If inspect fails or returns unparseable output
        """
        result = await self._run("inspect", name)
        if not result.success:
            if any(marker in result.stderr for marker in _CONTAINER_MISSING_MARKERS):
                raise ContainerNotFoundError(f"container not found: {name}")
            raise VolumeMigratorError(
                f"failed to inspect container {name}: {result.stderr.strip()}"
            )

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise VolumeMigratorError(f"failed to parse inspect output for {name}: {e}") from e

        if not data:
            raise ContainerNotFoundError(f"container not found: {name}")
        return data[0]

    @staticmethod
    def _named_volume_mounts(info: dict[str, Any]) -> list[dict[str, Any]]:
        return [
            mount
            for mount in info.get("Mounts") or []
            if mount.get("Type") == "volume" and mount.get("Name")
        ]

    async def list_volumes(self, container: str) -> list[str]:
        """Names of the named volumes mounted by ``container``; bind mounts are skipped."""
        info = await self.inspect_container(container)
        return [mount["Name"] for mount in self._named_volume_mounts(info)]

    async def mount_path_of(self, container: str, volume: str) -> str:
        """Destination path of ``volume`` inside ``container``.

        Raises:
            VolumeNotFoundError: If the container does not mount the volume
        """
        info = await self.inspect_container(container)
        for mount in self._named_volume_mounts(info):
            if mount["Name"] == volume:
                return mount.get("Destination", "")
        raise VolumeNotFoundError(volume, f"not mounted by container {container}")

    async def size_of(self, volume: str) -> tuple[str, int]:
        """Size of ``volume`` as reported by ``docker system df -v``.

        Volumes missing from the report are returned as ``("0B", 0)``.
        """
        output = await self.exec("system", "df", "-v")

        in_volumes = False
        for line in output.splitlines():
            if "VOLUME NAME" in line:
                in_volumes = True
                continue
            if not in_volumes:
                continue
            if not line.strip():
                # Blank line ends the volumes section
                break

            fields = line.split()
            if len(fields) >= 3 and fields[0] == volume:
                return fields[2], parse_size_to_bytes(fields[2])

        return "0B", 0

    async def volume_exists(self, volume: str) -> bool:
        """Whether a local volume with this name exists."""
        result = await self._run("volume", "inspect", volume)
        if result.success:
            return True
        if "No such volume" in result.stderr:
            return False
        raise LocalCommandError(
            f"docker volume inspect {volume}", result.returncode, result.stderr
        )

    async def discover_volumes(self, containers: list[str]) -> list[Volume]:
        """Collect the named volumes of ``containers``, deduplicated by name.

        The first container referencing a volume is recorded as its owner.
        Mount path and size lookups degrade to placeholders instead of failing.

        Raises:
            ContainerNotFoundError: If a container does not exist
        """
        volumes: dict[str, Volume] = {}

        for container in containers:
            names = await self.list_volumes(container)
            self.logger.debug("Listed container volumes", container=container, volumes=names)

            for name in names:
                if name in volumes:
                    continue

                try:
                    mount_path = await self.mount_path_of(container, name)
                except VolumeMigratorError as e:
                    self.logger.debug("Mount path lookup failed", volume=name, error=str(e))
                    mount_path = UNKNOWN_MOUNT_PATH

                try:
                    size, size_bytes = await self.size_of(name)
                except VolumeMigratorError as e:
                    self.logger.debug("Size lookup failed", volume=name, error=str(e))
                    size, size_bytes = UNKNOWN_SIZE, 0

                volumes[name] = Volume(
                    name=name,
                    container=container,
                    mount_path=mount_path,
                    size=size,
                    size_bytes=size_bytes,
                )

        self.logger.info("Discovered volumes", count=len(volumes), containers=containers)
        return list(volumes.values())
