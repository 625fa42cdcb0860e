"""Volume migration orchestrator."""

import os
import posixpath
from collections.abc import Awaitable, Callable
from typing import Any

from ...models.enums import MigrationPhase, SessionState
from ...models.job import MigrationJob, MigrationResult
from ...models.volume import Volume
from ...ui.selector import ConsoleVolumeSelector, VolumeSelector
from ...utils import format_size
from ..disk_space import (
    local_disk_space,
    remote_disk_space,
    required_space,
    staging_parent,
    validate_disk_space,
)
from ..docker_runtime import DockerRuntime
from ..exceptions import DiskSpaceCheckError, SelectionCancelledError, VolumeMigratorError
from ..logging_config import component_logger
from ..remote_session import RemoteSession
from ..security.host_trust import HostTrustStore
from ..security.shell_safety import sanitize_remote_path
from ..transfer.base import BaseTransfer
from ..transfer.sftp import SFTPTransfer
from .cleanup import cleanup_archives, cleanup_local, cleanup_remote, cleanup_remote_archives
from .export import VolumeExporter
from .importer import VolumeImporter

SessionFactory = Callable[[], Awaitable[RemoteSession]]
TransferFactory = Callable[[RemoteSession], BaseTransfer]
ImporterFactory = Callable[[RemoteSession], VolumeImporter]


class MigrationOrchestrator:
    """Runs one migration job through its phases.

    Phases run strictly in order: init, discover, select, validate space,
    export, transfer, import. Cleanup is a finalizer that runs on every exit
    path, including cancellation; its failures are reported alongside the
    primary error and never replace it.
    """

    def __init__(
        self,
        job: MigrationJob,
        runtime: DockerRuntime | None = None,
        selector: VolumeSelector | None = None,
        trust_store: HostTrustStore | None = None,
        session_factory: SessionFactory | None = None,
        exporter: VolumeExporter | None = None,
        transfer_factory: TransferFactory | None = None,
        importer_factory: ImporterFactory | None = None,
        logger: Any | None = None,
    ):
        self.job = job
        self._base_logger = logger
        self.logger = component_logger(logger, "migration_orchestrator")
        self.runtime = runtime or DockerRuntime(logger=logger)

        self.selector = selector or ConsoleVolumeSelector()

        self._trust_store = trust_store
        self._session_factory = session_factory or self._open_session
        self.exporter = exporter or VolumeExporter(self.runtime, logger=logger)
        self._transfer_factory = transfer_factory or (
            lambda session: SFTPTransfer(session, logger=logger)
        )
        self._importer_factory = importer_factory or (
            lambda session: VolumeImporter(session, logger=logger)
        )

        self.session: RemoteSession | None = None

    async def _open_session(self) -> RemoteSession:
        trust_store = self._trust_store or HostTrustStore(logger=self._base_logger)
        return await RemoteSession.open(self.job.target, trust_store, logger=self._base_logger)

    def _enter(self, phase: MigrationPhase) -> None:
        self.job.phase = phase
        self.logger.debug("Entering phase", phase=phase.value)

    async def run(self) -> MigrationResult:
        """Run the job and report its outcome.

        Raises:
            VolumeMigratorError: The first fatal error of any phase, with
                cleanup failures attached as notes
        """
        result = MigrationResult(
            success=False, dry_run=self.job.flags.dry_run, phase_reached=MigrationPhase.INIT
        )
        primary: BaseException | None = None

        try:
            await self._run_phases(result)
        except BaseException as e:
            primary = e
            raise
        finally:
            result.phase_reached = self.job.phase
            await self._finalize(result, primary)

        return result

    async def _run_phases(self, result: MigrationResult) -> None:
        self._enter(MigrationPhase.INIT)
        await self._initialize()

        self._enter(MigrationPhase.DISCOVER)
        self.job.discovered = await self.runtime.discover_volumes(self.job.containers)
        if not self.job.discovered:
            self.logger.warning("No volumes found to migrate", containers=self.job.containers)
            result.success = True
            result.message = "No volumes found to migrate"
            return

        self._enter(MigrationPhase.SELECT)
        self.job.selected = await self._select(self.job.discovered)
        result.volumes = [volume.name for volume in self.job.selected]

        self._enter(MigrationPhase.VALIDATE_SPACE)
        await self._validate_space(result)

        if self.job.flags.dry_run:
            self.logger.info(
                "Dry run mode: no actual migration will be performed",
                volume_count=len(self.job.selected),
            )
            result.success = True
            result.message = f"Dry run complete: {len(self.job.selected)} volume(s) would be migrated"
            return

        self._enter(MigrationPhase.EXPORT)
        await self._export()

        self._enter(MigrationPhase.TRANSFER)
        await self._transfer()

        self._enter(MigrationPhase.IMPORT)
        await self._import()

        result.success = True
        result.message = (
            f"Migrated {len(self.job.imported)} volume(s) to {self.job.target.host}"
        )
        self.logger.info(
            "Migration completed successfully",
            volumes=len(self.job.imported),
            remote_host=str(self.job.target),
        )

    async def _initialize(self) -> None:
        await self.runtime.initialize()
        self.logger.debug(
            "Local privilege detection complete",
            requires_elevation=self.runtime.requires_elevation,
        )

        self.session = await self._session_factory()
        self.logger.debug(
            "Remote privilege detection complete",
            requires_elevation=self.session.privilege.required,
        )

    async def _select(self, discovered: list[Volume]) -> list[Volume]:
        if not self.job.flags.interactive:
            self.selector.display(discovered)
            return list(discovered)

        selected = await self.selector.select(discovered)
        if not selected:
            raise SelectionCancelledError("no volumes selected")
        return selected

    async def _validate_space(self, result: MigrationResult) -> None:
        total = self.job.selected_bytes
        required = required_space(total)
        result.required_bytes = required

        if self.job.flags.force:
            self.logger.warning("Skipping disk space validation (--force enabled)")
            return

        self.logger.debug(
            "Calculated space requirements",
            total_volume_size=format_size(total),
            estimated_archive=format_size(required),
        )

        try:
            local = local_disk_space(self.job.local_staging_dir)
        except DiskSpaceCheckError as e:
            self._warn(result, f"Could not check local disk space: {e}")
        else:
            self._check_space("local", required, local.available)

        try:
            remote = await remote_disk_space(
                self.session, staging_parent(self.job.remote_staging_dir)
            )
        except DiskSpaceCheckError as e:
            self._warn(result, f"Could not check remote disk space: {e}")
        else:
            self._check_space("remote", required, remote.available)

    def _check_space(self, location: str, required: int, available: int) -> None:
        self.logger.debug(
            "Disk space check",
            location=location,
            available=format_size(available),
            required=format_size(required),
        )
        try:
            validate_disk_space(location, required, available)
        except VolumeMigratorError as e:
            e.add_note("use --force to override")
            raise

    def _warn(self, result: MigrationResult, message: str) -> None:
        self.logger.warning(message)
        result.warnings.append(message)

    async def _export(self) -> None:
        staging_dir = self.job.local_staging_dir
        if not os.path.isdir(staging_dir):
            try:
                os.makedirs(staging_dir, mode=0o755)
            except OSError as e:
                raise VolumeMigratorError(
                    f"failed to create local staging directory {staging_dir}: {e}"
                ) from e
            self.job.local_staging_created = True

        for volume in self.job.selected:
            self.job.archives.append(await self.exporter.export(volume.name, staging_dir))

    async def _transfer(self) -> None:
        remote_dir = sanitize_remote_path(self.job.remote_staging_dir)
        if not await self.session.dir_exists(remote_dir):
            await self.session.create_dir(remote_dir)
            self.job.remote_staging_created = True

        transfer = self._transfer_factory(self.session)
        for archive in self.job.archives:
            remote_path = posixpath.join(remote_dir, os.path.basename(archive.local_path))
            self.logger.info(
                "Transferring archive",
                volume=archive.volume_name,
                size=format_size(archive.size_bytes),
                method=transfer.get_transfer_type(),
            )
            await transfer.send(archive.local_path, remote_path, self.job.flags.show_progress)
            archive.remote_path = remote_path

    async def _import(self) -> None:
        importer = self._importer_factory(self.session)
        for archive in self.job.archives:
            await importer.import_volume(archive.volume_name, archive.remote_path)
            self.job.imported.append(archive.volume_name)

    async def _finalize(self, result: MigrationResult, primary: BaseException | None) -> None:
        """Remove staging artifacts and close the session.

        Failures are recorded on ``result`` and attached to ``primary`` as
        notes; they are never raised.
        """
        try:
            if self.job.flags.keep_staging:
                if self.job.archives:
                    self.logger.info(
                        "Keeping staging directories",
                        local=self.job.local_staging_dir,
                        remote=self.job.remote_staging_dir,
                    )
            else:
                self._enter(MigrationPhase.CLEANUP)
                await self._cleanup(result)
        finally:
            if self.session is not None:
                self.session.close()

        if primary is not None:
            for error in result.cleanup_errors:
                primary.add_note(f"cleanup failed: {error}")

    async def _cleanup(self, result: MigrationResult) -> None:
        def record(error: Exception) -> None:
            message = str(error) or type(error).__name__
            self.logger.error("Cleanup step failed", error=message)
            result.cleanup_errors.append(message)

        try:
            if self.job.local_staging_created:
                cleanup_local(self.job.local_staging_dir, logger=self._base_logger)
            elif self.job.archives:
                cleanup_archives(self.job.archives, logger=self._base_logger)
        except Exception as e:
            record(e)

        session = self.session
        if session is None or session.state is not SessionState.CONNECTED:
            return

        try:
            if self.job.remote_staging_created:
                await cleanup_remote(session, self.job.remote_staging_dir, logger=self._base_logger)
            else:
                transferred = [archive for archive in self.job.archives if archive.remote_path]
                if transferred:
                    await cleanup_remote_archives(
                        session,
                        transferred,
                        self.job.remote_staging_dir,
                        logger=self._base_logger,
                    )
        except Exception as e:
            record(e)
