"""Tests for the migration orchestrator phase sequencing and cleanup."""

import asyncio
import os
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from paramiko.ssh_exception import SSHException

from volume_migrator.core.disk_space import DiskSpaceInfo
from volume_migrator.core.exceptions import (
    DiskSpaceCheckError,
    DiskSpaceError,
    ExportError,
    PrivilegeDetectionError,
    SelectionCancelledError,
    VolumeImportError,
    VolumeMigratorError,
)
from volume_migrator.core.migration.orchestrator import MigrationOrchestrator
from volume_migrator.core.security.shell_safety import RemoteCommand
from volume_migrator.models import MigrationPhase, VolumeArchive

PLENTY = DiskSpaceInfo(total=10**15, available=10**14, used=0)


@pytest.fixture(autouse=True)
def local_space():
    with patch(
        "volume_migrator.core.migration.orchestrator.local_disk_space", return_value=PLENTY
    ) as measured:
        yield measured


@pytest.fixture
def volumes(make_volume):
    return [make_volume("shared", "web", 1000), make_volume("web-data", "web", 2000)]


@pytest.fixture
def runtime(volumes):
    runtime = MagicMock()
    runtime.initialize = AsyncMock()
    runtime.requires_elevation = False
    runtime.discover_volumes = AsyncMock(return_value=volumes)
    return runtime


@pytest.fixture
def exporter():
    async def export(volume_name, output_dir):
        path = Path(output_dir) / f"{volume_name}.tar.gz"
        path.write_bytes(b"archive")
        return VolumeArchive(volume_name=volume_name, local_path=str(path), size_bytes=7)

    exporter = MagicMock()
    exporter.export = AsyncMock(side_effect=export)
    return exporter


@pytest.fixture
def transfer():
    transfer = MagicMock()
    transfer.send = AsyncMock()
    transfer.get_transfer_type.return_value = "sftp"
    return transfer


@pytest.fixture
def importer():
    importer = MagicMock()
    importer.import_volume = AsyncMock()
    return importer


@pytest.fixture
def selector():
    selector = MagicMock()
    selector.select = AsyncMock()
    return selector


@pytest.fixture
def build(runtime, selector, remote_session, exporter, transfer, importer):
    def _build(job) -> MigrationOrchestrator:
        return MigrationOrchestrator(
            job,
            runtime=runtime,
            selector=selector,
            session_factory=AsyncMock(return_value=remote_session),
            exporter=exporter,
            transfer_factory=lambda session: transfer,
            importer_factory=lambda session: importer,
        )

    return _build


@pytest.mark.asyncio
class TestSuccessfulMigration:
    """All phases run in order and staging is removed."""

    async def test_full_run(self, build, job_factory, remote_session, transfer, importer):
        job = job_factory()

        result = await build(job).run()

        assert result.success
        assert result.phase_reached is MigrationPhase.IMPORT
        assert result.volumes == ["shared", "web-data"]
        assert result.required_bytes == 3300
        assert job.imported == ["shared", "web-data"]

        remote_session.create_dir.assert_awaited_once_with("/tmp/volume-migration-test")
        sent = [call.args for call in transfer.send.await_args_list]
        assert sent == [
            (os.path.join(job.local_staging_dir, "shared.tar.gz"), "/tmp/volume-migration-test/shared.tar.gz", True),
            (os.path.join(job.local_staging_dir, "web-data.tar.gz"), "/tmp/volume-migration-test/web-data.tar.gz", True),
        ]
        importer.import_volume.assert_any_await("web-data", "/tmp/volume-migration-test/web-data.tar.gz")

        assert not os.path.exists(job.local_staging_dir)
        remote_session.remove_dir.assert_awaited_once_with("/tmp/volume-migration-test")
        remote_session.close.assert_called_once()

    async def test_remote_space_measured_on_staging_parent(self, build, job_factory, remote_session):
        await build(job_factory()).run()
        remote_session.run_command.assert_any_await(RemoteCommand("df", "-Pk", "/tmp"))

    async def test_non_interactive_displays_volumes(self, build, job_factory, selector, volumes):
        await build(job_factory()).run()
        selector.display.assert_called_once_with(volumes)
        selector.select.assert_not_awaited()

    async def test_interactive_selection_subset(self, build, job_factory, selector, volumes, exporter):
        selector.select = AsyncMock(return_value=[volumes[1]])

        result = await build(job_factory(interactive=True)).run()

        assert result.volumes == ["web-data"]
        assert [call.args[0] for call in exporter.export.await_args_list] == ["web-data"]

    async def test_no_volumes_found(self, build, job_factory, runtime, exporter):
        runtime.discover_volumes = AsyncMock(return_value=[])

        result = await build(job_factory()).run()

        assert result.success
        assert result.phase_reached is MigrationPhase.DISCOVER
        exporter.export.assert_not_awaited()

    async def test_keep_staging(self, build, job_factory, remote_session):
        job = job_factory(keep_staging=True)

        await build(job).run()

        assert os.path.isdir(job.local_staging_dir)
        remote_session.remove_dir.assert_not_awaited()
        remote_session.close.assert_called_once()

    async def test_existing_staging_dirs_keep_foreign_content(
        self, build, job_factory, remote_session
    ):
        job = job_factory()
        os.makedirs(job.local_staging_dir)
        foreign = os.path.join(job.local_staging_dir, "notes.txt")
        Path(foreign).write_text("keep me")
        remote_session.dir_exists = AsyncMock(return_value=True)

        await build(job).run()

        assert os.listdir(job.local_staging_dir) == ["notes.txt"]
        remote_session.create_dir.assert_not_awaited()
        remote_session.remove_dir.assert_not_awaited()
        removed = [call.args[0] for call in remote_session.remove_file.await_args_list]
        assert removed == [
            "/tmp/volume-migration-test/shared.tar.gz",
            "/tmp/volume-migration-test/web-data.tar.gz",
        ]


@pytest.mark.asyncio
class TestDryRun:
    """Dry run stops after space validation without side effects."""

    async def test_dry_run_is_read_only(self, build, job_factory, exporter, remote_session, transfer):
        job = job_factory(dry_run=True)

        result = await build(job).run()

        assert result.success
        assert result.dry_run
        assert result.phase_reached is MigrationPhase.VALIDATE_SPACE
        exporter.export.assert_not_awaited()
        transfer.send.assert_not_awaited()
        remote_session.create_dir.assert_not_awaited()
        remote_session.remove_dir.assert_not_awaited()
        remote_session.remove_file.assert_not_awaited()
        assert not os.path.exists(job.local_staging_dir)


@pytest.mark.asyncio
class TestSpaceValidation:
    """Insufficient space is fatal unless forced; measurement failures only warn."""

    async def test_insufficient_local_space(self, build, job_factory, local_space, exporter):
        local_space.return_value = DiskSpaceInfo(total=100, available=10, used=90)

        with pytest.raises(DiskSpaceError) as exc_info:
            await build(job_factory()).run()

        assert exc_info.value.location == "local"
        assert "use --force to override" in exc_info.value.__notes__
        exporter.export.assert_not_awaited()

    async def test_insufficient_remote_space(self, build, job_factory, remote_session):
        remote_session.run_command = AsyncMock(
            return_value="Filesystem 1024-blocks Used Available Capacity Mounted on\n/dev/sda1 10 9 1 90% /\n"
        )

        with pytest.raises(DiskSpaceError) as exc_info:
            await build(job_factory()).run()

        assert exc_info.value.location == "remote"

    async def test_force_skips_validation(self, build, job_factory, local_space):
        local_space.return_value = DiskSpaceInfo(total=100, available=10, used=90)

        result = await build(job_factory(force=True)).run()

        assert result.success
        local_space.assert_not_called()

    async def test_measurement_failure_is_a_warning(self, build, job_factory, local_space):
        local_space.side_effect = DiskSpaceCheckError("statvfs failed")

        result = await build(job_factory(dry_run=True)).run()

        assert result.success
        assert any("Could not check local disk space" in w for w in result.warnings)


@pytest.mark.asyncio
class TestFailures:
    """Failures propagate and cleanup still runs."""

    async def test_init_failure(self, build, job_factory, runtime, remote_session):
        runtime.initialize = AsyncMock(side_effect=PrivilegeDetectionError("docker is not accessible"))

        with pytest.raises(PrivilegeDetectionError):
            await build(job_factory()).run()

        remote_session.close.assert_not_called()

    async def test_selection_cancelled(self, build, job_factory, selector, exporter):
        selector.select = AsyncMock(side_effect=SelectionCancelledError("selection cancelled by user"))

        with pytest.raises(SelectionCancelledError):
            await build(job_factory(interactive=True)).run()

        exporter.export.assert_not_awaited()

    async def test_export_failure_cleans_up(self, build, job_factory, exporter, remote_session):
        exporter.export = AsyncMock(side_effect=ExportError("failed to export volume shared"))
        job = job_factory()

        with pytest.raises(ExportError):
            await build(job).run()

        assert job.phase is MigrationPhase.CLEANUP
        assert not os.path.exists(job.local_staging_dir)
        remote_session.remove_dir.assert_not_awaited()
        remote_session.close.assert_called_once()

    async def test_import_failure_cleans_up_both_sides(
        self, build, job_factory, importer, remote_session
    ):
        importer.import_volume = AsyncMock(side_effect=VolumeImportError("failed to import data into volume shared"))
        job = job_factory()

        with pytest.raises(VolumeImportError):
            await build(job).run()

        assert not os.path.exists(job.local_staging_dir)
        remote_session.remove_dir.assert_awaited_once_with("/tmp/volume-migration-test")

    async def test_cleanup_failure_never_replaces_primary_error(
        self, build, job_factory, importer, remote_session
    ):
        primary = VolumeImportError("failed to import data into volume shared")
        importer.import_volume = AsyncMock(side_effect=primary)
        remote_session.remove_dir = AsyncMock(side_effect=VolumeMigratorError("rm: permission denied"))

        with pytest.raises(VolumeImportError) as exc_info:
            await build(job_factory()).run()

        assert exc_info.value is primary
        assert any("rm: permission denied" in note for note in primary.__notes__)

    async def test_cleanup_failure_after_success_is_reported(self, build, job_factory, remote_session):
        remote_session.remove_dir = AsyncMock(side_effect=VolumeMigratorError("rm: permission denied"))

        result = await build(job_factory()).run()

        assert result.success
        assert any("rm: permission denied" in e for e in result.cleanup_errors)

    async def test_cancellation_still_cleans_up(self, build, job_factory, transfer, remote_session):
        transfer.send = AsyncMock(side_effect=asyncio.CancelledError())
        job = job_factory()

        with pytest.raises(asyncio.CancelledError):
            await build(job).run()

        assert not os.path.exists(job.local_staging_dir)
        remote_session.remove_dir.assert_awaited_once_with("/tmp/volume-migration-test")
        remote_session.close.assert_called_once()

    async def test_unexpected_cleanup_exception_keeps_primary_error(
        self, build, job_factory, importer, remote_session
    ):
        primary = VolumeImportError("failed to import data into volume shared")
        importer.import_volume = AsyncMock(side_effect=primary)
        remote_session.remove_dir = AsyncMock(side_effect=SSHException("Channel closed."))

        with pytest.raises(VolumeImportError) as exc_info:
            await build(job_factory()).run()

        assert exc_info.value is primary
        assert any("Channel closed." in note for note in primary.__notes__)
        remote_session.close.assert_called_once()
