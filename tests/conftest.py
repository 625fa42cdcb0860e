"""Shared pytest fixtures for volume migrator tests."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import paramiko
import pytest

from volume_migrator.models import (
    ExecutionTarget,
    MigrationFlags,
    MigrationJob,
    SessionState,
    Volume,
)

DF_OUTPUT = """\
Filesystem     1024-blocks      Used Available Capacity Mounted on
/dev/sda1        104857600  10485760  94371840      11% /
"""


@pytest.fixture(scope="session")
def host_key() -> paramiko.PKey:
    """Host key presented by the remote endpoint."""
    return paramiko.ECDSAKey.generate()


@pytest.fixture(scope="session")
def rotated_host_key() -> paramiko.PKey:
    """A different key for the same host, as after rotation or impersonation."""
    return paramiko.ECDSAKey.generate()


@pytest.fixture
def target() -> ExecutionTarget:
    return ExecutionTarget(host="backup.example.com", port=22, username="deploy")


@pytest.fixture
def make_volume():
    def _make(name: str, container: str = "web", size_bytes: int = 1024) -> Volume:
        return Volume(
            name=name,
            container=container,
            mount_path=f"/srv/{name}",
            size=f"{size_bytes}B",
            size_bytes=size_bytes,
        )

    return _make


@pytest.fixture
def job_factory(tmp_path: Path, target: ExecutionTarget):
    """Build a job staging into a not-yet-existing directory under tmp_path."""

    def _make(**flags) -> MigrationJob:
        return MigrationJob(
            containers=["web", "worker"],
            target=target,
            local_staging_dir=str(tmp_path / "staging"),
            remote_staging_dir="/tmp/volume-migration-test",
            flags=MigrationFlags(**flags),
        )

    return _make


@pytest.fixture
def remote_session() -> MagicMock:
    """Connected remote session double."""
    session = MagicMock()
    session.state = SessionState.CONNECTED
    session.privilege.required = False
    session.run_command = AsyncMock(return_value=DF_OUTPUT)
    session.run_managed_command = AsyncMock(return_value="")
    session.dir_exists = AsyncMock(return_value=False)
    session.create_dir = AsyncMock()
    session.remove_dir = AsyncMock()
    session.remove_file = AsyncMock()
    return session
