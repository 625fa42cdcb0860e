"""Tests for subprocess resource management."""

import asyncio
import sys

import pytest

from volume_migrator.core.exceptions import LocalCommandError
from volume_migrator.core.subprocess_manager import SubprocessManager, SubprocessResult


@pytest.fixture
def subprocess_manager():
    """Create a subprocess manager for testing."""
    return SubprocessManager()


@pytest.mark.asyncio
class TestSubprocessManager:
    """Test subprocess manager functionality."""

    async def test_run_simple_command(self, subprocess_manager):
        """Test running a simple command."""
        result = await subprocess_manager.run_command(["echo", "hello world"])

        assert result.success
        assert result.returncode == 0
        assert result.stdout.strip() == "hello world"
        assert result.stderr == ""

    async def test_stderr_is_captured(self, subprocess_manager):
        result = await subprocess_manager.run_command(
            ["sh", "-c", "echo oops >&2; exit 3"], check=False
        )

        assert not result.success
        assert result.returncode == 3
        assert result.stderr.strip() == "oops"

    async def test_failure_raises_when_checked(self, subprocess_manager):
        with pytest.raises(LocalCommandError) as exc_info:
            await subprocess_manager.run_command(["sh", "-c", "echo denied >&2; exit 1"])

        assert exc_info.value.exit_status == 1
        assert "denied" in str(exc_info.value)

    async def test_missing_binary(self, subprocess_manager):
        result = await subprocess_manager.run_command(
            ["definitely-not-a-real-binary-xyz"], check=False
        )
        assert result.returncode == 127

        with pytest.raises(LocalCommandError):
            await subprocess_manager.run_command(["definitely-not-a-real-binary-xyz"])

    async def test_timeout_terminates_process(self, subprocess_manager):
        with pytest.raises(asyncio.TimeoutError, match="timed out"):
            await subprocess_manager.run_command(
                [sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.2
            )

    async def test_succeeds(self, subprocess_manager):
        assert await subprocess_manager.succeeds(["true"])
        assert not await subprocess_manager.succeeds(["false"])
        assert not await subprocess_manager.succeeds(["definitely-not-a-real-binary-xyz"])


class TestSubprocessResult:
    """Test SubprocessResult class."""

    def test_check_returncode_success(self):
        SubprocessResult(returncode=0, stdout="ok", stderr="", cmd=["true"]).check_returncode()

    def test_check_returncode_failure(self):
        result = SubprocessResult(
            returncode=125, stdout="", stderr="no such image", cmd=["docker", "run", "busybox"]
        )

        with pytest.raises(LocalCommandError, match="exit status 125: docker run busybox: no such image"):
            result.check_returncode()
