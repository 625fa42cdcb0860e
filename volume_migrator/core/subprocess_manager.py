"""Local subprocess execution with proper resource handling."""

import asyncio
import shlex
from typing import Any

from .exceptions import LocalCommandError
from .logging_config import component_logger

KILL_TIMEOUT = 5  # Time to wait after SIGTERM before SIGKILL


class SubprocessResult:
    """Result of a subprocess execution."""

    def __init__(self, returncode: int, stdout: str, stderr: str, cmd: list[str]):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.cmd = cmd

    @property
    def success(self) -> bool:
        """Check if the command succeeded."""
        return self.returncode == 0

    def check_returncode(self) -> None:
        """Raise an exception if the command failed."""
        if self.returncode != 0:
            raise LocalCommandError(shlex.join(self.cmd), self.returncode, self.stderr)


class SubprocessManager:
    """Runs local commands, terminating them if they time out or are cancelled."""

    def __init__(self, logger: Any | None = None):
        self.logger = component_logger(logger, "subprocess_manager")

    async def run_command(
        self,
        cmd: list[str],
        *,
        timeout: float | None = None,
        check: bool = True,
    ) -> SubprocessResult:
        """Run a command asynchronously, capturing stdout and stderr.

        Args:
            cmd: Command and arguments as a list
            timeout: Timeout in seconds (None waits indefinitely)
            check: Raise LocalCommandError if the command fails

        Returns:
            SubprocessResult with returncode, stdout, and stderr

        Raises:
            LocalCommandError: If check=True and the command fails or cannot start
            asyncio.TimeoutError: If the command times out
        """
        self.logger.debug("Executing command", command=shlex.join(cmd), timeout=timeout)

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            if check:
                raise LocalCommandError(shlex.join(cmd), 127, str(e)) from e
            return SubprocessResult(returncode=127, stdout="", stderr=str(e), cmd=cmd)

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(), timeout=timeout
            )
        except asyncio.TimeoutError:
            self.logger.warning(
                "Command timed out, terminating process",
                command=shlex.join(cmd),
                timeout=timeout,
                pid=process.pid,
            )
            await self._terminate(process)
            raise asyncio.TimeoutError(
                f"Command timed out after {timeout} seconds: {shlex.join(cmd)}"
            ) from None
        except asyncio.CancelledError:
            await self._terminate(process)
            raise

        result = SubprocessResult(
            returncode=process.returncode or 0,
            stdout=stdout_bytes.decode("utf-8", errors="replace") if stdout_bytes else "",
            stderr=stderr_bytes.decode("utf-8", errors="replace") if stderr_bytes else "",
            cmd=cmd,
        )

        if check:
            result.check_returncode()
        return result

    async def succeeds(self, cmd: list[str], timeout: float | None = None) -> bool:
        """Run ``cmd`` and report whether it exited successfully."""
        try:
            result = await self.run_command(cmd, timeout=timeout, check=False)
        except asyncio.TimeoutError:
            return False
        return result.success

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Terminate a process gracefully, killing it if it does not exit."""
        if process.returncode is not None:
            return
        try:
            process.terminate()
            await asyncio.wait_for(process.wait(), timeout=KILL_TIMEOUT)
        except asyncio.TimeoutError:
            self.logger.warning("Process did not terminate gracefully, sending SIGKILL", pid=process.pid)
            process.kill()
            await process.wait()
        except ProcessLookupError:
            pass
