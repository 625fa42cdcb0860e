"""Authenticated, identity-verified command channel to the remote host."""

import asyncio
import posixpath
import socket
import time
from typing import Any

import paramiko
from paramiko.ssh_exception import AuthenticationException, SSHException

from ..constants import PROTECTED_REMOTE_PATHS
from ..models.enums import SessionState
from ..models.target import ExecutionTarget
from .exceptions import (
    AuthenticationError,
    RemoteCommandError,
    SSHConnectionError,
    UnsafePathError,
)
from .logging_config import component_logger
from .privilege import PrivilegeDetector
from .security.host_trust import HostTrustStore, host_identifier
from .security.shell_safety import RemoteCommand, sanitize_remote_path
from .settings import settings
from .ssh_auth import AuthGatherer, AuthMaterial

READ_CHUNK_SIZE = 32768
READ_POLL_INTERVAL = 0.01


class RemoteSession:
    """SSH session to the remote host.

    Moves through DISCONNECTED -> CONNECTING -> CONNECTED -> CLOSED. Use
    :meth:`open` to get a connected session; a failed connect never leaves a
    usable session behind.
    """

    def __init__(
        self,
        target: ExecutionTarget,
        trust_store: HostTrustStore,
        auth: AuthGatherer | None = None,
        privilege: PrivilegeDetector | None = None,
        connect_timeout: float | None = None,
        logger: Any | None = None,
    ):
        self.target = target
        self.trust_store = trust_store
        self.logger = component_logger(logger, "remote_session").bind(host=str(target))
        self.auth = auth or AuthGatherer(identity_file=target.identity_file, logger=logger)
        self.privilege = privilege or PrivilegeDetector(
            probe=self._probe, context="remote", logger=logger
        )
        self.connect_timeout = (
            connect_timeout if connect_timeout is not None else settings.ssh_connect_timeout
        )

        self.state = SessionState.DISCONNECTED
        self._transport: paramiko.Transport | None = None

    @classmethod
    async def open(
        cls,
        target: ExecutionTarget,
        trust_store: HostTrustStore,
        **kwargs: Any,
    ) -> "RemoteSession":
        """Create a session and connect it."""
        session = cls(target, trust_store, **kwargs)
        await session.connect()
        return session

    async def connect(self) -> None:
        """Authenticate, verify the host key and detect remote privilege needs.

        Raises:
            AuthenticationError: If no authentication candidate is accepted
            HostTrustError: If the host key is unknown or changed
            SSHConnectionError: If the transport cannot be established
            PrivilegeDetectionError: If the managed subsystem is not accessible
        """
        if self.state is not SessionState.DISCONNECTED:
            raise RuntimeError(f"cannot connect a session in state {self.state.value}")

        self.state = SessionState.CONNECTING
        self.logger.info("Connecting to remote host")
        try:
            self._transport = await asyncio.to_thread(self._open_transport)
            await self.privilege.detect()
        except BaseException:
            self.close()
            raise

        self.state = SessionState.CONNECTED
        self.logger.debug(
            "Remote session established",
            requires_elevation=self.privilege.required,
        )

    def _open_transport(self) -> paramiko.Transport:
        material = self.auth.gather()
        try:
            try:
                sock = socket.create_connection(
                    (self.target.host, self.target.port), timeout=self.connect_timeout
                )
            except OSError as e:
                raise SSHConnectionError(self.target.address, e) from e

            transport = paramiko.Transport(sock)
            transport.banner_timeout = self.connect_timeout
            transport.handshake_timeout = self.connect_timeout
            transport.auth_timeout = self.connect_timeout
            try:
                try:
                    transport.start_client(timeout=self.connect_timeout)
                except (SSHException, OSError, EOFError) as e:
                    raise SSHConnectionError(self.target.address, e) from e

                self.trust_store.verify(
                    host_identifier(self.target.host, self.target.port),
                    transport.get_remote_server_key(),
                )
                self._authenticate(transport, material)
            except BaseException:
                transport.close()
                raise
            return transport
        finally:
            material.close()

    def _authenticate(self, transport: paramiko.Transport, material: AuthMaterial) -> None:
        for candidate in material.candidates:
            try:
                transport.auth_publickey(self.target.username, candidate.key)
            except AuthenticationException:
                self.logger.debug("Key rejected", source=candidate.source)
                continue
            except SSHException as e:
                raise SSHConnectionError(self.target.address, e) from e

            if transport.is_authenticated():
                self.logger.debug("Authenticated", source=candidate.source)
                return

        raise AuthenticationError(
            f"authentication failed for {self.target.username}@{self.target.host}: "
            f"all {len(material.candidates)} key(s) rejected"
        )

    @property
    def transport(self) -> paramiko.Transport:
        """Active transport, for collaborators such as SFTP transfers."""
        if self._transport is None or not self._transport.is_active():
            raise SSHConnectionError(self.target.address, "session is not connected")
        return self._transport

    async def run_command(self, command: RemoteCommand | str) -> str:
        """Run a command on a fresh channel and return its standard output.

        Raises:
            RemoteCommandError: If the command exits non-zero (stderr embedded)
            SSHConnectionError: If no channel can be opened
        """
        cmd = command.render() if isinstance(command, RemoteCommand) else command
        transport = self.transport

        exit_status, stdout, stderr = await asyncio.to_thread(self._exec, transport, cmd)
        if exit_status != 0:
            self.logger.debug("Remote command failed", command=cmd[:200], exit_status=exit_status)
            raise RemoteCommandError(cmd, exit_status, stderr)
        return stdout

    def _exec(self, transport: paramiko.Transport, cmd: str) -> tuple[int, str, str]:
        try:
            channel = transport.open_session()
        except (SSHException, EOFError, OSError) as e:
            raise SSHConnectionError(self.target.address, e) from e

        try:
            channel.exec_command(cmd)
            stdout, stderr = self._drain(channel)
            exit_status = channel.recv_exit_status()
        except (SSHException, EOFError, OSError) as e:
            raise SSHConnectionError(self.target.address, e) from e
        finally:
            channel.close()
        return exit_status, stdout, stderr

    @staticmethod
    def _drain(channel: paramiko.Channel) -> tuple[str, str]:
        """Read stdout and stderr together until the command exits.

        Both streams are consumed as data arrives so neither can fill the
        channel window while the other is being waited on.
        """
        stdout = bytearray()
        stderr = bytearray()
        while True:
            received = False
            if channel.recv_ready():
                stdout += channel.recv(READ_CHUNK_SIZE)
                received = True
            if channel.recv_stderr_ready():
                stderr += channel.recv_stderr(READ_CHUNK_SIZE)
                received = True
            if received:
                continue
            if channel.exit_status_ready():
                break
            time.sleep(READ_POLL_INTERVAL)

        # Exit status can arrive before the last buffered data is read
        while chunk := channel.recv(READ_CHUNK_SIZE):
            stdout += chunk
        while chunk := channel.recv_stderr(READ_CHUNK_SIZE):
            stderr += chunk

        return stdout.decode("utf-8", errors="replace"), stderr.decode("utf-8", errors="replace")

    async def run_managed_command(self, *args: str) -> str:
        """Run a managed subsystem command, elevated when required."""
        return await self.run_command(RemoteCommand.from_args(self.privilege.managed(*args)))

    async def _probe(self, args: list[str]) -> bool:
        try:
            await self.run_command(RemoteCommand.from_args(args))
        except RemoteCommandError:
            return False
        return True

    @staticmethod
    def _removal_path(path: str) -> str:
        """Normalize a removal target and refuse protected system paths.

        ``.`` segments and trailing slashes are resolved before the check, so
        spellings such as ``/./etc`` or ``/etc/.`` match the deny-list.

        Raises:
            UnsafePathError: If the path resolves to a protected system path
        """
        normalized = posixpath.normpath(sanitize_remote_path(path))
        if normalized in PROTECTED_REMOTE_PATHS:
            raise UnsafePathError(f"refusing to delete system directory: {normalized}")
        return normalized

    async def create_dir(self, path: str) -> None:
        """Create a directory (and parents) on the remote host."""
        safe_path = sanitize_remote_path(path)
        await self.run_command(RemoteCommand("mkdir", "-p", safe_path))

    async def dir_exists(self, path: str) -> bool:
        """Whether ``path`` is an existing directory on the remote host."""
        try:
            await self.run_command(RemoteCommand("test", "-d", sanitize_remote_path(path)))
        except RemoteCommandError:
            return False
        return True

    async def remove_file(self, path: str) -> None:
        """Remove a file on the remote host.

        Raises:
            UnsafePathError: If the path resolves to a protected system path
        """
        safe_path = self._removal_path(path)
        await self.run_command(RemoteCommand("rm", "-f", safe_path))

    async def remove_dir(self, path: str) -> None:
        """Recursively remove a directory on the remote host.

        Raises:
            UnsafePathError: If the path resolves to a protected system path
        """
        safe_path = self._removal_path(path)
        await self.run_command(RemoteCommand("rm", "-rf", safe_path))

    def close(self) -> None:
        """Close the transport; the session cannot be reused afterwards."""
        if self._transport is not None:
            try:
                self._transport.close()
            except (SSHException, OSError) as e:
                self.logger.warning("Error closing SSH transport", error=str(e))
            self._transport = None
        self.state = SessionState.CLOSED

    async def __aenter__(self) -> "RemoteSession":
        if self.state is SessionState.DISCONNECTED:
            await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()
