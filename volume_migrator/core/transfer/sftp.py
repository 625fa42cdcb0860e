"""SFTP transfer over an established remote session."""

import asyncio
import errno
import os
import posixpath
from typing import Any

import paramiko

from ..exceptions import TransferError
from ..remote_session import RemoteSession
from .base import BaseTransfer
from .progress import TransferProgress


def _makedirs(sftp: paramiko.SFTPClient, remote_dir: str) -> None:
    """Create ``remote_dir`` and any missing parents."""
    if remote_dir in ("", "/"):
        return

    try:
        sftp.stat(remote_dir)
        return
    except FileNotFoundError:
        pass

    _makedirs(sftp, posixpath.dirname(remote_dir.rstrip("/")))
    try:
        sftp.mkdir(remote_dir)
    except OSError:
        # Lost a race with another creator; only fail if it still does not exist
        sftp.stat(remote_dir)


class SFTPTransfer(BaseTransfer):
    """Transfer files to the remote host using the session's SFTP subsystem."""

    def __init__(self, session: RemoteSession, logger: Any | None = None):
        super().__init__(logger)
        self.session = session

    def get_transfer_type(self) -> str:
        """Get the name/type of this transfer method."""
        return "sftp"

    def _open_sftp(self) -> paramiko.SFTPClient:
        try:
            return paramiko.SFTPClient.from_transport(self.session.transport)
        except (paramiko.SSHException, OSError) as e:
            raise TransferError(f"failed to create SFTP client: {e}") from e

    async def send(self, local_path: str, remote_path: str, show_progress: bool = False) -> None:
        """Upload a local file, creating the remote parent directory first.

        Raises:
            TransferError: If the local file is missing or the upload fails
        """
        if not os.path.isfile(local_path):
            raise TransferError(f"failed to open local file: {local_path} does not exist")

        self.logger.info(
            "Uploading file",
            local_path=local_path,
            remote_path=remote_path,
            size=os.path.getsize(local_path),
        )
        await asyncio.to_thread(self._send, local_path, remote_path, show_progress)
        self.logger.info("Upload complete", remote_path=remote_path)

    def _send(self, local_path: str, remote_path: str, show_progress: bool) -> None:
        sftp = self._open_sftp()
        try:
            try:
                _makedirs(sftp, posixpath.dirname(remote_path))
            except OSError as e:
                raise TransferError(f"failed to create remote directory for {remote_path}: {e}") from e

            callback = (
                TransferProgress(self.logger, os.path.basename(local_path))
                if show_progress
                else None
            )
            try:
                sftp.put(local_path, remote_path, callback=callback, confirm=True)
            except (OSError, paramiko.SSHException) as e:
                raise TransferError(
                    f"failed to transfer {local_path} to {remote_path}: {e}"
                ) from e
        finally:
            sftp.close()

    async def fetch(self, remote_path: str, local_path: str, show_progress: bool = False) -> None:
        """Download a remote file, creating the local parent directory first.

        Raises:
            TransferError: If the remote file cannot be read or written locally
        """
        self.logger.info("Downloading file", remote_path=remote_path, local_path=local_path)
        await asyncio.to_thread(self._fetch, remote_path, local_path, show_progress)

    def _fetch(self, remote_path: str, local_path: str, show_progress: bool) -> None:
        sftp = self._open_sftp()
        try:
            try:
                os.makedirs(os.path.dirname(local_path) or ".", mode=0o755, exist_ok=True)
            except OSError as e:
                raise TransferError(f"failed to create local directory for {local_path}: {e}") from e

            callback = (
                TransferProgress(self.logger, posixpath.basename(remote_path))
                if show_progress
                else None
            )
            try:
                sftp.get(remote_path, local_path, callback=callback)
            except (OSError, paramiko.SSHException) as e:
                raise TransferError(f"failed to download {remote_path}: {e}") from e
        finally:
            sftp.close()

    async def file_exists(self, remote_path: str) -> bool:
        """Return whether ``remote_path`` exists on the remote host."""
        return await asyncio.to_thread(self._file_exists, remote_path)

    def _file_exists(self, remote_path: str) -> bool:
        sftp = self._open_sftp()
        try:
            sftp.stat(remote_path)
        except FileNotFoundError:
            return False
        except OSError as e:
            if e.errno == errno.ENOENT:
                return False
            raise TransferError(f"failed to stat {remote_path}: {e}") from e
        finally:
            sftp.close()
        return True

    async def file_size(self, remote_path: str) -> int:
        """Return the size in bytes of a remote file."""
        return await asyncio.to_thread(self._file_size, remote_path)

    def _file_size(self, remote_path: str) -> int:
        sftp = self._open_sftp()
        try:
            return sftp.stat(remote_path).st_size or 0
        except OSError as e:
            raise TransferError(f"failed to stat {remote_path}: {e}") from e
        finally:
            sftp.close()
