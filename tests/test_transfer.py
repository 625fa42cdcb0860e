"""Tests for SFTP transfers and progress reporting."""

from unittest.mock import MagicMock, patch

import paramiko
import pytest

from volume_migrator.core.exceptions import TransferError
from volume_migrator.core.transfer import SFTPTransfer, TransferProgress

FROM_TRANSPORT = "volume_migrator.core.transfer.sftp.paramiko.SFTPClient.from_transport"


class TestTransferProgress:
    """Progress events are throttled to the configured step."""

    def test_logs_every_step(self):
        logger = MagicMock()
        progress = TransferProgress(logger, "data.tar.gz", step=25)

        for transferred in range(0, 101, 5):
            progress(transferred, 100)

        percents = [call.kwargs["percent"] for call in logger.info.call_args_list]
        assert percents == [25, 50, 75, 100]

    def test_large_jump_logs_once(self):
        logger = MagicMock()
        progress = TransferProgress(logger, "data.tar.gz", step=10)

        progress(55, 100)
        progress(58, 100)

        assert logger.info.call_count == 1

    def test_unknown_total_is_ignored(self):
        logger = MagicMock()
        TransferProgress(logger, "data.tar.gz")(10, 0)
        logger.info.assert_not_called()


@pytest.fixture
def sftp():
    client = MagicMock()
    client.stat.side_effect = FileNotFoundError()
    with patch(FROM_TRANSPORT, return_value=client):
        yield client


@pytest.fixture
def archive(tmp_path):
    path = tmp_path / "shared.tar.gz"
    path.write_bytes(b"\x1f\x8b" + b"\x00" * 64)
    return path


@pytest.mark.asyncio
class TestSFTPTransfer:
    """Uploads through the session transport."""

    async def test_send_creates_parents_and_uploads(self, remote_session, sftp, archive):
        transfer = SFTPTransfer(remote_session)

        await transfer.send(str(archive), "/tmp/staging/shared.tar.gz")

        assert [call.args[0] for call in sftp.mkdir.call_args_list] == ["/tmp", "/tmp/staging"]
        sftp.put.assert_called_once_with(
            str(archive), "/tmp/staging/shared.tar.gz", callback=None, confirm=True
        )
        sftp.close.assert_called_once()

    async def test_send_with_progress_passes_callback(self, remote_session, sftp, archive):
        sftp.stat.side_effect = None

        await SFTPTransfer(remote_session).send(str(archive), "/tmp/staging/shared.tar.gz", True)

        sftp.mkdir.assert_not_called()
        assert isinstance(sftp.put.call_args.kwargs["callback"], TransferProgress)

    async def test_missing_local_file(self, remote_session, sftp, tmp_path):
        with pytest.raises(TransferError, match="does not exist"):
            await SFTPTransfer(remote_session).send(str(tmp_path / "nope.tar.gz"), "/tmp/x.tar.gz")
        sftp.put.assert_not_called()

    async def test_upload_failure_is_wrapped(self, remote_session, sftp, archive):
        sftp.stat.side_effect = None
        sftp.put.side_effect = OSError("No space left on device")

        with pytest.raises(TransferError, match="No space left on device"):
            await SFTPTransfer(remote_session).send(str(archive), "/tmp/staging/shared.tar.gz")
        sftp.close.assert_called_once()

    async def test_sftp_subsystem_unavailable(self, remote_session, archive):
        with patch(FROM_TRANSPORT, side_effect=paramiko.SSHException("subsystem request failed")):
            with pytest.raises(TransferError, match="failed to create SFTP client"):
                await SFTPTransfer(remote_session).send(str(archive), "/tmp/shared.tar.gz")

    async def test_file_exists(self, remote_session, sftp):
        transfer = SFTPTransfer(remote_session)
        assert await transfer.file_exists("/tmp/missing.tar.gz") is False

        sftp.stat.side_effect = None
        assert await transfer.file_exists("/tmp/present.tar.gz") is True

    async def test_file_size(self, remote_session, sftp):
        sftp.stat.side_effect = None
        sftp.stat.return_value = MagicMock(st_size=4096)

        assert await SFTPTransfer(remote_session).file_size("/tmp/shared.tar.gz") == 4096

    async def test_fetch_creates_local_dir(self, remote_session, sftp, tmp_path):
        local = tmp_path / "restore" / "shared.tar.gz"

        await SFTPTransfer(remote_session).fetch("/tmp/shared.tar.gz", str(local))

        assert local.parent.is_dir()
        sftp.get.assert_called_once_with("/tmp/shared.tar.gz", str(local), callback=None)


def test_transfer_type(remote_session):
    assert SFTPTransfer(remote_session).get_transfer_type() == "sftp"
