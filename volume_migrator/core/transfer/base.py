"""Abstract base class for transfer methods."""

from abc import ABC, abstractmethod
from typing import Any

from ..logging_config import component_logger


class BaseTransfer(ABC):
    """Abstract base class for all transfer methods."""

    def __init__(self, logger: Any | None = None):
        self.logger = component_logger(logger, self.__class__.__name__.lower())

    @abstractmethod
    async def send(self, local_path: str, remote_path: str, show_progress: bool = False) -> None:
        """Send a local file to the remote host.

        Args:
            local_path: Path of the file on the local host
            remote_path: Destination path on the remote host
            show_progress: Whether to report transfer progress

        Raises:
            TransferError: If the file could not be delivered
        """

    @abstractmethod
    def get_transfer_type(self) -> str:
        """Get the name/type of this transfer method."""
