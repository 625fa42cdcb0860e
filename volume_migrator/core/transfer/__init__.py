"""Transfer modules for moving volume archives between hosts."""

from .base import BaseTransfer  # noqa: F401
from .progress import TransferProgress  # noqa: F401
from .sftp import SFTPTransfer  # noqa: F401

__all__ = [
    "BaseTransfer",
    "SFTPTransfer",
    "TransferProgress",
]
