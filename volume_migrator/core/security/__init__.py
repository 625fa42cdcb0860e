"""Host identity verification and shell command safety."""

from .host_trust import HostKeyMode, HostTrustStore, TrustRecord, fingerprint, host_identifier  # noqa: F401
from .shell_safety import (  # noqa: F401
    RemoteCommand,
    escape,
    sanitize_remote_path,
    validate_identifier,
)

__all__ = [
    "HostKeyMode",
    "HostTrustStore",
    "RemoteCommand",
    "TrustRecord",
    "escape",
    "fingerprint",
    "host_identifier",
    "sanitize_remote_path",
    "validate_identifier",
]
