"""Enum definitions for the volume migrator."""

from enum import Enum


class MigrationPhase(Enum):
    """Phases of a migration job, in execution order."""

    INIT = "init"
    DISCOVER = "discover"
    SELECT = "select"
    VALIDATE_SPACE = "validate_space"
    EXPORT = "export"
    TRANSFER = "transfer"
    IMPORT = "import"
    CLEANUP = "cleanup"


class SessionState(Enum):
    """Lifecycle of a remote session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"
