"""Data models for the volume migrator."""

from .enums import MigrationPhase, SessionState  # noqa: F401
from .job import MigrationFlags, MigrationJob, MigrationResult  # noqa: F401
from .target import ExecutionTarget, parse_target  # noqa: F401
from .volume import Volume, VolumeArchive  # noqa: F401

__all__ = [
    # Enums
    "MigrationPhase",
    "SessionState",
    # Job models
    "MigrationFlags",
    "MigrationJob",
    "MigrationResult",
    # Target models
    "ExecutionTarget",
    "parse_target",
    # Volume models
    "Volume",
    "VolumeArchive",
]
