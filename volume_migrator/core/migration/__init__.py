"""Migration workflow: export, import, cleanup and orchestration."""

from .cleanup import (  # noqa: F401
    cleanup_archives,
    cleanup_local,
    cleanup_remote,
    cleanup_remote_archives,
)
from .export import VolumeExporter  # noqa: F401
from .importer import VolumeImporter  # noqa: F401
from .orchestrator import MigrationOrchestrator  # noqa: F401

__all__ = [
    "MigrationOrchestrator",
    "VolumeExporter",
    "VolumeImporter",
    "cleanup_archives",
    "cleanup_local",
    "cleanup_remote",
    "cleanup_remote_archives",
]
