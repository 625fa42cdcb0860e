"""Migration job state models."""

from pydantic import BaseModel, Field

from .enums import MigrationPhase
from .target import ExecutionTarget
from .volume import Volume, VolumeArchive


class MigrationFlags(BaseModel):
    """Behavior switches of a migration job."""

    interactive: bool = False
    dry_run: bool = False
    force: bool = False
    keep_staging: bool = False
    show_progress: bool = True


class MigrationJob(BaseModel):
    """State of one migration run, advanced only by the orchestrator."""

    containers: list[str]
    target: ExecutionTarget
    local_staging_dir: str
    remote_staging_dir: str
    flags: MigrationFlags = Field(default_factory=MigrationFlags)

    phase: MigrationPhase = MigrationPhase.INIT
    discovered: list[Volume] = Field(default_factory=list)
    selected: list[Volume] = Field(default_factory=list)
    archives: list[VolumeArchive] = Field(default_factory=list)
    imported: list[str] = Field(default_factory=list)

    local_staging_created: bool = False
    remote_staging_created: bool = False

    @property
    def selected_bytes(self) -> int:
        return sum(volume.size_bytes for volume in self.selected)


class MigrationResult(BaseModel):
    """Outcome reported by the orchestrator."""

    success: bool
    dry_run: bool = False
    phase_reached: MigrationPhase
    volumes: list[str] = Field(default_factory=list)
    required_bytes: int = 0
    warnings: list[str] = Field(default_factory=list)
    cleanup_errors: list[str] = Field(default_factory=list)
    message: str = ""
