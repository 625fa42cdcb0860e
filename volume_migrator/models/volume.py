"""Volume-related data models."""

from pydantic import BaseModel, Field

from ..constants import UNKNOWN_MOUNT_PATH, UNKNOWN_SIZE


class Volume(BaseModel):
    """A named volume as discovered on the local runtime."""

    name: str
    container: str = Field(description="First container found referencing the volume")
    mount_path: str = UNKNOWN_MOUNT_PATH
    size: str = Field(default=UNKNOWN_SIZE, description="Human-readable size from the runtime")
    size_bytes: int = 0


class VolumeArchive(BaseModel):
    """Archive produced by exporting a volume."""

    volume_name: str
    local_path: str
    remote_path: str | None = None
    size_bytes: int = 0
