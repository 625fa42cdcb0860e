"""Operational tuning for volume migrations.

Provides centralized settings using Pydantic BaseSettings
with environment variable support.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MigratorSettings(BaseSettings):
    """Timeouts and command names used by the migrator."""

    ssh_connect_timeout: float = Field(
        30.0, alias="SSH_CONNECT_TIMEOUT", description="SSH connect and handshake timeout in seconds"
    )

    probe_timeout: float = Field(
        30.0, alias="PROBE_TIMEOUT", description="Local privilege probe timeout in seconds"
    )

    managed_command: str = Field(
        "docker", alias="MANAGED_COMMAND", description="Container runtime CLI invocation name"
    )

    elevation_prefix: list[str] = Field(
        default_factory=lambda: ["sudo", "-n"],
        alias="ELEVATION_PREFIX",
        description="Non-interactive privilege elevation prefix",
    )

    helper_image: str = Field(
        "alpine", alias="HELPER_IMAGE", description="Image used for archive helper containers"
    )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)


settings = MigratorSettings()
