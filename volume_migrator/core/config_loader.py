"""Configuration management for volume migrations."""

import os
import re
import tempfile
import time
from pathlib import Path
from typing import Any

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..constants import REMOTE_STAGING_ROOT, STAGING_PREFIX, USER_CONFIG_PATH
from ..models.job import MigrationFlags, MigrationJob
from ..models.target import parse_target
from .exceptions import ConfigurationError
from .security.host_trust import HostKeyMode

logger = structlog.get_logger()


class MigrationConfig(BaseSettings):
    """Settings of one migration run, from env, YAML and CLI flags."""

    containers: list[str] = Field(default_factory=list)
    remote_host: str = ""
    ssh_key_path: str | None = None
    ssh_port: str = "22"
    temp_dir: str | None = None
    remote_temp_dir: str | None = None

    interactive: bool = False
    verbose: bool = False
    dry_run: bool = False
    no_cleanup: bool = False
    show_progress: bool = True
    force: bool = False
    validate_only: bool = False

    strict_host_key_checking: bool = True
    accept_host_key: bool = False
    known_hosts_file: str | None = None

    log_file: str | None = None

    model_config = SettingsConfigDict(
        env_prefix="VOLUME_MIGRATOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("ssh_port", mode="before")
    @classmethod
    def _port_as_string(cls, value: Any) -> Any:
        # Kept as text so validation can report non-numeric input verbatim
        if isinstance(value, int):
            return str(value)
        return value

    @property
    def host_key_mode(self) -> HostKeyMode:
        return HostKeyMode.from_flags(self.strict_host_key_checking, self.accept_host_key)


def validate_config(config: MigrationConfig) -> None:
    """Check a configuration before any connection is attempted.

    Raises:
        ConfigurationError: Describing the first problem found
    """
    if not config.containers:
        raise ConfigurationError("no containers specified")

    for index, container in enumerate(config.containers):
        if not container.strip():
            raise ConfigurationError(f"container at index {index} is empty")

    if not config.remote_host:
        raise ConfigurationError("remote host not specified")

    if "@" not in config.remote_host:
        raise ConfigurationError(
            "remote host must be in format 'user@host' or 'user@host:port', "
            f"got: {config.remote_host}"
        )

    parts = config.remote_host.split("@")
    if len(parts) != 2:
        raise ConfigurationError(f"invalid remote host format: {config.remote_host}")

    user, host_part = parts[0].strip(), parts[1].strip()
    if not user:
        raise ConfigurationError(f"username cannot be empty in remote host: {config.remote_host}")
    if not host_part:
        raise ConfigurationError(f"host cannot be empty in remote host: {config.remote_host}")

    if config.ssh_port:
        try:
            port = int(config.ssh_port)
        except ValueError as e:
            raise ConfigurationError(
                f"invalid SSH port '{config.ssh_port}': must be a number"
            ) from e
        if not 1 <= port <= 65535:
            raise ConfigurationError(f"invalid SSH port {port}: must be between 1 and 65535")

    if config.temp_dir and not os.path.isabs(config.temp_dir):
        raise ConfigurationError(f"temp directory must be an absolute path: {config.temp_dir}")

    if config.remote_temp_dir and not config.remote_temp_dir.startswith("/"):
        raise ConfigurationError(
            f"remote temp directory must be an absolute path: {config.remote_temp_dir}"
        )

    if config.strict_host_key_checking and config.accept_host_key:
        raise ConfigurationError(
            "conflicting flags: --strict-host-key-checking and --accept-host-key "
            "cannot both be enabled"
        )

    if config.ssh_key_path and not Path(config.ssh_key_path).expanduser().exists():
        raise ConfigurationError(f"SSH key file does not exist: {config.ssh_key_path}")

    if (
        config.known_hosts_file
        and config.strict_host_key_checking
        and not Path(config.known_hosts_file).expanduser().exists()
    ):
        raise ConfigurationError(
            f"known_hosts file does not exist: {config.known_hosts_file} "
            "(use --accept-host-key to create it)"
        )


def default_staging_dirs(now: float | None = None) -> tuple[str, str]:
    """Timestamped local and remote staging directories."""
    stamp = int(now if now is not None else time.time())
    name = f"{STAGING_PREFIX}{stamp}"
    return os.path.join(tempfile.gettempdir(), name), f"{REMOTE_STAGING_ROOT}/{name}"


def build_job(config: MigrationConfig) -> MigrationJob:
    """Create the migration job described by a validated configuration.

    Raises:
        ConfigurationError: If the remote target cannot be parsed
    """
    local_default, remote_default = default_staging_dirs()
    port = int(config.ssh_port) if config.ssh_port else None
    target = parse_target(config.remote_host, port=port, identity_file=config.ssh_key_path)

    return MigrationJob(
        containers=list(config.containers),
        target=target,
        local_staging_dir=config.temp_dir or local_default,
        remote_staging_dir=config.remote_temp_dir or remote_default,
        flags=MigrationFlags(
            interactive=config.interactive,
            dry_run=config.dry_run,
            force=config.force,
            keep_staging=config.no_cleanup,
            show_progress=config.show_progress,
        ),
    )


def load_config(config_path: str | None = None, **overrides: Any) -> MigrationConfig:
    """Load configuration from multiple sources.

    Precedence, lowest first: environment (including ``.env``), the user
    YAML file, ``config_path``, then ``overrides``. ``None`` overrides are
    ignored so unset CLI flags do not mask file values.

    Raises:
        ConfigurationError: If a config file cannot be read or values are invalid
    """
    load_dotenv()

    values: dict[str, Any] = {}
    values.update(_load_yaml_config(Path(USER_CONFIG_PATH).expanduser(), required=False))
    if config_path:
        values.update(_load_yaml_config(Path(config_path).expanduser(), required=True))
    values.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return MigrationConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"invalid configuration: {e}") from e


def _load_yaml_config(config_path: Path, required: bool) -> dict[str, Any]:
    """Load a YAML config file, normalizing ``kebab-case`` keys."""
    if not config_path.exists():
        if required:
            raise ConfigurationError(f"config file does not exist: {config_path}")
        return {}

    try:
        content = _expand_yaml_config(config_path.read_text(encoding="utf-8"))
        loaded = yaml.safe_load(content)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"failed to load config from {config_path}: {e}") from e

    if not isinstance(loaded, dict):
        return {}

    logger.debug("Loaded config file", path=str(config_path), keys=sorted(loaded))
    return {str(key).replace("-", "_"): value for key, value in loaded.items()}


def _expand_yaml_config(content: str) -> str:
    """Expand an allowlist of environment variables in ``${VAR}`` form."""
    allowed_env_vars = {"HOME", "USER", "TMPDIR", "XDG_CONFIG_HOME"}

    def replace_var(match: re.Match[str]) -> str:
        var_name = match.group(1)
        if var_name in allowed_env_vars:
            return os.getenv(var_name, match.group(0))
        logger.warning("Environment variable not in allowlist, skipping expansion", variable=var_name)
        return match.group(0)

    return re.sub(r"\$\{([^}]+)\}", replace_var, content)
