"""Remote execution target model."""

import getpass
import os

from pydantic import BaseModel, ConfigDict

from ..constants import DEFAULT_SSH_PORT
from ..core.exceptions import ConfigurationError


class ExecutionTarget(BaseModel):
    """Connection details of the remote host; immutable once built."""

    model_config = ConfigDict(frozen=True)

    host: str
    port: int = DEFAULT_SSH_PORT
    username: str
    identity_file: str | None = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def __str__(self) -> str:
        return f"{self.username}@{self.host}:{self.port}"


def _local_username() -> str:
    user = os.getenv("USER") or os.getenv("USERNAME")
    if user:
        return user
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""


def parse_target(
    target: str,
    port: int | None = None,
    identity_file: str | None = None,
) -> ExecutionTarget:
    """Parse ``user@host[:port]`` into an ExecutionTarget.

    The user falls back to the local OS user. A port embedded in the target
    string takes precedence over ``port``; 22 is used when neither is given.

    Raises:
        ConfigurationError: If the user cannot be determined, the host is
            empty, or the port is not a valid number
    """
    remainder = target.strip()

    if "@" in remainder:
        user, remainder = remainder.split("@", 1)
    else:
        user = _local_username()

    port_str = None
    if remainder.startswith("["):
        # [host]:port form, used for IPv6 literals
        host, _, rest = remainder[1:].partition("]")
        if rest.startswith(":"):
            port_str = rest[1:]
    elif ":" in remainder:
        host, port_str = remainder.split(":", 1)
    else:
        host = remainder

    if not user:
        raise ConfigurationError("could not determine username")

    if not host:
        raise ConfigurationError("host cannot be empty")

    resolved_port = port if port is not None else DEFAULT_SSH_PORT
    if port_str:
        try:
            resolved_port = int(port_str)
        except ValueError as e:
            raise ConfigurationError(f"invalid SSH port '{port_str}': must be a number") from e

    if not 1 <= resolved_port <= 65535:
        raise ConfigurationError(f"invalid SSH port {resolved_port}: must be between 1 and 65535")

    return ExecutionTarget(
        host=host,
        port=resolved_port,
        username=user,
        identity_file=identity_file,
    )
