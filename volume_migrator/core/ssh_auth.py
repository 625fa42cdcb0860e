"""SSH authentication material gathering.

Candidates are collected in priority order: SSH agent keys, the configured
key file, then the conventional key files under ``~/.ssh``.
"""

import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import paramiko
from paramiko.ssh_exception import PasswordRequiredException, SSHException

from ..constants import DEFAULT_KEY_FILENAMES, SSH_AUTH_SOCK
from .exceptions import AuthenticationError, InsecureKeyPermissionsError
from .logging_config import component_logger


@dataclass
class AuthCandidate:
    """A signing key together with where it came from."""

    source: str
    key: paramiko.PKey


@dataclass
class AuthMaterial:
    """Ordered authentication candidates; keeps the agent alive while in use."""

    candidates: list[AuthCandidate] = field(default_factory=list)
    agent: paramiko.Agent | None = None

    def close(self) -> None:
        if self.agent is not None:
            self.agent.close()
            self.agent = None


def validate_key_permissions(path: Path | str) -> None:
    """Reject private keys readable, writable or executable by group or others.

    Raises:
        InsecureKeyPermissionsError: If any group/other permission bit is set
        AuthenticationError: If the file cannot be stat'ed
    """
    try:
        mode = os.stat(path).st_mode
    except OSError as e:
        raise AuthenticationError(f"failed to stat SSH key file {path}: {e}") from e

    perm = stat.S_IMODE(mode)
    if perm & 0o077:
        raise InsecureKeyPermissionsError(
            f"private key file {path} has insecure permissions {perm:o} (should be 600 or 400)"
        )


def load_private_key(path: Path | str) -> paramiko.PKey:
    """Load an unencrypted private key after checking its permissions.

    Raises:
        InsecureKeyPermissionsError: If the key file permissions are too open
        AuthenticationError: If the key is encrypted, unreadable or invalid
    """
    validate_key_permissions(path)
    try:
        return paramiko.PKey.from_path(path)
    except PasswordRequiredException as e:
        raise AuthenticationError(f"key {path} is encrypted: {e}") from e
    except (SSHException, OSError, ValueError, TypeError) as e:
        # cryptography reports a missing passphrase as TypeError
        raise AuthenticationError(f"key {path} is invalid or unreadable: {e}") from e


class AuthGatherer:
    """Collects authentication candidates in priority order."""

    def __init__(
        self,
        identity_file: str | None = None,
        ssh_dir: Path | None = None,
        use_agent: bool = True,
        logger: Any | None = None,
    ):
        self.identity_file = identity_file
        self.ssh_dir = ssh_dir if ssh_dir is not None else Path.home() / ".ssh"
        self.use_agent = use_agent
        self.logger = component_logger(logger, "ssh_auth")

    def gather(self) -> AuthMaterial:
        """Gather authentication material.

        Raises:
            AuthenticationError: If the configured key cannot be loaded, or no
                candidate at all is available
        """
        material = AuthMaterial()

        if self.use_agent:
            self._add_agent_keys(material)

        if self.identity_file:
            key_path = Path(self.identity_file).expanduser()
            try:
                key = load_private_key(key_path)
            except AuthenticationError as e:
                material.close()
                raise AuthenticationError(f"failed to load configured key {key_path}: {e}") from e
            material.candidates.append(AuthCandidate(source=str(key_path), key=key))

        for filename in DEFAULT_KEY_FILENAMES:
            key_path = self.ssh_dir / filename
            if not key_path.exists():
                continue
            if self.identity_file and key_path == Path(self.identity_file).expanduser():
                continue
            try:
                key = load_private_key(key_path)
            except AuthenticationError as e:
                self.logger.debug("Skipping key file", path=str(key_path), reason=str(e))
                continue
            material.candidates.append(AuthCandidate(source=str(key_path), key=key))

        if not material.candidates:
            material.close()
            raise AuthenticationError("no SSH authentication methods available")

        self.logger.debug(
            "Gathered authentication material",
            candidates=[candidate.source for candidate in material.candidates],
        )
        return material

    def _add_agent_keys(self, material: AuthMaterial) -> None:
        if not os.getenv(SSH_AUTH_SOCK):
            return
        try:
            agent = paramiko.Agent()
            keys = agent.get_keys()
        except (SSHException, OSError) as e:
            self.logger.debug("SSH agent unavailable", error=str(e))
            return

        if not keys:
            agent.close()
            return

        material.agent = agent
        for key in keys:
            material.candidates.append(AuthCandidate(source="agent", key=key))
