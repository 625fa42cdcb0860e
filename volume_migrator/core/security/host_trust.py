"""Trust-on-first-use verification of remote host keys.

The trust file uses the OpenSSH ``known_hosts`` line format
(``hostname key-type base64(key)``). A hostname may carry several records;
verification compares the presented key against all of them.
"""

import base64
import hashlib
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import paramiko
from paramiko.hostkeys import HostKeyEntry, HostKeys, InvalidHostKey

from ..exceptions import HostKeyChangedError, HostTrustError, UnknownHostError
from ..logging_config import component_logger


class HostKeyMode(Enum):
    """How unknown and changed host keys are treated."""

    STRICT = "strict"
    ACCEPT_NEW = "accept_new"
    DEFAULT = "default"

    @classmethod
    def from_flags(cls, strict: bool, accept_new: bool) -> "HostKeyMode":
        """Map the strict/accept flag pair onto a mode.

        The conflicting combination is rejected by configuration validation
        before this is reached; strict wins if it slips through.
        """
        if strict:
            return cls.STRICT
        if accept_new:
            return cls.ACCEPT_NEW
        return cls.DEFAULT


@dataclass(frozen=True)
class TrustRecord:
    """One ``hostname key-type key`` entry of the trust file."""

    hostname: str
    key_type: str
    key_base64: str

    def matches_key(self, key: paramiko.PKey) -> bool:
        return self.key_type == key.get_name() and self.key_base64 == key.get_base64()

    def to_line(self) -> str:
        return f"{self.hostname} {self.key_type} {self.key_base64}\n"


def host_identifier(hostname: str, port: int = 22) -> str:
    """Return the trust file name of a host, bracketing non-default ports."""
    if port == 22:
        return hostname
    return f"[{hostname}]:{port}"


def fingerprint(key: paramiko.PKey) -> str:
    """SHA256 fingerprint in the format printed by ``ssh-keygen -l``."""
    digest = hashlib.sha256(key.asbytes()).digest()
    return "SHA256:" + base64.b64encode(digest).decode("ascii").rstrip("=")


def _hostname_matches(hostname: str, entry_hostname: str) -> bool:
    if entry_hostname.startswith("|1|"):
        try:
            return HostKeys.hash_host(hostname, entry_hostname) == entry_hostname
        except (ValueError, TypeError):
            return False
    return entry_hostname == hostname


class HostTrustStore:
    """Verifies host keys against a persisted trust file in one of three modes."""

    def __init__(
        self,
        trust_file: Path | str | None = None,
        mode: HostKeyMode = HostKeyMode.DEFAULT,
        logger: Any | None = None,
    ):
        """Initialize the trust store.

        Args:
            trust_file: Path to the trust file (defaults to ~/.ssh/known_hosts)
            mode: Verification mode
            logger: Logger to bind component context onto

        Raises:
            HostTrustError: If the trust file is missing in strict mode, or
                cannot be created in the other modes
        """
        if trust_file is None:
            trust_file = Path.home() / ".ssh" / "known_hosts"
        self.trust_file = Path(trust_file).expanduser()
        self.mode = mode
        self.logger = component_logger(logger, "host_trust_store")

        if not self.trust_file.exists():
            if mode is HostKeyMode.STRICT:
                raise HostTrustError(
                    f"trust file {self.trust_file} does not exist "
                    "(use --accept-host-key to create it)",
                    trust_file=str(self.trust_file),
                )
            self._create_trust_file()

    def _create_trust_file(self) -> None:
        """Create an empty trust file with owner-only permissions."""
        try:
            self.trust_file.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
            fd = os.open(self.trust_file, os.O_CREAT | os.O_WRONLY, 0o600)
            os.close(fd)
        except OSError as e:
            raise HostTrustError(
                f"failed to create trust file {self.trust_file}: {e}",
                trust_file=str(self.trust_file),
            ) from e

        self.logger.info("Created trust file", trust_file=str(self.trust_file))

    def records_for(self, hostname: str) -> list[TrustRecord]:
        """Return every record of ``hostname`` in file order."""
        records: list[TrustRecord] = []
        try:
            with open(self.trust_file, encoding="utf-8") as f:
                lines = f.readlines()
        except FileNotFoundError:
            return records
        except OSError as e:
            raise HostTrustError(
                f"failed to read trust file {self.trust_file}: {e}",
                hostname=hostname,
                trust_file=str(self.trust_file),
            ) from e

        for lineno, line in enumerate(lines, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                entry = HostKeyEntry.from_line(line, lineno)
            except (InvalidHostKey, ValueError) as e:
                self.logger.debug("Skipping invalid trust file line", line=lineno, error=str(e))
                continue
            if entry is None or entry.key is None:
                continue
            if any(_hostname_matches(hostname, name) for name in entry.hostnames):
                records.append(
                    TrustRecord(
                        hostname=hostname,
                        key_type=entry.key.get_name(),
                        key_base64=entry.key.get_base64(),
                    )
                )
        return records

    def add(self, hostname: str, key: paramiko.PKey) -> TrustRecord:
        """Append a record for ``hostname`` to the trust file."""
        record = TrustRecord(hostname=hostname, key_type=key.get_name(), key_base64=key.get_base64())
        try:
            fd = os.open(self.trust_file, os.O_APPEND | os.O_WRONLY | os.O_CREAT, 0o600)
            with os.fdopen(fd, "a", encoding="utf-8") as f:
                f.write(record.to_line())
        except OSError as e:
            raise HostTrustError(
                f"failed to add host key to {self.trust_file}: {e}",
                hostname=hostname,
                trust_file=str(self.trust_file),
            ) from e
        return record

    def verify(self, hostname: str, key: paramiko.PKey) -> None:
        """Verify ``key`` for ``hostname`` according to the store mode.

        Raises:
            UnknownHostError: Host has no record (strict and default modes)
            HostKeyChangedError: Host is known but no record matches the key
        """
        key_fingerprint = fingerprint(key)
        records = self.records_for(hostname)

        if any(record.matches_key(key) for record in records):
            self.logger.debug("Host key verified", host=hostname, fingerprint=key_fingerprint)
            return

        if records:
            self.logger.error(
                "Host key mismatch",
                host=hostname,
                fingerprint=key_fingerprint,
                trust_file=str(self.trust_file),
            )
            raise HostKeyChangedError(
                "WARNING: REMOTE HOST IDENTIFICATION HAS CHANGED!\n"
                "IT IS POSSIBLE THAT SOMEONE IS DOING SOMETHING NASTY!\n"
                f"Host key for {hostname} has changed (presented {key_fingerprint}).\n"
                f"Remove old key from {self.trust_file} and try again.\n"
                f"Or use ssh-keygen -R {hostname}",
                hostname=hostname,
                trust_file=str(self.trust_file),
                fingerprint=key_fingerprint,
            )

        if self.mode is HostKeyMode.ACCEPT_NEW:
            self.logger.warning(
                "Unknown host, adding new host key",
                host=hostname,
                fingerprint=key_fingerprint,
                trust_file=str(self.trust_file),
            )
            self.add(hostname, key)
            return

        raise UnknownHostError(
            f"host {hostname} is not in trust file {self.trust_file} "
            f"(fingerprint {key_fingerprint}); use --accept-host-key to trust it",
            hostname=hostname,
            trust_file=str(self.trust_file),
            fingerprint=key_fingerprint,
        )

