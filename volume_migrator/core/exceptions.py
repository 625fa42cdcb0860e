"""Core exceptions for volume migration operations."""


class VolumeMigratorError(Exception):
    """Base exception for volume migration operations."""


class ConfigurationError(VolumeMigratorError):
    """Configuration validation or loading failed."""


class HostTrustError(VolumeMigratorError):
    """Remote host identity could not be verified."""

    def __init__(
        self,
        message: str,
        hostname: str = "",
        trust_file: str = "",
        fingerprint: str = "",
    ):
        super().__init__(message)
        self.hostname = hostname
        self.trust_file = trust_file
        self.fingerprint = fingerprint


class UnknownHostError(HostTrustError):
    """Host has no record in the trust file."""


class HostKeyChangedError(HostTrustError):
    """Host presented a key that differs from every recorded key."""


class AuthenticationError(VolumeMigratorError):
    """No authentication method was accepted by the remote host."""


class InsecureKeyPermissionsError(AuthenticationError):
    """Private key file is readable by someone other than its owner."""


class SSHConnectionError(VolumeMigratorError):
    """SSH transport could not be established or was lost."""

    def __init__(self, host: str, cause: Exception | str | None = None):
        message = f"failed to connect to SSH host '{host}'"
        if cause:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.host = host
        self.cause = cause


class PrivilegeDetectionError(VolumeMigratorError):
    """Managed subsystem is not accessible, with or without elevation."""


class CommandError(VolumeMigratorError):
    """Command exited with a non-zero status."""

    def __init__(self, command: str, exit_status: int, stderr: str = ""):
        detail = stderr.strip() or "no error output"
        super().__init__(f"command failed with exit status {exit_status}: {command}: {detail}")
        self.command = command
        self.exit_status = exit_status
        self.stderr = stderr


class RemoteCommandError(CommandError):
    """Remote command execution failed."""


class LocalCommandError(CommandError):
    """Local command execution failed."""


class UnsafePathError(VolumeMigratorError):
    """Destructive operation targeted a protected path."""


class InvalidVolumeNameError(VolumeMigratorError):
    """Volume name failed identifier validation."""

    def __init__(self, name: str):
        super().__init__(
            f"invalid volume name '{name}': must contain only alphanumeric characters, "
            "dashes, underscores, and dots"
        )
        self.name = name


class ContainerNotFoundError(VolumeMigratorError):
    """Container does not exist in the local runtime."""


class VolumeNotFoundError(VolumeMigratorError):
    """Volume does not exist."""

    def __init__(self, volume_name: str, cause: Exception | str | None = None):
        message = f"volume '{volume_name}' not found"
        if cause:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.volume_name = volume_name


class DiskSpaceError(VolumeMigratorError):
    """Insufficient disk space for the migration."""

    def __init__(self, location: str, required: int, available: int):
        from ..utils import format_size

        super().__init__(
            f"insufficient disk space on {location}: required {required} bytes "
            f"({format_size(required)}), available {available} bytes ({format_size(available)})"
        )
        self.location = location
        self.required = required
        self.available = available


class DiskSpaceCheckError(VolumeMigratorError):
    """Available disk space could not be measured."""


class ExportError(VolumeMigratorError):
    """Volume export failed."""


class TransferError(VolumeMigratorError):
    """Archive transfer failed."""


class VolumeImportError(VolumeMigratorError):
    """Volume import on the remote host failed."""


class SelectionCancelledError(VolumeMigratorError):
    """User cancelled the volume selection."""
