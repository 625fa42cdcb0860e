"""Centralized constants for the volume migrator."""

DEFAULT_SSH_PORT = 22

# Conventional private key filenames tried under ~/.ssh, in order
DEFAULT_KEY_FILENAMES = ("id_rsa", "id_ed25519", "id_ecdsa", "id_dsa")

# Environment variable naming the SSH agent socket
SSH_AUTH_SOCK = "SSH_AUTH_SOCK"

# Staging directory naming
STAGING_PREFIX = "volume-migration-"
REMOTE_STAGING_ROOT = "/tmp"
ARCHIVE_SUFFIX = ".tar.gz"

# Mount points used inside the helper container
HELPER_DATA_MOUNT = "/data"
HELPER_BACKUP_MOUNT = "/backup"

# Flat buffer applied to the selected volume sizes (no compression credit)
SPACE_BUFFER_PERCENT = 10

# Root-level paths that recursive removal must never target
PROTECTED_REMOTE_PATHS = frozenset(
    {
        "/",
        "/bin",
        "/boot",
        "/dev",
        "/etc",
        "/home",
        "/lib",
        "/opt",
        "/proc",
        "/root",
        "/sbin",
        "/sys",
        "/usr",
        "/var",
    }
)

# Placeholders used when discovery lookups fail
UNKNOWN_SIZE = "Unknown"
UNKNOWN_MOUNT_PATH = "N/A"

# Default configuration file locations
USER_CONFIG_PATH = "~/.config/volume-migrator/config.yml"
DEFAULT_KNOWN_HOSTS = "~/.ssh/known_hosts"
