"""Shell escaping, identifier validation and remote path normalization.

Everything interpolated into a command string for the remote shell goes
through :func:`escape`, either directly or via :class:`RemoteCommand`.
"""

import re
from collections.abc import Iterable

# Characters that never need quoting for a POSIX shell
SAFE_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_./-]+$")

# Allow-list for resource identifiers (volume names double as archive names)
IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")

MAX_IDENTIFIER_LENGTH = 255


def is_safe_token(value: str) -> bool:
    """Return True when ``value`` can be passed to the shell without quoting."""
    if not value or ".." in value:
        return False
    return SAFE_TOKEN_PATTERN.match(value) is not None


def escape(value: str) -> str:
    """Escape a string so the remote shell parses it back as one token.

    Safe strings are returned unchanged. Anything else is wrapped in single
    quotes, with each embedded single quote written as ``'\\''``.

    Examples:
        >>> escape("volume-1")
        'volume-1'
        >>> escape("it's a test")
        "'it'\\\\''s a test'"
        >>> escape("")
        "''"
    """
    if is_safe_token(value):
        return value
    return "'" + value.replace("'", "'\\''") + "'"


def validate_identifier(name: str) -> bool:
    """Check a resource identifier (e.g. a volume name) against the allow-list.

    Callers must reject a failing identifier outright; identifiers also name
    on-disk artifacts, so escaping them is not enough.
    """
    if not name or len(name) > MAX_IDENTIFIER_LENGTH:
        return False

    if name[0] in "-.":
        return False

    if ".." in name or "/" in name or "\\" in name:
        return False

    return IDENTIFIER_PATTERN.match(name) is not None


def sanitize_remote_path(path: str) -> str:
    """Normalize a remote path: drop ``..``, force a leading ``/``, collapse ``//``.

    The result still has to be escaped before it is embedded in a command.
    """
    path = path.replace("..", "")

    if not path.startswith("/"):
        path = "/" + path

    while "//" in path:
        path = path.replace("//", "/")

    return path


class RemoteCommand:
    """Ordered token list that only serializes through :func:`escape`."""

    def __init__(self, *tokens: str):
        self._tokens: list[str] = [str(token) for token in tokens]

    @classmethod
    def from_args(cls, args: Iterable[str]) -> "RemoteCommand":
        """Build a command from an argument sequence."""
        return cls(*args)

    @property
    def tokens(self) -> list[str]:
        return list(self._tokens)

    def extend(self, *tokens: str) -> "RemoteCommand":
        """Return a new command with ``tokens`` appended."""
        return RemoteCommand(*self._tokens, *tokens)

    def prefixed(self, *tokens: str) -> "RemoteCommand":
        """Return a new command with ``tokens`` placed in front."""
        return RemoteCommand(*tokens, *self._tokens)

    def render(self) -> str:
        """Serialize to a shell command string."""
        return " ".join(escape(token) for token in self._tokens)

    def __str__(self) -> str:
        return self.render()

    def __repr__(self) -> str:
        return f"RemoteCommand({self._tokens!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RemoteCommand):
            return NotImplemented
        return self._tokens == other._tokens

    def __hash__(self) -> int:
        return hash(tuple(self._tokens))
