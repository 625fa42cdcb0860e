"""Utility functions shared across the volume migrator."""

import re

# Sizes as printed by ``docker system df -v`` (e.g. "1.2GB", "500MB", "0B")
_SIZE_PATTERN = re.compile(r"^([\d.]+)([KMGT]?B?)$", re.IGNORECASE)

_UNIT_MULTIPLIERS = {
    "K": 1024,
    "M": 1024**2,
    "G": 1024**3,
    "T": 1024**4,
}


def format_size(size_bytes: int) -> str:
    """Format bytes into human-readable string.

    Args:
        size_bytes: Size in bytes

    Returns:
        Human-readable size string with appropriate unit

    Examples:
        >>> format_size(0)
        '0 B'
        >>> format_size(1024)
        '1.0 KB'
        >>> format_size(1536870912)
        '1.4 GB'
    """
    if size_bytes == 0:
        return "0 B"

    size = float(size_bytes)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size < 1024.0:
            if unit == "B":
                return f"{int(size)} {unit}"
            return f"{size:.1f} {unit}"
        size /= 1024.0
    return f"{size:.1f} PB"


def parse_size_to_bytes(size_str: str) -> int:
    """Convert a runtime size string such as "1.2GB" or "500MB" to bytes.

    Unparseable input yields 0 so that size lookups never abort discovery.

    Examples:
        >>> parse_size_to_bytes("1KB")
        1024
        >>> parse_size_to_bytes("garbage")
        0
    """
    match = _SIZE_PATTERN.match(size_str.strip())
    if not match:
        return 0

    try:
        value = float(match.group(1))
    except ValueError:
        return 0

    unit = match.group(2).upper()
    multiplier = _UNIT_MULTIPLIERS.get(unit[:1], 1)
    return int(value * multiplier)


def truncate(text: str, max_len: int) -> str:
    """Truncate text to ``max_len`` characters, marking the cut with an ellipsis."""
    if len(text) <= max_len:
        return text
    if max_len <= 3:
        return text[:max_len]
    return text[: max_len - 3] + "..."
