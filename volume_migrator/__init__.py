"""Migrate named Docker volumes from local containers to a remote host over SSH."""

__version__ = "1.0.0"
