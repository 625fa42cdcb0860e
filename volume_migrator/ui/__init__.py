"""User-facing selection and listing of volumes."""

from .selector import ConsoleVolumeSelector, VolumeSelector, render_volume_table  # noqa: F401

__all__ = ["ConsoleVolumeSelector", "VolumeSelector", "render_volume_table"]
