"""Console volume selection and listing."""

import asyncio
import sys
from collections.abc import Callable
from typing import Protocol, TextIO

from ..core.exceptions import SelectionCancelledError
from ..models.volume import Volume
from ..utils import format_size, truncate

TABLE_WIDTH = 95


class VolumeSelector(Protocol):
    """Collaborator choosing which discovered volumes to migrate."""

    async def select(self, volumes: list[Volume]) -> list[Volume]:
        """Return a non-empty subset of ``volumes``; raise SelectionCancelledError to cancel."""
        ...

    def display(self, volumes: list[Volume]) -> None:
        """Show the volumes that will be migrated without prompting."""
        ...


def render_volume_table(volumes: list[Volume]) -> str:
    """Render volumes as a fixed-width table."""
    if not volumes:
        return "No volumes found.\n"

    lines = [
        "",
        f"{'VOLUME NAME':<25} {'CONTAINER':<20} {'MOUNT PATH':<25} SIZE",
        "-" * TABLE_WIDTH,
    ]
    for volume in volumes:
        lines.append(
            f"{truncate(volume.name, 25):<25} {truncate(volume.container, 20):<20} "
            f"{truncate(volume.mount_path, 25):<25} {volume.size}"
        )
    lines.append("")
    return "\n".join(lines) + "\n"


class ConsoleVolumeSelector:
    """Prompt-based selection: every volume starts selected.

    Commands: a volume number toggles it, ``a`` selects all, ``n`` selects
    none, ``y`` confirms and ``q`` cancels.
    """

    def __init__(
        self,
        input_fn: Callable[[str], str] = input,
        output: TextIO | None = None,
    ):
        self.input_fn = input_fn
        self.output = output

    @property
    def _out(self) -> TextIO:
        return self.output or sys.stdout

    def display(self, volumes: list[Volume]) -> None:
        self._out.write(render_volume_table(volumes))

    async def select(self, volumes: list[Volume]) -> list[Volume]:
        return await asyncio.to_thread(self._select, volumes)

    def _render_choices(self, volumes: list[Volume], chosen: list[bool]) -> None:
        for index, (volume, selected) in enumerate(zip(volumes, chosen), start=1):
            mark = "x" if selected else " "
            self._out.write(
                f"{index:>3}. [{mark}] {volume.name} ({volume.container}) "
                f"{volume.mount_path} {volume.size}\n"
            )

    def _select(self, volumes: list[Volume]) -> list[Volume]:
        if not volumes:
            raise SelectionCancelledError("no volumes to select")

        self._out.write(f"\nDiscovered {len(volumes)} volume(s)\n\n")
        chosen = [True] * len(volumes)

        while True:
            count = sum(chosen)
            total = sum(v.size_bytes for v, selected in zip(volumes, chosen) if selected)
            self._render_choices(volumes, chosen)

            try:
                response = self.input_fn(
                    f"Select volumes to migrate [{count} of {len(volumes)} selected, "
                    f"{format_size(total)} total] (number toggle, a all, n none, y confirm, q cancel): "
                )
            except (EOFError, KeyboardInterrupt) as e:
                raise SelectionCancelledError("selection cancelled by user") from e

            response = response.strip().lower()
            if response in ("y", "yes"):
                if count == 0:
                    self._out.write("No volumes selected.\n")
                    continue
                return [volume for volume, selected in zip(volumes, chosen) if selected]
            if response in ("q", "quit"):
                raise SelectionCancelledError("selection cancelled by user")
            if response == "a":
                chosen = [True] * len(volumes)
            elif response == "n":
                chosen = [False] * len(volumes)
            elif response.isdigit() and 1 <= int(response) <= len(volumes):
                index = int(response) - 1
                chosen[index] = not chosen[index]
            else:
                self._out.write(f"Unrecognized choice: {response!r}\n")
