"""Detection and caching of privilege elevation for the managed subsystem."""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum
from typing import Any

from .exceptions import PrivilegeDetectionError
from .logging_config import component_logger
from .settings import settings

# Runs a probe command and reports whether it exited successfully
ProbeRunner = Callable[[list[str]], Awaitable[bool]]


class PrivilegeState(Enum):
    """Tri-state result of privilege detection."""

    UNKNOWN = "unknown"
    NOT_REQUIRED = "not_required"
    REQUIRED = "required"


class PrivilegeDetector:
    """Determines once whether managed commands need an elevation prefix.

    One instance per execution context (local host, remote host). The state
    moves from UNKNOWN to NOT_REQUIRED or REQUIRED exactly once; concurrent
    callers of :meth:`detect` share a single probe sequence.
    """

    def __init__(
        self,
        probe: ProbeRunner,
        context: str,
        managed_command: str | None = None,
        probe_args: Sequence[str] = ("ps",),
        elevation_prefix: Sequence[str] | None = None,
        logger: Any | None = None,
    ):
        self._probe = probe
        self.context = context
        self.managed_command = managed_command or settings.managed_command
        self.probe_args = list(probe_args)
        self.elevation_prefix = list(
            elevation_prefix if elevation_prefix is not None else settings.elevation_prefix
        )
        self.logger = component_logger(logger, "privilege_detector").bind(context=context)

        self._state = PrivilegeState.UNKNOWN
        self._lock = asyncio.Lock()

    @property
    def state(self) -> PrivilegeState:
        return self._state

    @property
    def required(self) -> bool:
        """Whether elevation is required; only meaningful once detected."""
        return self._state is PrivilegeState.REQUIRED

    @property
    def detected(self) -> bool:
        return self._state is not PrivilegeState.UNKNOWN

    async def detect(self) -> PrivilegeState:
        """Run the probe sequence if it has not run yet and return the state.

        Raises:
            PrivilegeDetectionError: If the probe fails with and without elevation
        """
        if self._state is not PrivilegeState.UNKNOWN:
            return self._state

        async with self._lock:
            if self._state is not PrivilegeState.UNKNOWN:
                return self._state

            probe_cmd = [self.managed_command, *self.probe_args]
            if await self._probe(probe_cmd):
                self._state = PrivilegeState.NOT_REQUIRED
            elif await self._probe([*self.elevation_prefix, *probe_cmd]):
                self._state = PrivilegeState.REQUIRED
            else:
                self.logger.error("Managed subsystem not accessible", probe=" ".join(probe_cmd))
                raise PrivilegeDetectionError(
                    f"{self.managed_command} is not accessible on {self.context} host "
                    "(not installed, or no non-interactive elevation available)"
                )

            self.logger.debug(
                "Privilege detection complete",
                requires_elevation=self._state is PrivilegeState.REQUIRED,
            )
            return self._state

    def wrap_command(self, args: Sequence[str]) -> list[str]:
        """Prefix ``args`` with the elevation command when elevation is required.

        Raises:
            RuntimeError: If detection has not completed yet
        """
        if self._state is PrivilegeState.UNKNOWN:
            raise RuntimeError(f"privilege detection has not run for {self.context} host")

        if self._state is PrivilegeState.REQUIRED:
            return [*self.elevation_prefix, *args]
        return list(args)

    def managed(self, *args: str) -> list[str]:
        """Build a wrapped managed-subsystem invocation, e.g. ``docker volume ls``."""
        return self.wrap_command([self.managed_command, *args])
