"""GPU power profile switching through LACT.

LACT keeps named GPU profiles (clocks, power limit, fan curve). The launch
supervisor activates a profile for the duration of a game session and puts
the previous one back afterwards.
"""

from __future__ import annotations

import logging
from typing import Protocol
from typing import runtime_checkable

from ..errors import ExternalCallFailed
from ..errors import ExternalToolUnavailable
from ..utils.external import DEFAULT_TIMEOUT
from ..utils.external import run_tool
from ..utils.external import tool_installed

logger = logging.getLogger(__name__)

LACT_PROGRAM = "lact"
ACTIVE_MARKER = "*"


@runtime_checkable
class GpuPowerProfileSwitch(Protocol):
    """Optional integration that changes the GPU power profile."""

    def is_available(self) -> bool:
        ...

    async def list_profiles(self) -> list[str]:
        ...

    async def get_active(self) -> str | None:
        ...

    async def set_active(self, name: str) -> None:
        ...


class LactProfileSwitch:
    """GpuPowerProfileSwitch backed by ``lact cli``."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, program: str = LACT_PROGRAM):
        self.timeout = timeout
        self.program = program

    def is_available(self) -> bool:
        return tool_installed(self.program)

    async def _run(self, *args: str) -> str:
        if not self.is_available():
            raise ExternalToolUnavailable("LACT is not installed")
        return await run_tool([self.program, "cli", *args], timeout=self.timeout)

    async def list_profiles(self) -> list[str]:
        """
        Names of the profiles LACT knows about.

        The active profile may be flagged with a leading ``*``; the marker is
        stripped.
        """
        output = await self._run("profile", "list")
        return [name for name, _ in parse_profile_list(output)]

    async def get_active(self) -> str | None:
        output = await self._run("profile", "get")
        name = output.strip()
        return name or None

    async def set_active(self, name: str) -> None:
        if not name:
            raise ExternalCallFailed("GPU profile name cannot be empty")
        await self._run("profile", "set", name)
        logger.info(f"Activated LACT profile '{name}'")


def parse_profile_list(output: str) -> list[tuple[str, bool]]:
    """Parse ``lact cli profile list`` output into (name, is_active) pairs."""
    profiles = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        active = line.startswith(ACTIVE_MARKER)
        name = line.lstrip(ACTIVE_MARKER).strip()
        if name:
            profiles.append((name, active))
    return profiles
