"""Bounded execution of external tools (hyprctl, swaymsg, lact).

Every call is wrapped in ``asyncio.wait_for``; a slow tool becomes an
``ExternalCallFailed`` instead of a hang.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import shutil

from ..errors import ExternalCallFailed
from ..errors import ExternalToolUnavailable

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 2.0


def tool_installed(program: str) -> bool:
    return shutil.which(program) is not None


async def run_tool(argv: list[str], timeout: float = DEFAULT_TIMEOUT) -> str:
    """Run an external tool and return its stdout.

    Args:
        argv: Program and arguments
        timeout: Seconds before the call is abandoned and the process killed

    Returns:
        Decoded stdout

    Raises:
        ExternalToolUnavailable: If the program is not installed
        ExternalCallFailed: If the program cannot be started, times out or exits non-zero
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise ExternalToolUnavailable(f"Command not found: {argv[0]}") from e
    except OSError as e:
        raise ExternalCallFailed(f"Failed to start {argv[0]}: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except TimeoutError as e:
        raise ExternalCallFailed(f"{argv[0]} timed out after {timeout:g}s") from e
    finally:
        # Also reached on cancellation by an outer timeout
        if proc.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()

    stdout_str = stdout.decode(errors="replace") if stdout else ""
    stderr_str = stderr.decode(errors="replace") if stderr else ""

    if stderr_str:
        logger.debug(f"{argv[0]} stderr: {stderr_str.strip()}")

    if proc.returncode != 0:
        error_msg = stderr_str.strip() or stdout_str.strip() or f"exit code {proc.returncode}"
        raise ExternalCallFailed(f"{' '.join(argv)} failed: {error_msg}")

    return stdout_str
