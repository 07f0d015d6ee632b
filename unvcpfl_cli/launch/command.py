"""Process launch surface.

Both the spawned process and the copy/paste command renderings are derived
from the same ``CompiledLaunch``, so they cannot drift apart.
"""

import os
import shlex
from collections.abc import Mapping
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field

from ..profiles.compiler import CompiledLaunch

COMMAND_PLACEHOLDER = "%command%"
HELPER_PROGRAM = "unvcpfl"
RENDER_FLAVORS = ("helper", "inline")


@dataclass(frozen=True)
class LaunchCommand:
    """Final argv and environment for one process launch."""

    argv: tuple[str, ...]
    env: dict[str, str] = field(default_factory=dict)

    @property
    def program(self) -> str:
        return self.argv[0]

    def display(self) -> str:
        return shlex.join(self.argv)


def compose_launch(
    compiled: CompiledLaunch,
    target_command: Sequence[str],
    base_env: Mapping[str, str] | None = None,
) -> LaunchCommand:
    """
    Build the command that actually gets spawned.

    Args:
        compiled: Compiled profile
        target_command: The game command (program and its own arguments)
        base_env: Inherited environment (defaults to os.environ)

    Returns:
        LaunchCommand where argv = wrappers + target + custom args and env is
        the inherited environment overridden by the profile's variables

    Raises:
        ValueError: If target_command is empty
    """
    if not target_command:
        raise ValueError("Target command cannot be empty")

    env = dict(os.environ if base_env is None else base_env)
    env.update(compiled.env)

    argv = (*compiled.wrapper_argv, *target_command, *compiled.extra_args)
    return LaunchCommand(argv=tuple(argv), env=env)


def render_command(compiled: CompiledLaunch, flavor: str = "helper") -> str:
    """
    Render a launch-options line for a game launcher.

    Flavors:
        helper: delegate to this CLI by profile name, so later profile edits
            apply without touching the launcher
        inline: environment assignments and wrappers written out in full

    Raises:
        ValueError: For an unknown flavor
    """
    if flavor == "helper":
        return f"{HELPER_PROGRAM} run --profile {shlex.quote(compiled.profile_name)} -- {COMMAND_PLACEHOLDER}"

    if flavor == "inline":
        parts = [f"{key}={shlex.quote(value)}" for key, value in compiled.env.items()]
        parts += [shlex.quote(arg) for arg in compiled.wrapper_argv]
        parts.append(COMMAND_PLACEHOLDER)
        parts += [shlex.quote(arg) for arg in compiled.extra_args]
        return " ".join(parts)

    raise ValueError(f"Unknown command flavor '{flavor}' (expected one of {', '.join(RENDER_FLAVORS)})")
