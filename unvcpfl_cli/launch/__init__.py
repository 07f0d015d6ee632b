"""Launch surface and session supervision."""

from .command import LaunchCommand
from .command import compose_launch
from .command import render_command
from .session import LaunchOutcome
from .session import SessionState
from .session import SessionToken
from .supervisor import LaunchSupervisor

__all__ = [
    "LaunchCommand",
    "LaunchOutcome",
    "LaunchSupervisor",
    "SessionState",
    "SessionToken",
    "compose_launch",
    "render_command",
]
