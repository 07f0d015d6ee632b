"""Launch session events."""

from unvcpfl_cli.events.bus import EventBus
from unvcpfl_cli.events.schemas import ChildExited
from unvcpfl_cli.events.schemas import ChildStarted
from unvcpfl_cli.events.schemas import IssueRaised
from unvcpfl_cli.events.schemas import SessionEvent
from unvcpfl_cli.events.schemas import StateChanged

__all__ = [
    "EventBus",
    "SessionEvent",
    "StateChanged",
    "IssueRaised",
    "ChildStarted",
    "ChildExited",
]
