"""Launch session event schemas."""

from typing import Literal

from pydantic import BaseModel
from pydantic import Field


class StateChanged(BaseModel):
    """Supervisor moved to a new state."""

    type: Literal["state_changed"] = "state_changed"
    session_id: str = Field(description="Session token id")
    previous: str = Field(description="State left")
    current: str = Field(description="State entered")


class IssueRaised(BaseModel):
    """A non-fatal condition was recorded on the session."""

    type: Literal["issue_raised"] = "issue_raised"
    session_id: str = Field(description="Session token id")
    kind: str = Field(description="Issue kind")
    message: str = Field(description="Human-readable detail")


class ChildStarted(BaseModel):
    """The wrapped game process was spawned."""

    type: Literal["child_started"] = "child_started"
    session_id: str = Field(description="Session token id")
    pid: int = Field(description="Process id of the outermost wrapper or the game")
    argv: list[str] = Field(description="Spawned command line")


class ChildExited(BaseModel):
    """The wrapped game process ended."""

    type: Literal["child_exited"] = "child_exited"
    session_id: str = Field(description="Session token id")
    returncode: int | None = Field(description="Exit status; negative for a signal, None if never observed")


SessionEvent = StateChanged | IssueRaised | ChildStarted | ChildExited
