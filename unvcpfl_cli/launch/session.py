"""Launch session state.

A LaunchSession lives from the launch request until restoration finishes. It
holds what is needed to undo the session's side effects: the GPU profile
active before the switch and the monitor layout before any directive ran.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from dataclasses import field
from datetime import UTC
from datetime import datetime
from enum import Enum

from ..errors import Issue
from ..errors import IssueKind
from ..profiles.compiler import CompiledLaunch
from ..profiles.schema import Profile
from ..screen.models import MonitorDescriptor
from .command import LaunchCommand


class SessionState(str, Enum):
    IDLE = "idle"
    PRE_LAUNCH = "pre_launch"
    RUNNING = "running"
    RESTORING = "restoring"


@dataclass(frozen=True)
class SessionToken:
    """Handle returned by ``begin``; every later supervisor call must carry it."""

    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __str__(self) -> str:
        return self.id[:8]


@dataclass
class LaunchSession:
    token: SessionToken
    profile: Profile
    compiled: CompiledLaunch
    command: LaunchCommand
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    # Pre-launch snapshot
    previous_gpu_profile: str | None = None
    monitor_snapshot: tuple[MonitorDescriptor, ...] | None = None

    # What this session changed
    gpu_profile_applied: bool = False
    monitors_changed: bool = False

    process: asyncio.subprocess.Process | None = None
    returncode: int | None = None
    issues: list[Issue] = field(default_factory=list)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def cancel_requested(self) -> bool:
        return self.cancel_event.is_set()

    @property
    def pid(self) -> int | None:
        return self.process.pid if self.process is not None else None

    def record_monitor_snapshot(self, snapshot: tuple[MonitorDescriptor, ...]) -> None:
        """Keep the first pre-change layout; later calls do not overwrite it."""
        if self.monitor_snapshot is None:
            self.monitor_snapshot = tuple(snapshot)

    def add_issue(self, kind: IssueKind, message: str) -> Issue:
        issue = Issue(kind, message)
        self.issues.append(issue)
        return issue


@dataclass(frozen=True)
class LaunchOutcome:
    """Result of a finished session."""

    profile_name: str
    spawned: bool
    cancelled: bool
    returncode: int | None
    issues: tuple[Issue, ...] = ()

    @property
    def restore_failed(self) -> bool:
        return any(issue.kind is IssueKind.RESTORE_FAILED for issue in self.issues)

    @property
    def exit_code(self) -> int:
        """Shell-style exit status for the CLI."""
        if not self.spawned:
            return 130 if self.cancelled else 1
        if self.returncode is None:
            return 130
        if self.returncode < 0:
            return 128 - self.returncode
        return self.returncode
