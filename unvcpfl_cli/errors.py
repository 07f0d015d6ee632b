"""Error taxonomy for profile compilation and launch supervision.

Only ``ChildLaunchError`` halts a launch session. Everything else degrades:
adapter exceptions are caught by the supervisor and turned into ``Issue``
records so they stay visible in the outcome, the log and the event bus.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class UnvcpflError(Exception):
    """Base class for all errors raised by this package."""


class ExternalToolUnavailable(UnvcpflError):
    """An optional integration (compositor, GPU tool) is not installed or not running."""


class ExternalCallFailed(UnvcpflError):
    """An external adapter call timed out or exited non-zero."""


class ChildLaunchError(UnvcpflError):
    """The target command could not be spawned. Fatal for the session."""


class SessionConflictError(UnvcpflError):
    """A launch was requested while another session owns the monitor/GPU resources."""


class InvalidSessionToken(UnvcpflError):
    """A supervisor call carried a token that does not match the active session."""


class ProfileStoreError(UnvcpflError):
    """A profile document could not be written, read or removed."""


class IssueKind(str, Enum):
    """Non-fatal conditions surfaced during compile, launch or restore."""

    VALIDATION_DEGRADED = "validation_degraded"
    EXTERNAL_TOOL_UNAVAILABLE = "external_tool_unavailable"
    EXTERNAL_CALL_FAILED = "external_call_failed"
    CHILD_LAUNCH_ERROR = "child_launch_error"
    RESTORE_FAILED = "restore_failed"


@dataclass(frozen=True)
class Issue:
    """A degraded-but-observable condition."""

    kind: IssueKind
    message: str

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"
