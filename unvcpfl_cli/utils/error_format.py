"""Display helpers for errors and session issues.

Some exceptions raised around subprocesses stringify to nothing
(``TimeoutError()``, ``asyncio.CancelledError()``), which would print as a bare
"Error:". These helpers always produce something a user can act on.
"""

from __future__ import annotations

import asyncio

from rich.markup import escape as _escape_markup

from ..errors import Issue
from ..errors import IssueKind

FRIENDLY_MESSAGES: dict[type, str] = {
    TimeoutError: "External call timed out.",
    asyncio.CancelledError: "Operation was cancelled.",
    FileNotFoundError: "Program not found.",
    PermissionError: "Permission denied.",
    KeyboardInterrupt: "Interrupted.",
}

ISSUE_LABELS: dict[IssueKind, str] = {
    IssueKind.VALIDATION_DEGRADED: "profile",
    IssueKind.EXTERNAL_TOOL_UNAVAILABLE: "unavailable",
    IssueKind.EXTERNAL_CALL_FAILED: "failed",
    IssueKind.CHILD_LAUNCH_ERROR: "launch",
    IssueKind.RESTORE_FAILED: "not restored",
}


def format_error_message(e: BaseException, *, include_type: bool = True) -> str:
    """Format an exception into a non-empty display message.

    Examples:
        >>> format_error_message(ValueError("bad scale"))
        'ValueError: bad scale'

        >>> format_error_message(TimeoutError())
        'TimeoutError: External call timed out.'
    """
    error_str = str(e)
    error_type = type(e).__name__

    if error_str:
        if include_type and error_type not in error_str:
            return f"{error_type}: {error_str}"
        return error_str

    for exc_type, friendly_msg in FRIENDLY_MESSAGES.items():
        if isinstance(e, exc_type):
            return f"{error_type}: {friendly_msg}" if include_type else friendly_msg

    return f"{error_type}: (no additional details)"


def format_issue(issue: Issue) -> str:
    """One-line description of a session issue, prefixed with a short label."""
    return f"{ISSUE_LABELS.get(issue.kind, issue.kind.value)}: {issue.message}"


def escape_markup(value: object) -> str:
    """Escape brackets in paths, monitor names and messages before Rich markup interpolation."""
    return _escape_markup(str(value))
