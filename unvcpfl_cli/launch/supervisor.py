"""Launch supervisor.

Drives one game session through Idle -> PreLaunch -> Running -> Restoring ->
Idle. Pre-launch side effects (GPU power profile, monitor layout) are
best-effort; only a failure to spawn the game ends a session early. Whatever
was changed is put back during Restoring, with one retry per resource.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Mapping
from collections.abc import Sequence
from typing import TypeVar

from ..errors import ChildLaunchError
from ..errors import ExternalCallFailed
from ..errors import ExternalToolUnavailable
from ..errors import InvalidSessionToken
from ..errors import IssueKind
from ..errors import SessionConflictError
from ..errors import UnvcpflError
from ..events.bus import EventBus
from ..events.schemas import ChildExited
from ..events.schemas import ChildStarted
from ..events.schemas import IssueRaised
from ..events.schemas import StateChanged
from ..gpu.lact import GpuPowerProfileSwitch
from ..logging_setup import current_session_id
from ..profiles.compiler import compile_profile
from ..profiles.schema import Profile
from ..screen.compositor import CompositorAdapter
from ..screen.models import CompositorKind
from ..screen.planner import resolve_layout
from ..screen.planner import restore_directives
from ..utils.error_format import format_error_message
from ..utils.external import DEFAULT_TIMEOUT
from .command import compose_launch
from .session import LaunchOutcome
from .session import LaunchSession
from .session import SessionState
from .session import SessionToken

logger = logging.getLogger(__name__)

T = TypeVar("T")

RESTORE_ATTEMPTS = 2


class LaunchSupervisor:
    """
    Owns the monitor and GPU-profile resources for one launch at a time.

    Contract:
    - Inputs: resolved Profile, target command
    - Outputs: SessionToken, child pid, LaunchOutcome
    - Side Effects: GPU profile switch, compositor directives, child process
    - Errors: SessionConflictError, InvalidSessionToken, ChildLaunchError
    """

    def __init__(
        self,
        compositor: CompositorAdapter,
        gpu_switch: GpuPowerProfileSwitch | None = None,
        event_bus: EventBus | None = None,
        *,
        call_timeout: float = DEFAULT_TIMEOUT,
        base_env: Mapping[str, str] | None = None,
    ):
        """
        Args:
            compositor: Adapter that lists monitors and executes directives
            gpu_switch: Optional GPU power profile integration
            event_bus: Receives state changes, issues and child lifecycle events
            call_timeout: Bound in seconds for every compositor and GPU call
            base_env: Environment the child inherits (defaults to os.environ)
        """
        self.compositor = compositor
        self.gpu_switch = gpu_switch
        self.event_bus = event_bus or EventBus()
        self.call_timeout = call_timeout
        self.base_env = base_env

        self._state = SessionState.IDLE
        self._session: LaunchSession | None = None
        self._exit_watch: asyncio.Task[int] | None = None
        self._finished: dict[str, LaunchOutcome] = {}

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def active_session(self) -> LaunchSession | None:
        return self._session

    # ===== Public API =====

    async def begin(self, profile: Profile, command: Sequence[str]) -> SessionToken:
        """
        Open a session and apply pre-launch side effects (Idle -> PreLaunch).

        Raises:
            SessionConflictError: If another session is still active
            ValueError: If the command is empty
        """
        if self._session is not None:
            raise SessionConflictError(
                f"Session for profile '{self._session.profile.name}' is still {self._state.value}"
            )

        compiled = compile_profile(profile)
        launch_command = compose_launch(compiled, command, self.base_env)

        session = LaunchSession(
            token=SessionToken(),
            profile=profile,
            compiled=compiled,
            command=launch_command,
        )
        self._session = session
        current_session_id.set(session.token.id)
        self._transition(SessionState.PRE_LAUNCH)
        logger.info(f"Session {session.token} started for profile '{profile.name}'")

        for warning in compiled.warnings:
            self._issue(session, warning.kind, warning.message)

        try:
            await self._apply_gpu_profile(session)
            if not session.cancel_requested:
                await self._apply_monitor_plan(session)
        except Exception:
            logger.exception(f"Pre-launch failed for session {session.token}")
            await self._finish(session, spawned=False)
            raise

        return session.token

    async def start(self, token: SessionToken) -> int | None:
        """
        Spawn the wrapped command (PreLaunch -> Running).

        Returns:
            Child pid, or None when the session was cancelled before spawn
            (the session is then already restored; ``wait`` returns its outcome)

        Raises:
            InvalidSessionToken: If the token does not match the active session
            ChildLaunchError: If the command cannot be spawned (session restored first)
        """
        session = self._require(token)
        if self._state is not SessionState.PRE_LAUNCH:
            raise UnvcpflError(f"Session {token} is {self._state.value}, not ready to start")

        if session.cancel_requested:
            logger.info(f"Session {token} cancelled before spawn")
            self._finished[token.id] = await self._finish(session, spawned=False)
            return None

        argv = list(session.command.argv)
        try:
            session.process = await asyncio.create_subprocess_exec(*argv, env=session.command.env)
        except OSError as e:
            message = f"Failed to start {argv[0]}: {e}"
            self._issue(session, IssueKind.CHILD_LAUNCH_ERROR, message)
            await self._finish(session, spawned=False)
            raise ChildLaunchError(message) from e

        pid = session.process.pid
        self._exit_watch = asyncio.create_task(session.process.wait())
        self._transition(SessionState.RUNNING)
        self.event_bus.publish(ChildStarted(session_id=token.id, pid=pid, argv=argv))
        logger.info(f"Session {token} running: pid {pid}: {session.command.display()}")
        return pid

    async def wait(self, token: SessionToken) -> LaunchOutcome:
        """
        Wait for the child to exit or for cancellation, then restore
        (Running -> Restoring -> Idle).

        Raises:
            InvalidSessionToken: If the token matches neither the active nor a finished session
        """
        if token.id in self._finished:
            return self._finished.pop(token.id)

        session = self._require(token)
        if self._state is not SessionState.RUNNING or self._exit_watch is None:
            raise UnvcpflError(f"Session {token} has not been started")

        cancel_watch = asyncio.create_task(session.cancel_event.wait())
        try:
            await asyncio.wait({self._exit_watch, cancel_watch}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_watch.cancel()

        if self._exit_watch.done():
            session.returncode = self._exit_watch.result()
            self.event_bus.publish(ChildExited(session_id=token.id, returncode=session.returncode))
            logger.info(f"Session {token} child exited with {session.returncode}")
        else:
            logger.info(f"Session {token} cancelled while running; restoring without waiting for exit")

        return await self._finish(session, spawned=True)

    def request_cancel(self, token: SessionToken) -> None:
        """Ask the session to wind down at its next transition boundary."""
        session = self._require(token)
        if not session.cancel_requested:
            logger.info(f"Cancellation requested for session {token}")
        session.cancel_event.set()

    def terminate(self, token: SessionToken, force: bool = False) -> bool:
        """
        Signal the child process (SIGTERM, or SIGKILL with force).

        Returns:
            True if a signal was delivered
        """
        session = self._require(token)
        process = session.process
        if process is None or process.returncode is not None:
            return False

        sig = signal.SIGKILL if force else signal.SIGTERM
        try:
            process.send_signal(sig)
        except ProcessLookupError:
            return False
        logger.info(f"Sent {sig.name} to pid {process.pid}")
        return True

    async def launch(self, profile: Profile, command: Sequence[str]) -> LaunchOutcome:
        """Run a whole session: begin, start and wait."""
        token = await self.begin(profile, command)
        await self.start(token)
        return await self.wait(token)

    # ===== Pre-launch =====

    async def _apply_gpu_profile(self, session: LaunchSession) -> None:
        wanted = session.profile.wrappers.gpu_profile
        if not wanted:
            return

        if self.gpu_switch is None or not self.gpu_switch.is_available():
            self._issue(session, IssueKind.EXTERNAL_TOOL_UNAVAILABLE, "GPU profile switch not available")
            return

        try:
            session.previous_gpu_profile = await self._call(self.gpu_switch.get_active())
        except Exception as e:
            self._issue_from_error(session, e, "reading active GPU profile")

        if session.cancel_requested:
            return

        if session.previous_gpu_profile == wanted:
            logger.debug(f"GPU profile '{wanted}' already active")
            return

        try:
            await self._call(self.gpu_switch.set_active(wanted))
        except Exception as e:
            self._issue_from_error(session, e, f"switching GPU profile to '{wanted}'")
            return
        session.gpu_profile_applied = True

    async def _apply_monitor_plan(self, session: LaunchSession) -> None:
        plan = session.profile.screen
        if not plan.has_overrides and not plan.disable_other_monitors:
            return

        kind = self.compositor.detect()
        if kind is CompositorKind.UNSUPPORTED:
            self._issue(session, IssueKind.EXTERNAL_TOOL_UNAVAILABLE, "Monitor layout not supported on this desktop")
            return

        try:
            snapshot = await self._call(self.compositor.list_monitors())
        except Exception as e:
            self._issue_from_error(session, e, "listing monitors")
            return

        directive_plan = resolve_layout(snapshot, plan, kind, session)
        if directive_plan.fell_back:
            self._issue(
                session,
                IssueKind.VALIDATION_DEGRADED,
                f"Monitor '{plan.target_monitor}' not connected; using {directive_plan.target}",
            )

        for directive in directive_plan.directives:
            if session.cancel_requested:
                return
            session.monitors_changed = True
            try:
                await self._call(self.compositor.apply_directive(directive))
            except Exception as e:
                self._issue_from_error(session, e, directive.describe())

    # ===== Restoration =====

    async def _finish(self, session: LaunchSession, *, spawned: bool) -> LaunchOutcome:
        self._transition(SessionState.RESTORING)
        try:
            await self._restore_gpu_profile(session)
            await self._restore_monitors(session)
        finally:
            outcome = LaunchOutcome(
                profile_name=session.profile.name,
                spawned=spawned,
                cancelled=session.cancel_requested,
                returncode=session.returncode,
                issues=tuple(session.issues),
            )
            self._session = None
            self._exit_watch = None
            self._transition(SessionState.IDLE, session)
            logger.info(f"Session {session.token} finished: returncode={outcome.returncode} issues={len(outcome.issues)}")
            current_session_id.set(None)
        return outcome

    async def _restore_gpu_profile(self, session: LaunchSession) -> None:
        if not session.gpu_profile_applied:
            return
        if not session.profile.wrappers.gpu_profile_restore_after_exit:
            logger.info(f"Leaving GPU profile '{session.profile.wrappers.gpu_profile}' active")
            return
        previous = session.previous_gpu_profile
        if previous is None or self.gpu_switch is None:
            self._issue(session, IssueKind.RESTORE_FAILED, "Previous GPU profile unknown; not restored")
            return

        gpu_switch = self.gpu_switch
        await self._with_retry(session, f"restoring GPU profile '{previous}'", lambda: gpu_switch.set_active(previous))

    async def _restore_monitors(self, session: LaunchSession) -> None:
        if not session.monitors_changed or session.monitor_snapshot is None:
            return
        if not session.profile.screen.restore_monitors_after_exit:
            logger.info("Leaving monitor layout as applied")
            return

        try:
            current = await self._call(self.compositor.list_monitors())
        except Exception as e:
            logger.warning(f"Could not read current layout before restoring: {e}")
            current = None

        for directive in restore_directives(session.monitor_snapshot, current):
            await self._with_retry(
                session,
                f"restoring monitor ({directive.describe()})",
                lambda d=directive: self.compositor.apply_directive(d),
            )

    async def _with_retry(
        self, session: LaunchSession, description: str, make_call: Callable[[], Awaitable[None]]
    ) -> bool:
        last_error: Exception | None = None
        for attempt in range(1, RESTORE_ATTEMPTS + 1):
            try:
                await self._call(make_call())
                return True
            except Exception as e:
                last_error = e
                logger.warning(f"{description} failed (attempt {attempt}/{RESTORE_ATTEMPTS}): {e}")

        self._issue(session, IssueKind.RESTORE_FAILED, f"{description}: {last_error}")
        return False

    # ===== Helpers =====

    async def _call(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.call_timeout)
        except TimeoutError as e:
            raise ExternalCallFailed(f"External call timed out after {self.call_timeout:g}s") from e

    def _require(self, token: SessionToken) -> LaunchSession:
        if self._session is None or self._session.token != token:
            raise InvalidSessionToken(f"No active session for token {token}")
        return self._session

    def _transition(self, new_state: SessionState, session: LaunchSession | None = None) -> None:
        previous = self._state
        self._state = new_state
        session = session or self._session
        session_id = session.token.id if session is not None else ""
        logger.debug(f"Supervisor state {previous.value} -> {new_state.value}")
        self.event_bus.publish(StateChanged(session_id=session_id, previous=previous.value, current=new_state.value))

    def _issue(self, session: LaunchSession, kind: IssueKind, message: str) -> None:
        session.add_issue(kind, message)
        logger.warning(f"Session {session.token}: {kind.value}: {message}")
        self.event_bus.publish(IssueRaised(session_id=session.token.id, kind=kind.value, message=message))

    def _issue_from_error(self, session: LaunchSession, error: Exception, action: str) -> None:
        if isinstance(error, ExternalToolUnavailable):
            kind = IssueKind.EXTERNAL_TOOL_UNAVAILABLE
        else:
            kind = IssueKind.EXTERNAL_CALL_FAILED
        if isinstance(error, UnvcpflError):
            detail = str(error)
        else:
            # Adapter bug or unexpected tool output; keep the traceback in the log
            logger.warning(f"Unexpected error from adapter ({action})", exc_info=error)
            detail = format_error_message(error)
        self._issue(session, kind, f"{action}: {detail}")

