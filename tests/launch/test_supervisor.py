"""Tests for the launch supervisor state machine."""

import sys

import pytest
from conftest import FakeCompositor
from conftest import FakeGpuSwitch

from unvcpfl_cli.errors import ChildLaunchError
from unvcpfl_cli.errors import InvalidSessionToken
from unvcpfl_cli.errors import IssueKind
from unvcpfl_cli.errors import SessionConflictError
from unvcpfl_cli.events.bus import EventBus
from unvcpfl_cli.events.schemas import ChildStarted
from unvcpfl_cli.events.schemas import StateChanged
from unvcpfl_cli.launch.session import SessionState
from unvcpfl_cli.launch.session import SessionToken
from unvcpfl_cli.launch.supervisor import LaunchSupervisor
from unvcpfl_cli.profiles.schema import Profile
from unvcpfl_cli.screen.models import CompositorKind


def py(code):
    return [sys.executable, "-c", code]


EXIT_OK = py("pass")
SLEEP = py("import time; time.sleep(10)")


def kinds(outcome):
    return [issue.kind for issue in outcome.issues]


@pytest.fixture
def events():
    return []


@pytest.fixture
def supervisor(compositor, gpu_switch, events):
    bus = EventBus()
    bus.subscribe(events.append)
    return LaunchSupervisor(compositor, gpu_switch, bus, call_timeout=1.0)


class TestLaunch:
    @pytest.mark.asyncio
    async def test_plain_launch(self, supervisor):
        outcome = await supervisor.launch(Profile(name="plain"), EXIT_OK)

        assert outcome.spawned is True
        assert outcome.returncode == 0
        assert outcome.issues == ()
        assert supervisor.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_exit_code_reported(self, supervisor):
        outcome = await supervisor.launch(Profile(name="plain"), py("import sys; sys.exit(3)"))

        assert outcome.returncode == 3
        assert outcome.exit_code == 3

    @pytest.mark.asyncio
    async def test_child_sees_profile_environment(self, supervisor, tmp_path):
        marker = tmp_path / "marker.txt"
        profile = Profile(name="env", custom_env={"UNVCPFL_MARKER": "42"}, proton={"sync_mode": "fsync"})

        await supervisor.launch(
            profile,
            py(f"import os; open({str(marker)!r}, 'w').write(os.environ['UNVCPFL_MARKER'] + os.environ['PROTON_NO_ESYNC'])"),
        )

        assert marker.read_text() == "421"

    @pytest.mark.asyncio
    async def test_state_sequence(self, supervisor, events):
        await supervisor.launch(Profile(name="plain"), EXIT_OK)

        states = [e.current for e in events if isinstance(e, StateChanged)]
        assert states == ["pre_launch", "running", "restoring", "idle"]
        assert any(isinstance(e, ChildStarted) for e in events)

    @pytest.mark.asyncio
    async def test_degraded_profile_warnings_surface(self, supervisor):
        outcome = await supervisor.launch(Profile(name="odd", proton={"sync_mode": "warp"}), EXIT_OK)

        assert kinds(outcome) == [IssueKind.VALIDATION_DEGRADED]


class TestGpuProfile:
    @pytest.mark.asyncio
    async def test_switched_and_restored(self, supervisor, gpu_switch):
        profile = Profile(name="gpu", wrappers={"gpu_profile": "Gaming"})

        outcome = await supervisor.launch(profile, EXIT_OK)

        assert gpu_switch.set_calls == ["Gaming", "Default"]
        assert gpu_switch.active == "Default"
        assert outcome.issues == ()

    @pytest.mark.asyncio
    async def test_restore_opt_out_leaves_profile_active(self, supervisor, gpu_switch):
        profile = Profile(name="gpu", wrappers={"gpu_profile": "Gaming", "gpu_profile_restore_after_exit": False})

        await supervisor.launch(profile, EXIT_OK)

        assert gpu_switch.set_calls == ["Gaming"]
        assert gpu_switch.active == "Gaming"

    @pytest.mark.asyncio
    async def test_already_active_profile_not_switched(self, compositor):
        gpu_switch = FakeGpuSwitch(active="Gaming")
        supervisor = LaunchSupervisor(compositor, gpu_switch)

        await supervisor.launch(Profile(name="gpu", wrappers={"gpu_profile": "Gaming"}), EXIT_OK)

        assert gpu_switch.set_calls == []

    @pytest.mark.asyncio
    async def test_unavailable_switch_is_non_fatal(self, compositor):
        supervisor = LaunchSupervisor(compositor, FakeGpuSwitch(available=False))

        outcome = await supervisor.launch(Profile(name="gpu", wrappers={"gpu_profile": "Gaming"}), EXIT_OK)

        assert outcome.returncode == 0
        assert kinds(outcome) == [IssueKind.EXTERNAL_TOOL_UNAVAILABLE]

    @pytest.mark.asyncio
    async def test_no_switch_configured(self, compositor):
        supervisor = LaunchSupervisor(compositor)

        outcome = await supervisor.launch(Profile(name="gpu", wrappers={"gpu_profile": "Gaming"}), EXIT_OK)

        assert kinds(outcome) == [IssueKind.EXTERNAL_TOOL_UNAVAILABLE]

    @pytest.mark.asyncio
    async def test_failed_switch_is_not_restored(self, compositor):
        gpu_switch = FakeGpuSwitch(fail_sets=1)
        supervisor = LaunchSupervisor(compositor, gpu_switch)

        outcome = await supervisor.launch(Profile(name="gpu", wrappers={"gpu_profile": "Gaming"}), EXIT_OK)

        assert outcome.returncode == 0
        assert kinds(outcome) == [IssueKind.EXTERNAL_CALL_FAILED]
        assert gpu_switch.set_calls == ["Gaming"]

    @pytest.mark.asyncio
    async def test_restore_retried_once(self, compositor, gpu_switch):
        supervisor = LaunchSupervisor(compositor, gpu_switch)
        token = await supervisor.begin(Profile(name="gpu", wrappers={"gpu_profile": "Gaming"}), EXIT_OK)
        gpu_switch.fail_sets = 1

        await supervisor.start(token)
        outcome = await supervisor.wait(token)

        assert gpu_switch.set_calls == ["Gaming", "Default", "Default"]
        assert gpu_switch.active == "Default"
        assert outcome.restore_failed is False

    @pytest.mark.asyncio
    async def test_restore_failure_does_not_block_idle(self, compositor, gpu_switch):
        supervisor = LaunchSupervisor(compositor, gpu_switch)
        token = await supervisor.begin(Profile(name="gpu", wrappers={"gpu_profile": "Gaming"}), EXIT_OK)
        gpu_switch.fail_sets = 5

        await supervisor.start(token)
        outcome = await supervisor.wait(token)

        assert gpu_switch.set_calls == ["Gaming", "Default", "Default"]
        assert outcome.restore_failed is True
        assert supervisor.state is SessionState.IDLE


class TestMonitors:
    @pytest.mark.asyncio
    async def test_disable_others_restored_after_exit(self, supervisor, compositor):
        before = compositor.snapshot()
        profile = Profile(name="mon", screen={"disable_other_monitors": True, "restore_monitors_after_exit": True})
        token = await supervisor.begin(profile, EXIT_OK)

        assert [m.name for m in compositor.snapshot() if m.active] == ["DP-1"]

        await supervisor.start(token)
        outcome = await supervisor.wait(token)

        assert compositor.snapshot() == before
        assert outcome.issues == ()

    @pytest.mark.asyncio
    async def test_mode_change_restored(self, supervisor, compositor):
        before = compositor.snapshot()
        profile = Profile(name="mon", screen={"width": 1920, "height": 1080, "refresh_rate": 60})

        await supervisor.launch(profile, EXIT_OK)

        assert compositor.snapshot() == before

    @pytest.mark.asyncio
    async def test_restore_opt_out_keeps_layout(self, supervisor, compositor):
        profile = Profile(name="mon", screen={"disable_other_monitors": True, "restore_monitors_after_exit": False})

        await supervisor.launch(profile, EXIT_OK)

        assert [m.name for m in compositor.snapshot() if m.active] == ["DP-1"]

    @pytest.mark.asyncio
    async def test_missing_target_falls_back(self, supervisor, compositor):
        profile = Profile(name="mon", screen={"target_monitor": "DP-7", "refresh_rate": 120})

        outcome = await supervisor.launch(profile, EXIT_OK)

        assert outcome.returncode == 0
        assert kinds(outcome) == [IssueKind.VALIDATION_DEGRADED]
        assert compositor.applied[0].name == "DP-1"

    @pytest.mark.asyncio
    async def test_unsupported_compositor(self, two_monitors):
        supervisor = LaunchSupervisor(FakeCompositor(two_monitors, kind=CompositorKind.UNSUPPORTED))

        outcome = await supervisor.launch(Profile(name="mon", screen={"disable_other_monitors": True}), EXIT_OK)

        assert outcome.returncode == 0
        assert kinds(outcome) == [IssueKind.EXTERNAL_TOOL_UNAVAILABLE]

    @pytest.mark.asyncio
    async def test_slow_compositor_times_out(self, two_monitors):
        compositor = FakeCompositor(two_monitors, list_delay=2.0)
        supervisor = LaunchSupervisor(compositor, call_timeout=0.1)

        outcome = await supervisor.launch(Profile(name="mon", screen={"disable_other_monitors": True}), EXIT_OK)

        assert outcome.returncode == 0
        assert kinds(outcome) == [IssueKind.EXTERNAL_CALL_FAILED]
        assert "timed out" in outcome.issues[0].message
        assert compositor.applied == []

    @pytest.mark.asyncio
    async def test_restore_directive_retried(self, supervisor, compositor):
        before = compositor.snapshot()
        token = await supervisor.begin(Profile(name="mon", screen={"disable_other_monitors": True}), EXIT_OK)
        compositor.fail_directives = 1

        await supervisor.start(token)
        outcome = await supervisor.wait(token)

        assert compositor.snapshot() == before
        assert outcome.restore_failed is False

    @pytest.mark.asyncio
    async def test_restore_gives_up_after_retry(self, supervisor, compositor):
        token = await supervisor.begin(Profile(name="mon", screen={"disable_other_monitors": True}), EXIT_OK)
        compositor.fail_directives = 2

        await supervisor.start(token)
        outcome = await supervisor.wait(token)

        assert outcome.restore_failed is True
        assert supervisor.state is SessionState.IDLE


class BrokenCompositor(FakeCompositor):
    async def list_monitors(self):
        raise KeyError("name")


class BrokenGpuSwitch(FakeGpuSwitch):
    async def set_active(self, name):
        self.set_calls.append(name)
        raise RuntimeError("driver went away")


class TestUnexpectedAdapterErrors:
    @pytest.mark.asyncio
    async def test_compositor_error_does_not_stop_launch(self, two_monitors):
        supervisor = LaunchSupervisor(BrokenCompositor(two_monitors))

        outcome = await supervisor.launch(Profile(name="mon", screen={"disable_other_monitors": True}), EXIT_OK)

        assert outcome.spawned is True
        assert outcome.returncode == 0
        assert kinds(outcome) == [IssueKind.EXTERNAL_CALL_FAILED]
        assert "KeyError" in outcome.issues[0].message
        assert supervisor.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_gpu_switch_error_does_not_stop_launch(self, compositor):
        gpu_switch = BrokenGpuSwitch()
        supervisor = LaunchSupervisor(compositor, gpu_switch)

        outcome = await supervisor.launch(Profile(name="gpu", wrappers={"gpu_profile": "Gaming"}), EXIT_OK)

        assert outcome.returncode == 0
        assert kinds(outcome) == [IssueKind.EXTERNAL_CALL_FAILED]
        assert "driver went away" in outcome.issues[0].message
        assert gpu_switch.set_calls == ["Gaming"]


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_before_spawn_restores_gpu(self, supervisor, gpu_switch, events):
        token = await supervisor.begin(Profile(name="gpu", wrappers={"gpu_profile": "Gaming"}), EXIT_OK)
        assert gpu_switch.active == "Gaming"

        supervisor.request_cancel(token)
        pid = await supervisor.start(token)
        outcome = await supervisor.wait(token)

        assert pid is None
        assert outcome.spawned is False
        assert outcome.cancelled is True
        assert gpu_switch.active == "Default"
        assert "running" not in [e.current for e in events if isinstance(e, StateChanged)]
        assert supervisor.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_cancel_during_pre_launch_skips_remaining_steps(self, compositor, gpu_switch):
        bus = EventBus()
        supervisor = LaunchSupervisor(compositor, gpu_switch, bus)

        def cancel_on_pre_launch(event):
            if isinstance(event, StateChanged) and event.current == "pre_launch":
                supervisor.request_cancel(supervisor.active_session.token)

        bus.subscribe(cancel_on_pre_launch)
        profile = Profile(name="both", wrappers={"gpu_profile": "Gaming"}, screen={"disable_other_monitors": True})

        outcome = await supervisor.launch(profile, EXIT_OK)

        assert outcome.spawned is False
        assert gpu_switch.set_calls == []
        assert compositor.applied == []

    @pytest.mark.asyncio
    async def test_cancel_while_running_restores_without_waiting(self, supervisor, compositor):
        before = compositor.snapshot()
        token = await supervisor.begin(Profile(name="mon", screen={"disable_other_monitors": True}), SLEEP)
        await supervisor.start(token)
        process = supervisor.active_session.process

        supervisor.request_cancel(token)
        outcome = await supervisor.wait(token)

        try:
            assert outcome.cancelled is True
            assert outcome.returncode is None
            assert compositor.snapshot() == before
            assert supervisor.state is SessionState.IDLE
        finally:
            process.kill()
            await process.wait()

    @pytest.mark.asyncio
    async def test_terminate_stops_child(self, supervisor):
        token = await supervisor.begin(Profile(name="plain"), SLEEP)
        await supervisor.start(token)

        assert supervisor.terminate(token) is True
        outcome = await supervisor.wait(token)

        assert outcome.returncode == -15
        assert outcome.exit_code == 143


class TestSessionOwnership:
    @pytest.mark.asyncio
    async def test_second_launch_rejected(self, supervisor):
        token = await supervisor.begin(Profile(name="first"), EXIT_OK)

        with pytest.raises(SessionConflictError, match="first"):
            await supervisor.begin(Profile(name="second"), EXIT_OK)

        await supervisor.start(token)
        await supervisor.wait(token)

    @pytest.mark.asyncio
    async def test_new_session_allowed_after_idle(self, supervisor):
        await supervisor.launch(Profile(name="first"), EXIT_OK)

        outcome = await supervisor.launch(Profile(name="second"), EXIT_OK)

        assert outcome.profile_name == "second"

    @pytest.mark.asyncio
    async def test_foreign_token_rejected(self, supervisor):
        token = await supervisor.begin(Profile(name="first"), EXIT_OK)

        with pytest.raises(InvalidSessionToken):
            await supervisor.start(SessionToken())
        with pytest.raises(InvalidSessionToken):
            supervisor.request_cancel(SessionToken())

        await supervisor.start(token)
        await supervisor.wait(token)

    @pytest.mark.asyncio
    async def test_empty_command_rejected_before_session(self, supervisor):
        with pytest.raises(ValueError):
            await supervisor.begin(Profile(name="x"), [])

        assert supervisor.state is SessionState.IDLE


class TestSpawnFailure:
    @pytest.mark.asyncio
    async def test_missing_binary_restores_and_raises(self, supervisor, gpu_switch, compositor):
        before = compositor.snapshot()
        profile = Profile(name="bad", wrappers={"gpu_profile": "Gaming"}, screen={"disable_other_monitors": True})

        with pytest.raises(ChildLaunchError, match="/nonexistent/game-binary"):
            await supervisor.launch(profile, ["/nonexistent/game-binary"])

        assert gpu_switch.active == "Default"
        assert compositor.snapshot() == before
        assert supervisor.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_missing_wrapper_is_spawn_failure(self, supervisor):
        profile = Profile(name="wrapped", custom_env={"PATH": "/nonexistent"}, wrappers={"gamemode": True})

        with pytest.raises(ChildLaunchError):
            await supervisor.launch(profile, EXIT_OK)

        outcome = await supervisor.launch(Profile(name="after"), EXIT_OK)
        assert outcome.returncode == 0
