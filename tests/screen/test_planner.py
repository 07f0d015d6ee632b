"""Tests for the monitor layout planner."""

import pytest
from conftest import FakeCompositor

from unvcpfl_cli.screen.models import CompositorKind
from unvcpfl_cli.screen.models import ConfigureMonitor
from unvcpfl_cli.screen.models import DisableMonitor
from unvcpfl_cli.screen.models import MonitorDescriptor
from unvcpfl_cli.screen.models import MonitorPlan
from unvcpfl_cli.screen.models import snap_to_grid
from unvcpfl_cli.screen.planner import find_primary
from unvcpfl_cli.screen.planner import resolve_layout
from unvcpfl_cli.screen.planner import restore_directives


class RecordingSession:
    def __init__(self):
        self.monitor_snapshot = None

    def record_monitor_snapshot(self, snapshot):
        if self.monitor_snapshot is None:
            self.monitor_snapshot = tuple(snapshot)


class TestResolveLayout:
    def test_unsupported_compositor_is_noop(self, two_monitors):
        plan = resolve_layout(two_monitors, MonitorPlan(width=1920, height=1080), CompositorKind.UNSUPPORTED)

        assert plan.supported is False
        assert plan.directives == []

    def test_no_overrides_no_directives(self, two_monitors):
        plan = resolve_layout(two_monitors, MonitorPlan(), CompositorKind.HYPRLAND)

        assert plan.supported is True
        assert plan.target == "DP-1"
        assert plan.is_noop

    def test_auto_targets_focused_monitor(self, two_monitors):
        plan = resolve_layout(two_monitors, MonitorPlan(target_monitor="auto", refresh_rate=144), CompositorKind.SWAY)

        assert plan.target == "DP-1"
        assert plan.directives == [ConfigureMonitor("DP-1", 2560, 1440, 144, 0, 0, 1.0)]

    def test_primary_falls_back_to_first_active(self):
        monitors = [
            MonitorDescriptor(name="A", width=1, height=1, active=False),
            MonitorDescriptor(name="B", width=1, height=1),
            MonitorDescriptor(name="C", width=1, height=1),
        ]

        assert find_primary(monitors).name == "B"

    def test_missing_target_falls_back_to_primary(self, two_monitors):
        plan = resolve_layout(
            two_monitors, MonitorPlan(target_monitor="DP-9", width=1920, height=1080), CompositorKind.HYPRLAND
        )

        assert plan.fell_back is True
        assert plan.target == "DP-1"
        assert plan.directives == [ConfigureMonitor("DP-1", 1920, 1080, 165.0, 0, 0, 1.0)]

    def test_named_target(self, two_monitors):
        plan = resolve_layout(two_monitors, MonitorPlan(target_monitor="HDMI-A-1", scale=1.25), CompositorKind.HYPRLAND)

        assert plan.fell_back is False
        assert plan.directives == [ConfigureMonitor("HDMI-A-1", 1920, 1080, 60.0, 2560, 0, 1.25)]

    def test_overrides_matching_hardware_emit_nothing(self, two_monitors):
        plan = resolve_layout(
            two_monitors, MonitorPlan(width=2560, height=1440, refresh_rate=165), CompositorKind.HYPRLAND
        )

        assert plan.is_noop

    def test_disable_other_monitors(self, two_monitors):
        session = RecordingSession()

        plan = resolve_layout(two_monitors, MonitorPlan(disable_other_monitors=True), CompositorKind.HYPRLAND, session)

        assert plan.directives == [DisableMonitor("HDMI-A-1")]
        assert session.monitor_snapshot == tuple(two_monitors)

    def test_configure_target_before_disabling_others(self, two_monitors):
        plan = resolve_layout(
            two_monitors,
            MonitorPlan(target_monitor="HDMI-A-1", refresh_rate=75, disable_other_monitors=True),
            CompositorKind.HYPRLAND,
        )

        assert isinstance(plan.directives[0], ConfigureMonitor)
        assert plan.directives[1:] == [DisableMonitor("DP-1")]

    def test_inactive_monitors_not_disabled_again(self, two_monitors):
        monitors = [*two_monitors, MonitorDescriptor(name="DP-2", width=1920, height=1080, active=False)]

        plan = resolve_layout(monitors, MonitorPlan(disable_other_monitors=True), CompositorKind.HYPRLAND)

        assert plan.directives == [DisableMonitor("HDMI-A-1")]

    def test_session_untouched_without_directives(self, two_monitors):
        session = RecordingSession()

        resolve_layout(two_monitors, MonitorPlan(), CompositorKind.HYPRLAND, session)

        assert session.monitor_snapshot is None

    def test_overlapping_positions_pass_through(self, two_monitors):
        plan = resolve_layout(
            two_monitors, MonitorPlan(target_monitor="HDMI-A-1", x=100, y=50), CompositorKind.HYPRLAND
        )

        assert plan.directives[0].x == 100
        assert plan.directives[0].y == 50

    def test_no_active_monitors(self):
        plan = resolve_layout(
            [MonitorDescriptor(name="A", width=1, height=1, active=False)],
            MonitorPlan(width=800, height=600),
            CompositorKind.HYPRLAND,
        )

        assert plan.supported is True
        assert plan.is_noop


class TestGridSnap:
    @pytest.mark.parametrize(("value", "expected"), [(0, 0), (49, 0), (51, 100), (2549, 2500), (-160, -200)])
    def test_snap_to_grid(self, value, expected):
        assert snap_to_grid(value) == expected

    def test_positioned_at_snaps(self):
        plan = MonitorPlan(target_monitor="DP-1").positioned_at(2563, 1437)

        assert (plan.x, plan.y) == (2600, 1400)


class TestRestore:
    def test_restore_directives_reapply_snapshot(self, two_monitors):
        directives = restore_directives(two_monitors)

        assert directives == [ConfigureMonitor.from_descriptor(m) for m in two_monitors]

    def test_restore_skips_unchanged_outputs(self, two_monitors):
        current = [two_monitors[0], two_monitors[1].model_copy(update={"active": False})]

        assert restore_directives(two_monitors, current) == [ConfigureMonitor.from_descriptor(two_monitors[1])]

    def test_restore_disables_outputs_that_were_off(self, two_monitors):
        snapshot = [two_monitors[0], two_monitors[1].model_copy(update={"active": False})]

        assert restore_directives(snapshot, two_monitors) == [DisableMonitor("HDMI-A-1")]

    @pytest.mark.asyncio
    async def test_round_trip_restores_descriptor_set(self, two_monitors):
        compositor = FakeCompositor(two_monitors)
        before = compositor.snapshot()

        plan = resolve_layout(
            before,
            MonitorPlan(width=1920, height=1080, refresh_rate=60, disable_other_monitors=True),
            CompositorKind.HYPRLAND,
        )
        for directive in plan.directives:
            await compositor.apply_directive(directive)
        assert compositor.snapshot() != before

        for directive in restore_directives(before, compositor.snapshot()):
            await compositor.apply_directive(directive)

        assert [m.model_copy(update={"focused": False}) for m in compositor.snapshot()] == [
            m.model_copy(update={"focused": False}) for m in before
        ]


class TestIdempotence:
    @pytest.mark.asyncio
    async def test_applying_directive_twice_is_stable(self, two_monitors):
        compositor = FakeCompositor(two_monitors)
        directive = ConfigureMonitor("HDMI-A-1", 1280, 720, 60.0, 2560, 0, 1.0)

        await compositor.apply_directive(directive)
        after_first = compositor.snapshot()
        await compositor.apply_directive(directive)

        assert compositor.snapshot() == after_first
