"""Shared fixtures and fake adapters for unvcpfl tests."""

import asyncio

import pytest

from unvcpfl_cli.errors import ExternalCallFailed
from unvcpfl_cli.errors import ExternalToolUnavailable
from unvcpfl_cli.screen.models import CompositorKind
from unvcpfl_cli.screen.models import ConfigureMonitor
from unvcpfl_cli.screen.models import DisableMonitor
from unvcpfl_cli.screen.models import MonitorDescriptor


class FakeCompositor:
    """In-memory compositor that applies directives to its own monitor set."""

    def __init__(self, monitors, kind=CompositorKind.HYPRLAND, fail_directives=0, list_delay=0.0):
        self.kind = kind
        self.monitors = {m.name: m for m in monitors}
        self.applied = []
        self.fail_directives = fail_directives
        self.list_delay = list_delay

    def detect(self):
        return self.kind

    async def list_monitors(self):
        if self.kind is CompositorKind.UNSUPPORTED:
            raise ExternalToolUnavailable("unsupported")
        if self.list_delay:
            await asyncio.sleep(self.list_delay)
        return list(self.monitors.values())

    async def apply_directive(self, directive):
        self.applied.append(directive)
        if self.fail_directives > 0:
            self.fail_directives -= 1
            raise ExternalCallFailed(f"refused: {directive.describe()}")

        current = self.monitors[directive.name]
        if isinstance(directive, DisableMonitor):
            self.monitors[directive.name] = current.model_copy(update={"active": False, "focused": False})
        elif isinstance(directive, ConfigureMonitor):
            self.monitors[directive.name] = current.model_copy(
                update={
                    "width": directive.width,
                    "height": directive.height,
                    "refresh_rate": directive.refresh_rate,
                    "x": directive.x,
                    "y": directive.y,
                    "scale": directive.scale,
                    "active": True,
                }
            )

    def snapshot(self):
        return sorted(self.monitors.values(), key=lambda m: m.name)


class FakeGpuSwitch:
    """GPU power profile switch that records calls."""

    def __init__(self, profiles=("Default", "Gaming"), active="Default", available=True, fail_sets=0):
        self.profiles = list(profiles)
        self.active = active
        self.available = available
        self.fail_sets = fail_sets
        self.set_calls = []

    def is_available(self):
        return self.available

    async def list_profiles(self):
        return list(self.profiles)

    async def get_active(self):
        return self.active

    async def set_active(self, name):
        self.set_calls.append(name)
        if self.fail_sets > 0:
            self.fail_sets -= 1
            raise ExternalCallFailed(f"lact refused {name}")
        self.active = name


@pytest.fixture
def two_monitors():
    return [
        MonitorDescriptor(
            name="DP-1",
            description="Samsung 27G5",
            width=2560,
            height=1440,
            refresh_rate=165.0,
            x=0,
            y=0,
            focused=True,
        ),
        MonitorDescriptor(
            name="HDMI-A-1",
            description="Dell U2414H",
            width=1920,
            height=1080,
            refresh_rate=60.0,
            x=2560,
            y=0,
        ),
    ]


@pytest.fixture
def compositor(two_monitors):
    return FakeCompositor(two_monitors)


@pytest.fixture
def gpu_switch():
    return FakeGpuSwitch()


@pytest.fixture
def xdg_dirs(tmp_path, monkeypatch):
    """Point config, state and log paths at a temporary directory."""
    config = tmp_path / "config"
    state = tmp_path / "state"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config))
    monkeypatch.setenv("XDG_STATE_HOME", str(state))
    monkeypatch.setenv("UNVCPFL_LOG_PATH", str(state / "test.log.jsonl"))
    monkeypatch.delenv("UNVCPFL_LOG_LEVEL", raising=False)
    monkeypatch.delenv("HYPRLAND_INSTANCE_SIGNATURE", raising=False)
    monkeypatch.delenv("SWAYSOCK", raising=False)
    monkeypatch.delenv("SteamAppId", raising=False)
    return config / "unvcpfl"
