"""Compositor adapters for Hyprland (hyprctl) and Sway (swaymsg).

Adapters translate planner directives into compositor commands and report
the live monitor set. All calls go through ``run_tool`` and are therefore
bounded by the configured external-call timeout.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from typing import Any
from typing import Protocol
from typing import runtime_checkable

from ..errors import ExternalCallFailed
from ..errors import ExternalToolUnavailable
from ..utils.external import DEFAULT_TIMEOUT
from ..utils.external import run_tool
from .models import CompositorKind
from .models import Directive
from .models import DisableMonitor
from .models import MonitorDescriptor

logger = logging.getLogger(__name__)


def detect_compositor(env: Mapping[str, str] | None = None) -> CompositorKind:
    """Detect the running compositor from its session environment variables."""
    env = os.environ if env is None else env
    if env.get("HYPRLAND_INSTANCE_SIGNATURE"):
        return CompositorKind.HYPRLAND
    if env.get("SWAYSOCK"):
        return CompositorKind.SWAY
    return CompositorKind.UNSUPPORTED


@runtime_checkable
class CompositorAdapter(Protocol):
    """Interface the planner and supervisor drive."""

    kind: CompositorKind

    def detect(self) -> CompositorKind:
        """Report which compositor this adapter drives."""
        ...

    async def list_monitors(self) -> list[MonitorDescriptor]:
        """Current monitor set, including disabled outputs where the compositor reports them."""
        ...

    async def apply_directive(self, directive: Directive) -> None:
        """Execute one directive."""
        ...


def _parse_json(raw: str, source: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ExternalCallFailed(f"Failed to parse {source} output: {e}") from e


class HyprlandAdapter:
    """Drives Hyprland through ``hyprctl``."""

    kind = CompositorKind.HYPRLAND

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = timeout

    def detect(self) -> CompositorKind:
        return self.kind

    async def list_monitors(self) -> list[MonitorDescriptor]:
        raw = await run_tool(["hyprctl", "monitors", "all", "-j"], timeout=self.timeout)
        return parse_hyprland_monitors(raw)

    async def apply_directive(self, directive: Directive) -> None:
        await run_tool(["hyprctl", "keyword", "monitor", hyprland_monitor_rule(directive)], timeout=self.timeout)
        logger.info(f"Hyprland: {directive.describe()}")


def hyprland_monitor_rule(directive: Directive) -> str:
    """Monitor rule in hyprctl syntax: NAME,WxH@R,XxY,SCALE or NAME,disable."""
    if isinstance(directive, DisableMonitor):
        return f"{directive.name},disable"
    return (
        f"{directive.name},{directive.width}x{directive.height}@{directive.refresh_rate:g},"
        f"{directive.x}x{directive.y},{directive.scale:g}"
    )


def parse_hyprland_monitors(raw: str) -> list[MonitorDescriptor]:
    data = _parse_json(raw, "hyprctl")
    if not isinstance(data, list):
        raise ExternalCallFailed("Unexpected hyprctl monitors output")

    try:
        return [_hyprland_monitor(m) for m in data]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ExternalCallFailed(f"Unexpected hyprctl monitor entry: {e!r}") from e


def _hyprland_monitor(m: dict[str, Any]) -> MonitorDescriptor:
    return MonitorDescriptor(
        name=m["name"],
        description=m.get("description", ""),
        width=m.get("width", 0),
        height=m.get("height", 0),
        x=m.get("x", 0),
        y=m.get("y", 0),
        refresh_rate=round(float(m.get("refreshRate", 60.0)), 3),
        scale=float(m.get("scale", 1.0)),
        active=not m.get("disabled", False),
        focused=bool(m.get("focused", False)),
    )


class SwayAdapter:
    """Drives Sway through ``swaymsg``."""

    kind = CompositorKind.SWAY

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = timeout

    def detect(self) -> CompositorKind:
        return self.kind

    async def list_monitors(self) -> list[MonitorDescriptor]:
        raw = await run_tool(["swaymsg", "-t", "get_outputs", "-r"], timeout=self.timeout)
        return parse_sway_outputs(raw)

    async def apply_directive(self, directive: Directive) -> None:
        await run_tool(["swaymsg", *sway_output_command(directive)], timeout=self.timeout)
        logger.info(f"Sway: {directive.describe()}")


def sway_output_command(directive: Directive) -> list[str]:
    if isinstance(directive, DisableMonitor):
        return ["output", directive.name, "disable"]
    return [
        "output",
        directive.name,
        "mode",
        f"{directive.width}x{directive.height}@{directive.refresh_rate:g}Hz",
        "pos",
        str(directive.x),
        str(directive.y),
        "scale",
        f"{directive.scale:g}",
        "enable",
    ]


def parse_sway_outputs(raw: str) -> list[MonitorDescriptor]:
    data = _parse_json(raw, "swaymsg")
    if not isinstance(data, list):
        raise ExternalCallFailed("Unexpected swaymsg get_outputs output")

    try:
        return [_sway_output(o) for o in data]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ExternalCallFailed(f"Unexpected swaymsg output entry: {e!r}") from e


def _sway_output(o: dict[str, Any]) -> MonitorDescriptor:
    rect = o.get("rect") or {}
    mode = o.get("current_mode") or {}
    description = f"{o.get('make', '')} {o.get('model', '')}".strip()
    return MonitorDescriptor(
        name=o.get("name", "unknown"),
        description=description,
        width=mode.get("width", rect.get("width", 0)),
        height=mode.get("height", rect.get("height", 0)),
        x=rect.get("x", 0),
        y=rect.get("y", 0),
        # Sway reports refresh in mHz
        refresh_rate=round(mode.get("refresh", 60000) / 1000, 3),
        scale=float(o.get("scale", 1.0)),
        active=bool(o.get("active", True)),
        focused=bool(o.get("focused", False)),
    )


class UnsupportedAdapter:
    """Stand-in when no drivable compositor is running."""

    kind = CompositorKind.UNSUPPORTED

    def detect(self) -> CompositorKind:
        return self.kind

    async def list_monitors(self) -> list[MonitorDescriptor]:
        raise ExternalToolUnavailable("Monitor control is not supported on this desktop")

    async def apply_directive(self, directive: Directive) -> None:
        raise ExternalToolUnavailable(f"Cannot {directive.describe()}: compositor not supported")


def create_compositor_adapter(
    env: Mapping[str, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> CompositorAdapter:
    """Create the adapter for the running compositor."""
    kind = detect_compositor(env)
    logger.debug(f"Detected compositor: {kind.display_name}")
    if kind is CompositorKind.HYPRLAND:
        return HyprlandAdapter(timeout=timeout)
    if kind is CompositorKind.SWAY:
        return SwayAdapter(timeout=timeout)
    return UnsupportedAdapter()


__all__ = [
    "CompositorAdapter",
    "HyprlandAdapter",
    "SwayAdapter",
    "UnsupportedAdapter",
    "create_compositor_adapter",
    "detect_compositor",
    "hyprland_monitor_rule",
    "parse_hyprland_monitors",
    "parse_sway_outputs",
    "sway_output_command",
]
