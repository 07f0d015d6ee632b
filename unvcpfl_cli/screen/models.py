"""Monitor snapshot, plan and directive types."""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from enum import Enum

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

GRID_UNIT = 100
AUTO_TARGET = "auto"


class CompositorKind(str, Enum):
    """Compositors the layout planner knows how to drive."""

    HYPRLAND = "hyprland"
    SWAY = "sway"
    UNSUPPORTED = "unsupported"

    @property
    def display_name(self) -> str:
        return {"hyprland": "Hyprland", "sway": "Sway"}.get(self.value, "Unsupported")


class MonitorDescriptor(BaseModel):
    """Read-only hardware snapshot of one output as reported by the compositor."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Connector name, e.g. 'DP-1'")
    description: str = Field(default="", description="Make/model string")
    width: int
    height: int
    x: int = 0
    y: int = 0
    refresh_rate: float = 60.0
    scale: float = 1.0
    active: bool = True
    focused: bool = False

    @property
    def mode(self) -> str:
        return f"{self.width}x{self.height}@{self.refresh_rate:g}"


def snap_to_grid(value: int, unit: int = GRID_UNIT) -> int:
    """Round an interactive position to the nearest grid line."""
    return int(round(value / unit)) * unit


class MonitorPlan(BaseModel):
    """Desired display layout for a game (the profile's ``screen`` section).

    All override fields are optional; ``None`` means "keep what the hardware
    reports". ``target_monitor`` of ``None`` or ``"auto"`` targets the primary
    monitor.
    """

    target_monitor: str | None = Field(None, description="Output name, or 'auto' for the primary monitor")
    width: int | None = None
    height: int | None = None
    refresh_rate: float | None = None
    x: int | None = None
    y: int | None = None
    scale: float | None = None
    disable_other_monitors: bool = False
    restore_monitors_after_exit: bool = True

    @property
    def is_auto(self) -> bool:
        return self.target_monitor is None or self.target_monitor == AUTO_TARGET

    @property
    def has_overrides(self) -> bool:
        return any(
            value is not None for value in (self.width, self.height, self.refresh_rate, self.x, self.y, self.scale)
        )

    def positioned_at(self, x: int, y: int, unit: int = GRID_UNIT) -> MonitorPlan:
        """Return a copy moved to a grid-snapped position (used for interactive placement)."""
        return self.model_copy(update={"x": snap_to_grid(x, unit), "y": snap_to_grid(y, unit)})


@dataclass(frozen=True)
class ConfigureMonitor:
    """Enable an output with an explicit mode, position and scale."""

    name: str
    width: int
    height: int
    refresh_rate: float
    x: int
    y: int
    scale: float

    @classmethod
    def from_descriptor(cls, descriptor: MonitorDescriptor) -> ConfigureMonitor:
        return cls(
            name=descriptor.name,
            width=descriptor.width,
            height=descriptor.height,
            refresh_rate=descriptor.refresh_rate,
            x=descriptor.x,
            y=descriptor.y,
            scale=descriptor.scale,
        )

    def describe(self) -> str:
        return f"configure {self.name} {self.width}x{self.height}@{self.refresh_rate:g} at {self.x}x{self.y} scale {self.scale:g}"


@dataclass(frozen=True)
class DisableMonitor:
    """Turn an output off."""

    name: str

    def describe(self) -> str:
        return f"disable {self.name}"


Directive = ConfigureMonitor | DisableMonitor


@dataclass
class DirectivePlan:
    """Result of layout resolution.

    ``supported`` is False when the compositor cannot be driven; callers must
    surface that instead of attempting directives.
    """

    compositor: CompositorKind
    supported: bool
    target: str | None = None
    fell_back: bool = False
    directives: list[Directive] = field(default_factory=list)
    snapshot: tuple[MonitorDescriptor, ...] = ()

    @property
    def is_noop(self) -> bool:
        return not self.directives
