"""Monitor layout planner.

Reconciles a profile's MonitorPlan against the monitors the compositor
reports and produces the directives that realize it. The planner never talks
to the compositor itself; the supervisor executes the directives.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from .models import CompositorKind
from .models import ConfigureMonitor
from .models import Directive
from .models import DirectivePlan
from .models import DisableMonitor
from .models import MonitorDescriptor
from .models import MonitorPlan

if TYPE_CHECKING:
    from ..launch.session import LaunchSession

logger = logging.getLogger(__name__)


def find_primary(snapshot: Sequence[MonitorDescriptor]) -> MonitorDescriptor | None:
    """Focused active monitor, else the first active one."""
    active = [m for m in snapshot if m.active]
    for monitor in active:
        if monitor.focused:
            return monitor
    return active[0] if active else None


def resolve_layout(
    snapshot: Sequence[MonitorDescriptor],
    plan: MonitorPlan,
    compositor: CompositorKind,
    session: LaunchSession | None = None,
) -> DirectivePlan:
    """
    Resolve a desired layout into compositor directives.

    Args:
        snapshot: Monitors as currently reported by the compositor
        plan: Desired layout
        compositor: Which compositor will execute the directives
        session: Active launch session; receives the pre-change snapshot
            whenever directives are emitted

    Returns:
        DirectivePlan. ``supported`` is False (and no directives are emitted)
        for compositors that cannot be driven.
    """
    snapshot = tuple(snapshot)
    if compositor is CompositorKind.UNSUPPORTED:
        logger.info("Monitor layout not applied: compositor not supported")
        return DirectivePlan(compositor=compositor, supported=False, snapshot=snapshot)

    target, fell_back = _select_target(snapshot, plan)
    if target is None:
        logger.warning("No active monitor reported; leaving layout untouched")
        return DirectivePlan(compositor=compositor, supported=True, fell_back=fell_back, snapshot=snapshot)

    directives: list[Directive] = []

    current = ConfigureMonitor.from_descriptor(target)
    desired = ConfigureMonitor(
        name=target.name,
        width=plan.width if plan.width is not None else target.width,
        height=plan.height if plan.height is not None else target.height,
        refresh_rate=plan.refresh_rate if plan.refresh_rate is not None else target.refresh_rate,
        x=plan.x if plan.x is not None else target.x,
        y=plan.y if plan.y is not None else target.y,
        scale=plan.scale if plan.scale is not None else target.scale,
    )
    if desired != current:
        directives.append(desired)

    # Target is configured before anything is switched off so at least one output stays on
    if plan.disable_other_monitors:
        directives += [DisableMonitor(m.name) for m in snapshot if m.active and m.name != target.name]

    if directives and session is not None:
        session.record_monitor_snapshot(snapshot)

    logger.debug(f"Layout for {target.name}: {[d.describe() for d in directives] or 'no changes'}")

    return DirectivePlan(
        compositor=compositor,
        supported=True,
        target=target.name,
        fell_back=fell_back,
        directives=directives,
        snapshot=snapshot,
    )


def _select_target(
    snapshot: tuple[MonitorDescriptor, ...], plan: MonitorPlan
) -> tuple[MonitorDescriptor | None, bool]:
    primary = find_primary(snapshot)
    if plan.is_auto:
        return primary, False

    for monitor in snapshot:
        if monitor.name == plan.target_monitor and monitor.active:
            return monitor, False

    logger.warning(f"Monitor '{plan.target_monitor}' not found among active monitors; using primary")
    return primary, True


def restore_directives(
    snapshot: Sequence[MonitorDescriptor],
    current: Sequence[MonitorDescriptor] | None = None,
) -> list[Directive]:
    """
    Directives that bring the layout back to a snapshot.

    Outputs that were active are reconfigured first; outputs that were off are
    switched off afterwards. When ``current`` is given, outputs already
    matching the snapshot are skipped.
    """
    current_by_name = {m.name: m for m in current} if current is not None else {}

    def unchanged(monitor: MonitorDescriptor) -> bool:
        live = current_by_name.get(monitor.name)
        return (
            live is not None
            and live.active
            and ConfigureMonitor.from_descriptor(live) == ConfigureMonitor.from_descriptor(monitor)
        )

    configure: list[Directive] = [
        ConfigureMonitor.from_descriptor(m) for m in snapshot if m.active and not unchanged(m)
    ]
    disable: list[Directive] = [
        DisableMonitor(m.name)
        for m in snapshot
        if not m.active and (current is None or current_by_name.get(m.name, m).active)
    ]
    return configure + disable
