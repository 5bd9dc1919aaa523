"""
Threshold alert rules for single panels and the whole farm.

Rules (same thresholds at both levels):

- efficiency below 50% raises an ``error``;
- dust above 7 raises a ``warning``;
- temperature above 40 C raises a ``warning``.

Panels without a current reading never trigger a rule. Farm-wide alerts
summarise how many panels tripped a rule and list the first five panel
numbers.

CHANGELOG:
- 2026-09-25: Add duplicate suppression against active alerts (STORY-014)
- 2026-09-25: Initial creation (STORY-014)

TODO:
- None
"""

from collections.abc import Iterable, Sequence

from solarfarm.models import (
    Alert,
    AlertCategory,
    AlertCreate,
    AlertLevel,
    PanelWithCurrentReading,
)

CRITICAL_EFFICIENCY_PERCENT = 50.0
HIGH_DUST_LEVEL = 7.0
HIGH_TEMPERATURE_C = 40.0

DETAIL_PANEL_LIMIT = 5


def _panel_list(panels: Sequence[PanelWithCurrentReading]) -> str:
    numbers = ", ".join(str(p.panel_number) for p in panels[:DETAIL_PANEL_LIMIT])
    suffix = "..." if len(panels) > DETAIL_PANEL_LIMIT else ""
    return f"Panels: {numbers}{suffix}"


def panel_alerts(panel: PanelWithCurrentReading) -> list[AlertCreate]:
    """Evaluate every rule against one panel's current reading."""
    reading = panel.current_reading
    if reading is None:
        return []

    alerts: list[AlertCreate] = []
    if reading.efficiency_percent < CRITICAL_EFFICIENCY_PERCENT:
        alerts.append(
            AlertCreate(
                panel_id=panel.id,
                level=AlertLevel.ERROR,
                type=AlertCategory.EFFICIENCY,
                title="Critical: Low Panel Efficiency",
                message=(
                    f"Panel {panel.panel_number} efficiency at "
                    f"{reading.efficiency_percent:.1f}%."
                ),
                details="Immediate inspection recommended",
            )
        )
    if reading.dust_level > HIGH_DUST_LEVEL:
        alerts.append(
            AlertCreate(
                panel_id=panel.id,
                level=AlertLevel.WARNING,
                type=AlertCategory.DUST,
                title="High Dust Accumulation",
                message=f"Panel {panel.panel_number} dust level at {reading.dust_level:.1f}/10.",
                details="Schedule cleaning within 24 hours",
            )
        )
    if reading.temperature > HIGH_TEMPERATURE_C:
        alerts.append(
            AlertCreate(
                panel_id=panel.id,
                level=AlertLevel.WARNING,
                type=AlertCategory.TEMPERATURE,
                title="High Temperature",
                message=(
                    f"Panel {panel.panel_number} temperature at {reading.temperature:.1f}°C."
                ),
                details="Consider cooling or ventilation",
            )
        )
    return alerts


def farm_alerts(panels: Sequence[PanelWithCurrentReading]) -> list[AlertCreate]:
    """Evaluate every rule across the farm and summarise the offenders."""
    with_reading = [p for p in panels if p.current_reading is not None]
    critical = [
        p for p in with_reading
        if p.current_reading.efficiency_percent < CRITICAL_EFFICIENCY_PERCENT
    ]
    dusty = [p for p in with_reading if p.current_reading.dust_level > HIGH_DUST_LEVEL]
    hot = [p for p in with_reading if p.current_reading.temperature > HIGH_TEMPERATURE_C]

    alerts: list[AlertCreate] = []
    if critical:
        alerts.append(
            AlertCreate(
                level=AlertLevel.ERROR,
                type=AlertCategory.EFFICIENCY,
                title=f"{len(critical)} Panels with Critical Efficiency",
                message=f"{len(critical)} panels are operating below 50% efficiency.",
                details=_panel_list(critical),
            )
        )
    if dusty:
        alerts.append(
            AlertCreate(
                level=AlertLevel.WARNING,
                type=AlertCategory.DUST,
                title=f"{len(dusty)} Panels Need Cleaning",
                message=f"{len(dusty)} panels have high dust accumulation.",
                details=_panel_list(dusty),
            )
        )
    if hot:
        alerts.append(
            AlertCreate(
                level=AlertLevel.WARNING,
                type=AlertCategory.TEMPERATURE,
                title=f"{len(hot)} Panels Running Hot",
                message=f"{len(hot)} panels are operating above 40°C.",
                details=_panel_list(hot),
            )
        )
    return alerts


def without_active_duplicates(
    candidates: Iterable[AlertCreate], active: Iterable[Alert]
) -> list[AlertCreate]:
    """Drop candidates whose panel and category already have an active alert.

    Args:
        candidates: Freshly evaluated alerts.
        active: Alerts currently stored and not dismissed.

    Returns:
        list[AlertCreate]: Candidates that would be new.
    """
    open_keys = {(alert.panel_id, alert.type) for alert in active}
    return [c for c in candidates if (c.panel_id, c.type) not in open_keys]
