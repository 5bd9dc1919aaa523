"""
Farm layout and panel initialisation.

Panels are laid out row-major on a grid (20 columns by default) and get the
id ``panel-{n}`` so they line up with the hardware feed's panel ids.

CHANGELOG:
- 2026-09-26: Idempotent initialisation of missing panels (STORY-015)
- 2026-09-17: Initial creation (STORY-005)

TODO:
- None
"""

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import timedelta

from solarfarm.models import PanelCreate, PanelStatus, utc_now
from solarfarm.storage.base import Storage

logger = logging.getLogger(__name__)


def panel_id_for(panel_number: int) -> str:
    return f"panel-{panel_number}"


def panel_location(panel_number: int, grid_columns: int) -> str:
    """Return the grid label, e.g. ``Row 01, Col 05``."""
    row = (panel_number - 1) // grid_columns + 1
    col = (panel_number - 1) % grid_columns + 1
    return f"Row {row:02d}, Col {col:02d}"


def farm_layout(
    panel_count: int, grid_columns: int, rng: random.Random | None = None
) -> list[PanelCreate]:
    """Return a freshly commissioned farm of ``panel_count`` panels.

    Health starts between 85 and 100, install dates fall within the last
    year and the last maintenance within the last 90 days.

    Args:
        panel_count: Number of panels.
        grid_columns: Panels per grid row.
        rng: Random source; injectable for deterministic tests.

    Returns:
        list[PanelCreate]: One entry per panel number, in order.
    """
    rng = rng or random.Random()
    now = utc_now()
    return [
        PanelCreate(
            id=panel_id_for(number),
            panel_number=number,
            location=panel_location(number, grid_columns),
            install_date=now - timedelta(days=rng.random() * 365),
            health_score=85 + rng.random() * 15,
            last_maintenance=now - timedelta(days=rng.random() * 90),
        )
        for number in range(1, panel_count + 1)
    ]


def _initial_status(rng: random.Random) -> PanelStatus:
    roll = rng.random()
    if roll < 0.05:
        return PanelStatus.MAINTENANCE
    if roll < 0.07:
        return PanelStatus.OFFLINE
    if roll < 0.08:
        return PanelStatus.DAMAGED
    return PanelStatus.ACTIVE


@dataclass(frozen=True)
class InitResult:
    created: int
    total: int

    @property
    def message(self) -> str:
        if self.created == 0:
            return "Panels already initialized"
        return f"Successfully initialized {self.created} panels"


async def initialize_panels(
    storage: Storage,
    *,
    panel_count: int,
    grid_columns: int,
    rng: random.Random | None = None,
) -> InitResult:
    """Create every panel number in 1..``panel_count`` that does not exist yet.

    New panels start at full health. A small share is created outside the
    active state: 5% maintenance, 2% offline and 1% damaged.

    Args:
        storage: Target storage.
        panel_count: Desired farm size.
        grid_columns: Panels per grid row.
        rng: Random source for the initial status.

    Returns:
        InitResult: How many panels were created and the resulting total.
    """
    rng = rng or random.Random()
    existing = {panel.panel_number for panel in await storage.get_all_panels()}
    created = 0
    for number in range(1, panel_count + 1):
        if number in existing:
            continue
        panel = await storage.create_panel(
            PanelCreate(
                id=panel_id_for(number),
                panel_number=number,
                location=panel_location(number, grid_columns),
            )
        )
        status = _initial_status(rng)
        if status is not PanelStatus.ACTIVE:
            await storage.update_panel_status(panel.id, status)
        created += 1
    if created:
        logger.info("Initialized %d panels", created)
    return InitResult(created=created, total=len(existing) + created)


async def seed_if_empty(storage: Storage, layout: Sequence[PanelCreate]) -> int:
    """Populate an empty store with a commissioned farm layout.

    Args:
        storage: Target storage.
        layout: Panels as returned by :func:`farm_layout`.

    Returns:
        int: Number of panels created (0 when panels already exist).
    """
    if await storage.get_all_panels():
        return 0
    for panel in layout:
        await storage.create_panel(panel)
    logger.info("Seeded storage with %d panels", len(layout))
    return len(layout)
