"""
Alert endpoints.

Farm-wide listings return the stored alerts that are still active (the
ingestion loop raises them). A panel listing adds the live threshold
alerts for the panel's latest reading to its stored active alerts, minus
any whose category is already open.

CHANGELOG:
- 2026-09-27: Return stored alerts, soft dismissal (STORY-016)
- 2026-09-25: Initial creation (STORY-017)

TODO:
- None
"""

from typing import Annotated

from fastapi import APIRouter, Query

from solarfarm.api.deps import StorageDep
from solarfarm.models import Alert, CamelModel, PanelWithCurrentReading
from solarfarm.services.alerts import panel_alerts, without_active_duplicates

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


class AlertList(CamelModel):
    alerts: list[Alert]


class DismissResult(CamelModel):
    success: bool
    message: str


@router.get("", response_model=AlertList)
async def list_alerts(
    storage: StorageDep,
    panel_id: Annotated[str | None, Query(alias="panelId")] = None,
) -> AlertList:
    if panel_id is None:
        return AlertList(alerts=await storage.get_active_alerts())

    stored = [a for a in await storage.get_alerts_by_panel(panel_id) if not a.dismissed]
    panel = await storage.get_panel_by_id(panel_id)
    if panel is None:
        return AlertList(alerts=stored)

    current = PanelWithCurrentReading(
        **panel.model_dump(),
        current_reading=await storage.get_latest_reading_by_panel(panel_id),
    )
    live = [alert.build() for alert in without_active_duplicates(panel_alerts(current), stored)]
    return AlertList(alerts=stored + live)


@router.post("/{alert_id}/dismiss", response_model=DismissResult)
async def dismiss_alert(alert_id: str, storage: StorageDep) -> DismissResult:
    """Dismiss an alert. Unknown ids are ignored."""
    await storage.dismiss_alert(alert_id)
    return DismissResult(success=True, message="Alert dismissed")
