"""
Health check endpoint for the solar farm API.

GET /health returns ``{"status": "ok", "storage": <mode>}`` with HTTP 200.
The storage mode tells operators whether the service is still writing to
the database or has failed over to memory.

CHANGELOG:
- 2026-09-18: Report storage mode (STORY-006)
- 2026-09-14: Initial creation (STORY-001)

TODO:
- None
"""

from fastapi import APIRouter

from solarfarm.api.deps import StorageDep

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(storage: StorageDep) -> dict[str, str]:
    """Return a simple health status.

    Returns:
        dict: ``status`` and the current storage ``mode``.
    """
    return {"status": "ok", "storage": storage.mode.value}
