"""
Health check endpoint for the energywatch API.

GET /health returns HTTP 200 with the service status and the state of the
background ingestion scheduler. No authentication is required -- this is
intended for container health checks and internal monitoring only.

CHANGELOG:
- 2026-10-15: Report ingestion scheduler state
- 2026-10-11: Initial creation
"""

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


def _scheduler_state(request: Request) -> str:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        return "disabled"
    return "running" if scheduler.is_running else "stopped"


@router.get("/health")
async def health(request: Request) -> dict[str, str]:
    """Return service and scheduler status.

    Returns:
        dict: ``{"status": "ok", "scheduler": "running"|"stopped"|"disabled"}``.
    """
    return {"status": "ok", "scheduler": _scheduler_state(request)}
