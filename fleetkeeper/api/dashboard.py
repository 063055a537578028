import logging

from fastapi import APIRouter, Depends, Request

from fleetkeeper.api.deps import company_store, get_settings
from fleetkeeper.api.rendering import render
from fleetkeeper.core.config import Settings
from fleetkeeper.core.exceptions import DataClientError
from fleetkeeper.schemas.maintenance import MaintenanceResponse
from fleetkeeper.schemas.truck import TruckResponse
from fleetkeeper.services.fleet_summary import build_dashboard
from fleetkeeper.services.session_store import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/")
async def dashboard(
    request: Request,
    store: SessionStore = Depends(company_store),
    settings: Settings = Depends(get_settings),
):
    """Fleet summary for the signed-in company."""
    company = store.company
    try:
        trucks = await store.client.table("trucks").select().eq("company_id", company.id).execute()
        records = await (
            store.client.table("maintenance_records")
            .select()
            .eq("company_id", company.id)
            .order("performed_at", desc=True)
            .execute()
        )
    except DataClientError as e:
        logger.error(f"Error fetching dashboard data for company {company.id}: {e}")
        return render(request, "dashboard.html", {
            "error": "Failed to load dashboard data. Please try again.",
        }, status_code=503)

    summary = build_dashboard(
        [TruckResponse.model_validate(row) for row in trucks.data],
        [MaintenanceResponse.model_validate(row) for row in records.data],
        interval_days=settings.MAINTENANCE_INTERVAL_DAYS,
        stale_days=settings.MAINTENANCE_STALE_DAYS,
        window_days=settings.UPCOMING_WINDOW_DAYS,
    )
    return render(request, "dashboard.html", {
        "summary": summary,
        "window_days": settings.UPCOMING_WINDOW_DAYS,
    })
