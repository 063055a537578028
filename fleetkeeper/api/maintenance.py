import logging

from fastapi import APIRouter, Depends, Request

from fleetkeeper.api.deps import company_store
from fleetkeeper.api.rendering import redirect, render
from fleetkeeper.api.trucks import fetch_truck
from fleetkeeper.core.exceptions import DataClientError
from fleetkeeper.schemas.forms import parse_form
from fleetkeeper.schemas.maintenance import MAINTENANCE_TYPES, MaintenanceForm
from fleetkeeper.services.session_store import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter()

LOAD_ERROR = "Failed to load truck data. Please try again."


def _page(truck, form, errors, error=None) -> dict:
    return {
        "truck": truck,
        "form": form,
        "errors": errors,
        "error": error,
        "maintenance_types": MAINTENANCE_TYPES,
    }


@router.get("/{truck_id}/maintenance")
async def add_record_page(request: Request, truck_id: int, store: SessionStore = Depends(company_store)):
    try:
        truck = await fetch_truck(store.client, store.company.id, truck_id)
    except DataClientError as e:
        logger.error(f"Error fetching truck {truck_id}: {e}")
        return render(request, "maintenance_form.html", _page(None, {}, {}, LOAD_ERROR), status_code=503)
    return render(request, "maintenance_form.html", _page(truck, {}, {}))


@router.post("/{truck_id}/maintenance")
async def add_record(request: Request, truck_id: int, store: SessionStore = Depends(company_store)):
    """Record maintenance and raise the truck's mileage if the record is higher."""
    company_id = store.company.id
    try:
        truck = await fetch_truck(store.client, company_id, truck_id)
    except DataClientError as e:
        logger.error(f"Error fetching truck {truck_id}: {e}")
        return render(request, "maintenance_form.html", _page(None, {}, {}, LOAD_ERROR), status_code=503)

    submitted = await request.form()
    form, errors = parse_form(MaintenanceForm, submitted)
    if errors:
        return render(request, "maintenance_form.html", _page(truck, submitted, errors), status_code=400)

    try:
        await store.client.table("maintenance_records").insert(form.to_row(company_id, truck.id)).execute()

        if form.mileage > truck.current_mileage:
            await (
                store.client.table("trucks")
                .update({"current_mileage": form.mileage})
                .eq("id", truck.id)
                .eq("company_id", company_id)
                .execute()
            )
    except DataClientError as e:
        logger.error(f"Error adding maintenance record for truck {truck.id}: {e}")
        return render(
            request,
            "maintenance_form.html",
            _page(truck, submitted, {}, "Failed to add maintenance record. Please try again."),
            status_code=503,
        )

    return redirect(f"/trucks/{truck.id}")
