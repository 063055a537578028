import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from fleetkeeper.api.deps import company_store
from fleetkeeper.api.rendering import redirect, render
from fleetkeeper.core.data_client import DataClient
from fleetkeeper.core.exceptions import DataClientError, NotFoundError
from fleetkeeper.schemas.forms import parse_form
from fleetkeeper.schemas.maintenance import MaintenanceResponse
from fleetkeeper.schemas.truck import TruckForm, TruckResponse
from fleetkeeper.services.fleet_summary import filter_trucks
from fleetkeeper.services.session_store import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter()


async def fetch_truck(client: DataClient, company_id: int, truck_id: int) -> TruckResponse:
    """Load one truck scoped to the company; 404 if it is not theirs."""
    try:
        result = await (
            client.table("trucks").select().eq("id", truck_id).eq("company_id", company_id).single().execute()
        )
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Truck not found")
    return TruckResponse.model_validate(result.data)


@router.get("")
async def list_trucks(request: Request, q: Optional[str] = None, store: SessionStore = Depends(company_store)):
    """All trucks of the company, newest first, optionally filtered."""
    try:
        result = await (
            store.client.table("trucks")
            .select()
            .eq("company_id", store.company.id)
            .order("created_at", desc=True)
            .order("id", desc=True)
            .execute()
        )
    except DataClientError as e:
        logger.error(f"Error fetching trucks: {e}")
        return render(request, "trucks.html", {
            "trucks": [], "q": q or "", "error": "Failed to load trucks. Please try again.",
        }, status_code=503)

    trucks = [TruckResponse.model_validate(row) for row in result.data]
    return render(request, "trucks.html", {
        "trucks": filter_trucks(trucks, q),
        "total": len(trucks),
        "q": q or "",
    })


@router.get("/add")
async def add_truck_page(request: Request, store: SessionStore = Depends(company_store)):
    return render(request, "truck_form.html", {"form": {}, "errors": {}, "truck": None})


@router.post("/add")
async def add_truck(request: Request, store: SessionStore = Depends(company_store)):
    submitted = await request.form()
    form, errors = parse_form(TruckForm, submitted)
    if errors:
        return render(request, "truck_form.html", {"form": submitted, "errors": errors, "truck": None}, status_code=400)

    row = form.model_dump()
    row["company_id"] = store.company.id
    try:
        result = await store.client.table("trucks").insert(row).single().execute()
    except DataClientError as e:
        logger.error(f"Error adding truck: {e}")
        return render(request, "truck_form.html", {
            "form": submitted, "errors": {}, "truck": None,
            "error": "Failed to add truck. Please try again.",
        }, status_code=503)

    logger.info(f"Added truck {result.data['id']} for company {store.company.id}")
    return redirect(f"/trucks/{result.data['id']}")


@router.get("/{truck_id}")
async def truck_detail(request: Request, truck_id: int, store: SessionStore = Depends(company_store)):
    """Truck details with its maintenance history."""
    company_id = store.company.id
    try:
        truck = await fetch_truck(store.client, company_id, truck_id)
        records = await (
            store.client.table("maintenance_records")
            .select()
            .eq("truck_id", truck_id)
            .eq("company_id", company_id)
            .order("performed_at", desc=True)
            .execute()
        )
    except DataClientError as e:
        logger.error(f"Error fetching truck {truck_id}: {e}")
        return render(request, "truck_detail.html", {
            "truck": None, "records": [], "error": "Failed to load truck data. Please try again.",
        }, status_code=503)

    return render(request, "truck_detail.html", {
        "truck": truck,
        "records": [MaintenanceResponse.model_validate(row) for row in records.data],
        "truck_url": str(request.url_for("truck_detail", truck_id=truck.id)),
    })


@router.get("/{truck_id}/edit")
async def edit_truck_page(request: Request, truck_id: int, store: SessionStore = Depends(company_store)):
    try:
        truck = await fetch_truck(store.client, store.company.id, truck_id)
    except DataClientError as e:
        logger.error(f"Error fetching truck {truck_id}: {e}")
        return render(request, "truck_form.html", {
            "form": {}, "errors": {}, "truck": None, "error": "Failed to load truck data. Please try again.",
        }, status_code=503)
    return render(request, "truck_form.html", {"form": truck.model_dump(), "errors": {}, "truck": truck})


@router.post("/{truck_id}/edit")
async def edit_truck(request: Request, truck_id: int, store: SessionStore = Depends(company_store)):
    submitted = await request.form()
    form, errors = parse_form(TruckForm, submitted)
    truck_ref = {"id": truck_id}
    if errors:
        return render(request, "truck_form.html", {"form": submitted, "errors": errors, "truck": truck_ref}, status_code=400)

    try:
        await (
            store.client.table("trucks")
            .update(form.model_dump())
            .eq("id", truck_id)
            .eq("company_id", store.company.id)
            .single()
            .execute()
        )
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Truck not found")
    except DataClientError as e:
        logger.error(f"Error updating truck {truck_id}: {e}")
        return render(request, "truck_form.html", {
            "form": submitted, "errors": {}, "truck": truck_ref,
            "error": "Failed to update truck. Please try again.",
        }, status_code=503)

    return redirect(f"/trucks/{truck_id}")


@router.post("/{truck_id}/delete")
async def delete_truck(request: Request, truck_id: int, store: SessionStore = Depends(company_store)):
    try:
        result = await (
            store.client.table("trucks").delete().eq("id", truck_id).eq("company_id", store.company.id).execute()
        )
    except DataClientError as e:
        logger.error(f"Error deleting truck {truck_id}: {e}")
        return render(request, "truck_detail.html", {
            "truck": None, "records": [], "error": "Failed to delete truck. Please try again.",
            "retry_url": f"/trucks/{truck_id}",
        }, status_code=503)

    if result.count == 0:
        raise HTTPException(status_code=404, detail="Truck not found")

    logger.info(f"Deleted truck {truck_id} for company {store.company.id}")
    return redirect("/trucks")
