from fastapi import APIRouter, Depends, Request

from fleetkeeper.api.deps import company_store
from fleetkeeper.api.rendering import redirect, render
from fleetkeeper.services.session_store import SessionStore

router = APIRouter()


@router.get("")
async def scan_page(request: Request, store: SessionStore = Depends(company_store)):
    """Placeholder for camera scanning; trucks can be opened by id."""
    return render(request, "scan.html", {})


@router.post("")
async def open_scanned_truck(request: Request, store: SessionStore = Depends(company_store)):
    submitted = await request.form()
    truck_id = (submitted.get("truck_id") or "").strip()
    if not truck_id.isdigit() or int(truck_id) <= 0:
        return render(request, "scan.html", {
            "error": "Please enter a valid truck ID",
            "truck_id": truck_id,
        }, status_code=400)
    return redirect(f"/trucks/{int(truck_id)}")
