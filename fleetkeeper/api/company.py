import logging

from fastapi import APIRouter, Depends, Request

from fleetkeeper.api.deps import company_store
from fleetkeeper.api.rendering import render
from fleetkeeper.core.exceptions import DataClientError
from fleetkeeper.schemas.company import CompanyForm, CompanyResponse
from fleetkeeper.schemas.forms import parse_form
from fleetkeeper.services.session_store import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def company_page(request: Request, store: SessionStore = Depends(company_store)):
    return render(request, "company.html", {"form": store.company.model_dump(), "errors": {}})


@router.post("")
async def update_company(request: Request, store: SessionStore = Depends(company_store)):
    submitted = await request.form()
    form, errors = parse_form(CompanyForm, submitted)
    if errors:
        return render(request, "company.html", {"form": submitted, "errors": errors}, status_code=400)

    company = store.company
    try:
        result = await (
            store.client.table("companies")
            .update(form.model_dump())
            .eq("id", company.id)
            .eq("user_id", store.user.id)
            .single()
            .execute()
        )
    except DataClientError as e:
        logger.error(f"Error updating company {company.id}: {e}")
        return render(request, "company.html", {
            "form": submitted,
            "errors": {},
            "error": "Failed to update company information. Please try again.",
        }, status_code=503)

    updated = CompanyResponse.model_validate(result.data)
    store.set_company(updated)
    return render(request, "company.html", {
        "form": updated.model_dump(),
        "errors": {},
        "success": "Company information updated successfully",
    })
