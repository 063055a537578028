"""Login, registration and logout pages."""
import logging

from fastapi import APIRouter, Depends, Request

from fleetkeeper.api.deps import anonymous_store, get_session_store
from fleetkeeper.api.rendering import redirect, render
from fleetkeeper.core.exceptions import AuthError, FleetkeeperError
from fleetkeeper.schemas.auth import LoginForm, RegisterForm
from fleetkeeper.schemas.forms import parse_form
from fleetkeeper.services.session_store import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter()

REGISTERED_MESSAGE = "Registration successful! Please sign in with your new account."


@router.get("/login")
async def login_page(request: Request, registered: bool = False, store: SessionStore = Depends(anonymous_store)):
    return render(request, "login.html", {
        "form": {},
        "errors": {},
        "message": REGISTERED_MESSAGE if registered else None,
    })


@router.post("/login")
async def login(request: Request, store: SessionStore = Depends(anonymous_store)):
    submitted = await request.form()
    form, errors = parse_form(LoginForm, submitted)
    if errors:
        return render(request, "login.html", {"form": submitted, "errors": errors}, status_code=400)

    try:
        await store.login(form.email, form.password)
    except AuthError as e:
        return render(request, "login.html", {
            "form": {"email": form.email},
            "errors": {},
            "error": f"Failed to sign in. {e or 'Please check your credentials.'}",
        }, status_code=400)

    return redirect("/")


@router.get("/register")
async def register_page(request: Request, store: SessionStore = Depends(anonymous_store)):
    return render(request, "register.html", {"form": {}, "errors": {}})


@router.post("/register")
async def register(request: Request, store: SessionStore = Depends(anonymous_store)):
    submitted = await request.form()
    form, errors = parse_form(RegisterForm, submitted)
    if errors:
        return render(request, "register.html", {"form": submitted, "errors": errors}, status_code=400)

    try:
        await store.register(form.email, form.password, form.company_name, form.address, form.phone)
    except FleetkeeperError as e:
        return render(request, "register.html", {
            "form": submitted,
            "errors": {},
            "error": f"Failed to create an account. {e or 'Please try again.'}",
        }, status_code=400)

    return redirect("/login?registered=1")


@router.post("/logout")
async def logout(request: Request, store: SessionStore = Depends(get_session_store)):
    try:
        await store.logout()
    except AuthError as e:
        # Local state is cleared regardless
        logger.warning(f"Sign-out failed, continuing to login page: {e}")
    return redirect("/login")
