from pathlib import Path
from typing import Optional

from fastapi import Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def retry_url_for(request: Request) -> str:
    """Where a Retry link should lead: the same page for GETs, home otherwise."""
    if request.method != "GET":
        return "/"
    if request.url.query:
        return f"{request.url.path}?{request.url.query}"
    return request.url.path


def render(request: Request, name: str, context: Optional[dict] = None, status_code: int = 200):
    """Render a page template with the session and connection state attached."""
    store = getattr(request.state, "session_store", None)
    page = {
        "auth": store.snapshot() if store is not None else None,
        "connection": getattr(request.state, "connection", None),
        "default_retry_url": retry_url_for(request),
    }
    page.update(context or {})
    return templates.TemplateResponse(request, name, page, status_code=status_code)


def redirect(location: str) -> RedirectResponse:
    return RedirectResponse(location, status_code=303)
