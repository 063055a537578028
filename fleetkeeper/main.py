import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from fleetkeeper.api import auth, company, dashboard, maintenance, scan, trucks
from fleetkeeper.api.deps import CompanyMissing, GuardRedirect, SessionPending, check_connection
from fleetkeeper.api.rendering import redirect, render
from fleetkeeper.core.config import Settings, get_settings
from fleetkeeper.core.data_client import DataClient
from fleetkeeper.core.database import check_database_health, create_db_engine, create_session_factory, init_db
from fleetkeeper.core.rate_limit import AuthRateLimitMiddleware
from fleetkeeper.core.session_cookie import AuthCookieMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db(app.state.engine)
    status = await DataClient(app.state.session_factory, app.state.settings).check_connection()
    if not status.connected:
        logger.warning(f"Data service unreachable at startup: {status.error}")
    app.state.connection = status
    yield
    app.state.engine.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application. Raises ConfigurationError when settings are missing."""
    settings = settings or get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL.upper())

    app = FastAPI(
        title="Fleetkeeper",
        description="Fleet maintenance tracking for trucking companies",
        version="1.0.0",
        lifespan=lifespan,
    )

    engine = create_db_engine(settings)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.connection = None

    # Auth form throttling
    app.add_middleware(
        AuthRateLimitMiddleware,
        requests_per_minute=settings.AUTH_RATE_LIMIT_PER_MINUTE,
        requests_per_hour=settings.AUTH_RATE_LIMIT_PER_HOUR,
    )
    # Session cookie persistence
    app.add_middleware(AuthCookieMiddleware, settings=settings)

    pages = [Depends(check_connection)]
    app.include_router(auth.router, tags=["Authentication"], dependencies=pages)
    app.include_router(dashboard.router, tags=["Dashboard"], dependencies=pages)
    app.include_router(trucks.router, prefix="/trucks", tags=["Trucks"], dependencies=pages)
    app.include_router(maintenance.router, prefix="/trucks", tags=["Maintenance"], dependencies=pages)
    app.include_router(scan.router, prefix="/scan", tags=["Scan"], dependencies=pages)
    app.include_router(company.router, prefix="/company", tags=["Company"], dependencies=pages)

    @app.get("/health")
    async def health_check():
        database = check_database_health(app.state.engine)
        return {"status": database["status"], "database": database}

    _register_error_handlers(app)
    return app


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(GuardRedirect)
    async def guard_redirect(request: Request, exc: GuardRedirect):
        return redirect(exc.location)

    @app.exception_handler(SessionPending)
    async def session_pending(request: Request, exc: SessionPending):
        return render(request, "loading.html", {"message": "Checking authentication..."})

    @app.exception_handler(CompanyMissing)
    async def company_missing(request: Request, exc: CompanyMissing):
        return render(request, "error.html", {
            "title": "No company information",
            "message": "No company information was found for your account. Please contact support.",
        }, status_code=404)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return render(request, "not_found.html", {}, status_code=404)
        return render(request, "error.html", {
            "title": "Something went wrong",
            "message": exc.detail,
        }, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError):
        # A malformed path parameter means the page does not exist
        if any(error["loc"] and error["loc"][0] == "path" for error in exc.errors()):
            return render(request, "not_found.html", {}, status_code=404)
        logger.warning(f"Invalid request parameters on {request.url.path}: {exc.errors()}")
        return render(request, "error.html", {
            "title": "Invalid request",
            "message": "The request contained invalid parameters.",
            "default_retry_url": request.url.path,
        }, status_code=400)

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return render(request, "error.html", {
            "title": "Something went wrong",
            "message": "An unexpected error occurred.",
        }, status_code=500)


app = create_app()
