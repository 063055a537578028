"""FastAPI dependencies wiring the data client, session store and guards."""
import logging
from typing import AsyncIterator

from fastapi import Depends, Request

from fleetkeeper.core.config import Settings
from fleetkeeper.core.data_client import DataClient, MemoryStorage
from fleetkeeper.services.guards import GuardAction, GuardOutcome, require_anonymous, require_authenticated
from fleetkeeper.services.session_store import SessionStore

logger = logging.getLogger(__name__)


class GuardRedirect(Exception):
    def __init__(self, location: str):
        self.location = location
        super().__init__(location)


class SessionPending(Exception):
    """The session store has not settled yet; show a placeholder."""


class CompanyMissing(Exception):
    """The signed-in user has no company record."""


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_data_client(request: Request) -> DataClient:
    storage = getattr(request.state, "auth_storage", None)
    if storage is None:
        storage = MemoryStorage()
    return DataClient(request.app.state.session_factory, request.app.state.settings, storage)


async def check_connection(request: Request) -> None:
    """Re-run the connectivity check while it is failing."""
    status = getattr(request.app.state, "connection", None)
    if status is None or not status.connected:
        client = DataClient(request.app.state.session_factory, request.app.state.settings)
        status = await client.check_connection()
        request.app.state.connection = status
    request.state.connection = status


async def get_session_store(
    request: Request,
    client: DataClient = Depends(get_data_client),
    settings: Settings = Depends(get_settings),
) -> AsyncIterator[SessionStore]:
    store = SessionStore(client, init_timeout=settings.SESSION_INIT_TIMEOUT_SECONDS)
    request.state.session_store = store
    try:
        await store.initialize()
        yield store
    finally:
        store.close()


def _enforce(outcome: GuardOutcome) -> None:
    if outcome.action is GuardAction.REDIRECT:
        raise GuardRedirect(outcome.location)
    if outcome.action is GuardAction.PLACEHOLDER:
        raise SessionPending()


async def authenticated_store(store: SessionStore = Depends(get_session_store)) -> SessionStore:
    _enforce(require_authenticated(store.snapshot()))
    return store


async def anonymous_store(store: SessionStore = Depends(get_session_store)) -> SessionStore:
    _enforce(require_anonymous(store.snapshot()))
    return store


async def company_store(store: SessionStore = Depends(authenticated_store)) -> SessionStore:
    """Signed-in store whose company record is loaded."""
    if store.company is None:
        logger.warning(f"User {store.user.id} has no company record")
        raise CompanyMissing()
    return store
