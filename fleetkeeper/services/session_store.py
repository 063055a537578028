"""Per-browser session state kept in sync with the auth client.

The store moves through three named states::

    UNINITIALIZED -> INITIALIZING -> READY

``initialize()`` loads the persisted session (and the user's company) once,
bounded by a timeout. After that, auth change notifications replace the user
and company at any time, independent of in-flight ``login``/``register``/
``logout`` calls. Consumers read immutable snapshots.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fleetkeeper.core.data_client import DataClient
from fleetkeeper.core.exceptions import (
    AuthError,
    DataClientError,
    FleetkeeperError,
    NotFoundError,
    RegistrationError,
)
from fleetkeeper.schemas.auth import AuthChangeEvent, AuthSession, User
from fleetkeeper.schemas.company import CompanyResponse

logger = logging.getLogger(__name__)

DEFAULT_INIT_TIMEOUT = 3.0


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


@dataclass(frozen=True)
class SessionSnapshot:
    state: SessionState
    user: Optional[User] = None
    company: Optional[CompanyResponse] = None
    busy: bool = False
    error: Optional[Exception] = None

    @property
    def loading(self) -> bool:
        """True while an action is running or the store has not finished starting up."""
        return self.busy or self.state is not SessionState.READY

    @property
    def authenticated(self) -> bool:
        return self.user is not None


class SessionStore:
    """Single source of truth for ``{user, company, loading, error}``."""

    def __init__(self, client: DataClient, init_timeout: float = DEFAULT_INIT_TIMEOUT):
        self._client = client
        self._init_timeout = init_timeout
        self._state = SessionState.UNINITIALIZED
        self._user: Optional[User] = None
        self._company: Optional[CompanyResponse] = None
        self._busy = False
        self._error: Optional[Exception] = None
        self._closed = False
        self._subscription = None
        self._init_task: Optional[asyncio.Task] = None

    @property
    def client(self) -> DataClient:
        return self._client

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self._state,
            user=self._user,
            company=self._company,
            busy=self._busy,
            error=self._error,
        )

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def company(self) -> Optional[CompanyResponse]:
        return self._company

    @property
    def error(self) -> Optional[Exception]:
        return self._error

    @property
    def loading(self) -> bool:
        return self.snapshot().loading

    def _update(self, **changes) -> None:
        if self._closed:
            return
        for name, value in changes.items():
            setattr(self, f"_{name}", value)

    def _mark_ready(self) -> None:
        self._update(state=SessionState.READY)

    async def initialize(self) -> SessionSnapshot:
        """Load the current session once and subscribe to auth changes.

        Later calls are no-ops. If loading takes longer than the configured
        timeout, the load is cancelled and the store is forced to READY.
        """
        if self._state is not SessionState.UNINITIALIZED:
            logger.debug("Session initialization already attempted, skipping")
            return self.snapshot()

        self._update(state=SessionState.INITIALIZING)
        self._subscription = self._client.auth.on_auth_state_change(self._handle_auth_change)
        self._init_task = asyncio.ensure_future(self._load_initial_session())

        done, _ = await asyncio.wait({self._init_task}, timeout=self._init_timeout)
        if done:
            # Surface unexpected failures instead of leaving them on the task
            self._init_task.result()
        else:
            logger.warning(
                f"Session initialization timed out after {self._init_timeout}s, continuing without it"
            )
            self._init_task.cancel()
            self._mark_ready()
        return self.snapshot()

    async def _load_initial_session(self) -> None:
        try:
            try:
                session = await self._client.auth.get_session()
            except AuthError as e:
                logger.error(f"Session error: {e}")
                self._update(error=e)
                return

            user = session.user if session else None
            self._update(user=user)
            if user is not None:
                await self._refresh_company(user)
        finally:
            self._mark_ready()

    async def _refresh_company(self, user: User) -> None:
        try:
            result = await (
                self._client.table("companies").select().eq("user_id", user.id).single().execute()
            )
        except NotFoundError:
            # Expected for accounts whose company row has not been created yet
            logger.info(f"No company found for user {user.id}")
            self._update(company=None)
            return
        except DataClientError as e:
            logger.error(f"Error fetching company for user {user.id}: {e}")
            self._update(error=e)
            return
        self._update(company=CompanyResponse.model_validate(result.data))

    async def _handle_auth_change(self, event: AuthChangeEvent, session: Optional[AuthSession]) -> None:
        if self._closed:
            return
        logger.debug(f"Auth state changed: {event.value}")
        user = session.user if session else None
        self._update(user=user)
        if user is not None:
            await self._refresh_company(user)
        else:
            self._update(company=None)
        self._mark_ready()

    async def login(self, email: str, password: str) -> AuthSession:
        """Sign in. The user is picked up from the resulting auth change."""
        self._update(busy=True, error=None)
        try:
            return await self._client.auth.sign_in_with_password(email, password)
        except AuthError as e:
            logger.warning(f"Login failed for {email}: {e}")
            self._update(error=e)
            raise
        finally:
            self._update(busy=False)

    async def register(self, email: str, password: str, company_name: str, address: str, phone: str) -> User:
        """Create an account and its company, then sign back out.

        Steps are not atomic: if the company insert fails, the auth account
        is left behind.
        """
        email = email.strip().lower()
        self._update(busy=True, error=None)
        try:
            await self._ensure_email_unused(email)

            session = await self._client.auth.sign_up(email, password)
            if session is None or session.user is None:
                raise RegistrationError("User registration failed")

            await self._client.table("companies").insert(
                {
                    "name": company_name,
                    "user_id": session.user.id,
                    "address": address,
                    "phone": phone,
                    "email": email,
                }
            ).execute()

            await self._client.auth.sign_out()
            logger.info(f"Registered company '{company_name}' for {email}")
            return session.user
        except FleetkeeperError as e:
            logger.error(f"Registration failed for {email}: {e}")
            self._update(error=e)
            raise
        finally:
            self._update(busy=False)

    async def _ensure_email_unused(self, email: str) -> None:
        try:
            result = await self._client.table("companies").select("email").eq("email", email).limit(1).execute()
        except DataClientError as e:
            # Best effort only; sign-up still rejects known emails
            logger.error(f"Error checking existing email: {e}")
            return
        if result.data:
            raise RegistrationError("An account with this email already exists")

    async def logout(self) -> None:
        self._update(busy=True)
        try:
            await self._client.auth.sign_out()
        except AuthError as e:
            logger.error(f"Logout error: {e}")
            self._update(error=e)
            raise
        finally:
            self._update(user=None, company=None, busy=False)

    def set_company(self, company: Optional[CompanyResponse]) -> None:
        self._update(company=company)

    def close(self) -> None:
        """Stop listening for auth changes and ignore any late results."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._init_task is not None and not self._init_task.done():
            self._init_task.cancel()
        self._closed = True
