"""Client for the auth and table API the pages are built on.

Pages never touch the ORM directly. They go through :class:`DataClient`,
which exposes an auth sub-client (sessions, sign-in/up/out, change
notifications) and generic table queries with equality filters, ordering,
limits and a single-row expectation.
"""
import itertools
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import inspect as sa_inspect, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from fleetkeeper.core.config import Settings
from fleetkeeper.core.exceptions import (
    AuthError,
    DataClientError,
    InvalidCredentialsError,
    NotFoundError,
    UserAlreadyExistsError,
)
from fleetkeeper.core.security import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)
from fleetkeeper.models import AuthUser, Company, MaintenanceRecord, Truck
from fleetkeeper.schemas.auth import AuthChangeEvent, AuthSession, User

logger = logging.getLogger(__name__)

TABLES = {
    "companies": Company,
    "trucks": Truck,
    "maintenance_records": MaintenanceRecord,
}

MIN_PASSWORD_LENGTH = 6

AuthListener = Callable[[AuthChangeEvent, Optional[AuthSession]], Awaitable[None]]


class MemoryStorage:
    """Session storage kept in a plain dict."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class Subscription:
    def __init__(self, unsubscribe: Callable[[], None]):
        self._unsubscribe = unsubscribe

    def unsubscribe(self) -> None:
        self._unsubscribe()


@dataclass
class QueryResult:
    data: Any
    count: int


@dataclass
class ConnectionStatus:
    connected: bool
    error: Optional[str] = None


def _session_scope(session_factory: sessionmaker, fn):
    with session_factory() as db:
        try:
            return fn(db)
        except SQLAlchemyError:
            db.rollback()
            raise


class AuthClient:
    """Email/password accounts with a token persisted in ``storage``."""

    def __init__(self, session_factory: sessionmaker, settings: Settings, storage):
        self._session_factory = session_factory
        self._settings = settings
        self._storage = storage
        self._storage_key = settings.SESSION_COOKIE_NAME
        self._listeners: Dict[int, AuthListener] = {}
        self._listener_ids = itertools.count()

    async def get_session(self) -> Optional[AuthSession]:
        """Return the persisted session, or None when signed out or expired."""
        token = self._storage.get_item(self._storage_key)
        if not token:
            return None

        claims = decode_access_token(token, self._settings)
        if claims is None or "sub" not in claims:
            logger.info("Discarding invalid or expired session token")
            self._storage.remove_item(self._storage_key)
            return None

        try:
            user = await run_in_threadpool(
                _session_scope, self._session_factory, lambda db: db.get(AuthUser, claims["sub"])
            )
        except SQLAlchemyError as e:
            logger.error(f"Session lookup failed: {e}")
            raise AuthError("Unable to retrieve session") from e

        if user is None:
            logger.info(f"Session refers to unknown user {claims['sub']}, discarding")
            self._storage.remove_item(self._storage_key)
            return None

        return AuthSession(
            access_token=token,
            expires_at=datetime.fromtimestamp(claims["exp"], timezone.utc),
            user=User(id=user.id, email=user.email),
        )

    def on_auth_state_change(self, callback: AuthListener) -> Subscription:
        listener_id = next(self._listener_ids)
        self._listeners[listener_id] = callback
        return Subscription(lambda: self._listeners.pop(listener_id, None))

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        email = email.strip().lower()

        def authenticate(db) -> Optional[AuthUser]:
            user = db.scalars(select(AuthUser).where(AuthUser.email == email)).first()
            if user and verify_password(password, user.hashed_password):
                return user
            return None

        try:
            user = await run_in_threadpool(_session_scope, self._session_factory, authenticate)
        except SQLAlchemyError as e:
            logger.error(f"Sign-in failed for {email}: {e}")
            raise AuthError("Authentication service unavailable") from e

        if user is None:
            logger.warning(f"Invalid sign-in attempt for {email}")
            raise InvalidCredentialsError("Invalid login credentials")

        session = self._persist_session(user)
        await self._notify(AuthChangeEvent.SIGNED_IN, session)
        return session

    async def sign_up(self, email: str, password: str) -> AuthSession:
        """Create an account and sign it in."""
        email = email.strip().lower()
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")

        def create(db) -> Optional[AuthUser]:
            if db.scalars(select(AuthUser).where(AuthUser.email == email)).first():
                return None
            user = AuthUser(email=email, hashed_password=get_password_hash(password))
            db.add(user)
            db.commit()
            db.refresh(user)
            return user

        try:
            user = await run_in_threadpool(_session_scope, self._session_factory, create)
        except IntegrityError:
            user = None
        except SQLAlchemyError as e:
            logger.error(f"Sign-up failed for {email}: {e}")
            raise AuthError("Authentication service unavailable") from e

        if user is None:
            raise UserAlreadyExistsError("User already registered")

        logger.info(f"Created auth account {user.id} for {email}")
        session = self._persist_session(user)
        await self._notify(AuthChangeEvent.SIGNED_IN, session)
        return session

    async def sign_out(self) -> None:
        self._storage.remove_item(self._storage_key)
        await self._notify(AuthChangeEvent.SIGNED_OUT, None)

    def _persist_session(self, user: AuthUser) -> AuthSession:
        token, expires_at = create_access_token({"sub": user.id, "email": user.email}, self._settings)
        self._storage.set_item(self._storage_key, token)
        return AuthSession(access_token=token, expires_at=expires_at, user=User(id=user.id, email=user.email))

    async def _notify(self, event: AuthChangeEvent, session: Optional[AuthSession]) -> None:
        for listener in list(self._listeners.values()):
            try:
                await listener(event, session)
            except Exception:
                logger.exception(f"Auth listener failed handling {event.value}")


class TableQuery:
    """Builder for a single operation against one table.

    Start with ``select``, ``insert``, ``update`` or ``delete``, narrow with
    ``eq``, ``order``, ``limit`` and ``single``, then ``await execute()``.
    Mutations return the affected rows.
    """

    def __init__(self, session_factory: sessionmaker, table: str):
        if table not in TABLES:
            raise DataClientError(f"Unknown table: {table}", code="unknown_table", table=table)
        self._session_factory = session_factory
        self._table = table
        self._model = TABLES[table]
        self._columns = {attr.key for attr in sa_inspect(self._model).column_attrs}
        self._action = "select"
        self._selected: Optional[List[str]] = None
        self._payload: Any = None
        self._filters: List[tuple] = []
        self._ordering: List[tuple] = []
        self._limit: Optional[int] = None
        self._single = False

    def _check_column(self, column: str) -> str:
        if column not in self._columns:
            raise DataClientError(
                f"Column '{column}' does not exist on {self._table}",
                code="unknown_column",
                table=self._table,
            )
        return column

    def select(self, *columns: str) -> "TableQuery":
        self._action = "select"
        self._selected = [self._check_column(c) for c in columns] or None
        return self

    def insert(self, rows) -> "TableQuery":
        rows = [rows] if isinstance(rows, dict) else list(rows)
        for row in rows:
            for column in row:
                self._check_column(column)
        self._action = "insert"
        self._payload = rows
        return self

    def update(self, values: Dict[str, Any]) -> "TableQuery":
        for column in values:
            self._check_column(column)
        self._action = "update"
        self._payload = dict(values)
        return self

    def delete(self) -> "TableQuery":
        self._action = "delete"
        return self

    def eq(self, column: str, value: Any) -> "TableQuery":
        self._filters.append((self._check_column(column), value))
        return self

    def order(self, column: str, desc: bool = False) -> "TableQuery":
        self._ordering.append((self._check_column(column), desc))
        return self

    def limit(self, count: int) -> "TableQuery":
        self._limit = count
        return self

    def single(self) -> "TableQuery":
        """Expect exactly one row; ``data`` becomes that row."""
        self._single = True
        return self

    async def execute(self) -> QueryResult:
        if self._action in ("update", "delete") and not self._filters:
            raise DataClientError(
                f"{self._action.upper()} on {self._table} requires at least one filter",
                code="missing_filter",
                table=self._table,
            )

        try:
            rows = await run_in_threadpool(_session_scope, self._session_factory, self._run)
        except IntegrityError as e:
            logger.error(f"Constraint violation on {self._table}: {e.orig}")
            raise DataClientError(str(e.orig), code="constraint_violation", table=self._table) from e
        except SQLAlchemyError as e:
            logger.error(f"Query on {self._table} failed: {e}")
            raise DataClientError(str(e), table=self._table) from e

        if self._single:
            if not rows:
                raise NotFoundError(f"No rows found in {self._table}", table=self._table)
            if len(rows) > 1:
                raise DataClientError(
                    f"Expected a single row from {self._table}, got {len(rows)}",
                    code="multiple_rows",
                    table=self._table,
                )
            return QueryResult(data=rows[0], count=1)
        return QueryResult(data=rows, count=len(rows))

    def _statement(self):
        stmt = select(self._model)
        for column, value in self._filters:
            stmt = stmt.where(getattr(self._model, column) == value)
        return stmt

    def _to_dict(self, obj) -> Dict[str, Any]:
        columns = self._selected if self._action == "select" and self._selected else self._columns
        return {column: getattr(obj, column) for column in columns}

    def _run(self, db) -> List[Dict[str, Any]]:
        if self._action == "insert":
            objs = [self._model(**row) for row in self._payload]
            db.add_all(objs)
            db.commit()
            for obj in objs:
                db.refresh(obj)
            return [self._to_dict(obj) for obj in objs]

        stmt = self._statement()
        if self._action == "select":
            for column, desc in self._ordering:
                attr = getattr(self._model, column)
                stmt = stmt.order_by(attr.desc() if desc else attr.asc())
            if self._limit is not None:
                stmt = stmt.limit(self._limit)
            return [self._to_dict(obj) for obj in db.scalars(stmt).all()]

        objs = db.scalars(stmt).all()
        if self._action == "update":
            for obj in objs:
                for column, value in self._payload.items():
                    setattr(obj, column, value)
            db.commit()
            for obj in objs:
                db.refresh(obj)
            return [self._to_dict(obj) for obj in objs]

        # delete
        deleted = [self._to_dict(obj) for obj in objs]
        for obj in objs:
            db.delete(obj)
        db.commit()
        return deleted


class DataClient:
    """Auth plus table access for one browser session."""

    def __init__(self, session_factory: sessionmaker, settings: Settings, storage=None):
        self._session_factory = session_factory
        self.auth = AuthClient(session_factory, settings, storage if storage is not None else MemoryStorage())

    def table(self, name: str) -> TableQuery:
        return TableQuery(self._session_factory, name)

    async def check_connection(self) -> ConnectionStatus:
        try:
            await self.table("companies").select("id").limit(1).execute()
        except DataClientError as e:
            logger.error(f"Data service connection check failed: {e}")
            return ConnectionStatus(connected=False, error=str(e))
        return ConnectionStatus(connected=True)
