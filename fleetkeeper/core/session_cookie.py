"""Persist the auth session token in an HttpOnly cookie."""
from typing import Dict, Mapping, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from fleetkeeper.core.config import Settings


class CookieStorage:
    """Session storage backed by the request cookies.

    Writes are buffered and applied to the outgoing response, so the last
    write for a key wins even if the token is set and removed in one request.
    """

    def __init__(self, cookies: Mapping[str, str]):
        self._cookies = dict(cookies)
        self._changes: Dict[str, Optional[str]] = {}

    def get_item(self, key: str) -> Optional[str]:
        if key in self._changes:
            return self._changes[key]
        return self._cookies.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._changes[key] = value

    def remove_item(self, key: str) -> None:
        self._changes[key] = None

    def apply(self, response: Response, settings: Settings) -> None:
        for key, value in self._changes.items():
            if value is None:
                if key in self._cookies:
                    response.delete_cookie(key, path="/")
                continue
            response.set_cookie(
                key,
                value,
                max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
                path="/",
                httponly=True,
                samesite="lax",
                secure=settings.SESSION_COOKIE_SECURE,
            )


class AuthCookieMiddleware(BaseHTTPMiddleware):
    """Expose a CookieStorage as ``request.state.auth_storage``."""

    def __init__(self, app, settings: Settings):
        super().__init__(app)
        self.settings = settings

    async def dispatch(self, request: Request, call_next):
        storage = CookieStorage(request.cookies)
        request.state.auth_storage = storage
        response = await call_next(request)
        storage.apply(response, self.settings)
        return response
