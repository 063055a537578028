"""Rate limiting for the sign-in and registration forms."""
import time
from collections import defaultdict
from typing import Dict, Iterable, Optional, Tuple
from fastapi import Request
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware


class RateLimiter:
    """Simple in-memory rate limiter."""

    def __init__(self, requests_per_minute: int = 20, requests_per_hour: int = 200):
        self.requests_per_minute = requests_per_minute
        self.requests_per_hour = requests_per_hour
        self.minute_requests: Dict[str, list] = defaultdict(list)
        self.hour_requests: Dict[str, list] = defaultdict(list)
        self._last_prune = 0.0

    def _clean_old_requests(self, requests: list, window: int, now: float) -> list:
        """Remove requests outside the time window."""
        return [t for t in requests if now - t < window]

    def prune(self, now: float) -> None:
        """Drop clients with no requests left in either window."""
        for client_id in list(self.hour_requests):
            self.minute_requests[client_id] = self._clean_old_requests(
                self.minute_requests[client_id], 60, now
            )
            self.hour_requests[client_id] = self._clean_old_requests(
                self.hour_requests[client_id], 3600, now
            )
            if not self.hour_requests[client_id]:
                del self.hour_requests[client_id]
                del self.minute_requests[client_id]

    def is_allowed(self, client_id: str, now: Optional[float] = None) -> Tuple[bool, str]:
        """Check if a request is allowed for the client, and record it if so."""
        now = time.time() if now is None else now

        if now - self._last_prune >= 60:
            self.prune(now)
            self._last_prune = now

        self.minute_requests[client_id] = self._clean_old_requests(
            self.minute_requests[client_id], 60, now
        )
        self.hour_requests[client_id] = self._clean_old_requests(
            self.hour_requests[client_id], 3600, now
        )

        if len(self.minute_requests[client_id]) >= self.requests_per_minute:
            return False, f"Too many attempts. Max {self.requests_per_minute} per minute."

        if len(self.hour_requests[client_id]) >= self.requests_per_hour:
            return False, f"Too many attempts. Max {self.requests_per_hour} per hour."

        self.minute_requests[client_id].append(now)
        self.hour_requests[client_id].append(now)

        return True, ""


class AuthRateLimitMiddleware(BaseHTTPMiddleware):
    """Throttle form submissions to the given paths per client address."""

    def __init__(
        self,
        app,
        paths: Iterable[str] = ("/login", "/register"),
        requests_per_minute: int = 20,
        requests_per_hour: int = 200,
    ):
        super().__init__(app)
        self.paths = frozenset(paths)
        self.limiter = RateLimiter(requests_per_minute, requests_per_hour)

    async def dispatch(self, request: Request, call_next):
        if request.method != "POST" or request.url.path not in self.paths:
            return await call_next(request)

        client_id = request.client.host if request.client else "unknown"
        allowed, message = self.limiter.is_allowed(client_id)
        if not allowed:
            return PlainTextResponse(message, status_code=429)

        return await call_next(request)
