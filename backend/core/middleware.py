from collections import defaultdict
from collections import deque
from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Iterable
from threading import RLock
from time import monotonic

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response


class ContributionsRateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window limiter for the report endpoint, keyed by client IP.

    Each report request fans out into one GitHub query per year, so only the
    listed (method, path) pairs are limited.
    """

    def __init__(
        self,
        app,
        requests_per_window: int = 30,
        window_seconds: int = 60,
        limited_routes: Iterable[tuple[str, str]] = (("POST", "/api/contributions"),),
    ) -> None:
        super().__init__(app)
        self.max_requests = max(1, requests_per_window)
        self.window_seconds = max(1, window_seconds)
        self.limited_routes = frozenset(
            (method.upper(), path) for method, path in limited_routes
        )
        self._client_windows: dict[str, deque[float]] = defaultdict(deque)
        self._lock = RLock()

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if (request.method, request.url.path) not in self.limited_routes:
            return await call_next(request)

        retry_after = self._register_hit(self._client_ip(request), monotonic())
        if retry_after is not None:
            return JSONResponse(
                status_code=429,
                content={"detail": "Too Many Requests"},
                headers={"Retry-After": str(retry_after)},
            )

        return await call_next(request)

    def _register_hit(self, client: str, now: float) -> int | None:
        """Record a hit and return seconds to wait when the window is full."""

        with self._lock:
            window = self._client_windows[client]
            cutoff = now - self.window_seconds
            while window and window[0] <= cutoff:
                window.popleft()

            if len(window) >= self.max_requests:
                return max(1, int(self.window_seconds - (now - window[0])))

            window.append(now)
            return None

    @staticmethod
    def _client_ip(request: Request) -> str:
        # Reverse proxies put the original client first.
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip() or "unknown"

        if request.client and request.client.host:
            return request.client.host

        return "unknown"
