from urllib.parse import urlparse

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.core.logger import get_logger

logger = get_logger("SecurityMiddleware")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}

MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
LOCAL_HOSTS = {"localhost", "127.0.0.1"}


def origin_allowed(origin: str, allowed_origins: list[str]) -> bool:
    """Local development origins are always accepted."""
    host = urlparse(origin).hostname
    if host in LOCAL_HOSTS:
        return True
    return origin.rstrip("/") in {o.rstrip("/") for o in allowed_origins}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Rejects cross-origin mutating requests and stamps security headers on every response."""

    def __init__(self, app, allowed_origins: list[str] | None = None):
        super().__init__(app)
        self.allowed_origins = settings.allowed_origins if allowed_origins is None else allowed_origins

    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("origin")
        if request.method in MUTATING_METHODS and origin and not origin_allowed(origin, self.allowed_origins):
            logger.warning(f"Blocked {request.method} {request.url.path} from origin {origin}")
            response = JSONResponse(status_code=403, content={"status": False, "message": "Invalid origin"})
        else:
            response = await call_next(request)

        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        return response
