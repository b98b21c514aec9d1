"""
Login redirect guard for page requests.

Signed-out visitors are sent to /login, signed-in visitors are sent away
from /login. API routes answer 401 themselves and are not guarded.
"""

import logging
import re
from typing import Callable

from fastapi import Request
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from services.auth import get_optional_user

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"

# Static assets, health, docs and API routes
EXCLUDED_PATHS = re.compile(
    r"^/(static/|favicon\.ico$|health$|docs|redoc|openapi\.json$|api/)"
    r"|\.(svg|png|jpg|jpeg|gif|ico)$",
    re.IGNORECASE,
)


def is_guarded(path: str) -> bool:
    return not EXCLUDED_PATHS.search(path)


class AuthRedirectMiddleware(BaseHTTPMiddleware):
    """Redirects page requests based on the session state."""

    async def dispatch(self, request: Request, call_next: Callable):
        path = request.url.path
        if not is_guarded(path):
            return await call_next(request)

        user = await get_optional_user(request)

        if user is None and path != LOGIN_PATH:
            logger.debug(f"[AUTH GUARD] {path} -> {LOGIN_PATH}")
            return RedirectResponse(url=LOGIN_PATH, status_code=307)

        if user is not None and path == LOGIN_PATH:
            return RedirectResponse(url="/", status_code=307)

        request.state.user = user
        return await call_next(request)
