"""ProcureFlow: JWT auth middleware. Extracts the bearer token and sets request.state.user."""
import logging
from dataclasses import dataclass
from typing import Callable
from uuid import UUID

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from procureflow.core.security import decode_token

logger = logging.getLogger(__name__)

ROLES = {"owner", "admin", "staff", "vendor"}


@dataclass(frozen=True)
class CurrentUser:
    """Identity injected by the auth layer."""

    id: UUID
    role: str


class JWTAuthMiddleware(BaseHTTPMiddleware):
    """Decode ``Authorization: Bearer <jwt>`` and populate request.state.user."""

    PUBLIC_PATHS = {
        "/health",
        "/api/v1/docs",
        "/api/v1/redoc",
        "/api/v1/openapi.json",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.user = None

        path = request.url.path
        if path in self.PUBLIC_PATHS or path.startswith("/api/v1/docs") or path.startswith("/api/v1/redoc"):
            return await call_next(request)

        auth = request.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            payload = decode_token(auth[7:].strip())
            if payload and payload.get("type") == "access":
                request.state.user = self._user_from_claims(payload)
        return await call_next(request)

    @staticmethod
    def _user_from_claims(payload: dict) -> CurrentUser | None:
        sub = payload.get("sub")
        role = payload.get("role")
        if not sub or role not in ROLES:
            logger.warning("Rejected token with sub=%s role=%s", sub, role)
            return None
        try:
            return CurrentUser(id=UUID(sub), role=role)
        except ValueError:
            logger.warning("Rejected token with malformed sub=%s", sub)
            return None
