from typing import Callable
from fastapi import Depends, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.config.settings import Settings, settings as default_settings
from app.db.models import UserRole
from app.services.audit_service import Actor, SYSTEM_ACTOR
from app.services.auth_service import AuthService, AuthState
from app.utils.cookies import AUTH_COOKIE_NAME, CookieUtils
from app.utils.errors import AuthenticationError, AuthorizationError
from app.utils.logging import get_logger

logger = get_logger()

ACTOR_HEADER = "X-Actor"
ACTOR_ROLE_HEADER = "X-Actor-Role"


class SessionAuthMiddleware(BaseHTTPMiddleware):
    """Resolves the session token into request.state.auth.

    The middleware never rejects a request. Requests without a valid token
    carry an anonymous AuthState and the route dependencies decide whether
    that is enough.
    """

    def __init__(self, app, config: Settings = default_settings):
        super().__init__(app)
        self.config = config

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        token = CookieUtils.extract_bearer_token(
            request.headers.get("authorization")
        ) or request.cookies.get(AUTH_COOKIE_NAME)

        request.state.auth = AuthService.resolve_session(token, self.config)
        return await call_next(request)


# Dependency for getting current user from request state
def get_current_user(request: Request) -> AuthState:
    """Dependency to get current authenticated user from request state"""
    auth_state = getattr(request.state, "auth", None)

    if not auth_state or not auth_state.is_authenticated:
        raise AuthenticationError("Not authenticated", "NOT_AUTHENTICATED")

    return auth_state


# Dependency for requiring specific roles
def require_role(*allowed_roles: str):
    """Create dependency that requires one of the given roles"""

    def check_role(
        current_user: AuthState = Depends(get_current_user),
    ) -> AuthState:
        if current_user.role not in allowed_roles:
            raise AuthorizationError(
                "Insufficient permissions", "INSUFFICIENT_PERMISSIONS"
            )
        return current_user

    return check_role


# Pre-defined dependencies for common roles
require_admin = require_role(UserRole.ADMIN.value)
require_employee = require_role(UserRole.EMPLOYEE.value)
require_any_user = require_role(UserRole.ADMIN.value, UserRole.EMPLOYEE.value)


def get_request_actor(request: Request) -> Actor:
    """Actor for audit rows: the session first, then the actor headers"""
    auth_state = getattr(request.state, "auth", None)
    if auth_state and auth_state.is_authenticated:
        return Actor(
            email=auth_state.email or SYSTEM_ACTOR.email,
            role=auth_state.role or SYSTEM_ACTOR.role,
        )

    return Actor(
        email=request.headers.get(ACTOR_HEADER) or SYSTEM_ACTOR.email,
        role=request.headers.get(ACTOR_ROLE_HEADER) or SYSTEM_ACTOR.role,
    )
