"""
Authentication dependencies for FastAPI endpoints.

Provides dependency functions for loading the browser session, building the
backend client bound to it, and enforcing authentication and role
requirements on pages.
"""
import logging
from typing import Callable, Optional

import httpx
from fastapi import Depends, Request
from starlette.requests import HTTPConnection
from sqlalchemy.orm import Session

from ..client.errors import (
    ApiError, NetworkError, ServerError, SessionExpiredError,
    NETWORK_ERROR_MESSAGE, SERVER_ERROR_MESSAGE, SESSION_EXPIRED_MESSAGE,
)
from ..client.http import BackendClient, create_http_client
from ..client.services import Backend
from ..config import SESSION_COOKIE_NAME
from ..database.connection import get_db
from ..realtime.notifications import NotificationHub, create_notification_hub
from .jwt_handler import JWTHandler
from .permissions import has_permissions
from .session import AuthSession, load_or_create_session

logger = logging.getLogger(__name__)


class LoginRequired(Exception):
    """Raised when an anonymous browser opens a protected page."""


class RoleForbidden(Exception):
    """Raised when an authenticated user opens a page reserved to other roles."""


# PUBLIC_INTERFACE
def get_http_client(request: HTTPConnection) -> httpx.AsyncClient:
    """Get the pooled HTTP client shared by the application."""
    client = getattr(request.app.state, "http_client", None)
    if client is None:
        client = create_http_client()
        request.app.state.http_client = client
    return client


# PUBLIC_INTERFACE
def get_notification_hub(request: HTTPConnection) -> NotificationHub:
    """Get the realtime notification hub shared by the application."""
    hub = getattr(request.app.state, "notification_hub", None)
    if hub is None:
        hub = create_notification_hub()
        request.app.state.notification_hub = hub
    return hub


# PUBLIC_INTERFACE
async def get_auth_session(
    request: Request,
    db: Session = Depends(get_db),
    hub: NotificationHub = Depends(get_notification_hub),
) -> AuthSession:
    """
    Get the auth session of the current browser.

    A missing, tampered or expired cookie starts a new anonymous session;
    once it stores something, the session middleware sets its cookie. A
    session whose backend token has expired lets go of its notification
    channel.

    Args:
        request: Incoming request
        db: Database session
        hub: Realtime notification hub

    Returns:
        AuthSession: Session of the current browser
    """
    session_id = JWTHandler.verify_session_token(request.cookies.get(SESSION_COOKIE_NAME))
    auth_session, _ = load_or_create_session(db, session_id)
    if auth_session.expired_user_id:
        hub.release(auth_session.expired_user_id, auth_session.id)
    request.state.auth_session = auth_session
    return auth_session


def session_error_hook(
    auth_session: AuthSession, hub: Optional[NotificationHub] = None
) -> Callable[[ApiError], None]:
    """
    Build the global reaction to failed backend calls for one session.

    A 401 logs the browser out and lets go of its notification channel, even
    when the page goes on rendering. A 500 or a network failure queues a
    generic message. Pages still get the exception and may add their own.
    """
    def on_error(error: ApiError) -> None:
        if isinstance(error, SessionExpiredError):
            if auth_session.is_authenticated:
                error.user_id = auth_session.user_id
                auth_session.clear()
                auth_session.flash("error", SESSION_EXPIRED_MESSAGE)
                error.session_cleared = True
                if hub is not None:
                    hub.release(error.user_id, auth_session.id)
        elif isinstance(error, ServerError) and error.status_code == 500:
            auth_session.flash("error", SERVER_ERROR_MESSAGE)
        elif isinstance(error, NetworkError):
            auth_session.flash("error", NETWORK_ERROR_MESSAGE)

    return on_error


# PUBLIC_INTERFACE
async def get_backend(
    auth_session: AuthSession = Depends(get_auth_session),
    http: httpx.AsyncClient = Depends(get_http_client),
    hub: NotificationHub = Depends(get_notification_hub),
) -> Backend:
    """
    Get the backend services bound to the current browser session.

    Args:
        auth_session: Current browser session
        http: Shared HTTP client
        hub: Realtime notification hub

    Returns:
        Backend: Resource services sending the session's bearer token
    """
    client = BackendClient(http, token=auth_session.token, on_error=session_error_hook(auth_session, hub))
    return Backend(client)


# PUBLIC_INTERFACE
def require_roles(*roles: str):
    """
    Build a dependency admitting only authenticated users with one of the roles.

    With no roles, any authenticated user is admitted.

    Raises:
        LoginRequired: If the browser is anonymous
        RoleForbidden: If the user's role is not allowed
    """
    async def dependency(auth_session: AuthSession = Depends(get_auth_session)) -> AuthSession:
        if not auth_session.is_authenticated:
            raise LoginRequired()
        if roles and auth_session.role not in roles:
            logger.info(f"Role {auth_session.role} refused, page reserved to {roles}")
            raise RoleForbidden()
        return auth_session

    return dependency


# PUBLIC_INTERFACE
def require_permissions(*permissions: str):
    """Build a dependency admitting only users whose role holds every permission."""
    async def dependency(auth_session: AuthSession = Depends(require_roles())) -> AuthSession:
        if not has_permissions(auth_session.role or "", permissions):
            raise RoleForbidden()
        return auth_session

    return dependency


get_current_user = require_roles()
