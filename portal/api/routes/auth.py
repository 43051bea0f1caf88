"""
Authentication pages.

Provides login, logout, self-registration and the role-based dashboard
redirect.
"""
import logging

import httpx
from fastapi import APIRouter, Depends, Request, status

from ...auth.dependencies import get_auth_session, get_backend, get_http_client, get_notification_hub
from ...auth.session import DASHBOARDS, AuthSession
from ...client.errors import ApiError
from ...client.http import BackendClient
from ...client.services import Backend
from ...realtime.notifications import NotificationHub
from ...schemas.auth import LoginForm, RegisterForm
from ...schemas.forms import flatten_record, form_fields
from ..pages import read_and_validate
from ..templating import redirect, render

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])

LOGIN_FAILED_MESSAGE = "Erreur de connexion. Vérifiez vos identifiants."


def login_error_message(error: ApiError) -> str:
    """Backend message when it sent one, the generic login failure otherwise."""
    if isinstance(error.payload, dict) and error.payload.get("message"):
        return error.payload["message"]
    return LOGIN_FAILED_MESSAGE


# PUBLIC_INTERFACE
@router.get("/login", summary="Login page")
async def login_page(request: Request, auth_session: AuthSession = Depends(get_auth_session)):
    """Show the login form; an authenticated browser goes to its dashboard."""
    if auth_session.is_authenticated and auth_session.role in DASHBOARDS:
        return redirect(auth_session.dashboard_url)
    return render(request, "auth/login.html", {"values": {}, "errors": {}, "error": None})


# PUBLIC_INTERFACE
@router.post("/login", summary="Log in")
async def login(
    request: Request,
    auth_session: AuthSession = Depends(get_auth_session),
    backend: Backend = Depends(get_backend),
    hub: NotificationHub = Depends(get_notification_hub),
):
    """
    Authenticate against the backend.

    On success the bearer token and user record are stored in the session
    (anonymous -> authenticated) and the user's notification channel opens.
    """
    data, form, errors = await read_and_validate(request, LoginForm)
    values = {"email": data.get("email", "")}
    if form is None:
        return render(request, "auth/login.html", {"values": values, "errors": errors, "error": None},
                      status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)

    try:
        result = await backend.auth.login(form.email, form.password)
    except ApiError as exc:
        logger.info(f"Login failed for {form.email}: {exc.message}")
        return render(request, "auth/login.html", {"values": values, "errors": {}, "error": login_error_message(exc)},
                      status_code=status.HTTP_401_UNAUTHORIZED)

    token = result.get("accessToken") if isinstance(result, dict) else None
    user = result.get("user") if isinstance(result, dict) else None
    if not token or not isinstance(user, dict):
        logger.error("Login response without accessToken or user")
        return render(request, "auth/login.html", {"values": values, "errors": {}, "error": LOGIN_FAILED_MESSAGE},
                      status_code=status.HTTP_401_UNAUTHORIZED)

    auth_session.authenticate(token, user)
    await hub.connect(auth_session.user_id, auth_session.id)
    logger.info(f"User {auth_session.user_id} logged in as {auth_session.role}")
    return redirect(auth_session.dashboard_url)


# PUBLIC_INTERFACE
@router.post("/logout", summary="Log out")
async def logout(
    auth_session: AuthSession = Depends(get_auth_session),
    http: httpx.AsyncClient = Depends(get_http_client),
    hub: NotificationHub = Depends(get_notification_hub),
):
    """
    Drop the session credentials (authenticated -> anonymous).

    The notification channel closes unless another browser of the same user
    still holds it.
    """
    user_id = auth_session.user_id
    if auth_session.is_authenticated:
        # best effort, the local logout happens whatever the backend says
        quiet = Backend(BackendClient(http, token=auth_session.token))
        try:
            await quiet.auth.logout()
        except ApiError as exc:
            logger.info(f"Backend logout failed: {exc!r}")
    auth_session.clear()
    await hub.disconnect(user_id, auth_session.id)
    auth_session.flash("success", "Vous êtes déconnecté.")
    return redirect("/login")


# PUBLIC_INTERFACE
@router.get("/register", summary="Registration page")
async def register_page(request: Request, auth_session: AuthSession = Depends(get_auth_session)):
    if auth_session.is_authenticated:
        return redirect(auth_session.dashboard_url)
    return render(request, "auth/register.html", {"fields": form_fields(RegisterForm), "values": {}, "errors": {}})


# PUBLIC_INTERFACE
@router.post("/register", summary="Register a client account")
async def register(
    request: Request,
    auth_session: AuthSession = Depends(get_auth_session),
    backend: Backend = Depends(get_backend),
):
    """Create a client account, then send the visitor to the login page."""
    data, form, errors = await read_and_validate(request, RegisterForm)
    if form is not None:
        try:
            await backend.auth.register(form.to_payload())
        except ApiError as exc:
            errors = {"__all__": exc.message if exc.status_code and exc.status_code < 500 else "Erreur lors de l'inscription"}
        else:
            auth_session.flash("success", "Compte créé avec succès ! Vous pouvez vous connecter.")
            return redirect("/login")

    values = flatten_record(data)
    values.pop("password", None)
    values.pop("confirmPassword", None)
    return render(request, "auth/register.html", {"fields": form_fields(RegisterForm), "values": values, "errors": errors},
                  status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


# PUBLIC_INTERFACE
@router.get("/dashboard", summary="Role dashboard redirect")
async def dashboard(auth_session: AuthSession = Depends(get_auth_session)):
    """Send the user to the dashboard of their role, anonymous browsers to /login."""
    if not auth_session.is_authenticated:
        return redirect("/login")
    return redirect(auth_session.dashboard_url)
