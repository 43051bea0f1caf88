"""
Errors raised by the backend REST client.

Every failed call surfaces as an ApiError. The subclasses mirror the three
failures that get global handling: an expired session (HTTP 401), a server
error (HTTP 5xx) and a network failure (no response at all).
"""
from typing import Any, Optional

import httpx

SESSION_EXPIRED_MESSAGE = "Votre session a expiré. Veuillez vous reconnecter."
SERVER_ERROR_MESSAGE = "Une erreur serveur est survenue. Veuillez réessayer plus tard."
NETWORK_ERROR_MESSAGE = "Problème de connexion au serveur. Vérifiez votre connexion internet."


class ApiError(Exception):
    """A backend call that did not succeed."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def __repr__(self):
        return f"<{type(self).__name__}(status_code={self.status_code}, message='{self.message}')>"


class SessionExpiredError(ApiError):
    """The backend rejected the bearer token (HTTP 401)."""

    # set once the browser session has been logged out because of this error
    session_cleared: bool = False
    user_id: Optional[str] = None


class ServerError(ApiError):
    """The backend failed while handling the request (HTTP 5xx)."""


class NetworkError(ApiError):
    """The backend could not be reached or did not answer in time."""


def error_from_response(response: httpx.Response) -> ApiError:
    """
    Build the ApiError matching a failed backend response.

    Args:
        response: Backend response with a 4xx or 5xx status

    Returns:
        ApiError: Error carrying the backend message when it sent one
    """
    payload: Any = None
    message = f"HTTP {response.status_code}"
    try:
        payload = response.json()
    except ValueError:
        payload = response.text or None

    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("error") or payload.get("detail") or message

    if response.status_code == 401:
        return SessionExpiredError(message, response.status_code, payload)
    if response.status_code >= 500:
        return ServerError(message, response.status_code, payload)
    return ApiError(message, response.status_code, payload)
