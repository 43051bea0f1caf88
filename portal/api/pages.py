"""
Helpers shared by page handlers.
"""
import logging
from typing import Any, Dict, Optional, Tuple, Type

import httpx
from fastapi import Request
from fastapi.responses import Response

from ..auth.session import AuthSession
from ..client.errors import ApiError, SessionExpiredError
from ..schemas.forms import FormModel, nest_form, validate_form

logger = logging.getLogger(__name__)


def document_response(response: httpx.Response, filename: str) -> Response:
    """Relay a PDF fetched from the backend to the browser."""
    media_type = response.headers.get("content-type", "application/pdf")
    return Response(
        content=response.content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


async def read_form(request: Request) -> Dict[str, Any]:
    """Posted form reshaped into nested data."""
    form = await request.form()
    return nest_form(form.multi_items())


async def read_and_validate(request: Request, model: Type[FormModel]) -> Tuple[Dict[str, Any], Optional[FormModel], Dict[str, str]]:
    """Return (raw data, validated form or None, errors)."""
    data = await read_form(request)
    form, errors = validate_form(model, data)
    return data, form, errors


# PUBLIC_INTERFACE
def report_failure(auth_session: AuthSession, message: str, error: ApiError) -> None:
    """
    Queue the page's own message for a failed backend call.

    Raises:
        SessionExpiredError: Re-raised when the call logged the browser out,
            so the application handler sends it to the login page
    """
    if isinstance(error, SessionExpiredError) and error.session_cleared:
        raise error
    logger.info(f"{message} ({error!r})")
    detail = error.message if error.status_code is not None and 400 <= error.status_code < 500 else None
    auth_session.flash("error", f"{message} : {detail}" if detail else message)
