"""
Jinja2 rendering shared by every page.

Every page is rendered through render(), which adds the current user, the
role navigation and the queued flash messages to the template context.
"""
import datetime as dt
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import Request, status
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates

from ..auth.session import AuthSession
from ..config import STRIPE_PUBLISHABLE_KEY
from ..schemas.forms import choice_label
from ..services.site import asset_url

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parent.parent
TEMPLATES_DIR = PACKAGE_DIR / "templates"
STATIC_DIR = PACKAGE_DIR / "static"

NAVIGATION: Dict[str, List[Dict[str, str]]] = {
    "admin": [
        {"label": "Dashboard", "path": "/admin/dashboard"},
        {"label": "Utilisateurs", "path": "/admin/users"},
        {"label": "Entreprises", "path": "/admin/companies"},
        {"label": "Demandes", "path": "/admin/requests"},
        {"label": "Devis", "path": "/admin/quotes"},
        {"label": "Missions", "path": "/admin/missions"},
        {"label": "Factures", "path": "/admin/invoices"},
        {"label": "Paiements", "path": "/admin/payments"},
        {"label": "Rapports", "path": "/admin/reports"},
        {"label": "Messages", "path": "/messages"},
        {"label": "Personnalisation", "path": "/admin/site-customization"},
        {"label": "Types de Service", "path": "/admin/service-types"},
        {"label": "Équipements", "path": "/admin/equipments"},
        {"label": "Paramètres", "path": "/profile"},
    ],
    "technician": [
        {"label": "Dashboard", "path": "/tech/dashboard"},
        {"label": "Planning", "path": "/tech/schedule"},
        {"label": "Missions", "path": "/tech/missions"},
        {"label": "Devis", "path": "/tech/quotes"},
        {"label": "Rapports", "path": "/tech/reports"},
        {"label": "Messages", "path": "/messages"},
        {"label": "Profil", "path": "/profile"},
    ],
    "client": [
        {"label": "Dashboard", "path": "/client/dashboard"},
        {"label": "Demande Service", "path": "/client/request"},
        {"label": "Mes Devis", "path": "/client/quotes"},
        {"label": "Interventions", "path": "/client/interventions"},
        {"label": "Paiements", "path": "/client/payments"},
        {"label": "Mes Factures", "path": "/client/invoices"},
        {"label": "Messages", "path": "/messages"},
        {"label": "Profil", "path": "/profile"},
    ],
}

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def format_currency(value: Any) -> str:
    """1234.5 -> '1 234,50 €'"""
    try:
        amount = float(value or 0)
    except (TypeError, ValueError):
        return ""
    return f"{amount:,.2f} €".replace(",", " ").replace(".", ",")


def _parse_datetime(value: Any) -> Optional[dt.datetime]:
    if isinstance(value, dt.datetime):
        return value
    if isinstance(value, dt.date):
        return dt.datetime.combine(value, dt.time())
    if not value:
        return None
    try:
        return dt.datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def format_date(value: Any, with_time: bool = False) -> str:
    parsed = _parse_datetime(value)
    if parsed is None:
        return str(value or "")
    return parsed.strftime("%d/%m/%Y %H:%M" if with_time else "%d/%m/%Y")


def input_value(value: Any, kind: str = "text") -> str:
    """Value for an <input>; ISO dates are cut to what date inputs accept."""
    if value is None:
        return ""
    if kind == "date":
        return str(value)[:10]
    if kind == "datetime-local":
        return str(value)[:16]
    return str(value)


def record_id(record: Any) -> str:
    if isinstance(record, dict):
        return str(record.get("_id") or record.get("id") or "")
    return str(record or "")


def person_name(record: Any) -> str:
    """Display name of a populated user reference."""
    if isinstance(record, dict):
        name = f"{record.get('firstName', '')} {record.get('lastName', '')}".strip()
        return name or record.get("name") or record.get("email") or record_id(record)
    return str(record or "")


def pluck(record: Any, key: str) -> Any:
    """record["address"]["city"] for key "address.city", None when absent."""
    value = record
    if not key:
        return value
    for part in key.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def yes_no(value: Any) -> str:
    return "Oui" if value else "Non"


def display_cell(record: Any, column: Any) -> Any:
    """Value of a list/detail column, passed through the column's filter."""
    value = pluck(record, column.key)
    if column.filter:
        return templates.env.filters[column.filter](value)
    if isinstance(value, dict):
        return person_name(value)
    if isinstance(value, list):
        return ", ".join(person_name(item) if isinstance(item, dict) else str(item) for item in value)
    return "" if value is None else value


templates.env.filters["pluck"] = pluck
templates.env.filters["yesno"] = yes_no
templates.env.filters["currency"] = format_currency
templates.env.filters["date_fr"] = format_date
templates.env.filters["label"] = choice_label
templates.env.filters["asset"] = asset_url
templates.env.filters["input_value"] = input_value
templates.env.filters["record_id"] = record_id
templates.env.filters["person"] = person_name
templates.env.filters["cell"] = display_cell


# PUBLIC_INTERFACE
def render(request: Request, template: str, context: Optional[Dict[str, Any]] = None,
           status_code: int = status.HTTP_200_OK):
    """
    Render a page template.

    Flash messages queued in the session are shown once and forgotten.

    Args:
        request: Current request
        template: Template path under templates/
        context: Page-specific variables
        status_code: Response status

    Returns:
        TemplateResponse: Rendered page
    """
    auth_session: Optional[AuthSession] = getattr(request.state, "auth_session", None)
    role = auth_session.role if auth_session is not None else None
    page_context = {
        "current_user": auth_session.user if auth_session is not None else None,
        "role": role,
        "navigation": NAVIGATION.get(role or "", []),
        "flashes": auth_session.pop_flashes() if auth_session is not None else [],
        "stripe_publishable_key": STRIPE_PUBLISHABLE_KEY,
        "current_path": request.url.path,
    }
    page_context.update(context or {})
    return templates.TemplateResponse(request, template, page_context, status_code=status_code)


def redirect(url: str) -> RedirectResponse:
    """Post/redirect/get: always a 303 so the browser follows with GET."""
    return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)
