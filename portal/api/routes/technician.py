"""
Technician pages.

Technicians follow their missions through accept/start/pause/complete,
write quotes for their clients and file technical reports.
"""
import asyncio
import logging
from itertools import groupby
from typing import Optional

from fastapi import APIRouter, Depends, Form, Query, Request, status

from ...auth.dependencies import get_backend, require_roles
from ...auth.session import AuthSession
from ...client.errors import ApiError
from ...client.http import Page
from ...client.services import Backend
from ...schemas.billing import QuoteForm
from ...schemas.forms import flatten_record, form_fields
from ...schemas.intervention import ReportForm
from ...services.site import asset_url
from ..crud import PAGE_SIZE
from ..pages import read_and_validate, report_failure
from ..resources import OPTIONS_LIMIT, record_title, options
from ..templating import record_id, redirect, render

logger = logging.getLogger(__name__)

require_technician = require_roles("technician")

router = APIRouter(prefix="/tech", tags=["Technician"])

# transition -> (new mission status, success message, error message)
MISSION_TRANSITIONS = {
    "accept": ("accepted", "Mission acceptée", "Erreur lors de l'acceptation de la mission"),
    "start": ("in-progress", "Mission démarrée", "Erreur lors du démarrage de la mission"),
    "pause": ("pending", "Mission mise en pause", "Erreur lors de la mise en pause de la mission"),
    "complete": ("completed", "Mission terminée avec succès", "Erreur lors de la finalisation de la mission"),
}


def _local_path(url: Optional[str], default: str) -> str:
    """Only relative portal paths are accepted as redirect targets."""
    if url and url.startswith("/") and not url.startswith("//"):
        return url
    return default


# PUBLIC_INTERFACE
@router.get("/dashboard", summary="Technician dashboard")
async def dashboard(
    request: Request,
    auth_session: AuthSession = Depends(require_technician),
    backend: Backend = Depends(get_backend),
):
    try:
        data = await backend.dashboard.technician()
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du chargement des données du tableau de bord.", exc)
        data = {}
    return render(request, "tech/dashboard.html", {"data": data or {}, "transitions": MISSION_TRANSITIONS})


# PUBLIC_INTERFACE
@router.get("/missions", summary="Technician missions")
async def missions(
    request: Request,
    page: int = Query(1, ge=1),
    status_value: Optional[str] = Query(None, alias="status"),
    auth_session: AuthSession = Depends(require_technician),
    backend: Backend = Depends(get_backend),
):
    try:
        result = await backend.missions.list(page=page, limit=PAGE_SIZE, status=status_value)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du chargement des missions", exc)
        result = Page()
    return render(request, "tech/missions.html", {
        "page": result,
        "page_number": page,
        "page_count": max(1, -(-result.total // PAGE_SIZE)),
        "status_value": status_value or "",
        "transitions": MISSION_TRANSITIONS,
    })


# PUBLIC_INTERFACE
@router.get("/missions/{mission_id}", summary="Mission details")
async def view_mission(
    mission_id: str,
    request: Request,
    auth_session: AuthSession = Depends(require_technician),
    backend: Backend = Depends(get_backend),
):
    try:
        mission = await backend.missions.get(mission_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du chargement des détails de la mission.", exc)
        return redirect("/tech/missions")
    return render(request, "tech/mission.html", {"mission": mission, "transitions": MISSION_TRANSITIONS})


# PUBLIC_INTERFACE
@router.post("/missions/{mission_id}/{transition}", summary="Change a mission's status")
async def change_mission_status(
    mission_id: str,
    transition: str,
    next_url: Optional[str] = Form(None, alias="next"),
    auth_session: AuthSession = Depends(require_technician),
    backend: Backend = Depends(get_backend),
):
    """
    Apply a mission transition: accept, start, pause or complete.

    Unknown transitions are refused without calling the backend.
    """
    target = _local_path(next_url, f"/tech/missions/{mission_id}")
    if transition not in MISSION_TRANSITIONS:
        auth_session.flash("error", "Action inconnue")
        return redirect(target)
    new_status, success, failure = MISSION_TRANSITIONS[transition]
    try:
        await backend.missions.update(mission_id, {"status": new_status})
    except ApiError as exc:
        report_failure(auth_session, failure, exc)
    else:
        logger.info(f"Mission {mission_id} -> {new_status}")
        auth_session.flash("success", success)
    return redirect(target)


# PUBLIC_INTERFACE
@router.get("/schedule", summary="Technician schedule")
async def schedule(
    request: Request,
    auth_session: AuthSession = Depends(require_technician),
    backend: Backend = Depends(get_backend),
):
    """Missions ordered by scheduled date, grouped by day."""
    try:
        result = await backend.missions.list(limit=OPTIONS_LIMIT)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du chargement des missions", exc)
        result = Page()
    dated = sorted((m for m in result.items if m.get("scheduledDate")), key=lambda m: m["scheduledDate"])
    days = [(day, list(items)) for day, items in groupby(dated, key=lambda m: str(m["scheduledDate"])[:10])]
    unscheduled = [m for m in result.items if not m.get("scheduledDate")]
    return render(request, "tech/schedule.html", {"days": days, "unscheduled": unscheduled})


# PUBLIC_INTERFACE
@router.get("/quotes", summary="Technician quotes")
async def quotes(
    request: Request,
    auth_session: AuthSession = Depends(require_technician),
    backend: Backend = Depends(get_backend),
):
    try:
        items = await backend.quotes.my()
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du chargement des devis", exc)
        items = []
    return render(request, "tech/quotes.html", {"quotes": items})


async def _quote_choices(backend: Backend, auth_session: AuthSession):
    department = (auth_session.user or {}).get("departement")
    try:
        clients, requests = await asyncio.gather(
            backend.users.clients(department),
            backend.requests.list(limit=OPTIONS_LIMIT),
        )
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du chargement des clients.", exc)
        return {}
    return {"clientId": options(clients), "requestId": options(requests, record_title)}


async def _render_quote_form(request: Request, backend: Backend, auth_session: AuthSession,
                             values, errors, status_code: int = status.HTTP_200_OK):
    choices = await _quote_choices(backend, auth_session)
    fields = [f for f in form_fields(QuoteForm, choices) if f.name not in ("technicianId", "status")]
    return render(request, "tech/quote_form.html", {
        "fields": fields,
        "values": values,
        "errors": errors,
    }, status_code=status_code)


# PUBLIC_INTERFACE
@router.get("/quotes/new", summary="New quote form")
async def new_quote(
    request: Request,
    request_id: Optional[str] = Query(None, alias="requestId", description="Service request to quote"),
    auth_session: AuthSession = Depends(require_technician),
    backend: Backend = Depends(get_backend),
):
    """Quote form, prefilled from the service request being quoted."""
    values = {}
    if request_id:
        try:
            service_request = await backend.requests.get(request_id)
        except ApiError as exc:
            report_failure(auth_session, "Erreur lors du chargement des données de l'intervention", exc)
        else:
            values = {
                "requestId": request_id,
                "title": service_request.get("title", ""),
                "description": service_request.get("description", ""),
                "clientId": record_id(service_request.get("clientId")),
            }
    return await _render_quote_form(request, backend, auth_session, values, {})


# PUBLIC_INTERFACE
@router.post("/quotes/new", summary="Create a quote")
async def create_quote(
    request: Request,
    auth_session: AuthSession = Depends(require_technician),
    backend: Backend = Depends(get_backend),
):
    data, form, errors = await read_and_validate(request, QuoteForm)
    if form is not None:
        payload = form.to_payload()
        payload["technicianId"] = auth_session.user_id
        payload.setdefault("status", "draft")
        try:
            await backend.quotes.create(payload)
        except ApiError as exc:
            report_failure(auth_session, "Erreur lors de la création du devis", exc)
        else:
            auth_session.flash("success", "Devis créé avec succès !")
            return redirect("/tech/quotes")
    elif "items" in errors:
        errors["items"] = "Veuillez ajouter au moins un élément au devis"
    return await _render_quote_form(
        request, backend, auth_session, flatten_record(data), errors,
        status.HTTP_422_UNPROCESSABLE_ENTITY if errors else status.HTTP_200_OK,
    )


# PUBLIC_INTERFACE
@router.post("/quotes/{quote_id}/send", summary="Send a quote to the client")
async def send_quote(quote_id: str, auth_session: AuthSession = Depends(require_technician),
                     backend: Backend = Depends(get_backend)):
    try:
        await backend.quotes.send(quote_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors de l'envoi du devis.", exc)
    else:
        auth_session.flash("success", "Devis envoyé au client")
    return redirect("/tech/quotes")


# PUBLIC_INTERFACE
@router.post("/quotes/{quote_id}/delete", summary="Delete a quote")
async def delete_quote(quote_id: str, auth_session: AuthSession = Depends(require_technician),
                       backend: Backend = Depends(get_backend)):
    try:
        await backend.quotes.delete(quote_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors de la suppression du devis.", exc)
    else:
        auth_session.flash("success", "Devis supprimé")
    return redirect("/tech/quotes")


# PUBLIC_INTERFACE
@router.get("/reports", summary="Technician reports")
async def reports(
    request: Request,
    auth_session: AuthSession = Depends(require_technician),
    backend: Backend = Depends(get_backend),
):
    try:
        result = await backend.reports.my()
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du chargement des rapports.", exc)
        result = Page()
    return render(request, "tech/reports.html", {"reports": result.items})


async def _render_report_form(request: Request, backend: Backend, auth_session: AuthSession, action: str,
                              values, errors, status_code: int = status.HTTP_200_OK):
    try:
        missions_page = await backend.missions.list(limit=OPTIONS_LIMIT)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du chargement des missions disponibles.", exc)
        missions_page = Page()
    return render(request, "tech/report_form.html", {
        "fields": form_fields(ReportForm, {"missionId": options(missions_page.items, record_title)}),
        "values": values,
        "errors": errors,
        "action": action,
    }, status_code=status_code)


# PUBLIC_INTERFACE
@router.get("/reports/new", summary="New report form")
async def new_report(
    request: Request,
    mission_id: Optional[str] = Query(None, alias="missionId"),
    auth_session: AuthSession = Depends(require_technician),
    backend: Backend = Depends(get_backend),
):
    values = {"missionId": mission_id} if mission_id else {}
    return await _render_report_form(request, backend, auth_session, "/tech/reports/new", values, {})


# PUBLIC_INTERFACE
@router.post("/reports/new", summary="Create a report")
async def create_report(
    request: Request,
    auth_session: AuthSession = Depends(require_technician),
    backend: Backend = Depends(get_backend),
):
    data, form, errors = await read_and_validate(request, ReportForm)
    if form is not None:
        try:
            report = await backend.reports.create(form.to_payload())
        except ApiError as exc:
            report_failure(auth_session, "Erreur lors de la sauvegarde du rapport", exc)
        else:
            auth_session.flash("success", "Rapport créé avec succès")
            report_id = record_id(report)
            return redirect(f"/tech/reports/{report_id}" if report_id else "/tech/reports")
    return await _render_report_form(
        request, backend, auth_session, "/tech/reports/new", flatten_record(data), errors,
        status.HTTP_422_UNPROCESSABLE_ENTITY if errors else status.HTTP_200_OK,
    )


# PUBLIC_INTERFACE
@router.get("/reports/{report_id}", summary="Report details")
async def view_report(
    report_id: str,
    request: Request,
    auth_session: AuthSession = Depends(require_technician),
    backend: Backend = Depends(get_backend),
):
    try:
        report = await backend.reports.get(report_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors de la récupération du rapport.", exc)
        return redirect("/tech/reports")
    return render(request, "tech/report.html", {"report": report, "report_id": report_id})


# PUBLIC_INTERFACE
@router.get("/reports/{report_id}/edit", summary="Edit report form")
async def edit_report(
    report_id: str,
    request: Request,
    auth_session: AuthSession = Depends(require_technician),
    backend: Backend = Depends(get_backend),
):
    try:
        report = await backend.reports.get(report_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors de la récupération du rapport.", exc)
        return redirect("/tech/reports")
    values = flatten_record(report)
    values.setdefault("missionId", record_id(report.get("mission")))
    return await _render_report_form(request, backend, auth_session, f"/tech/reports/{report_id}/edit", values, {})


# PUBLIC_INTERFACE
@router.post("/reports/{report_id}/edit", summary="Update a report")
async def update_report(
    report_id: str,
    request: Request,
    auth_session: AuthSession = Depends(require_technician),
    backend: Backend = Depends(get_backend),
):
    data, form, errors = await read_and_validate(request, ReportForm)
    if form is not None:
        try:
            await backend.reports.update(report_id, form.to_payload())
        except ApiError as exc:
            report_failure(auth_session, "Erreur lors de la sauvegarde du rapport", exc)
        else:
            auth_session.flash("success", "Rapport mis à jour avec succès")
            return redirect(f"/tech/reports/{report_id}")
    return await _render_report_form(
        request, backend, auth_session, f"/tech/reports/{report_id}/edit", flatten_record(data), errors,
        status.HTTP_422_UNPROCESSABLE_ENTITY if errors else status.HTTP_200_OK,
    )


# PUBLIC_INTERFACE
@router.post("/reports/{report_id}/generate-pdf", summary="Generate a report PDF")
async def generate_report_pdf(report_id: str, auth_session: AuthSession = Depends(require_technician),
                              backend: Backend = Depends(get_backend)):
    try:
        pdf_url = await backend.reports.generate_pdf(report_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors de la génération du PDF.", exc)
        return redirect(f"/tech/reports/{report_id}")
    auth_session.flash("success", "PDF généré avec succès !")
    return redirect(asset_url(pdf_url)) if pdf_url else redirect(f"/tech/reports/{report_id}")


# PUBLIC_INTERFACE
@router.post("/reports/{report_id}/send-to-client", summary="Send a report to the client")
async def send_report(report_id: str, auth_session: AuthSession = Depends(require_technician),
                      backend: Backend = Depends(get_backend)):
    try:
        await backend.reports.send_to_client(report_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors de l'envoi du rapport au client.", exc)
    else:
        auth_session.flash("success", "Rapport envoyé au client avec succès !")
    return redirect(f"/tech/reports/{report_id}")
