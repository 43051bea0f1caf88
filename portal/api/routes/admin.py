"""
Administration pages.

Administrators manage every backend resource through the generated CRUD
pages. This module adds the dashboard, the payment dashboard, the site
customization editor and the resource-specific actions.
"""
import asyncio
import logging

from fastapi import APIRouter, Depends, Request, status

from ...auth.dependencies import get_backend, require_roles
from ...auth.session import AuthSession
from ...client.errors import ApiError
from ...client.services import Backend
from ...schemas.forms import flatten_record, form_fields
from ...schemas.intervention import AssignTechnicianForm
from ...schemas.public import SiteCustomizationForm
from ...services.site import asset_url, load_customization, merge_customization
from ..crud import build_crud_router
from ..pages import document_response, read_and_validate, report_failure
from ..resources import ADMIN_RESOURCES, options
from ..templating import redirect, render

logger = logging.getLogger(__name__)

require_admin = require_roles("admin")

router = APIRouter(prefix="/admin", tags=["Administration"])

DASHBOARD_ERROR = "Erreur lors du chargement des données du tableau de bord."


# PUBLIC_INTERFACE
@router.get("/dashboard", summary="Admin dashboard")
async def dashboard(
    request: Request,
    auth_session: AuthSession = Depends(require_admin),
    backend: Backend = Depends(get_backend),
):
    """
    Overview of users, missions, quotes, payments and requests.

    Each figure is loaded independently; a failed one is shown empty.
    """
    names = ("users", "missions", "quotes", "payments", "requests")
    results = await asyncio.gather(
        *(getattr(backend, name).stats() for name in names),
        return_exceptions=True,
    )
    stats = {}
    failures = []
    for name, result in zip(names, results):
        if isinstance(result, ApiError):
            failures.append(result)
            stats[name] = {}
        elif isinstance(result, BaseException):
            raise result
        else:
            stats[name] = result or {}
    if failures:
        # only the first 401 logs the browser out, report that one
        failures.sort(key=lambda error: not getattr(error, "session_cleared", False))
        report_failure(auth_session, DASHBOARD_ERROR, failures[0])

    try:
        urgent = await backend.requests.urgent()
    except ApiError as exc:
        logger.info(f"Urgent requests unavailable: {exc!r}")
        urgent = []
    return render(request, "admin/dashboard.html", {"stats": stats, "urgent": urgent[:5]})


# PUBLIC_INTERFACE
@router.get("/payment-dashboard", summary="Payment dashboard")
async def payment_dashboard(
    request: Request,
    auth_session: AuthSession = Depends(require_admin),
    backend: Backend = Depends(get_backend),
):
    try:
        stats, page = await asyncio.gather(backend.payments.stats(), backend.payments.list(limit=10))
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du chargement des paiements", exc)
        stats, payments = {}, []
    else:
        payments = page.items
    return render(request, "admin/payment_dashboard.html", {"stats": stats or {}, "payments": payments})


# PUBLIC_INTERFACE
@router.get("/site-customization", summary="Site customization form")
async def site_customization_page(
    request: Request,
    auth_session: AuthSession = Depends(require_admin),
    backend: Backend = Depends(get_backend),
):
    customization = await load_customization(backend)
    return render(request, "admin/site_customization.html", {
        "fields": form_fields(SiteCustomizationForm),
        "values": flatten_record(customization),
        "errors": {},
    })


# PUBLIC_INTERFACE
@router.post("/site-customization", summary="Save the site customization")
async def save_site_customization(
    request: Request,
    auth_session: AuthSession = Depends(require_admin),
    backend: Backend = Depends(get_backend),
):
    """Merge the edited sections into the stored customization and save it."""
    data, form, errors = await read_and_validate(request, SiteCustomizationForm)
    if form is not None:
        current = await load_customization(backend)
        try:
            await backend.site_customization.update(merge_customization(current, form.to_payload()))
        except ApiError as exc:
            report_failure(auth_session, "Erreur lors de la sauvegarde de la personnalisation", exc)
        else:
            auth_session.flash("success", "Personnalisation enregistrée avec succès !")
            return redirect("/admin/site-customization")
    return render(request, "admin/site_customization.html", {
        "fields": form_fields(SiteCustomizationForm),
        "values": flatten_record(data),
        "errors": errors,
    }, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY if errors else status.HTTP_200_OK)


# Resource actions

@router.post("/users/{user_id}/toggle-status", summary="Activate or deactivate a user")
async def toggle_user(user_id: str, auth_session: AuthSession = Depends(require_admin),
                      backend: Backend = Depends(get_backend)):
    try:
        user = await backend.users.toggle_status(user_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du changement de statut", exc)
    else:
        active = isinstance(user, dict) and user.get("isActive")
        auth_session.flash("success", "Utilisateur activé" if active else "Utilisateur désactivé")
    return redirect(f"/admin/users/{user_id}")


@router.post("/companies/{company_id}/toggle-status", summary="Activate or deactivate a company")
async def toggle_company(company_id: str, auth_session: AuthSession = Depends(require_admin),
                         backend: Backend = Depends(get_backend)):
    try:
        company = await backend.companies.toggle_status(company_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du changement de statut", exc)
    else:
        active = isinstance(company, dict) and company.get("isActive")
        auth_session.flash("success", "Entreprise activée" if active else "Entreprise désactivée")
    return redirect(f"/admin/companies/{company_id}")


@router.post("/companies/{company_id}/update-stats", summary="Recompute company statistics")
async def update_company_stats(company_id: str, auth_session: AuthSession = Depends(require_admin),
                               backend: Backend = Depends(get_backend)):
    try:
        await backend.companies.update_stats(company_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors de la mise à jour des statistiques", exc)
    else:
        auth_session.flash("success", "Statistiques mises à jour")
    return redirect(f"/admin/companies/{company_id}")


async def _render_assign(request: Request, backend: Backend, auth_session: AuthSession, request_id: str,
                         values=None, errors=None, status_code: int = status.HTTP_200_OK):
    try:
        service_request, technicians = await asyncio.gather(
            backend.requests.get(request_id), backend.users.technicians(),
        )
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du chargement des techniciens", exc)
        return redirect(f"/admin/requests/{request_id}")
    return render(request, "admin/assign.html", {
        "service_request": service_request,
        "request_id": request_id,
        "fields": form_fields(AssignTechnicianForm, {"technicianId": options(technicians)}),
        "values": values or {},
        "errors": errors or {},
    }, status_code=status_code)


@router.get("/requests/{request_id}/assign", summary="Technician assignment form")
async def assign_page(request_id: str, request: Request, auth_session: AuthSession = Depends(require_admin),
                      backend: Backend = Depends(get_backend)):
    return await _render_assign(request, backend, auth_session, request_id)


@router.post("/requests/{request_id}/assign", summary="Assign a technician")
async def assign(request_id: str, request: Request, auth_session: AuthSession = Depends(require_admin),
                 backend: Backend = Depends(get_backend)):
    data, form, errors = await read_and_validate(request, AssignTechnicianForm)
    if form is None:
        return await _render_assign(request, backend, auth_session, request_id, data, errors,
                                    status.HTTP_422_UNPROCESSABLE_ENTITY)
    try:
        await backend.requests.assign(request_id, form.technician_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors de l'assignation du technicien", exc)
        return await _render_assign(request, backend, auth_session, request_id, data)
    auth_session.flash("success", "Technicien assigné avec succès")
    return redirect(f"/admin/requests/{request_id}")


@router.post("/requests/{request_id}/complete", summary="Mark a request completed")
async def complete_request(request_id: str, auth_session: AuthSession = Depends(require_admin),
                           backend: Backend = Depends(get_backend)):
    try:
        await backend.requests.complete(request_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors de la clôture de la demande", exc)
    else:
        auth_session.flash("success", "Demande marquée comme terminée")
    return redirect(f"/admin/requests/{request_id}")


@router.post("/quotes/{quote_id}/send", summary="Send a quote to the client")
async def send_quote(quote_id: str, auth_session: AuthSession = Depends(require_admin),
                     backend: Backend = Depends(get_backend)):
    try:
        await backend.quotes.send(quote_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors de l'envoi du devis.", exc)
    else:
        auth_session.flash("success", "Devis envoyé au client")
    return redirect(f"/admin/quotes/{quote_id}")


@router.get("/quotes/{quote_id}/pdf", summary="Download a quote PDF")
async def quote_pdf(quote_id: str, auth_session: AuthSession = Depends(require_admin),
                    backend: Backend = Depends(get_backend)):
    try:
        response = await backend.quotes.pdf(quote_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du téléchargement", exc)
        return redirect(f"/admin/quotes/{quote_id}")
    return document_response(response, f"devis-{quote_id}.pdf")


@router.get("/invoices/{invoice_id}/pdf", summary="Download an invoice PDF")
async def invoice_pdf(invoice_id: str, auth_session: AuthSession = Depends(require_admin),
                      backend: Backend = Depends(get_backend)):
    try:
        response = await backend.invoices.pdf(invoice_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du téléchargement du PDF.", exc)
        return redirect(f"/admin/invoices/{invoice_id}")
    return document_response(response, f"facture-{invoice_id}.pdf")


@router.get("/payments/{payment_id}/invoice", summary="Download a payment invoice")
async def payment_invoice(payment_id: str, auth_session: AuthSession = Depends(require_admin),
                          backend: Backend = Depends(get_backend)):
    try:
        response = await backend.payments.invoice(payment_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du téléchargement de la facture.", exc)
        return redirect(f"/admin/payments/{payment_id}")
    return document_response(response, f"facture-{payment_id}.pdf")


@router.get("/payments/{payment_id}/receipt", summary="Download a payment receipt")
async def payment_receipt(payment_id: str, auth_session: AuthSession = Depends(require_admin),
                          backend: Backend = Depends(get_backend)):
    try:
        response = await backend.payments.receipt(payment_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du téléchargement du reçu.", exc)
        return redirect(f"/admin/payments/{payment_id}")
    return document_response(response, f"recu-{payment_id}.pdf")


@router.post("/reports/{report_id}/generate-pdf", summary="Generate a report PDF")
async def generate_report_pdf(report_id: str, auth_session: AuthSession = Depends(require_admin),
                              backend: Backend = Depends(get_backend)):
    try:
        pdf_url = await backend.reports.generate_pdf(report_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors de la génération du PDF.", exc)
        return redirect(f"/admin/reports/{report_id}")
    auth_session.flash("success", "PDF généré avec succès !")
    return redirect(asset_url(pdf_url)) if pdf_url else redirect(f"/admin/reports/{report_id}")


@router.post("/reports/{report_id}/send-to-client", summary="Send a report to the client")
async def send_report(report_id: str, auth_session: AuthSession = Depends(require_admin),
                      backend: Backend = Depends(get_backend)):
    try:
        await backend.reports.send_to_client(report_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors de l'envoi du rapport.", exc)
    else:
        auth_session.flash("success", "Rapport envoyé avec succès !")
    return redirect(f"/admin/reports/{report_id}")


@router.post("/reports/{report_id}/generate-certificate", summary="Generate a conformity certificate")
async def generate_certificate(report_id: str, auth_session: AuthSession = Depends(require_admin),
                               backend: Backend = Depends(get_backend)):
    try:
        number = await backend.reports.generate_certificate(report_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors de la génération du certificat.", exc)
    else:
        auth_session.flash("success", f"Certificat {number} généré" if number else "Certificat généré")
    return redirect(f"/admin/reports/{report_id}")


# included after the action routes so /admin/<resource>/<id>/<action> wins
crud_routers = [build_crud_router(resource) for resource in ADMIN_RESOURCES]
