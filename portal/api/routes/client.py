"""
Client pages.

Clients request interventions, answer quotes, pay them by card and follow
their interventions, invoices and payments.
"""
import asyncio
import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request, status

from ...auth.dependencies import get_backend, require_roles
from ...auth.session import AuthSession
from ...client.errors import ApiError
from ...client.http import Page
from ...client.services import Backend
from ...schemas.billing import PaymentReturnForm, QuoteRejectForm
from ...schemas.forms import flatten_record, form_fields, validate_form
from ...schemas.intervention import ServiceRequestForm
from ...services.payments import (
    PAYMENT_TYPES, PaymentFlow, PaymentFlowError, payment_amount, payment_description, quote_total,
)
from ..crud import PAGE_SIZE
from ..pages import document_response, read_and_validate, read_form, report_failure
from ..resources import OPTIONS_LIMIT, options, record_title
from ..templating import redirect, render

logger = logging.getLogger(__name__)

require_client = require_roles("client")

router = APIRouter(prefix="/client", tags=["Client"])

# quote statuses a client can still answer
OPEN_QUOTE_STATUSES = ("sent", "pending")


# PUBLIC_INTERFACE
@router.get("/dashboard", summary="Client dashboard")
async def dashboard(
    request: Request,
    auth_session: AuthSession = Depends(require_client),
    backend: Backend = Depends(get_backend),
):
    """My requests, quotes awaiting an answer and payments."""
    results = await asyncio.gather(
        backend.requests.my(), backend.quotes.my(), backend.payments.my(),
        return_exceptions=True,
    )
    failures = [r for r in results if isinstance(r, ApiError)]
    for result in results:
        if isinstance(result, BaseException) and not isinstance(result, ApiError):
            raise result
    if failures:
        failures.sort(key=lambda error: not getattr(error, "session_cleared", False))
        report_failure(auth_session, "Erreur lors du chargement des données", failures[0])
    requests, quotes, payments = (r if isinstance(r, list) else [] for r in results)

    pending_quotes = [q for q in quotes if q.get("status") in OPEN_QUOTE_STATUSES]
    return render(request, "client/dashboard.html", {
        "requests": requests[:5],
        "pending_quotes": pending_quotes,
        "pending_amount": sum(quote_total(q) for q in pending_quotes),
        "payments": payments[:5],
        "stats": {
            "requests": len(requests),
            "open_requests": len([r for r in requests if r.get("status") not in ("completed", "cancelled")]),
            "quotes": len(quotes),
            "payments": len(payments),
        },
    })


async def _render_service_request(request: Request, backend: Backend, auth_session: AuthSession,
                                  values, errors, status_code: int = status.HTTP_200_OK):
    try:
        service_types = await backend.service_types.list(limit=OPTIONS_LIMIT)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du chargement des types de service.", exc)
        service_types = Page()
    return render(request, "client/request.html", {
        "fields": form_fields(ServiceRequestForm, {"serviceTypeId": options(service_types, record_title)}),
        "values": values,
        "errors": errors,
    }, status_code=status_code)


# PUBLIC_INTERFACE
@router.get("/request", summary="Service request form")
async def service_request_page(
    request: Request,
    auth_session: AuthSession = Depends(require_client),
    backend: Backend = Depends(get_backend),
):
    user = auth_session.user or {}
    values = {"contactPhone": user.get("phone") or ""}
    return await _render_service_request(request, backend, auth_session, values, {})


# PUBLIC_INTERFACE
@router.post("/request", summary="Send a service request")
async def send_service_request(
    request: Request,
    auth_session: AuthSession = Depends(require_client),
    backend: Backend = Depends(get_backend),
):
    data, form, errors = await read_and_validate(request, ServiceRequestForm)
    if form is not None:
        try:
            await backend.requests.create(form.to_payload())
        except ApiError as exc:
            report_failure(auth_session, "Erreur lors de l'envoi de la demande", exc)
        else:
            auth_session.flash("success", "Demande d'intervention envoyée avec succès !")
            return redirect("/client/dashboard")
    return await _render_service_request(
        request, backend, auth_session, flatten_record(data), errors,
        status.HTTP_422_UNPROCESSABLE_ENTITY if errors else status.HTTP_200_OK,
    )


# PUBLIC_INTERFACE
@router.get("/quotes", summary="My quotes")
async def quotes(
    request: Request,
    auth_session: AuthSession = Depends(require_client),
    backend: Backend = Depends(get_backend),
):
    try:
        items = await backend.quotes.my()
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du chargement de vos devis.", exc)
        items = []
    return render(request, "client/quotes.html", {"quotes": items, "open_statuses": OPEN_QUOTE_STATUSES})


async def _render_quote(request: Request, backend: Backend, auth_session: AuthSession, quote_id: str,
                        values=None, errors=None, status_code: int = status.HTTP_200_OK):
    try:
        quote = await backend.quotes.get(quote_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du chargement du devis", exc)
        return redirect("/client/quotes")
    return render(request, "client/quote.html", {
        "quote": quote,
        "quote_id": quote_id,
        "can_answer": quote.get("status") in OPEN_QUOTE_STATUSES,
        "reject_fields": form_fields(QuoteRejectForm),
        "values": values or {},
        "errors": errors or {},
    }, status_code=status_code)


# PUBLIC_INTERFACE
@router.get("/quotes/{quote_id}", summary="Quote details")
async def view_quote(
    quote_id: str,
    request: Request,
    auth_session: AuthSession = Depends(require_client),
    backend: Backend = Depends(get_backend),
):
    return await _render_quote(request, backend, auth_session, quote_id)


# PUBLIC_INTERFACE
@router.post("/quotes/{quote_id}/accept", summary="Accept a quote")
async def accept_quote(
    quote_id: str,
    auth_session: AuthSession = Depends(require_client),
    backend: Backend = Depends(get_backend),
):
    """Accept the quote, then go to its payment page."""
    try:
        await backend.quotes.respond(quote_id, True)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors de l'acceptation du devis", exc)
        return redirect(f"/client/quotes/{quote_id}")
    auth_session.flash("success", "Devis accepté avec succès !")
    return redirect(f"/client/payment/{quote_id}")


# PUBLIC_INTERFACE
@router.post("/quotes/{quote_id}/reject", summary="Reject a quote")
async def reject_quote(
    quote_id: str,
    request: Request,
    auth_session: AuthSession = Depends(require_client),
    backend: Backend = Depends(get_backend),
):
    data, form, errors = await read_and_validate(request, QuoteRejectForm)
    if form is None:
        return await _render_quote(request, backend, auth_session, quote_id, flatten_record(data), errors,
                                   status.HTTP_422_UNPROCESSABLE_ENTITY)
    try:
        await backend.quotes.respond(quote_id, False, form.reason)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du refus du devis", exc)
    else:
        auth_session.flash("success", "Devis refusé avec succès !")
    return redirect(f"/client/quotes/{quote_id}")


# PUBLIC_INTERFACE
@router.get("/quotes/{quote_id}/pdf", summary="Download a quote PDF")
async def quote_pdf(quote_id: str, auth_session: AuthSession = Depends(require_client),
                    backend: Backend = Depends(get_backend)):
    try:
        response = await backend.quotes.pdf(quote_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du téléchargement", exc)
        return redirect(f"/client/quotes/{quote_id}")
    return document_response(response, f"devis-{quote_id}.pdf")


# PUBLIC_INTERFACE
@router.get("/interventions", summary="My interventions")
async def interventions(
    request: Request,
    page: int = Query(1, ge=1),
    auth_session: AuthSession = Depends(require_client),
    backend: Backend = Depends(get_backend),
):
    try:
        result = await backend.missions.list(page=page, limit=PAGE_SIZE)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du chargement des interventions", exc)
        result = Page()
    return render(request, "client/interventions.html", {
        "page": result,
        "page_number": page,
        "page_count": max(1, -(-result.total // PAGE_SIZE)),
    })


# PUBLIC_INTERFACE
@router.get("/invoices", summary="My invoices")
async def invoices(
    request: Request,
    page: int = Query(1, ge=1),
    auth_session: AuthSession = Depends(require_client),
    backend: Backend = Depends(get_backend),
):
    try:
        result = await backend.invoices.list(page=page, limit=PAGE_SIZE)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du chargement des factures", exc)
        result = Page()
    return render(request, "client/invoices.html", {
        "page": result,
        "page_number": page,
        "page_count": max(1, -(-result.total // PAGE_SIZE)),
    })


# PUBLIC_INTERFACE
@router.get("/invoices/{invoice_id}/pdf", summary="Download an invoice PDF")
async def invoice_pdf(invoice_id: str, auth_session: AuthSession = Depends(require_client),
                      backend: Backend = Depends(get_backend)):
    try:
        response = await backend.invoices.pdf(invoice_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du téléchargement du PDF.", exc)
        return redirect("/client/invoices")
    return document_response(response, f"facture-{invoice_id}.pdf")


# PUBLIC_INTERFACE
@router.get("/payments", summary="My payments")
async def payments(
    request: Request,
    auth_session: AuthSession = Depends(require_client),
    backend: Backend = Depends(get_backend),
):
    try:
        items = await backend.payments.my()
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du chargement des paiements", exc)
        items = []
    completed = [p for p in items if p.get("status") == "completed"]
    return render(request, "client/payments.html", {
        "payments": items,
        "total_paid": sum(float(p.get("amount") or 0) for p in completed),
    })


# PUBLIC_INTERFACE
@router.get("/payments/{payment_id}/receipt", summary="Download a payment receipt")
async def payment_receipt(payment_id: str, auth_session: AuthSession = Depends(require_client),
                          backend: Backend = Depends(get_backend)):
    try:
        response = await backend.payments.receipt(payment_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du téléchargement du reçu.", exc)
        return redirect("/client/payments")
    return document_response(response, f"recu-{payment_id}.pdf")


# PUBLIC_INTERFACE
@router.get("/payments/{payment_id}/invoice", summary="Download a payment invoice")
async def payment_invoice(payment_id: str, auth_session: AuthSession = Depends(require_client),
                          backend: Backend = Depends(get_backend)):
    try:
        response = await backend.payments.invoice(payment_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du téléchargement de la facture.", exc)
        return redirect("/client/payments")
    return document_response(response, f"facture-{payment_id}.pdf")


# PUBLIC_INTERFACE
@router.get("/payment/{quote_id}", summary="Quote payment page")
async def payment_page(
    quote_id: str,
    request: Request,
    payment_type: str = Query("partial", alias="type", description="partial (50% deposit) or full"),
    auth_session: AuthSession = Depends(require_client),
    backend: Backend = Depends(get_backend),
):
    """
    Card form for a quote.

    The payment intent is created on every visit, so switching between the
    deposit and the full payment creates a new intent.
    """
    if payment_type not in PAYMENT_TYPES:
        payment_type = "partial"
    try:
        quote = await backend.quotes.get(quote_id)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du chargement du devis", exc)
        return redirect("/client/quotes")

    checkout = None
    try:
        checkout = await PaymentFlow(backend).checkout(quote, payment_type)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors de la création du paiement", exc)
    except PaymentFlowError as exc:
        logger.warning(f"Payment intent for quote {quote_id}: {exc}")
        auth_session.flash("error", str(exc))

    return render(request, "client/payment.html", {
        "quote": quote,
        "quote_id": quote_id,
        "payment_type": payment_type,
        "checkout": checkout,
        "amounts": {kind: payment_amount(quote, kind) for kind in PAYMENT_TYPES},
        "descriptions": {kind: payment_description(quote, kind) for kind in PAYMENT_TYPES},
    })


# PUBLIC_INTERFACE
@router.post("/payment/{quote_id}/confirm", summary="Confirm a card payment")
async def confirm_payment(
    quote_id: str,
    request: Request,
    auth_session: AuthSession = Depends(require_client),
    backend: Backend = Depends(get_backend),
):
    """Called by the card form once Stripe.js confirmCardPayment returned."""
    form, errors = validate_form(PaymentReturnForm, await read_form(request))
    retry_url = f"/client/payment/{quote_id}"
    if form is None:
        logger.warning(f"Invalid payment return for quote {quote_id}: {errors}")
        auth_session.flash("error", "Erreur de paiement : réponse de paiement invalide")
        return redirect(retry_url)

    try:
        result = await PaymentFlow(backend).complete(form.payment_intent_id, form.status, form.error_message)
    except PaymentFlowError as exc:
        auth_session.flash("error", str(exc))
        return redirect(retry_url)
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors de la confirmation du paiement", exc)
        return redirect(retry_url)

    payment = result.get("payment") if isinstance(result, dict) and isinstance(result.get("payment"), dict) else result
    reference = None
    if isinstance(payment, dict):
        reference = payment.get("reference") or payment.get("transactionId")
    logger.info(f"Payment {form.payment_intent_id} confirmed for quote {quote_id}")
    auth_session.flash("success", "Paiement effectué avec succès !")
    query = urlencode({"reference": reference or form.payment_intent_id})
    return redirect(f"/client/payment/{quote_id}/success?{query}")


# PUBLIC_INTERFACE
@router.get("/payment/{quote_id}/success", summary="Payment confirmation page")
async def payment_success(
    quote_id: str,
    request: Request,
    reference: Optional[str] = Query(None),
    auth_session: AuthSession = Depends(require_client),
):
    return render(request, "client/payment_success.html", {"quote_id": quote_id, "reference": reference})
