"""
Public marketing site.

Pages are rendered from the site customization stored by the backend, with
built-in defaults when it cannot be loaded. No login is needed.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from ...auth.dependencies import get_auth_session, get_backend
from ...auth.session import AuthSession
from ...client.errors import ApiError
from ...client.services import Backend
from ...schemas.forms import flatten_record, form_fields, validate_form
from ...schemas.public import ContactForm, DevisForm, SimulatorForm, quote_request_reference
from ...services import simulator
from ...services.site import load_customization
from ..pages import read_and_validate
from ..templating import redirect, render

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Public"])


async def _blog_posts(backend: Backend):
    try:
        return await backend.site_customization.blog_posts()
    except ApiError as exc:
        logger.warning(f"Blog posts unavailable: {exc.message}")
        return []


# PUBLIC_INTERFACE
@router.get("/", summary="Home page")
async def home(request: Request, backend: Backend = Depends(get_backend)):
    customization = await load_customization(backend)
    posts = await _blog_posts(backend)
    return render(request, "public/home.html", {"site": customization, "posts": posts[:3]})


# PUBLIC_INTERFACE
@router.get("/a-propos", summary="About page")
async def about(request: Request, backend: Backend = Depends(get_backend)):
    return render(request, "public/about.html", {"site": await load_customization(backend)})


# PUBLIC_INTERFACE
@router.get("/services", summary="Services page")
async def services(request: Request, backend: Backend = Depends(get_backend)):
    return render(request, "public/services.html", {"site": await load_customization(backend)})


# PUBLIC_INTERFACE
@router.get("/blog", summary="Blog")
async def blog(request: Request, backend: Backend = Depends(get_backend)):
    customization = await load_customization(backend)
    return render(request, "public/blog.html", {"site": customization, "posts": await _blog_posts(backend)})


# PUBLIC_INTERFACE
@router.get("/blog/{post_id}", summary="Blog post")
async def blog_post(
    post_id: str,
    request: Request,
    auth_session: AuthSession = Depends(get_auth_session),
    backend: Backend = Depends(get_backend),
):
    customization = await load_customization(backend)
    try:
        post = await backend.site_customization.blog_post(post_id)
    except ApiError as exc:
        logger.info(f"Blog post {post_id} unavailable: {exc.message}")
        auth_session.flash("error", "Article introuvable")
        return redirect("/blog")
    return render(request, "public/blog_post.html", {"site": customization, "post": post})


# PUBLIC_INTERFACE
@router.get("/contact", summary="Contact page")
async def contact_page(request: Request, backend: Backend = Depends(get_backend)):
    return render(request, "public/contact.html", {
        "site": await load_customization(backend),
        "fields": form_fields(ContactForm),
        "values": {},
        "errors": {},
    })


# PUBLIC_INTERFACE
@router.post("/contact", summary="Send a contact message")
async def contact(
    request: Request,
    auth_session: AuthSession = Depends(get_auth_session),
    backend: Backend = Depends(get_backend),
):
    """Validate the contact message and record it in the application log."""
    data, form, errors = await read_and_validate(request, ContactForm)
    if form is None:
        return render(request, "public/contact.html", {
            "site": await load_customization(backend),
            "fields": form_fields(ContactForm),
            "values": flatten_record(data),
            "errors": errors,
        }, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)

    logger.info(f"Contact message from {form.name} <{form.email}>: {form.subject}")
    auth_session.flash("success", "Message envoyé avec succès !")
    return redirect("/contact")


def _simulator_prefill(brand: Optional[str], model: Optional[str], version: Optional[str], option: Optional[str]):
    vehicle = simulator.find_version(brand or "", model or "", version or "")
    if vehicle is None:
        return {}
    return {
        "installationType": "borne-recharge",
        "serviceType": "installation",
        "description": simulator.quote_request_summary(brand, model, vehicle, simulator.find_option(option or "")),
    }


# PUBLIC_INTERFACE
@router.get("/devis", summary="Quote request page")
async def devis_page(
    request: Request,
    reference: Optional[str] = Query(None, description="Reference of a request just sent"),
    brand: Optional[str] = Query(None),
    model: Optional[str] = Query(None),
    version: Optional[str] = Query(None),
    option: Optional[str] = Query(None),
    backend: Backend = Depends(get_backend),
):
    """Quote request form, prefilled when coming from the charging estimator."""
    return render(request, "public/devis.html", {
        "site": await load_customization(backend),
        "fields": form_fields(DevisForm),
        "values": _simulator_prefill(brand, model, version, option),
        "errors": {},
        "reference": reference,
    })


# PUBLIC_INTERFACE
@router.post("/devis", summary="Send a quote request")
async def devis(
    request: Request,
    auth_session: AuthSession = Depends(get_auth_session),
    backend: Backend = Depends(get_backend),
):
    """Send the request to /quotes/request with a DEV-REQ-YYYY-NNN reference."""
    data, form, errors = await read_and_validate(request, DevisForm)
    if form is not None:
        reference = quote_request_reference()
        try:
            await backend.quotes.request_quote(form.to_payload(reference))
        except ApiError as exc:
            logger.warning(f"Quote request {reference} failed: {exc!r}")
            auth_session.flash("error", "Erreur lors de l'envoi de la demande")
        else:
            logger.info(f"Quote request {reference} sent for {form.email}")
            auth_session.flash("success", "Demande de devis envoyée avec succès !")
            return redirect(f"/devis?reference={reference}")

    return render(request, "public/devis.html", {
        "site": await load_customization(backend),
        "fields": form_fields(DevisForm),
        "values": flatten_record(data),
        "errors": errors,
        "reference": None,
    }, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY if errors else status.HTTP_200_OK)


# PUBLIC_INTERFACE
@router.get("/estimateur", summary="Charging time estimator", dependencies=[Depends(get_auth_session)])
async def estimator(
    request: Request,
    brand: Optional[str] = Query(None),
    model: Optional[str] = Query(None),
    version: Optional[str] = Query(None),
    start_level: Optional[str] = Query(None, alias="startLevel"),
    end_level: Optional[str] = Query(None, alias="endLevel"),
    backend: Backend = Depends(get_backend),
):
    """
    Estimate charging times for a vehicle.

    Without a complete selection only the vehicle picker is shown.
    """
    params = {"brand": brand, "model": model, "version": version, "startLevel": start_level, "endLevel": end_level}
    params = {k: v for k, v in params.items() if v is not None}
    context = {
        "site": await load_customization(backend),
        "vehicles": simulator.VEHICLES,
        "options": simulator.CHARGING_OPTIONS,
        "savings": simulator.SAVINGS_INFO,
        "values": params,
        "errors": {},
        "results": None,
        "vehicle": None,
    }
    if brand and model and version:
        form, errors = validate_form(SimulatorForm, params)
        vehicle = simulator.find_version(brand, model, version)
        if form is not None and vehicle is None:
            errors = {"version": "Véhicule inconnu"}
        elif form is not None and form.start_level >= form.end_level:
            errors = {"endLevel": "Le niveau visé doit être supérieur au niveau de départ"}
        elif form is not None:
            context["results"] = simulator.compare_options(vehicle, form.start_level, form.end_level)
            context["vehicle"] = vehicle
        context["errors"] = errors
    return render(request, "public/estimator.html", context)
