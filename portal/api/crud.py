"""
CRUD pages generated from a resource description.

Every backend resource managed by administrators gets the same pages: a
paginated list, a detail view, create and edit forms and a delete action.
Resource-specific actions (toggle status, send, PDF) are declared on the
resource and implemented by the admin routes.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Type

from fastapi import APIRouter, Depends, Query, Request, status

from ..auth.dependencies import get_backend, require_roles
from ..auth.session import AuthSession
from ..client.errors import ApiError
from ..client.http import Page
from ..client.services import Backend, ResourceService
from ..schemas.forms import FormModel, flatten_record, form_fields
from .pages import read_and_validate, report_failure
from .templating import redirect, render

logger = logging.getLogger(__name__)

PAGE_SIZE = 20

Choices = Dict[str, List[Tuple[str, str]]]
ChoicesLoader = Callable[[Backend], Awaitable[Choices]]


@dataclass
class Column:
    """One column of a list page (or row of a detail page)."""
    label: str
    key: str
    filter: Optional[str] = None


@dataclass
class Action:
    """Extra action on a record, posted to <resource>/<id>/<path>."""
    label: str
    path: str
    method: str = "post"


@dataclass
class ResourcePages:
    """Description of one resource's CRUD pages."""
    name: str
    service: str
    title: str
    create_form: Type[FormModel]
    columns: List[Column]
    update_form: Optional[Type[FormModel]] = None
    detail_columns: Optional[List[Column]] = None
    choices: Optional[ChoicesLoader] = None
    actions: List[Action] = field(default_factory=list)
    status_filter: Sequence[str] = ()
    created_message: str = "Élément créé avec succès !"
    updated_message: str = "Élément mis à jour avec succès !"
    deleted_message: str = "Élément supprimé avec succès"
    load_error: str = "Erreur lors du chargement des données"
    save_error: str = "Erreur lors de l'enregistrement"
    delete_error: str = "Erreur lors de la suppression"

    @property
    def form_for_update(self) -> Type[FormModel]:
        return self.update_form or self.create_form

    @property
    def details(self) -> List[Column]:
        return self.detail_columns or self.columns


# PUBLIC_INTERFACE
def build_crud_router(resource: ResourcePages, prefix: str = "/admin", roles: Sequence[str] = ("admin",)) -> APIRouter:
    """
    Build the list/detail/create/edit/delete pages of a resource.

    Args:
        resource: Resource description
        prefix: URL prefix of the pages
        roles: Roles admitted on every page

    Returns:
        APIRouter: Router serving <prefix>/<resource.name>
    """
    base_url = f"{prefix}/{resource.name}"
    router = APIRouter(prefix=base_url, tags=[resource.title])
    guard = require_roles(*roles)

    def service(backend: Backend) -> ResourceService:
        return getattr(backend, resource.service)

    async def load_choices(backend: Backend, auth_session: AuthSession) -> Choices:
        if resource.choices is None:
            return {}
        try:
            return await resource.choices(backend)
        except ApiError as exc:
            report_failure(auth_session, "Erreur lors du chargement des données initiales.", exc)
            return {}

    async def render_form(request: Request, backend: Backend, auth_session: AuthSession,
                          model: Type[FormModel], action: str, values: Dict[str, Any],
                          errors: Dict[str, str], item_id: Optional[str] = None,
                          status_code: int = status.HTTP_200_OK):
        choices = await load_choices(backend, auth_session)
        return render(request, "crud/form.html", {
            "resource": resource,
            "base_url": base_url,
            "fields": form_fields(model, choices),
            "values": values,
            "errors": errors,
            "action": action,
            "item_id": item_id,
        }, status_code=status_code)

    @router.get("", summary=f"List {resource.name}")
    async def list_items(
        request: Request,
        page: int = Query(1, ge=1, description="Page number"),
        search: Optional[str] = Query(None, description="Search query"),
        status_value: Optional[str] = Query(None, alias="status", description="Status filter"),
        auth_session: AuthSession = Depends(guard),
        backend: Backend = Depends(get_backend),
    ):
        try:
            result = await service(backend).list(page=page, limit=PAGE_SIZE, search=search, status=status_value)
        except ApiError as exc:
            report_failure(auth_session, resource.load_error, exc)
            result = Page()
        pages = max(1, -(-result.total // PAGE_SIZE))
        return render(request, "crud/list.html", {
            "resource": resource,
            "base_url": base_url,
            "page": result,
            "page_number": page,
            "page_count": pages,
            "search": search or "",
            "status_value": status_value or "",
        })

    @router.get("/new", summary=f"New {resource.name} form")
    async def new_item(
        request: Request,
        auth_session: AuthSession = Depends(guard),
        backend: Backend = Depends(get_backend),
    ):
        return await render_form(request, backend, auth_session, resource.create_form,
                                 f"{base_url}/new", {}, {})

    @router.post("/new", summary=f"Create {resource.name}")
    async def create_item(
        request: Request,
        auth_session: AuthSession = Depends(guard),
        backend: Backend = Depends(get_backend),
    ):
        data, form, errors = await read_and_validate(request, resource.create_form)
        if form is not None:
            try:
                await service(backend).create(form.to_payload())
            except ApiError as exc:
                report_failure(auth_session, resource.save_error, exc)
            else:
                logger.info(f"{resource.name} created")
                auth_session.flash("success", resource.created_message)
                return redirect(base_url)
        return await render_form(
            request, backend, auth_session, resource.create_form, f"{base_url}/new",
            flatten_record(data), errors,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY if errors else status.HTTP_200_OK,
        )

    @router.get("/{item_id}", summary=f"View {resource.name}")
    async def view_item(
        item_id: str,
        request: Request,
        auth_session: AuthSession = Depends(guard),
        backend: Backend = Depends(get_backend),
    ):
        try:
            record = await service(backend).get(item_id)
        except ApiError as exc:
            report_failure(auth_session, resource.load_error, exc)
            return redirect(base_url)
        return render(request, "crud/detail.html", {
            "resource": resource,
            "base_url": base_url,
            "record": record,
            "item_id": item_id,
        })

    @router.get("/{item_id}/edit", summary=f"Edit {resource.name} form")
    async def edit_item(
        item_id: str,
        request: Request,
        auth_session: AuthSession = Depends(guard),
        backend: Backend = Depends(get_backend),
    ):
        try:
            record = await service(backend).get(item_id)
        except ApiError as exc:
            report_failure(auth_session, resource.load_error, exc)
            return redirect(base_url)
        return await render_form(request, backend, auth_session, resource.form_for_update,
                                 f"{base_url}/{item_id}/edit", flatten_record(record), {}, item_id)

    @router.post("/{item_id}/edit", summary=f"Update {resource.name}")
    async def update_item(
        item_id: str,
        request: Request,
        auth_session: AuthSession = Depends(guard),
        backend: Backend = Depends(get_backend),
    ):
        data, form, errors = await read_and_validate(request, resource.form_for_update)
        if form is not None:
            try:
                await service(backend).update(item_id, form.to_payload())
            except ApiError as exc:
                report_failure(auth_session, resource.save_error, exc)
            else:
                auth_session.flash("success", resource.updated_message)
                return redirect(f"{base_url}/{item_id}")
        return await render_form(
            request, backend, auth_session, resource.form_for_update, f"{base_url}/{item_id}/edit",
            flatten_record(data), errors, item_id,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY if errors else status.HTTP_200_OK,
        )

    @router.post("/{item_id}/delete", summary=f"Delete {resource.name}")
    async def delete_item(
        item_id: str,
        auth_session: AuthSession = Depends(guard),
        backend: Backend = Depends(get_backend),
    ):
        try:
            await service(backend).delete(item_id)
        except ApiError as exc:
            report_failure(auth_session, resource.delete_error, exc)
            return redirect(f"{base_url}/{item_id}")
        auth_session.flash("success", resource.deleted_message)
        return redirect(base_url)

    return router
