"""
Notification pages.

The list combines notifications pushed over the realtime channel (stored by
the portal) with the ones the backend returns.
"""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ...auth.dependencies import get_backend, get_current_user
from ...auth.session import AuthSession
from ...client.errors import ApiError
from ...client.services import Backend
from ...database.connection import get_db
from ...realtime.notifications import (
    delete_notification, find_notification, list_notifications, mark_all_notifications_read,
    mark_notification_read, merge_notifications,
)
from ..pages import report_failure
from ..templating import redirect, render

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


# PUBLIC_INTERFACE
@router.get("", summary="My notifications")
async def notifications(
    request: Request,
    auth_session: AuthSession = Depends(get_current_user),
    backend: Backend = Depends(get_backend),
    db: Session = Depends(get_db),
):
    try:
        backend_items = await backend.notifications.my()
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du chargement des notifications.", exc)
        backend_items = []
    items = merge_notifications(list_notifications(db, auth_session.user_id), backend_items)
    return render(request, "shared/notifications.html", {
        "notifications": items,
        "unread_count": len([n for n in items if not n["isRead"]]),
    })


# PUBLIC_INTERFACE
@router.post("/read-all", summary="Mark every notification read")
async def read_all(
    auth_session: AuthSession = Depends(get_current_user),
    backend: Backend = Depends(get_backend),
    db: Session = Depends(get_db),
):
    mark_all_notifications_read(db, auth_session.user_id)
    try:
        await backend.notifications.mark_all_as_read()
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du marquage de toutes les notifications.", exc)
    else:
        auth_session.flash("success", "Toutes les notifications ont été marquées comme lues.")
    return redirect("/notifications")


# PUBLIC_INTERFACE
@router.post("/{notification_id}/read", summary="Mark a notification read")
async def read(
    notification_id: str,
    auth_session: AuthSession = Depends(get_current_user),
    backend: Backend = Depends(get_backend),
    db: Session = Depends(get_db),
):
    """
    Mark a notification read, locally and on the backend.

    A pushed notification the backend never numbered is only marked locally.
    """
    record = find_notification(db, auth_session.user_id, notification_id)
    backend_id = notification_id
    if record is not None:
        mark_notification_read(db, record)
        backend_id = record.backend_id
    if backend_id:
        try:
            await backend.notifications.mark_as_read(backend_id)
        except ApiError as exc:
            report_failure(auth_session, "Erreur lors du marquage de la notification.", exc)
            return redirect("/notifications")
    auth_session.flash("success", "Notification marquée comme lue.")
    return redirect("/notifications")


# PUBLIC_INTERFACE
@router.post("/{notification_id}/delete", summary="Delete a notification")
async def delete(
    notification_id: str,
    auth_session: AuthSession = Depends(get_current_user),
    backend: Backend = Depends(get_backend),
    db: Session = Depends(get_db),
):
    record = find_notification(db, auth_session.user_id, notification_id)
    backend_id = notification_id
    if record is not None:
        backend_id = record.backend_id
        delete_notification(db, record)
    if backend_id:
        try:
            await backend.notifications.delete(backend_id)
        except ApiError as exc:
            report_failure(auth_session, "Erreur lors de la suppression de la notification", exc)
            return redirect("/notifications")
    auth_session.flash("success", "Notification supprimée")
    return redirect("/notifications")
