"""
Pages shared by every role: profile and messages.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, status

from ...auth.dependencies import get_backend, get_current_user, require_permissions
from ...auth.session import AuthSession
from ...client.errors import ApiError
from ...client.services import Backend
from ...schemas.auth import ChangePasswordForm, NotificationSettingsForm, ProfileForm
from ...schemas.forms import flatten_record, form_fields
from ...schemas.messaging import ConversationForm, MessageForm
from ..pages import read_and_validate, report_failure
from ..resources import options
from ..templating import record_id, redirect, render

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Profile & messages"])

messages_access = require_permissions("messages.read", "messages.create")


def _render_profile(request: Request, auth_session: AuthSession, values: Optional[Dict[str, Any]] = None,
                    errors: Optional[Dict[str, Dict[str, str]]] = None, status_code: int = status.HTTP_200_OK):
    """Profile page with its three forms; errors are keyed by form name."""
    user = auth_session.user or {}
    values = values or {}
    errors = errors or {}
    settings = user.get("notificationSettings") or {}
    return render(request, "shared/profile.html", {
        "user": user,
        "profile_fields": form_fields(ProfileForm),
        "password_fields": form_fields(ChangePasswordForm),
        "notification_fields": form_fields(NotificationSettingsForm),
        "profile_values": values.get("profile", flatten_record(user)),
        "notification_values": values.get("notifications", flatten_record(settings)),
        "profile_errors": errors.get("profile", {}),
        "password_errors": errors.get("password", {}),
        "notification_errors": errors.get("notifications", {}),
    }, status_code=status_code)


# PUBLIC_INTERFACE
@router.get("/profile", summary="Profile page")
async def profile(request: Request, auth_session: AuthSession = Depends(get_current_user)):
    return _render_profile(request, auth_session)


# PUBLIC_INTERFACE
@router.post("/profile", summary="Update the profile")
async def update_profile(
    request: Request,
    auth_session: AuthSession = Depends(get_current_user),
    backend: Backend = Depends(get_backend),
):
    """Save the profile and refresh the user record held by the session."""
    data, form, errors = await read_and_validate(request, ProfileForm)
    if form is not None:
        try:
            user = await backend.auth.update_profile(form.to_payload())
        except ApiError as exc:
            report_failure(auth_session, "Erreur lors de la mise à jour du profil", exc)
        else:
            auth_session.update_user(user if isinstance(user, dict) else form.to_payload())
            auth_session.flash("success", "Profil mis à jour avec succès !")
            return redirect("/profile")
    return _render_profile(
        request, auth_session, {"profile": flatten_record(data)}, {"profile": errors},
        status.HTTP_422_UNPROCESSABLE_ENTITY if errors else status.HTTP_200_OK,
    )


# PUBLIC_INTERFACE
@router.post("/profile/password", summary="Change the password")
async def change_password(
    request: Request,
    auth_session: AuthSession = Depends(get_current_user),
    backend: Backend = Depends(get_backend),
):
    _, form, errors = await read_and_validate(request, ChangePasswordForm)
    if form is not None:
        try:
            await backend.auth.change_password(form.current_password, form.new_password)
        except ApiError as exc:
            report_failure(auth_session, "Erreur lors du changement de mot de passe", exc)
        else:
            auth_session.flash("success", "Mot de passe modifié avec succès !")
            return redirect("/profile")
    return _render_profile(
        request, auth_session, errors={"password": errors},
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY if errors else status.HTTP_200_OK,
    )


# PUBLIC_INTERFACE
@router.post("/profile/notifications", summary="Update notification preferences")
async def update_notification_settings(
    request: Request,
    auth_session: AuthSession = Depends(get_current_user),
    backend: Backend = Depends(get_backend),
):
    data, form, errors = await read_and_validate(request, NotificationSettingsForm)
    if form is not None:
        settings = form.to_payload()
        try:
            await backend.users.update_notification_settings(settings)
        except ApiError as exc:
            report_failure(auth_session, "Erreur lors de la mise à jour des préférences de notification", exc)
        else:
            auth_session.update_user({"notificationSettings": settings})
            auth_session.flash("success", "Préférences de notification mises à jour avec succès !")
            return redirect("/profile")
    return _render_profile(
        request, auth_session, {"notifications": flatten_record(data)}, {"notifications": errors},
        status.HTTP_422_UNPROCESSABLE_ENTITY if errors else status.HTTP_200_OK,
    )


async def _conversations(backend: Backend, auth_session: AuthSession):
    try:
        return await backend.messages.conversations()
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du chargement des conversations.", exc)
        return []


# PUBLIC_INTERFACE
@router.get("/messages", summary="Conversations")
async def messages(
    request: Request,
    auth_session: AuthSession = Depends(messages_access),
    backend: Backend = Depends(get_backend),
):
    return render(request, "shared/messages.html", {
        "conversations": await _conversations(backend, auth_session),
        "conversation": None,
        "conversation_id": None,
        "fields": form_fields(MessageForm),
        "values": {},
        "errors": {},
    })


async def _render_new_conversation(request: Request, backend: Backend, auth_session: AuthSession,
                                   values, errors, status_code: int = status.HTTP_200_OK):
    try:
        contacts = await backend.users.contacts()
    except ApiError as exc:
        report_failure(auth_session, "Erreur lors du chargement des contacts", exc)
        contacts = []
    contacts = [c for c in contacts if record_id(c) != auth_session.user_id]
    return render(request, "shared/new_conversation.html", {
        "fields": form_fields(ConversationForm, {"recipientId": options(contacts)}),
        "values": values,
        "errors": errors,
    }, status_code=status_code)


# PUBLIC_INTERFACE
@router.get("/messages/new", summary="New conversation form")
async def new_conversation(
    request: Request,
    auth_session: AuthSession = Depends(messages_access),
    backend: Backend = Depends(get_backend),
):
    return await _render_new_conversation(request, backend, auth_session, {}, {})


# PUBLIC_INTERFACE
@router.post("/messages/new", summary="Start a conversation")
async def create_conversation(
    request: Request,
    auth_session: AuthSession = Depends(messages_access),
    backend: Backend = Depends(get_backend),
):
    data, form, errors = await read_and_validate(request, ConversationForm)
    if form is not None:
        try:
            result = await backend.messages.create_conversation(form.to_payload())
        except ApiError as exc:
            report_failure(auth_session, "Erreur lors de la création de la conversation", exc)
        else:
            conversation = result.get("conversation", result) if isinstance(result, dict) else None
            conversation_id = record_id(conversation)
            auth_session.flash("success", "Message envoyé")
            return redirect(f"/messages/{conversation_id}" if conversation_id else "/messages")
    return await _render_new_conversation(
        request, backend, auth_session, flatten_record(data), errors,
        status.HTTP_422_UNPROCESSABLE_ENTITY if errors else status.HTTP_200_OK,
    )


async def _render_conversation(request: Request, backend: Backend, auth_session: AuthSession,
                               conversation_id: str, values=None, errors=None,
                               status_code: int = status.HTTP_200_OK):
    conversations, conversation = await asyncio.gather(
        _conversations(backend, auth_session),
        backend.messages.conversation(conversation_id),
        return_exceptions=True,
    )
    if isinstance(conversation, ApiError):
        report_failure(auth_session, "Erreur lors du chargement de la conversation.", conversation)
        return redirect("/messages")
    if isinstance(conversation, BaseException):
        raise conversation
    if isinstance(conversations, BaseException):
        raise conversations
    return render(request, "shared/messages.html", {
        "conversations": conversations,
        "conversation": conversation,
        "conversation_id": conversation_id,
        "fields": form_fields(MessageForm),
        "values": values or {},
        "errors": errors or {},
    }, status_code=status_code)


# PUBLIC_INTERFACE
@router.get("/messages/{conversation_id}", summary="Conversation")
async def conversation(
    conversation_id: str,
    request: Request,
    auth_session: AuthSession = Depends(messages_access),
    backend: Backend = Depends(get_backend),
):
    """Show a conversation and mark it read."""
    response = await _render_conversation(request, backend, auth_session, conversation_id)
    if response.status_code != status.HTTP_200_OK:
        return response
    try:
        await backend.messages.mark_as_read(conversation_id)
    except ApiError as exc:
        logger.info(f"Could not mark conversation {conversation_id} read: {exc!r}")
    return response


# PUBLIC_INTERFACE
@router.post("/messages/{conversation_id}", summary="Send a message")
async def send_message(
    conversation_id: str,
    request: Request,
    auth_session: AuthSession = Depends(messages_access),
    backend: Backend = Depends(get_backend),
):
    data, form, errors = await read_and_validate(request, MessageForm)
    if form is not None:
        try:
            await backend.messages.send_message(conversation_id, form.content)
        except ApiError as exc:
            report_failure(auth_session, "Erreur lors de l'envoi du message.", exc)
        else:
            return redirect(f"/messages/{conversation_id}")
    return await _render_conversation(
        request, backend, auth_session, conversation_id, flatten_record(data), errors,
        status.HTTP_422_UNPROCESSABLE_ENTITY if errors else status.HTTP_200_OK,
    )
