"""
Realtime notification channel.

While a user is logged in, the portal holds a Socket.IO connection to the
backend on their behalf (user id as query parameter) and listens for
``newNotification`` events. Each event is appended to the user's
notification list and pushed to the browser tabs subscribed over WebSocket.
Delivery is best effort: no redelivery, dedup or ordering beyond what the
Socket.IO client provides.
"""
import asyncio
import enum
import logging
import uuid
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set
from urllib.parse import urlencode

import socketio
from fastapi import WebSocket
from sqlalchemy.orm import Session, sessionmaker

from ..config import BACKEND_URL, REALTIME_ENABLED
from ..database.connection import SessionLocal
from ..database.models import Notification

logger = logging.getLogger(__name__)

NotificationCallback = Callable[[str, Dict[str, Any]], Awaitable[None]]


class ChannelState(str, enum.Enum):
    """Connection state of a notification channel."""
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class NotificationChannel:
    """Socket.IO connection receiving one user's notifications."""

    def __init__(self, user_id: str, url: str, on_notification: NotificationCallback):
        self.user_id = user_id
        self.url = url
        self.on_notification = on_notification
        self.state = ChannelState.DISCONNECTED
        self.sio = socketio.AsyncClient(reconnection=True)
        self.sio.on("connect", self._on_connect)
        self.sio.on("disconnect", self._on_disconnect)
        self.sio.on("newNotification", self._on_new_notification)

    @property
    def connection_url(self) -> str:
        return f"{self.url}?{urlencode({'userId': self.user_id})}"

    async def connect(self) -> None:
        """Open the connection; failures are logged and leave the channel disconnected."""
        if self.state is ChannelState.CONNECTED:
            return
        try:
            await self.sio.connect(self.connection_url, transports=["websocket", "polling"])
        except socketio.exceptions.ConnectionError as exc:
            logger.warning(f"Realtime connection failed for user {self.user_id}: {exc}")

    async def disconnect(self) -> None:
        if self.sio.connected:
            await self.sio.disconnect()
        self.state = ChannelState.DISCONNECTED

    async def _on_connect(self) -> None:
        self.state = ChannelState.CONNECTED
        logger.info(f"Realtime notifications connected for user {self.user_id} (sid={self.sio.sid})")

    async def _on_disconnect(self, *args) -> None:
        self.state = ChannelState.DISCONNECTED
        logger.info(f"Realtime notifications disconnected for user {self.user_id}")

    async def _on_new_notification(self, data: Any) -> None:
        if not isinstance(data, dict):
            data = {"message": str(data)}
        logger.info(f"New notification for user {self.user_id}: {data.get('type', 'system')}")
        await self.on_notification(self.user_id, data)


# PUBLIC_INTERFACE
def store_notification(db: Session, user_id: str, payload: Dict[str, Any]) -> Notification:
    """
    Append a notification to a user's list.

    Args:
        db: Database session
        user_id: Recipient user ID
        payload: Notification as sent by the backend

    Returns:
        Notification: Stored notification
    """
    backend_id = payload.get("_id") or payload.get("id")
    record = Notification(
        user_id=user_id,
        backend_id=str(backend_id) if backend_id else None,
        message=payload.get("message") or "",
        type=payload.get("type") or "system",
        payload=payload,
        is_read=bool(payload.get("isRead", False)),
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


# PUBLIC_INTERFACE
def list_notifications(db: Session, user_id: str, unread_only: bool = False) -> List[Notification]:
    """Return a user's notifications, newest first."""
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read == False)
    return query.order_by(Notification.received_at.desc()).all()


def find_notification(db: Session, user_id: str, notification_id: str) -> Optional[Notification]:
    """A user's notification by portal ID or backend ID."""
    query = db.query(Notification).filter(Notification.user_id == user_id)
    try:
        local_id = uuid.UUID(str(notification_id))
    except ValueError:
        return query.filter(Notification.backend_id == notification_id).first()
    return query.filter(Notification.id == local_id).first()


def mark_notification_read(db: Session, record: Notification) -> Notification:
    record.is_read = True
    db.commit()
    return record


def mark_all_notifications_read(db: Session, user_id: str) -> int:
    """Mark every notification of a user read, returning how many changed."""
    count = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read == False)
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return count


def delete_notification(db: Session, record: Notification) -> None:
    db.delete(record)
    db.commit()


def serialize_backend_notification(item: Dict[str, Any]) -> Dict[str, Any]:
    backend_id = item.get("_id") or item.get("id")
    return {
        "id": str(backend_id or ""),
        "backendId": str(backend_id) if backend_id else None,
        "message": item.get("message") or "",
        "type": item.get("type") or "system",
        "isRead": bool(item.get("isRead", False)),
        "receivedAt": item.get("createdAt"),
    }


# PUBLIC_INTERFACE
def merge_notifications(records: List[Notification], backend_items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Combine pushed notifications with the list fetched from the backend.

    A pushed notification the backend also returned is listed once, read
    if either side has it read. Newest first.
    """
    merged: Dict[str, Dict[str, Any]] = {}
    for item in backend_items:
        entry = serialize_backend_notification(item)
        merged[entry["backendId"] or f"backend-{len(merged)}"] = entry
    for record in records:
        entry = serialize_notification(record)
        key = record.backend_id or entry["id"]
        if key in merged:
            merged[key]["isRead"] = merged[key]["isRead"] or record.is_read
            continue
        merged[key] = entry
    return sorted(merged.values(), key=lambda entry: str(entry.get("receivedAt") or ""), reverse=True)


def serialize_notification(record: Notification) -> Dict[str, Any]:
    return {
        "id": str(record.id),
        "backendId": record.backend_id,
        "message": record.message,
        "type": record.type,
        "isRead": record.is_read,
        "receivedAt": record.received_at.isoformat() if record.received_at else None,
    }


class NotificationHub:
    """
    Notification channels of every logged-in user, and the browser sockets
    subscribed to them.

    A user logged in from several browsers shares one channel; each browser
    session holding it is recorded, and the channel closes when the last one
    lets go.
    """

    def __init__(
        self,
        url: str = BACKEND_URL,
        session_factory: sessionmaker = SessionLocal,
        enabled: bool = REALTIME_ENABLED,
        channel_factory: Callable[..., NotificationChannel] = NotificationChannel,
    ):
        self.url = url
        self.session_factory = session_factory
        self.enabled = enabled
        self.channel_factory = channel_factory
        self.channels: Dict[str, NotificationChannel] = {}
        self.holders: Dict[str, Set[str]] = defaultdict(set)
        self.subscribers: Dict[str, Set[WebSocket]] = defaultdict(set)
        self._connecting: Dict[str, asyncio.Task] = {}
        self._tasks: Set[asyncio.Task] = set()

    def is_connected(self, user_id: str) -> bool:
        channel = self.channels.get(user_id)
        return channel is not None and channel.state is ChannelState.CONNECTED

    def _spawn(self, coroutine) -> asyncio.Task:
        task = asyncio.create_task(coroutine)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def connect(self, user_id: Optional[str], session_id=None) -> None:
        """
        Open the user's channel in the background (disconnected -> connected).

        The browser session, when given, is recorded as a holder of the
        channel. A channel left disconnected by a failed attempt is retried.
        """
        if not self.enabled or not user_id:
            return
        if session_id is not None:
            self.holders[user_id].add(str(session_id))
        channel = self.channels.get(user_id)
        if channel is None:
            channel = self.channel_factory(user_id, self.url, self.deliver)
            self.channels[user_id] = channel
        elif channel.state is ChannelState.CONNECTED or user_id in self._connecting:
            return

        task = self._spawn(channel.connect())
        self._connecting[user_id] = task

        def settled(done: asyncio.Task) -> None:
            if self._connecting.get(user_id) is done:
                del self._connecting[user_id]

        task.add_done_callback(settled)

    def _release(self, user_id: Optional[str], session_id=None) -> Optional[NotificationChannel]:
        """Forget a holder and return the channel if nobody holds it anymore."""
        if not user_id:
            return None
        holders = self.holders.get(user_id)
        if session_id is not None and holders:
            holders.discard(str(session_id))
            if holders:
                return None
        self.holders.pop(user_id, None)
        pending = self._connecting.pop(user_id, None)
        if pending is not None:
            pending.cancel()
        return self.channels.pop(user_id, None)

    async def disconnect(self, user_id: Optional[str], session_id=None) -> None:
        """
        Let go of the user's channel for one browser session (connected -> disconnected).

        The channel stays open while other sessions of the user hold it.
        Without a session id it is closed whoever holds it.
        """
        channel = self._release(user_id, session_id)
        if channel is not None:
            await channel.disconnect()

    def release(self, user_id: Optional[str], session_id=None) -> None:
        """Same as disconnect for synchronous callers; the close runs in the background."""
        channel = self._release(user_id, session_id)
        if channel is not None:
            self._spawn(channel.disconnect())

    async def deliver(self, user_id: str, payload: Dict[str, Any]) -> Notification:
        """Store a pushed notification and forward it to the user's browsers."""
        db = self.session_factory()
        try:
            record = store_notification(db, user_id, payload)
            message = serialize_notification(record)
        finally:
            db.close()

        for websocket in list(self.subscribers.get(user_id, ())):
            try:
                await websocket.send_json(message)
            except RuntimeError as exc:
                logger.info(f"Dropping closed browser socket for user {user_id}: {exc}")
                self.unsubscribe(user_id, websocket)
        return record

    def subscribe(self, user_id: str, websocket: WebSocket) -> None:
        self.subscribers[user_id].add(websocket)

    def unsubscribe(self, user_id: str, websocket: WebSocket) -> None:
        sockets = self.subscribers.get(user_id)
        if sockets is None:
            return
        sockets.discard(websocket)
        if not sockets:
            self.subscribers.pop(user_id, None)

    async def shutdown(self) -> None:
        for user_id in list(self.channels):
            await self.disconnect(user_id)


# PUBLIC_INTERFACE
def create_notification_hub() -> NotificationHub:
    """Create the hub with the configured backend URL and database."""
    return NotificationHub()
