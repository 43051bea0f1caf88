"""
SQLAlchemy models for state owned by the portal itself.

The backend owns every business record. The portal only keeps browser
sessions (bearer token, serialized user, pending flash messages) and the
notifications pushed to each user over the realtime channel.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column, String, Boolean, DateTime, Text, JSON, Index, Uuid
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class WebSession(Base):
    """Browser session, the server-side counterpart of the session cookie."""
    __tablename__ = "web_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    access_token = Column(Text, nullable=True)
    user_data = Column(Text, nullable=True)  # JSON-serialized backend user record
    flashes = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<WebSession(id={self.id}, authenticated={self.access_token is not None})>"


class Notification(Base):
    """Notification received for a user, either pushed or fetched from the backend."""
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False)
    backend_id = Column(String(64), nullable=True)
    message = Column(Text, nullable=False)
    type = Column(String(50), nullable=False, default="system")
    payload = Column(JSON, nullable=False, default=dict)
    is_read = Column(Boolean, nullable=False, default=False)
    received_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index('idx_notification_user_received', 'user_id', 'received_at'),
        Index('idx_notification_user_read', 'user_id', 'is_read'),
    )

    def __repr__(self):
        return f"<Notification(id={self.id}, user_id='{self.user_id}', type='{self.type}')>"
