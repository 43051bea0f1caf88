"""
Browser auth session.

A session is either anonymous or authenticated. It becomes authenticated on
a successful login (bearer token and user record stored server-side) and
falls back to anonymous on logout or when the backend answers 401. The
session also queues flash messages shown once by the next rendered page.
"""
import json
import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..database.models import WebSession
from .jwt_handler import backend_token_expired

logger = logging.getLogger(__name__)

ROLES = ("admin", "technician", "client")

DASHBOARDS = {
    "admin": "/admin/dashboard",
    "technician": "/tech/dashboard",
    "client": "/client/dashboard",
}


class AuthSession:
    """
    Auth state and flash queue of one browser, backed by a WebSession row.

    A new session is only stored once it holds something (credentials or a
    flash message), so anonymous page views leave the table untouched.
    """

    def __init__(self, record: WebSession, db: Session, is_new: bool = False):
        self.record = record
        self.db = db
        self.is_new = is_new
        self._id = record.id
        self._stored = not is_new
        self._user: Optional[Dict[str, Any]] = None
        # user whose backend token was found expired when the session loaded
        self.expired_user_id: Optional[str] = None
        self._load_user()

    def _load_user(self) -> None:
        if not self.record.access_token or not self.record.user_data:
            return
        try:
            user = json.loads(self.record.user_data)
        except ValueError:
            logger.error(f"Discarding unreadable user data for session {self._id}")
            self.clear()
            return
        if not isinstance(user, dict):
            self.clear()
            return
        if backend_token_expired(self.record.access_token):
            logger.info(f"Backend token expired for session {self._id}")
            self.expired_user_id = _user_key(user)
            self.clear()
            self.flash("error", "Votre session a expiré. Veuillez vous reconnecter.")
            return
        self._user = user

    def _save(self) -> None:
        if not self._stored:
            self.db.add(self.record)
            self._stored = True
        self.db.commit()

    @property
    def id(self):
        return self._id

    @property
    def needs_cookie(self) -> bool:
        """True once a session started by this request has been stored."""
        return self.is_new and self._stored

    @property
    def token(self) -> Optional[str]:
        return self.record.access_token if self._user else None

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    @property
    def user_id(self) -> Optional[str]:
        return _user_key(self._user) if self._user else None

    @property
    def role(self) -> Optional[str]:
        return self._user.get("role") if self._user else None

    @property
    def dashboard_url(self) -> str:
        return DASHBOARDS.get(self.role or "", "/login")

    def authenticate(self, access_token: str, user: Dict[str, Any]) -> None:
        """Store credentials: anonymous -> authenticated."""
        self.record.access_token = access_token
        self.record.user_data = json.dumps(user)
        self._save()
        self._user = user

    def update_user(self, user: Dict[str, Any]) -> None:
        """Refresh the stored user record after a profile change."""
        if not self.is_authenticated:
            return
        merged = {**self._user, **user}
        self.record.user_data = json.dumps(merged)
        self._save()
        self._user = merged

    def clear(self) -> None:
        """Drop credentials: authenticated -> anonymous."""
        self._user = None
        if not self._stored:
            return
        self.record.access_token = None
        self.record.user_data = None
        self.db.commit()

    def flash(self, level: str, message: str) -> None:
        """Queue a message for the next rendered page."""
        self.record.flashes = [*(self.record.flashes or []), {"level": level, "message": message}]
        self._save()

    def pop_flashes(self) -> List[Dict[str, str]]:
        """Return and forget every queued message."""
        flashes = list(self.record.flashes or [])
        if flashes:
            self.record.flashes = []
            self._save()
        return flashes


def _user_key(user: Dict[str, Any]) -> Optional[str]:
    user_id = user.get("id") or user.get("_id")
    return str(user_id) if user_id else None


# PUBLIC_INTERFACE
def load_or_create_session(db: Session, session_id=None) -> tuple:
    """
    Load the session named by a cookie, or start a new anonymous one.

    A new session is not written to the database until it stores something.

    Args:
        db: Database session
        session_id: Session ID from a verified cookie, if any

    Returns:
        tuple: (AuthSession, created) where created tells the cookie named no stored session
    """
    record = None
    if session_id is not None:
        record = db.query(WebSession).filter(WebSession.id == session_id).first()
    if record is None:
        return AuthSession(WebSession(id=uuid.uuid4(), flashes=[]), db, is_new=True), True
    return AuthSession(record, db), False
