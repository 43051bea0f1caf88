"""
JWT handling for the portal session cookie.

The cookie never holds the backend bearer token; it carries a signed JWT
naming the server-side session row. Backend access tokens are only inspected
(never verified) to notice when they have already expired.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt

from ..config import SECRET_KEY, SESSION_MAX_AGE_MINUTES

ALGORITHM = "HS256"
SESSION_TOKEN_TYPE = "session"


class JWTHandler:
    """Signs and checks the session cookie."""

    @staticmethod
    def create_session_token(session_id: UUID, lifetime: Optional[timedelta] = None) -> str:
        """
        Create the cookie value for a session.

        Args:
            session_id: Server-side session ID
            lifetime: Validity of the cookie, the session max age by default

        Returns:
            str: Signed session token
        """
        expires_at = datetime.now(timezone.utc) + (lifetime or timedelta(minutes=SESSION_MAX_AGE_MINUTES))
        claims = {"sid": str(session_id), "type": SESSION_TOKEN_TYPE, "exp": expires_at}
        return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)

    @staticmethod
    def verify_session_token(token: Optional[str]) -> Optional[UUID]:
        """
        Verify a session cookie value.

        A missing, tampered, expired or foreign token yields None and the
        browser starts a new anonymous session.

        Args:
            token: Cookie value, possibly missing

        Returns:
            Optional[UUID]: Session ID if the token is genuine and unexpired
        """
        if not token:
            return None
        try:
            claims = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        except JWTError:
            return None
        if claims.get("type") != SESSION_TOKEN_TYPE:
            return None
        try:
            return UUID(claims.get("sid"))
        except (TypeError, ValueError):
            return None


# PUBLIC_INTERFACE
def backend_token_expired(access_token: str) -> bool:
    """
    Tell whether a backend access token carries an expiry already in the past.

    Tokens that are not JWTs, or carry no exp claim, are left to the backend
    to judge and count as unexpired.
    """
    try:
        claims = jwt.get_unverified_claims(access_token)
    except JWTError:
        return False
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return False
    return datetime.fromtimestamp(exp, tz=timezone.utc) <= datetime.now(timezone.utc)
