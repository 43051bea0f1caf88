"""
Pytest configuration and fixtures for portal testing.

Provides the test database, a FastAPI test client whose backend calls are
answered by an in-memory fake backend, browser sessions logged in as each
role, and sample backend records.
"""
import json
from typing import Any, Dict, Generator, List, Optional, Tuple

import email_validator
import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from portal.api.main import app
from portal.auth.jwt_handler import JWTHandler
from portal.auth.session import AuthSession, load_or_create_session
from portal.config import SESSION_COOKIE_NAME
from portal.database.connection import DatabaseManager, TestSessionLocal, get_db, get_test_db
from portal.database.models import WebSession

BACKEND_BASE_URL = "http://backend.test/api"

# Fixtures use the reserved ".test" domain, which email-validator only accepts
# in its documented test mode.
email_validator.TEST_ENVIRONMENT = True



class FakeBackend:
    """
    In-memory stand-in for the Electriborne REST backend.

    Routes are registered per (method, path), the path being relative to the
    API root ("/users/stats/overview"). Unregistered routes answer 404.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Any] = {}
        self.calls: List[httpx.Request] = []

    def on(self, method: str, path: str, body: Any = None, status_code: int = 200) -> None:
        """Answer method+path with a JSON body (or a callable building the response)."""
        self.routes[(method.upper(), path)] = body if callable(body) else (status_code, body)

    def fail(self, method: str, path: str, status_code: int, message: str = "Erreur") -> None:
        self.on(method, path, {"success": False, "message": message}, status_code)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path
        if path.startswith("/api"):
            path = path[len("/api"):]
        route = self.routes.get((request.method, path))
        if route is None:
            return httpx.Response(404, json={"success": False, "message": "Route introuvable"})
        if callable(route):
            return route(request)
        status_code, body = route
        if isinstance(body, bytes):
            return httpx.Response(status_code, content=body, headers={"content-type": "application/pdf"})
        return httpx.Response(status_code, json=body if body is not None else {"success": True})

    def requests_to(self, method: str, path: str) -> List[httpx.Request]:
        return [
            call for call in self.calls
            if call.method == method.upper() and call.url.path == f"/api{path}"
        ]

    def last_json(self, method: str, path: str) -> Any:
        calls = self.requests_to(method, path)
        assert calls, f"{method} {path} was never called"
        return json.loads(calls[-1].content or b"null")


class FakeNotificationHub:
    """Records channel and socket operations instead of opening Socket.IO connections."""

    def __init__(self):
        self.connected: List[str] = []
        self.disconnected: List[Optional[str]] = []
        self.subscribers: Dict[str, list] = {}

    async def connect(self, user_id, session_id=None):
        if user_id:
            self.connected.append(user_id)

    async def disconnect(self, user_id, session_id=None):
        self.disconnected.append(user_id)

    def release(self, user_id, session_id=None):
        self.disconnected.append(user_id)

    def subscribe(self, user_id, websocket):
        self.subscribers.setdefault(user_id, []).append(websocket)

    def unsubscribe(self, user_id, websocket):
        sockets = self.subscribers.get(user_id, [])
        if websocket in sockets:
            sockets.remove(websocket)

    async def shutdown(self):
        pass


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Fresh test database for every test."""
    DatabaseManager.reset_test_db()
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def notification_hub() -> FakeNotificationHub:
    return FakeNotificationHub()


@pytest.fixture(scope="function")
def client(db_session, fake_backend, notification_hub) -> Generator[TestClient, None, None]:
    """Create FastAPI test client with database, backend and hub overrides."""
    app.dependency_overrides[get_db] = get_test_db
    # exception handlers read app.state directly, so state is set rather than overridden
    app.state.http_client = httpx.AsyncClient(
        base_url=BACKEND_BASE_URL,
        transport=httpx.MockTransport(fake_backend.handle),
    )
    app.state.notification_hub = notification_hub
    test_client = TestClient(app, follow_redirects=False)
    yield test_client
    app.dependency_overrides.clear()
    app.state.http_client = None
    app.state.notification_hub = None


def login_as(client: TestClient, user: Dict[str, Any], token: str = "backend-token") -> AuthSession:
    """Create an authenticated session row and give its cookie to the test client."""
    db = TestSessionLocal()
    try:
        auth_session, _ = load_or_create_session(db)
        auth_session.authenticate(token, user)
        db.refresh(auth_session.record)
        client.cookies.set(SESSION_COOKIE_NAME, JWTHandler.create_session_token(auth_session.id))
        return auth_session
    finally:
        db.close()


def stored_session_count() -> int:
    """Number of browser sessions written to the database."""
    db = TestSessionLocal()
    try:
        return db.query(WebSession).count()
    finally:
        db.close()


def session_state(auth_session: AuthSession) -> WebSession:
    """Reload a session row as the application left it."""
    db = TestSessionLocal()
    try:
        return db.query(WebSession).filter(WebSession.id == auth_session.id).first()
    finally:
        db.close()


def flash_messages(auth_session: AuthSession) -> List[str]:
    """Messages queued for the next page of a session."""
    record = session_state(auth_session)
    return [flash["message"] for flash in (record.flashes or [])]


@pytest.fixture
def sample_admin_data() -> Dict[str, Any]:
    return {
        "id": "admin-1",
        "email": "admin@electriborne.test",
        "firstName": "Alice",
        "lastName": "Martin",
        "role": "admin",
    }


@pytest.fixture
def sample_technician_data() -> Dict[str, Any]:
    return {
        "id": "tech-1",
        "email": "tech@electriborne.test",
        "firstName": "Thomas",
        "lastName": "Durand",
        "role": "technician",
        "departement": "75",
    }


@pytest.fixture
def sample_client_data() -> Dict[str, Any]:
    return {
        "_id": "client-1",
        "email": "client@restaurant.test",
        "firstName": "Claire",
        "lastName": "Petit",
        "role": "client",
        "phone": "0600000000",
    }


@pytest.fixture
def sample_quote_data() -> Dict[str, Any]:
    return {
        "_id": "quote-1",
        "reference": "DEV-2024-001",
        "title": "Installation borne 22 kW",
        "status": "sent",
        "items": [{"description": "Borne murale", "quantity": 1, "unitPrice": 1000, "total": 1000}],
        "subtotal": 1000,
        "taxRate": 20,
        "taxAmount": 200,
        "totalAmount": 1200,
    }


@pytest.fixture
def admin_session(client, sample_admin_data) -> AuthSession:
    return login_as(client, sample_admin_data)


@pytest.fixture
def technician_session(client, sample_technician_data) -> AuthSession:
    return login_as(client, sample_technician_data)


@pytest.fixture
def client_session(client, sample_client_data) -> AuthSession:
    return login_as(client, sample_client_data)
