"""
Backend REST client tests.

Tests cover envelope unwrapping, list pages, error mapping and the
session-wide reaction to failed calls.
"""
import json

import httpx
import pytest

from portal.auth.dependencies import session_error_hook
from portal.client.errors import (
    ApiError, NetworkError, ServerError, SessionExpiredError,
    NETWORK_ERROR_MESSAGE, SERVER_ERROR_MESSAGE, SESSION_EXPIRED_MESSAGE,
)
from portal.client.http import BackendClient, Page, to_page, unwrap
from portal.client.services import Backend

from .conftest import BACKEND_BASE_URL, FakeNotificationHub
from .test_base import BackendDataFactory


def make_client(fake_backend, token="backend-token", on_error=None):
    http = httpx.AsyncClient(base_url=BACKEND_BASE_URL, transport=httpx.MockTransport(fake_backend.handle))
    return BackendClient(http, token=token, on_error=on_error)


class FakeSession:
    """Just enough of AuthSession for the error hook."""

    def __init__(self, authenticated=True):
        self.id = "session-1"
        self.is_authenticated = authenticated
        self.user_id = "user-1" if authenticated else None
        self.flashes = []
        self.cleared = False

    def clear(self):
        self.cleared = True
        self.is_authenticated = False

    def flash(self, level, message):
        self.flashes.append((level, message))


class TestEnvelopes:
    """Test cases for unwrap and to_page."""

    def test_unwrap_data(self):
        assert unwrap({"success": True, "data": {"user": {"id": 1}}}) == {"user": {"id": 1}}

    def test_unwrap_key(self):
        assert unwrap({"success": True, "data": {"user": {"id": 1}}}, "user") == {"id": 1}

    def test_unwrap_missing_key_returns_data(self):
        assert unwrap({"data": {"quote": {}}}, "user") == {"quote": {}}

    def test_unwrap_without_envelope(self):
        assert unwrap([1, 2]) == [1, 2]
        assert unwrap({"id": 1}) == {"id": 1}

    def test_page_with_pagination(self):
        page = to_page(BackendDataFactory.page("users", [{"_id": "a"}, {"_id": "b"}], total=57), "users")

        assert isinstance(page, Page)
        assert [item["_id"] for item in page] == ["a", "b"]
        assert len(page) == 2
        assert page.total == 57

    def test_page_of_bare_list(self):
        page = to_page({"success": True, "data": [{"_id": "a"}]})

        assert page.items == [{"_id": "a"}]
        assert page.total == 1

    def test_page_with_absent_key(self):
        assert to_page({"success": True, "data": {"pagination": {"total": 0}}}, "quotes").items == []


class TestBackendClient:
    """Test cases for requests and error mapping."""

    @pytest.mark.asyncio
    async def test_bearer_token_sent(self, fake_backend):
        fake_backend.on("GET", "/auth/me", BackendDataFactory.envelope({"user": {"_id": "u1"}}))

        user = await Backend(make_client(fake_backend)).auth.me()

        assert user == {"_id": "u1"}
        assert fake_backend.calls[0].headers["Authorization"] == "Bearer backend-token"

    @pytest.mark.asyncio
    async def test_anonymous_call_has_no_authorization(self, fake_backend):
        fake_backend.on("GET", "/site-customization", BackendDataFactory.envelope({"customization": {}}))

        await Backend(make_client(fake_backend, token=None)).site_customization.get()

        assert "Authorization" not in fake_backend.calls[0].headers

    @pytest.mark.asyncio
    async def test_blank_params_dropped(self, fake_backend):
        fake_backend.on("GET", "/quotes", BackendDataFactory.page("quotes", []))

        await Backend(make_client(fake_backend)).quotes.list(page=1, search="", status=None)

        assert dict(fake_backend.calls[0].url.params) == {"page": "1"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code,error_type", [
        (400, ApiError),
        (401, SessionExpiredError),
        (404, ApiError),
        (500, ServerError),
        (502, ServerError),
    ])
    async def test_error_mapping(self, fake_backend, status_code, error_type):
        fake_backend.fail("GET", "/users", status_code, "Refusé")
        seen = []

        with pytest.raises(error_type) as exc_info:
            await make_client(fake_backend, on_error=seen.append).get("/users")

        assert exc_info.value.status_code == status_code
        assert exc_info.value.message == "Refusé"
        assert seen == [exc_info.value]

    @pytest.mark.asyncio
    async def test_error_without_json_body(self, fake_backend):
        fake_backend.on("GET", "/users", lambda request: httpx.Response(503, text="Service Unavailable"))

        with pytest.raises(ServerError) as exc_info:
            await make_client(fake_backend).get("/users")

        assert exc_info.value.message == "HTTP 503"
        assert exc_info.value.payload == "Service Unavailable"

    @pytest.mark.asyncio
    async def test_network_error(self):
        def unreachable(request):
            raise httpx.ConnectError("Connection refused", request=request)

        http = httpx.AsyncClient(base_url=BACKEND_BASE_URL, transport=httpx.MockTransport(unreachable))
        seen = []

        with pytest.raises(NetworkError):
            await BackendClient(http, on_error=seen.append).get("/users")

        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_download_returns_raw_response(self, fake_backend):
        fake_backend.on("GET", "/invoices/inv-1/pdf", b"%PDF-1.4")

        response = await Backend(make_client(fake_backend)).invoices.pdf("inv-1")

        assert response.content == b"%PDF-1.4"

    @pytest.mark.asyncio
    async def test_message_posted_as_form(self, fake_backend):
        fake_backend.on("POST", "/messages/conversations/c-1", BackendDataFactory.envelope({"message": {"_id": "m"}}))

        await Backend(make_client(fake_backend)).messages.send_message("c-1", "Bonjour")

        request = fake_backend.calls[0]
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        assert request.content == b"content=Bonjour"

    @pytest.mark.asyncio
    async def test_quote_response_payload(self, fake_backend):
        fake_backend.on("POST", "/quotes/q-1/respond", BackendDataFactory.envelope({"quote": {"status": "rejected"}}))

        quote = await Backend(make_client(fake_backend)).quotes.respond("q-1", False, "Trop cher")

        assert quote == {"status": "rejected"}
        assert json.loads(fake_backend.calls[0].content) == {"accepted": False, "comments": "Trop cher"}


class TestSessionErrorHook:
    """Test cases for the global reaction to failed calls."""

    def test_401_logs_out(self):
        """Test a 401 clears the session and lets go of its notification channel."""
        session = FakeSession()
        hub = FakeNotificationHub()
        error = SessionExpiredError("Token expiré", 401)

        session_error_hook(session, hub)(error)

        assert session.cleared
        assert session.flashes == [("error", SESSION_EXPIRED_MESSAGE)]
        assert error.session_cleared
        assert error.user_id == "user-1"
        assert hub.disconnected == ["user-1"]

    def test_401_on_anonymous_session(self):
        session = FakeSession(authenticated=False)
        hub = FakeNotificationHub()
        error = SessionExpiredError("Identifiants invalides", 401)

        session_error_hook(session, hub)(error)

        assert not session.cleared
        assert session.flashes == []
        assert hub.disconnected == []
        assert not error.session_cleared

    def test_500_queues_generic_message(self):
        session = FakeSession()

        session_error_hook(session)(ServerError("boom", 500))

        assert session.flashes == [("error", SERVER_ERROR_MESSAGE)]
        assert not session.cleared

    def test_other_5xx_left_to_pages(self):
        session = FakeSession()

        session_error_hook(session)(ServerError("bad gateway", 502))

        assert session.flashes == []

    def test_network_error_queues_message(self):
        session = FakeSession()

        session_error_hook(session)(NetworkError("timeout"))

        assert session.flashes == [("error", NETWORK_ERROR_MESSAGE)]

    def test_client_errors_left_to_pages(self):
        session = FakeSession()

        session_error_hook(session)(ApiError("Invalide", 400))

        assert session.flashes == []
        assert not session.cleared
