"""
Resource services for the Electriborne REST backend.

Each service maps one backend resource (conventional GET/POST/PUT/DELETE
/resource/:id paths) and unwraps the backend's response envelope.
"""
from typing import Any, Dict, List, Optional

import httpx

from .http import BackendClient, Page, to_page, unwrap


class ResourceService:
    """CRUD operations shared by most backend resources."""

    path: str = ""
    item_key: Optional[str] = None
    list_key: Optional[str] = None

    def __init__(self, client: BackendClient):
        self.client = client

    def _url(self, *parts: Any) -> str:
        return "/".join([self.path, *(str(p) for p in parts)])

    async def list(self, **params) -> Page:
        body = await self.client.get(self.path, params=params or None)
        return to_page(body, self.list_key)

    async def get(self, item_id: str) -> Dict[str, Any]:
        return unwrap(await self.client.get(self._url(item_id)), self.item_key)

    async def create(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap(await self.client.post(self.path, payload), self.item_key)

    async def update(self, item_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap(await self.client.put(self._url(item_id), payload), self.item_key)

    async def delete(self, item_id: str) -> bool:
        body = await self.client.delete(self._url(item_id))
        return bool(body.get("success", True)) if isinstance(body, dict) else True

    async def stats(self) -> Dict[str, Any]:
        return unwrap(await self.client.get(self._url("stats", "overview")))


class AuthService:
    """Authentication and current-user profile."""

    def __init__(self, client: BackendClient):
        self.client = client

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """Return {"accessToken": ..., "user": {...}}."""
        return unwrap(await self.client.post("/auth/login", {"email": email, "password": password}))

    async def register(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap(await self.client.post("/auth/register", payload))

    async def logout(self) -> Dict[str, Any]:
        return await self.client.post("/auth/logout")

    async def me(self) -> Dict[str, Any]:
        return unwrap(await self.client.get("/auth/me"), "user")

    async def update_profile(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap(await self.client.put("/auth/profile", payload), "user")

    async def change_password(self, current_password: str, new_password: str) -> Dict[str, Any]:
        return await self.client.put(
            "/auth/change-password",
            {"currentPassword": current_password, "newPassword": new_password},
        )


class UsersService(ResourceService):
    path = "/users"
    item_key = "user"
    list_key = "users"

    async def technicians(self) -> List[Dict[str, Any]]:
        return unwrap(await self.client.get("/users/technicians"), "technicians") or []

    async def clients(self, department: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"departement": department} if department else None
        return unwrap(await self.client.get("/users/clients", params=params), "clients") or []

    async def contacts(self) -> List[Dict[str, Any]]:
        return unwrap(await self.client.get("/users/contacts"), "users") or []

    async def toggle_status(self, user_id: str) -> Dict[str, Any]:
        return unwrap(await self.client.patch(self._url(user_id, "toggle-status")), "user")

    async def update_notification_settings(self, settings: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap(await self.client.put("/users/me/notification-settings", settings))


class CompaniesService(ResourceService):
    path = "/companies"
    item_key = "company"
    list_key = "companies"

    async def toggle_status(self, company_id: str) -> Dict[str, Any]:
        return unwrap(await self.client.patch(self._url(company_id, "toggle-status")), "company")

    async def search(self, query: str) -> List[Dict[str, Any]]:
        return unwrap(await self.client.get(self._url("search", query)), "companies") or []

    async def update_stats(self, company_id: str) -> Dict[str, Any]:
        return unwrap(await self.client.patch(self._url(company_id, "update-stats")), "company")


class RequestsService(ResourceService):
    path = "/requests"
    item_key = "request"
    list_key = "requests"

    async def urgent(self) -> List[Dict[str, Any]]:
        return unwrap(await self.client.get("/requests/urgent"), "requests") or []

    async def my(self) -> List[Dict[str, Any]]:
        return unwrap(await self.client.get("/requests/my"), "requests") or []

    async def assign(self, request_id: str, technician_id: str) -> Dict[str, Any]:
        body = await self.client.patch(self._url(request_id, "assign"), {"technicianId": technician_id})
        return unwrap(body, "request")

    async def complete(self, request_id: str, actual_duration: Optional[float] = None) -> Dict[str, Any]:
        body = await self.client.patch(self._url(request_id, "complete"), {"actualDuration": actual_duration})
        return unwrap(body, "request")


class QuotesService(ResourceService):
    path = "/quotes"
    item_key = "quote"
    list_key = "quotes"

    async def my(self) -> List[Dict[str, Any]]:
        return unwrap(await self.client.get("/quotes/my"), "quotes") or []

    async def send(self, quote_id: str) -> Dict[str, Any]:
        return unwrap(await self.client.post(self._url(quote_id, "send")), "quote")

    async def respond(self, quote_id: str, accepted: bool, comments: Optional[str] = None) -> Dict[str, Any]:
        body = await self.client.post(self._url(quote_id, "respond"), {"accepted": accepted, "comments": comments})
        return unwrap(body, "quote")

    async def request_quote(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Public quote request sent from the marketing site."""
        return unwrap(await self.client.post("/quotes/request", payload))

    async def pdf(self, quote_id: str) -> httpx.Response:
        return await self.client.download(self._url(quote_id, "pdf"))


class MissionsService(ResourceService):
    path = "/missions"
    list_key = "missions"


class PaymentsService(ResourceService):
    path = "/payments"
    item_key = "payment"
    list_key = "payments"

    async def my(self) -> List[Dict[str, Any]]:
        return unwrap(await self.client.get("/payments/my"), "payments") or []

    async def create_payment_intent(self, quote_id: str, payment_type: str, amount: float) -> Dict[str, Any]:
        """Return {"clientSecret": ..., ...} for the Stripe card form."""
        body = await self.client.post(
            "/payments/create-payment-intent",
            {"quoteId": quote_id, "paymentType": payment_type, "amount": amount},
        )
        return unwrap(body)

    async def confirm(self, payment_intent_id: str) -> Dict[str, Any]:
        return unwrap(await self.client.post("/payments/confirm", {"paymentIntentId": payment_intent_id}))

    async def invoice(self, payment_id: str) -> httpx.Response:
        return await self.client.download(self._url(payment_id, "invoice"))

    async def receipt(self, payment_id: str) -> httpx.Response:
        return await self.client.download(self._url(payment_id, "receipt"))


class InvoicesService(ResourceService):
    path = "/invoices"
    item_key = "invoice"
    list_key = "invoices"

    async def pdf(self, invoice_id: str) -> httpx.Response:
        return await self.client.download(self._url(invoice_id, "pdf"))


class ReportsService(ResourceService):
    path = "/reports"
    item_key = "report"
    list_key = "reports"

    async def my(self) -> Page:
        return to_page(await self.client.get("/reports/my"), "reports")

    async def generate_pdf(self, report_id: str) -> Optional[str]:
        return unwrap(await self.client.post(self._url(report_id, "generate-pdf")), "pdfUrl")

    async def send_to_client(self, report_id: str) -> bool:
        body = await self.client.post(self._url(report_id, "send-to-client"))
        return bool(body.get("success", True))

    async def generate_certificate(self, report_id: str) -> Optional[str]:
        body = await self.client.post(self._url(report_id, "generate-certificate"))
        return unwrap(body, "certificateNumber")


class ServiceTypesService(ResourceService):
    path = "/service-types"


class ProductsService(ResourceService):
    path = "/products"
    item_key = "product"
    list_key = "products"


class EquipmentsService(ResourceService):
    """Equipment kits: a priced bundle of products."""

    path = "/equipments"
    item_key = "equipment"
    list_key = "equipments"


class MessagesService:
    """Conversations between clients, technicians and administrators."""

    def __init__(self, client: BackendClient):
        self.client = client

    async def conversations(self) -> List[Dict[str, Any]]:
        return unwrap(await self.client.get("/messages/conversations"), "conversations") or []

    async def conversation(self, conversation_id: str) -> Dict[str, Any]:
        return unwrap(await self.client.get(f"/messages/conversations/{conversation_id}"), "conversation")

    async def create_conversation(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap(await self.client.post("/messages/conversations", payload))

    async def send_message(self, conversation_id: str, content: str) -> Dict[str, Any]:
        body = await self.client.request(
            "POST", f"/messages/conversations/{conversation_id}", data={"content": content},
        )
        return unwrap(body, "message")

    async def mark_as_read(self, conversation_id: str) -> bool:
        body = await self.client.patch(f"/messages/conversations/{conversation_id}/read")
        return bool(body.get("success", True))


class NotificationsService:
    def __init__(self, client: BackendClient):
        self.client = client

    async def my(self) -> List[Dict[str, Any]]:
        body = await self.client.get("/notifications/my")
        data = unwrap(body, "notifications")
        return data if isinstance(data, list) else []

    async def mark_as_read(self, notification_id: str) -> Dict[str, Any]:
        return await self.client.patch(f"/notifications/{notification_id}/read")

    async def mark_all_as_read(self) -> Dict[str, Any]:
        return await self.client.post("/notifications/mark-all-read")

    async def delete(self, notification_id: str) -> Dict[str, Any]:
        return await self.client.delete(f"/notifications/{notification_id}")


class SiteCustomizationService:
    """Marketing-site settings and blog content."""

    def __init__(self, client: BackendClient):
        self.client = client

    async def get(self) -> Dict[str, Any]:
        return unwrap(await self.client.get("/site-customization"), "customization")

    async def update(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return unwrap(await self.client.put("/site-customization", payload), "customization")

    async def blog_posts(self) -> List[Dict[str, Any]]:
        return unwrap(await self.client.get("/site-customization/blog"), "blogPosts") or []

    async def blog_post(self, post_id: str) -> Dict[str, Any]:
        return unwrap(await self.client.get(f"/site-customization/blog/{post_id}"), "blogPost")


class DashboardService:
    def __init__(self, client: BackendClient):
        self.client = client

    async def technician(self) -> Dict[str, Any]:
        return unwrap(await self.client.get("/dashboard/technician"))


class Backend:
    """All resource services bound to one BackendClient."""

    def __init__(self, client: BackendClient):
        self.client = client
        self.auth = AuthService(client)
        self.users = UsersService(client)
        self.companies = CompaniesService(client)
        self.requests = RequestsService(client)
        self.quotes = QuotesService(client)
        self.missions = MissionsService(client)
        self.payments = PaymentsService(client)
        self.invoices = InvoicesService(client)
        self.reports = ReportsService(client)
        self.service_types = ServiceTypesService(client)
        self.products = ProductsService(client)
        self.equipments = EquipmentsService(client)
        self.messages = MessagesService(client)
        self.notifications = NotificationsService(client)
        self.site_customization = SiteCustomizationService(client)
        self.dashboard = DashboardService(client)
