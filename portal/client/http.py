"""
Generic HTTP client for the Electriborne REST backend.

A single httpx.AsyncClient is shared by the application. Each browser
request wraps it in a BackendClient bound to that browser's bearer token and
error hook, the server-side equivalent of an axios instance with request and
response interceptors.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..config import API_BASE_URL, API_TIMEOUT_SECONDS
from .errors import ApiError, NetworkError, error_from_response

logger = logging.getLogger(__name__)

ErrorHook = Callable[[ApiError], None]


@dataclass
class Page:
    """One page of a backend list endpoint."""
    items: List[Dict[str, Any]] = field(default_factory=list)
    total: int = 0

    def __iter__(self):
        return iter(self.items)

    def __len__(self):
        return len(self.items)


# PUBLIC_INTERFACE
def create_http_client(
    base_url: str = API_BASE_URL,
    timeout: float = API_TIMEOUT_SECONDS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Create the pooled HTTP client used to reach the backend.

    Args:
        base_url: Backend API root, every request path is relative to it
        timeout: Timeout applied to every request, in seconds
        transport: Optional transport override

    Returns:
        httpx.AsyncClient: Configured client
    """
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout,
        transport=transport,
        headers={"Accept": "application/json"},
    )


def unwrap(body: Any, key: Optional[str] = None) -> Any:
    """
    Extract the payload of a backend envelope.

    The backend answers {"success": ..., "data": {...}}. With a key, the
    value under data[key] is returned; without one, data itself.
    """
    if not isinstance(body, dict):
        return body
    data = body.get("data", body)
    if key and isinstance(data, dict) and key in data:
        return data[key]
    return data


def to_page(body: Any, key: Optional[str] = None) -> Page:
    """Normalise a list envelope into a Page."""
    items = unwrap(body, key)
    if isinstance(items, dict):
        # key absent from the envelope, nothing listable
        items = []
    items = list(items or [])

    total = len(items)
    data = body.get("data") if isinstance(body, dict) else None
    if isinstance(data, dict):
        pagination = data.get("pagination") or {}
        total = pagination.get("total", data.get("total", total))
    return Page(items=items, total=total)


class BackendClient:
    """
    Backend client bound to one browser session.

    Adds the bearer token to every request and reports each failure to the
    error hook before raising it, so session-wide reactions (clearing
    credentials, queueing a message) happen whatever page made the call.
    """

    def __init__(self, http: httpx.AsyncClient, token: Optional[str] = None,
                 on_error: Optional[ErrorHook] = None):
        self.http = http
        self.token = token
        self.on_error = on_error

    def _headers(self) -> Dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    def _report(self, error: ApiError) -> None:
        logger.warning(f"Backend call failed: {error!r}")
        if self.on_error is not None:
            self.on_error(error)

    async def send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        data: Optional[Dict[str, Any]] = None,
        files: Any = None,
    ) -> httpx.Response:
        """
        Send a request and return the raw successful response.

        Raises:
            ApiError: On any non-2xx response or transport failure
        """
        if params:
            params = {k: v for k, v in params.items() if v is not None and v != ""}
        try:
            response = await self.http.request(
                method, path, params=params, json=json, data=data, files=files,
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            error = NetworkError(str(exc) or type(exc).__name__)
            self._report(error)
            raise error from exc

        if response.is_error:
            error = error_from_response(response)
            self._report(error)
            raise error
        return response

    async def request(self, method: str, path: str, **kwargs) -> Any:
        """Send a request and return its decoded JSON body ({} when empty)."""
        response = await self.send(method, path, **kwargs)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"data": response.text}

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None, **kwargs) -> Any:
        return await self.request("POST", path, json=json, **kwargs)

    async def put(self, path: str, json: Any = None, **kwargs) -> Any:
        return await self.request("PUT", path, json=json, **kwargs)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    async def download(self, path: str) -> httpx.Response:
        """Fetch a binary document (PDF invoice, receipt, report)."""
        return await self.send("GET", path)
