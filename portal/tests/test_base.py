"""
Base test utilities and common patterns for portal testing.

Provides base test classes, assertion helpers for server-rendered pages and
factories for backend records.
"""
from typing import Any, Dict, List, Optional

from fastapi import status


class BasePageTest:
    """Base class for page tests."""

    def assert_page(self, response, expected_status: int = status.HTTP_200_OK, *fragments: str):
        """Assert that a page rendered and contains every fragment."""
        assert response.status_code == expected_status, response.text
        assert response.headers["content-type"].startswith("text/html")
        for fragment in fragments:
            assert fragment in response.text, f"{fragment!r} not in page"

    def assert_redirect(self, response, location: str):
        """Assert a post/redirect/get answer to location."""
        assert response.status_code == status.HTTP_303_SEE_OTHER, response.text
        assert response.headers["location"] == location

    def assert_validation_error(self, response, *fragments: str):
        """Assert that a form came back with errors."""
        self.assert_page(response, status.HTTP_422_UNPROCESSABLE_ENTITY, *fragments)

    def assert_login_required(self, response):
        self.assert_redirect(response, "/login")


class BackendDataFactory:
    """Factory for backend envelopes and records."""

    @staticmethod
    def envelope(data: Any = None, **extra) -> Dict[str, Any]:
        """Backend success envelope {"success": true, "data": ...}."""
        return {"success": True, "data": data if data is not None else {}, **extra}

    @staticmethod
    def page(key: str, items: List[Dict[str, Any]], total: Optional[int] = None) -> Dict[str, Any]:
        """List envelope with pagination."""
        return {
            "success": True,
            "data": {key: items, "pagination": {"total": len(items) if total is None else total}},
        }

    @staticmethod
    def mission(**overrides) -> Dict[str, Any]:
        default_data = {
            "_id": "mission-1",
            "missionNumber": "MIS-001",
            "title": "Pose borne",
            "status": "pending",
            "priority": "normal",
            "scheduledDate": "2024-05-02T09:30:00Z",
            "client": {"_id": "client-1", "firstName": "Claire", "lastName": "Petit"},
        }
        return {**default_data, **overrides}

    @staticmethod
    def user(**overrides) -> Dict[str, Any]:
        default_data = {
            "_id": "user-1",
            "firstName": "Jean",
            "lastName": "Dupont",
            "email": "jean@electriborne.test",
            "role": "client",
            "isActive": True,
        }
        return {**default_data, **overrides}
