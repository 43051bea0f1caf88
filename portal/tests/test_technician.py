"""
Technician page tests.

Tests cover the dashboard, mission transitions, the schedule, quote
writing and technical reports.
"""
import pytest
from fastapi import status

from .conftest import flash_messages
from .test_base import BackendDataFactory, BasePageTest


class TestTechnicianDashboard(BasePageTest):
    """Test cases for the technician dashboard."""

    def test_dashboard_offers_transitions(self, client, fake_backend, technician_session):
        fake_backend.on("GET", "/dashboard/technician", BackendDataFactory.envelope({
            "todayMissionsCount": 2,
            "completedMissionsCount": 11,
            "todayMissions": [
                BackendDataFactory.mission(),
                BackendDataFactory.mission(_id="mission-2", title="Maintenance", status="in-progress"),
            ],
        }))

        response = client.get("/tech/dashboard")

        self.assert_page(
            response, status.HTTP_200_OK,
            ">11<", "/tech/missions/mission-1/accept",
            "/tech/missions/mission-2/pause", "/tech/missions/mission-2/complete",
            'name="next" value="/tech/dashboard"',
        )
        assert "/tech/missions/mission-1/start" not in response.text

    def test_dashboard_failure_renders_empty(self, client, fake_backend, technician_session):
        fake_backend.fail("GET", "/dashboard/technician", 503)

        response = client.get("/tech/dashboard")

        self.assert_page(response, status.HTTP_200_OK, "Rien en attente.")


class TestMissionTransitions(BasePageTest):
    """Test cases for accept/start/pause/complete."""

    @pytest.mark.parametrize("transition,new_status,message", [
        ("accept", "accepted", "Mission acceptée"),
        ("start", "in-progress", "Mission démarrée"),
        ("pause", "pending", "Mission mise en pause"),
        ("complete", "completed", "Mission terminée avec succès"),
    ])
    def test_transition(self, client, fake_backend, technician_session, transition, new_status, message):
        fake_backend.on("PUT", "/missions/mission-1", BackendDataFactory.envelope(BackendDataFactory.mission(status=new_status)))

        response = client.post(f"/tech/missions/mission-1/{transition}")

        self.assert_redirect(response, "/tech/missions/mission-1")
        assert fake_backend.last_json("PUT", "/missions/mission-1") == {"status": new_status}
        assert flash_messages(technician_session) == [message]

    def test_transition_returns_to_calling_page(self, client, fake_backend, technician_session):
        fake_backend.on("PUT", "/missions/mission-1", BackendDataFactory.envelope({}))

        response = client.post("/tech/missions/mission-1/start", data={"next": "/tech/dashboard"})

        self.assert_redirect(response, "/tech/dashboard")

    def test_external_next_ignored(self, client, fake_backend, technician_session):
        fake_backend.on("PUT", "/missions/mission-1", BackendDataFactory.envelope({}))

        response = client.post("/tech/missions/mission-1/start", data={"next": "//evil.example/phish"})

        self.assert_redirect(response, "/tech/missions/mission-1")

    def test_unknown_transition_not_sent(self, client, fake_backend, technician_session):
        response = client.post("/tech/missions/mission-1/teleport")

        self.assert_redirect(response, "/tech/missions/mission-1")
        assert fake_backend.calls == []
        assert flash_messages(technician_session) == ["Action inconnue"]

    def test_transition_refused_by_backend(self, client, fake_backend, technician_session):
        fake_backend.fail("PUT", "/missions/mission-1", 400, "Mission déjà terminée")

        response = client.post("/tech/missions/mission-1/complete")

        self.assert_redirect(response, "/tech/missions/mission-1")
        assert flash_messages(technician_session) == [
            "Erreur lors de la finalisation de la mission : Mission déjà terminée",
        ]


class TestSchedule(BasePageTest):
    """Test cases for the technician schedule."""

    def test_missions_grouped_by_day(self, client, fake_backend, technician_session):
        fake_backend.on("GET", "/missions", BackendDataFactory.page("missions", [
            BackendDataFactory.mission(_id="m-late", title="Après-midi", scheduledDate="2024-05-02T14:00:00Z"),
            BackendDataFactory.mission(_id="m-next", title="Lendemain", scheduledDate="2024-05-03T08:00:00Z"),
            BackendDataFactory.mission(_id="m-early", title="Matin", scheduledDate="2024-05-02T08:15:00Z"),
            BackendDataFactory.mission(_id="m-none", title="Sans date", scheduledDate=None),
        ]))

        response = client.get("/tech/schedule")

        self.assert_page(response, status.HTTP_200_OK, "02/05/2024", "03/05/2024", "Non planifiées", "08:15")
        text = response.text
        assert text.index("Matin") < text.index("Après-midi") < text.index("Lendemain") < text.index("Sans date")


class TestTechnicianQuotes(BasePageTest):
    """Test cases for technician quotes."""

    valid_form = {
        "title": "Pose borne 22 kW",
        "clientId": "client-1",
        "items[].description": ["Borne murale", "Main d'oeuvre"],
        "items[].quantity": ["1", "3"],
        "items[].unitPrice": ["900", "100"],
        "items[].itemType": ["equipment", "service"],
        "taxRate": "20",
    }

    def choice_routes(self, fake_backend):
        fake_backend.on("GET", "/users/clients", BackendDataFactory.envelope({"clients": [
            {"_id": "client-1", "firstName": "Claire", "lastName": "Petit"},
        ]}))
        fake_backend.on("GET", "/requests", BackendDataFactory.page("requests", []))

    def test_quote_list_actions_for_drafts(self, client, fake_backend, technician_session):
        fake_backend.on("GET", "/quotes/my", BackendDataFactory.envelope({"quotes": [
            {"_id": "q-draft", "title": "Brouillon", "status": "draft", "totalAmount": 1200},
            {"_id": "q-sent", "title": "Envoyé", "status": "sent", "totalAmount": 600},
        ]}))

        response = client.get("/tech/quotes")

        self.assert_page(response, status.HTTP_200_OK, "/tech/quotes/q-draft/send", "1 200,00 €")
        assert "/tech/quotes/q-sent/send" not in response.text

    def test_new_quote_clients_from_own_department(self, client, fake_backend, technician_session):
        self.choice_routes(fake_backend)

        response = client.get("/tech/quotes/new")

        self.assert_page(response, status.HTTP_200_OK, "Claire Petit", "items[].description")
        assert 'name="technicianId"' not in response.text
        assert fake_backend.requests_to("GET", "/users/clients")[0].url.params["departement"] == "75"

    def test_new_quote_prefilled_from_request(self, client, fake_backend, technician_session):
        self.choice_routes(fake_backend)
        fake_backend.on("GET", "/requests/req-1", BackendDataFactory.envelope({"request": {
            "_id": "req-1", "title": "Borne en panne", "description": "Ne charge plus",
            "clientId": {"_id": "client-1", "firstName": "Claire"},
        }}))

        response = client.get("/tech/quotes/new?requestId=req-1")

        self.assert_page(response, status.HTTP_200_OK, 'value="Borne en panne"', "Ne charge plus")

    def test_create_quote(self, client, fake_backend, technician_session):
        fake_backend.on("POST", "/quotes", BackendDataFactory.envelope({"quote": {"_id": "q-new"}}), 201)

        response = client.post("/tech/quotes/new", data=self.valid_form)

        self.assert_redirect(response, "/tech/quotes")
        payload = fake_backend.last_json("POST", "/quotes")
        assert payload["technicianId"] == "tech-1"
        assert payload["status"] == "draft"
        assert payload["subtotal"] == 1200
        assert payload["taxAmount"] == 240
        assert payload["totalAmount"] == 1440
        assert [item["total"] for item in payload["items"]] == [900, 300]
        assert flash_messages(technician_session) == ["Devis créé avec succès !"]

    def test_quote_without_items(self, client, fake_backend, technician_session):
        self.choice_routes(fake_backend)
        form = {key: value for key, value in self.valid_form.items() if not key.startswith("items")}

        response = client.post("/tech/quotes/new", data=form)

        self.assert_validation_error(response, "Veuillez ajouter au moins un élément au devis")
        assert fake_backend.requests_to("POST", "/quotes") == []

    def test_send_and_delete(self, client, fake_backend, technician_session):
        fake_backend.on("POST", "/quotes/q-1/send", BackendDataFactory.envelope({"quote": {}}))
        fake_backend.on("DELETE", "/quotes/q-1", {"success": True})

        self.assert_redirect(client.post("/tech/quotes/q-1/send"), "/tech/quotes")
        self.assert_redirect(client.post("/tech/quotes/q-1/delete"), "/tech/quotes")

        assert flash_messages(technician_session) == ["Devis envoyé au client", "Devis supprimé"]


class TestTechnicianReports(BasePageTest):
    """Test cases for technical reports."""

    def test_report_list(self, client, fake_backend, technician_session):
        fake_backend.on("GET", "/reports/my", BackendDataFactory.page("reports", [
            {"_id": "rep-1", "title": "Rapport pose borne", "reportNumber": "RAP-001"},
        ]))

        response = client.get("/tech/reports")

        self.assert_page(response, status.HTTP_200_OK, "Rapport pose borne", "/tech/reports/rep-1")

    def test_create_report(self, client, fake_backend, technician_session):
        fake_backend.on("POST", "/reports", BackendDataFactory.envelope({"report": {"_id": "rep-7"}}), 201)

        response = client.post("/tech/reports/new", data={
            "missionId": "mission-1",
            "title": "Pose terminée",
            "content": "Borne posée et testée",
            "startTime": "09:00",
            "endTime": "11:30",
        })

        self.assert_redirect(response, "/tech/reports/rep-7")
        payload = fake_backend.last_json("POST", "/reports")
        assert payload["missionId"] == "mission-1"
        assert payload["startTime"] == "09:00"

    def test_report_with_invalid_time(self, client, fake_backend, technician_session):
        fake_backend.on("GET", "/missions", BackendDataFactory.page("missions", [BackendDataFactory.mission()]))

        response = client.post("/tech/reports/new", data={
            "missionId": "mission-1",
            "title": "Pose terminée",
            "content": "Borne posée",
            "startTime": "25:00",
        })

        self.assert_validation_error(response, "Format invalide", "MIS-001 - Pose borne")

    def test_generate_pdf_redirects_to_document(self, client, fake_backend, technician_session, monkeypatch):
        monkeypatch.setattr("portal.services.site.ASSET_BASE_URL", "https://files.electriborne.test")
        fake_backend.on("POST", "/reports/rep-1/generate-pdf",
                        BackendDataFactory.envelope({"pdfUrl": "/uploads/reports/rep-1.pdf"}))

        response = client.post("/tech/reports/rep-1/generate-pdf")

        self.assert_redirect(response, "https://files.electriborne.test/uploads/reports/rep-1.pdf")
