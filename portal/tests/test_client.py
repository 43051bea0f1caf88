"""
Client page tests.

Tests cover the dashboard, service requests, answering quotes and the
card payment pages.
"""
import json

from fastapi import status

from .conftest import flash_messages
from .test_base import BackendDataFactory, BasePageTest


class TestClientDashboard(BasePageTest):
    """Test cases for the client dashboard."""

    def test_dashboard_summarises_account(self, client, fake_backend, client_session, sample_quote_data):
        fake_backend.on("GET", "/requests/my", BackendDataFactory.envelope({"requests": [
            {"_id": "r1", "title": "Borne", "status": "pending"},
            {"_id": "r2", "title": "Tableau", "status": "completed"},
        ]}))
        fake_backend.on("GET", "/quotes/my", BackendDataFactory.envelope({"quotes": [
            sample_quote_data,
            {**sample_quote_data, "_id": "quote-2", "status": "accepted"},
        ]}))
        fake_backend.on("GET", "/payments/my", BackendDataFactory.envelope({"payments": []}))

        response = client.get("/client/dashboard")

        self.assert_page(response, status.HTTP_200_OK, "1 en cours", "1 200,00 €")

    def test_one_failed_list_keeps_the_page(self, client, fake_backend, client_session):
        fake_backend.on("GET", "/requests/my", BackendDataFactory.envelope({"requests": []}))
        fake_backend.fail("GET", "/quotes/my", 400, "Requête invalide")
        fake_backend.on("GET", "/payments/my", BackendDataFactory.envelope({"payments": []}))

        response = client.get("/client/dashboard")

        self.assert_page(response, status.HTTP_200_OK, "Requête invalide")


class TestServiceRequest(BasePageTest):
    """Test cases for the intervention request form."""

    def test_form_prefills_phone(self, client, fake_backend, client_session):
        fake_backend.on("GET", "/service-types", BackendDataFactory.envelope([
            {"_id": "st-1", "name": "Installation borne"},
        ]))

        response = client.get("/client/request")

        self.assert_page(response, status.HTTP_200_OK, 'value="0600000000"', "Installation borne", "Odeur de brûlé")

    def test_send_request(self, client, fake_backend, client_session):
        fake_backend.on("POST", "/requests", BackendDataFactory.envelope({"request": {"_id": "req-1"}}), 201)

        response = client.post("/client/request", data={
            "serviceTypeId": "st-1",
            "title": "Borne en panne",
            "description": "La borne ne charge plus",
            "priority": "high",
            "address": "12 rue des Lilas, Paris",
            "symptoms[]": ["Borne de recharge en panne", "Bruit anormal"],
        })

        self.assert_redirect(response, "/client/dashboard")
        payload = fake_backend.last_json("POST", "/requests")
        assert payload["address"] == {"full": "12 rue des Lilas, Paris"}
        assert payload["symptoms"] == ["Borne de recharge en panne", "Bruit anormal"]
        assert payload["priority"] == "high"

    def test_missing_fields(self, client, fake_backend, client_session):
        fake_backend.on("GET", "/service-types", BackendDataFactory.envelope([]))

        response = client.post("/client/request", data={"title": "Borne en panne"})

        self.assert_validation_error(response, "Ce champ est requis", 'value="Borne en panne"')
        assert fake_backend.requests_to("POST", "/requests") == []


class TestClientQuotes(BasePageTest):
    """Test cases for answering quotes."""

    def test_quote_page_offers_answers(self, client, fake_backend, client_session, sample_quote_data):
        fake_backend.on("GET", "/quotes/quote-1", BackendDataFactory.envelope({"quote": sample_quote_data}))

        response = client.get("/client/quotes/quote-1")

        self.assert_page(
            response, status.HTTP_200_OK,
            "DEV-2024-001", "Borne murale", "1 200,00 €",
            "/client/quotes/quote-1/accept", "/client/quotes/quote-1/reject",
        )

    def test_answered_quote_has_no_buttons(self, client, fake_backend, client_session, sample_quote_data):
        fake_backend.on("GET", "/quotes/quote-1", BackendDataFactory.envelope({
            "quote": {**sample_quote_data, "status": "accepted"},
        }))

        response = client.get("/client/quotes/quote-1")

        self.assert_page(response, status.HTTP_200_OK, "/client/payment/quote-1")
        assert "/client/quotes/quote-1/accept" not in response.text

    def test_accept_goes_to_payment(self, client, fake_backend, client_session):
        fake_backend.on("POST", "/quotes/quote-1/respond", BackendDataFactory.envelope({"quote": {"status": "accepted"}}))

        response = client.post("/client/quotes/quote-1/accept")

        self.assert_redirect(response, "/client/payment/quote-1")
        assert fake_backend.last_json("POST", "/quotes/quote-1/respond") == {"accepted": True, "comments": None}
        assert flash_messages(client_session) == ["Devis accepté avec succès !"]

    def test_accept_refused(self, client, fake_backend, client_session):
        fake_backend.fail("POST", "/quotes/quote-1/respond", 400, "Devis expiré")

        response = client.post("/client/quotes/quote-1/accept")

        self.assert_redirect(response, "/client/quotes/quote-1")

    def test_reject_with_reason(self, client, fake_backend, client_session):
        fake_backend.on("POST", "/quotes/quote-1/respond", BackendDataFactory.envelope({"quote": {"status": "rejected"}}))

        response = client.post("/client/quotes/quote-1/reject", data={"reason": "Trop cher"})

        self.assert_redirect(response, "/client/quotes/quote-1")
        assert fake_backend.last_json("POST", "/quotes/quote-1/respond") == {"accepted": False, "comments": "Trop cher"}

    def test_reject_requires_reason(self, client, fake_backend, client_session, sample_quote_data):
        fake_backend.on("GET", "/quotes/quote-1", BackendDataFactory.envelope({"quote": sample_quote_data}))

        response = client.post("/client/quotes/quote-1/reject", data={"reason": "  "})

        self.assert_validation_error(response, "Ce champ est requis")
        assert fake_backend.requests_to("POST", "/quotes/quote-1/respond") == []


class TestPaymentPages(BasePageTest):
    """Test cases for paying a quote by card."""

    def intent_route(self, fake_backend, secret="pi_123_secret_456"):
        fake_backend.on("POST", "/payments/create-payment-intent", BackendDataFactory.envelope({"clientSecret": secret}))

    def test_partial_payment_page(self, client, fake_backend, client_session, sample_quote_data):
        fake_backend.on("GET", "/quotes/quote-1", BackendDataFactory.envelope({"quote": sample_quote_data}))
        self.intent_route(fake_backend)

        response = client.get("/client/payment/quote-1")

        self.assert_page(
            response, status.HTTP_200_OK,
            "500,00 €", "1 200,00 €", 'data-client-secret="pi_123_secret_456"',
            "Payer 500,00 €", "https://js.stripe.com/v3/",
        )
        assert json.loads(fake_backend.requests_to("POST", "/payments/create-payment-intent")[0].content) == {
            "quoteId": "quote-1", "paymentType": "partial", "amount": 500.0,
        }

    def test_full_payment_page(self, client, fake_backend, client_session, sample_quote_data):
        fake_backend.on("GET", "/quotes/quote-1", BackendDataFactory.envelope({"quote": sample_quote_data}))
        self.intent_route(fake_backend)

        response = client.get("/client/payment/quote-1?type=full")

        self.assert_page(response, status.HTTP_200_OK, "Payer 1 200,00 €")
        assert fake_backend.last_json("POST", "/payments/create-payment-intent")["amount"] == 1200.0

    def test_unknown_type_falls_back_to_deposit(self, client, fake_backend, client_session, sample_quote_data):
        fake_backend.on("GET", "/quotes/quote-1", BackendDataFactory.envelope({"quote": sample_quote_data}))
        self.intent_route(fake_backend)

        client.get("/client/payment/quote-1?type=everything")

        assert fake_backend.last_json("POST", "/payments/create-payment-intent")["paymentType"] == "partial"

    def test_intent_without_secret(self, client, fake_backend, client_session, sample_quote_data):
        fake_backend.on("GET", "/quotes/quote-1", BackendDataFactory.envelope({"quote": sample_quote_data}))
        self.intent_route(fake_backend, secret=None)

        response = client.get("/client/payment/quote-1")

        self.assert_page(response, status.HTTP_200_OK, "Erreur lors de la création du paiement", "Réessayer")
        assert "js.stripe.com" not in response.text

    def test_unknown_quote(self, client, fake_backend, client_session):
        fake_backend.fail("GET", "/quotes/nope", 404, "Devis introuvable")

        response = client.get("/client/payment/nope")

        self.assert_redirect(response, "/client/quotes")
        assert flash_messages(client_session) == ["Erreur lors du chargement du devis : Devis introuvable"]

    def test_confirm_success(self, client, fake_backend, client_session):
        fake_backend.on("POST", "/payments/confirm", BackendDataFactory.envelope({
            "payment": {"_id": "pay-1", "transactionId": "TX-42"},
        }))

        response = client.post("/client/payment/quote-1/confirm", data={
            "paymentIntentId": "pi_123", "status": "succeeded",
        })

        self.assert_redirect(response, "/client/payment/quote-1/success?reference=TX-42")
        assert fake_backend.last_json("POST", "/payments/confirm") == {"paymentIntentId": "pi_123"}
        assert flash_messages(client_session) == ["Paiement effectué avec succès !"]

    def test_confirm_card_error(self, client, fake_backend, client_session):
        response = client.post("/client/payment/quote-1/confirm", data={
            "paymentIntentId": "pi_123", "status": "requires_payment_method",
            "errorMessage": "Carte refusée",
        })

        self.assert_redirect(response, "/client/payment/quote-1")
        assert fake_backend.calls == []
        assert flash_messages(client_session) == ["Erreur de paiement : Carte refusée"]

    def test_confirm_rejected_by_backend(self, client, fake_backend, client_session):
        fake_backend.fail("POST", "/payments/confirm", 400, "Paiement introuvable")

        response = client.post("/client/payment/quote-1/confirm", data={
            "paymentIntentId": "pi_123", "status": "succeeded",
        })

        self.assert_redirect(response, "/client/payment/quote-1")
        assert flash_messages(client_session) == ["Erreur lors de la confirmation du paiement : Paiement introuvable"]

    def test_success_page(self, client, client_session):
        response = client.get("/client/payment/quote-1/success?reference=TX-42")

        self.assert_page(response, status.HTTP_200_OK, "TX-42", "/client/quotes/quote-1")

    def test_receipt_download(self, client, fake_backend, client_session):
        fake_backend.on("GET", "/payments/pay-1/receipt", b"%PDF-1.4 recu")

        response = client.get("/client/payments/pay-1/receipt")

        assert response.status_code == status.HTTP_200_OK
        assert response.content == b"%PDF-1.4 recu"
