"""
Payment flow tests.

Tests cover the amount rules and the PaymentFlow steps against the fake
backend.
"""
from decimal import Decimal

import httpx
import pytest

from portal.client.errors import ApiError
from portal.client.http import BackendClient
from portal.client.services import Backend
from portal.services.payments import (
    PaymentFlow, PaymentFlowError, payment_amount, payment_description, quote_total,
)

from .conftest import BACKEND_BASE_URL
from .test_base import BackendDataFactory


@pytest.fixture
def backend(fake_backend):
    http = httpx.AsyncClient(base_url=BACKEND_BASE_URL, transport=httpx.MockTransport(fake_backend.handle))
    return Backend(BackendClient(http, token="backend-token"))


class TestPaymentAmount:
    """Test cases for the charged amounts."""

    def test_deposit_is_half_the_subtotal(self, sample_quote_data):
        assert payment_amount(sample_quote_data, "partial") == Decimal("500.00")

    def test_full_payment_is_the_total(self, sample_quote_data):
        assert payment_amount(sample_quote_data, "full") == Decimal("1200.00")

    def test_deposit_rounded_to_the_cent(self):
        assert payment_amount({"subtotal": 100.05}, "partial") == Decimal("50.03")

    def test_total_under_legacy_name(self):
        assert quote_total({"total": "99.90"}) == Decimal("99.90")
        assert payment_amount({"total": 99.9}, "full") == Decimal("99.90")

    def test_missing_amounts_are_zero(self):
        assert payment_amount({}, "partial") == Decimal("0.00")

    def test_unknown_type(self, sample_quote_data):
        with pytest.raises(ValueError):
            payment_amount(sample_quote_data, "half")

    def test_description(self, sample_quote_data):
        assert payment_description(sample_quote_data, "partial") == \
            "Acompte 50% pour Installation borne 22 kW (DEV-2024-001)"
        assert payment_description(sample_quote_data, "full").startswith("Paiement intégral")


class TestPaymentFlow:
    """Test cases for creating and confirming payments."""

    @pytest.mark.asyncio
    async def test_checkout_creates_intent(self, backend, fake_backend, sample_quote_data):
        fake_backend.on("POST", "/payments/create-payment-intent", BackendDataFactory.envelope({"clientSecret": "pi_1_secret"}))

        checkout = await PaymentFlow(backend, publishable_key="pk_test_123").checkout(sample_quote_data, "full")

        assert checkout.client_secret == "pi_1_secret"
        assert checkout.publishable_key == "pk_test_123"
        assert checkout.amount == Decimal("1200.00")
        assert checkout.partial_amount == Decimal("500.00")
        assert fake_backend.last_json("POST", "/payments/create-payment-intent") == {
            "quoteId": "quote-1", "paymentType": "full", "amount": 1200.0,
        }

    @pytest.mark.asyncio
    async def test_checkout_rejects_unknown_type(self, backend, fake_backend, sample_quote_data):
        with pytest.raises(PaymentFlowError):
            await PaymentFlow(backend).checkout(sample_quote_data, "everything")
        assert fake_backend.calls == []

    @pytest.mark.asyncio
    async def test_missing_client_secret(self, backend, fake_backend, sample_quote_data):
        fake_backend.on("POST", "/payments/create-payment-intent", BackendDataFactory.envelope({}))

        with pytest.raises(PaymentFlowError, match="création du paiement"):
            await PaymentFlow(backend).checkout(sample_quote_data)

    @pytest.mark.asyncio
    async def test_intent_refused(self, backend, fake_backend, sample_quote_data):
        fake_backend.fail("POST", "/payments/create-payment-intent", 400, "Devis non accepté")

        with pytest.raises(ApiError) as exc_info:
            await PaymentFlow(backend).checkout(sample_quote_data)
        assert exc_info.value.message == "Devis non accepté"

    @pytest.mark.asyncio
    async def test_complete_confirms_with_backend(self, backend, fake_backend):
        fake_backend.on("POST", "/payments/confirm", BackendDataFactory.envelope({"payment": {"_id": "pay-1"}}))

        result = await PaymentFlow(backend).complete("pi_1", "succeeded")

        assert result == {"payment": {"_id": "pay-1"}}
        assert fake_backend.last_json("POST", "/payments/confirm") == {"paymentIntentId": "pi_1"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,error_message,expected", [
        ("requires_payment_method", "Carte refusée", "Erreur de paiement : Carte refusée"),
        ("processing", None, "Erreur de paiement : Paiement processing. Veuillez réessayer."),
    ])
    async def test_complete_refuses_unsuccessful_payment(self, backend, fake_backend, status, error_message, expected):
        with pytest.raises(PaymentFlowError) as exc_info:
            await PaymentFlow(backend).complete("pi_1", status, error_message)
        assert str(exc_info.value) == expected
        assert fake_backend.calls == []

    @pytest.mark.asyncio
    async def test_complete_without_intent_id(self, backend, fake_backend):
        with pytest.raises(PaymentFlowError):
            await PaymentFlow(backend).complete("", "succeeded")
