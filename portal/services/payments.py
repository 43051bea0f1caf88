"""
Stripe payment flow for accepted quotes.

The flow is linear: fetch the quote, ask the backend for a payment intent,
let the browser collect the card with Stripe Elements and call
confirmCardPayment, then report the succeeded intent back to the backend.
Card data never reaches the portal.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

from ..client.services import Backend
from ..config import STRIPE_PUBLISHABLE_KEY

logger = logging.getLogger(__name__)

PAYMENT_TYPES = ("partial", "full")
DEPOSIT_RATE = Decimal("0.5")
CENT = Decimal("0.01")


class PaymentFlowError(Exception):
    """A step of the payment flow failed; message is user facing."""


def _money(value: Any) -> Decimal:
    try:
        return Decimal(str(value or 0))
    except ArithmeticError:
        return Decimal("0")


def quote_total(quote: Dict[str, Any]) -> Decimal:
    """Total including VAT, whichever name the backend used for it."""
    return _money(quote.get("totalAmount", quote.get("total")))


# PUBLIC_INTERFACE
def payment_amount(quote: Dict[str, Any], payment_type: str) -> Decimal:
    """
    Amount charged for a quote.

    Args:
        quote: Quote record
        payment_type: "partial" for a 50% deposit on the subtotal before tax,
            "full" for the total including tax

    Returns:
        Decimal: Amount in euros, rounded to the cent
    """
    if payment_type not in PAYMENT_TYPES:
        raise ValueError(f"Unknown payment type: {payment_type}")
    if payment_type == "partial":
        amount = _money(quote.get("subtotal")) * DEPOSIT_RATE
    else:
        amount = quote_total(quote)
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


# PUBLIC_INTERFACE
def payment_description(quote: Dict[str, Any], payment_type: str) -> str:
    """Human-readable description shown next to the card form."""
    title = quote.get("title", "")
    reference = quote.get("reference", "")
    if payment_type == "partial":
        return f"Acompte 50% pour {title} ({reference})"
    return f"Paiement intégral pour {title} ({reference})"


@dataclass
class PaymentCheckout:
    """Everything the card form page needs."""
    quote: Dict[str, Any]
    payment_type: str
    amount: Decimal
    description: str
    client_secret: Optional[str]
    publishable_key: str

    @property
    def partial_amount(self) -> Decimal:
        return payment_amount(self.quote, "partial")

    @property
    def full_amount(self) -> Decimal:
        return payment_amount(self.quote, "full")


class PaymentFlow:
    """Payment of one quote by the logged-in client."""

    def __init__(self, backend: Backend, publishable_key: str = STRIPE_PUBLISHABLE_KEY):
        self.backend = backend
        self.publishable_key = publishable_key

    async def checkout(self, quote: Dict[str, Any], payment_type: str = "partial") -> PaymentCheckout:
        """
        Create the payment intent for an already fetched quote.

        Raises:
            ApiError: If the backend refuses the intent
            PaymentFlowError: If the payment type is unknown or no client
                secret came back
        """
        if payment_type not in PAYMENT_TYPES:
            raise PaymentFlowError("Type de paiement inconnu")
        amount = payment_amount(quote, payment_type)
        checkout = PaymentCheckout(
            quote=quote,
            payment_type=payment_type,
            amount=amount,
            description=payment_description(quote, payment_type),
            client_secret=None,
            publishable_key=self.publishable_key,
        )
        intent = await self.backend.payments.create_payment_intent(
            str(quote.get("id") or quote.get("_id") or ""), payment_type, float(amount),
        )
        checkout.client_secret = intent.get("clientSecret") if isinstance(intent, dict) else None
        if not checkout.client_secret:
            raise PaymentFlowError("Erreur lors de la création du paiement")
        return checkout

    async def complete(self, payment_intent_id: str, status: str, error_message: Optional[str] = None) -> Dict[str, Any]:
        """
        Report the browser-side confirmation to the backend.

        Args:
            payment_intent_id: Stripe PaymentIntent ID returned by Stripe.js
            status: PaymentIntent status seen by the browser
            error_message: Stripe error message, if confirmation failed

        Returns:
            Dict[str, Any]: Backend confirmation data

        Raises:
            PaymentFlowError: If the payment did not succeed
            ApiError: If the backend rejects the confirmation
        """
        if error_message:
            raise PaymentFlowError(f"Erreur de paiement : {error_message}")
        if status != "succeeded":
            raise PaymentFlowError(f"Erreur de paiement : Paiement {status}. Veuillez réessayer.")
        if not payment_intent_id:
            raise PaymentFlowError("Erreur de paiement : identifiant de paiement manquant")
        logger.info(f"Confirming payment intent {payment_intent_id}")
        return await self.backend.payments.confirm(payment_intent_id)
