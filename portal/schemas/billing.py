"""
Billing form schemas: quotes, invoices and payments.

Quote and invoice lines are posted as parallel "items[].<column>" inputs and
need at least one line.
"""
import datetime as dt
from typing import List, Literal, Optional

from pydantic import Field

from .forms import FormModel

QuoteStatus = Literal["draft", "sent", "accepted", "rejected", "expired", "mission_assigned"]
InvoiceStatus = Literal["pending", "paid", "cancelled", "overdue"]
PaymentStatus = Literal["pending", "completed", "failed", "refunded"]
PaymentMethod = Literal["card", "bank_transfer", "check", "cash"]


class LineItem(FormModel):
    """One quote or invoice line."""
    description: str = Field(..., description="Désignation")
    quantity: int = Field(1, ge=1, description="Quantité")
    unit_price: float = Field(..., ge=0, description="Prix unitaire HT (€)")

    @property
    def total(self) -> float:
        return round(self.quantity * self.unit_price, 2)


class QuoteItem(LineItem):
    item_type: Literal["service", "equipment"] = Field("service", description="Type")


def _totals(items: List[LineItem], tax_rate: float) -> dict:
    subtotal = round(sum(item.total for item in items), 2)
    tax_amount = round(subtotal * tax_rate / 100, 2)
    return {"subtotal": subtotal, "taxAmount": tax_amount, "totalAmount": round(subtotal + tax_amount, 2)}


class QuoteForm(FormModel):
    """Quote creation and edit form."""
    title: str = Field(..., max_length=255, description="Titre")
    client_id: str = Field(..., description="Client")
    technician_id: Optional[str] = Field(None, description="Technicien")
    request_id: Optional[str] = Field(None, description="Demande liée")
    description: Optional[str] = Field(None, description="Description", json_schema_extra={"widget": "textarea"})
    items: List[QuoteItem] = Field(..., min_length=1, description="Lignes du devis")
    tax_rate: float = Field(20, ge=0, le=100, description="TVA (%)")
    valid_until: Optional[dt.date] = Field(None, description="Valable jusqu'au")
    status: Optional[QuoteStatus] = Field(None, description="Statut")
    notes: Optional[str] = Field(None, description="Notes", json_schema_extra={"widget": "textarea"})
    terms: Optional[str] = Field(None, description="Conditions", json_schema_extra={"widget": "textarea"})

    def to_payload(self):
        payload = super().to_payload()
        for line, item in zip(payload["items"], self.items):
            line["total"] = item.total
        payload.update(_totals(self.items, self.tax_rate))
        return payload


class InvoiceForm(FormModel):
    """Invoice creation and edit form."""
    client: str = Field(..., description="Client")
    company: Optional[str] = Field(None, description="Entreprise")
    due_date: dt.date = Field(..., description="Date d'échéance")
    items: List[LineItem] = Field(..., min_length=1, description="Lignes de la facture")
    tax_rate: float = Field(20, ge=0, le=100, description="TVA (%)")
    status: InvoiceStatus = Field("pending", description="Statut")
    notes: Optional[str] = Field(None, description="Notes", json_schema_extra={"widget": "textarea"})

    def to_payload(self):
        payload = super().to_payload()
        for line, item in zip(payload["items"], self.items):
            line["total"] = item.total
        payload.update(_totals(self.items, self.tax_rate))
        return payload


class PaymentForm(FormModel):
    """Manual payment record form used by administrators."""
    quote_id: str = Field(..., description="Devis")
    amount: float = Field(..., gt=0, description="Montant (€)")
    payment_method: PaymentMethod = Field(..., description="Moyen de paiement")
    status: PaymentStatus = Field("pending", description="Statut")
    payment_date: Optional[dt.date] = Field(None, description="Date de paiement")
    transaction_id: Optional[str] = Field(None, description="Référence de transaction")


class QuoteRejectForm(FormModel):
    """Reason given by a client rejecting a quote."""
    reason: str = Field(..., description="Motif du refus", json_schema_extra={"widget": "textarea"})


class PaymentReturnForm(FormModel):
    """What the card form posts back after Stripe.js confirmCardPayment."""
    payment_intent_id: Optional[str] = Field(None, description="PaymentIntent")
    status: str = Field(..., description="Statut Stripe")
    error_message: Optional[str] = Field(None, description="Erreur Stripe")
