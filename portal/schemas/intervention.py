"""
Intervention form schemas: service requests, missions, service types and
technical reports.
"""
import datetime as dt
from typing import List, Literal, Optional

from pydantic import Field

from .forms import FormModel

RequestType = Literal["installation", "maintenance", "repair", "diagnostic", "emergency"]
Priority = Literal["low", "normal", "high", "urgent"]
RequestStatus = Literal["pending", "assigned", "in-progress", "completed", "cancelled", "quoted"]
MissionStatus = Literal["pending", "accepted", "in-progress", "completed", "cancelled"]
ReportType = Literal[
    "Installation borne de recharge",
    "Maintenance préventive",
    "Réparation d'urgence",
    "Diagnostic électrique",
    "Mise aux normes",
    "Remplacement équipement",
    "Autre",
]
Symptom = Literal[
    "Panne électrique totale",
    "Disjoncteur qui saute",
    "Éclairage défaillant",
    "Prise électrique ne fonctionne pas",
    "Tableau électrique qui chauffe",
    "Odeur de brûlé",
    "Étincelles",
    "Bruit anormal",
    "Borne de recharge en panne",
    "Problème de charge véhicule",
]


class RequestAddress(FormModel):
    street: str = Field(..., description="Rue")
    city: str = Field(..., description="Ville")
    postal_code: str = Field(..., description="Code postal")


class RequestForm(FormModel):
    """Service request form used by administrators."""
    title: str = Field(..., max_length=255, description="Titre")
    description: str = Field(..., description="Description", json_schema_extra={"widget": "textarea"})
    type: RequestType = Field(..., description="Type d'intervention")
    priority: Priority = Field("normal", description="Priorité")
    client_id: Optional[str] = Field(None, description="Client")
    service_type_id: Optional[str] = Field(None, description="Type de service")
    address: RequestAddress = Field(..., description="Adresse")
    status: Optional[RequestStatus] = Field(None, description="Statut")
    estimated_budget: Optional[float] = Field(None, ge=0, description="Budget estimé (€)")
    preferred_date: Optional[dt.date] = Field(None, description="Date souhaitée")
    notes: Optional[str] = Field(None, description="Notes", json_schema_extra={"widget": "textarea"})


class ServiceRequestForm(FormModel):
    """Intervention request submitted by a client."""
    service_type_id: str = Field(..., description="Type de service")
    title: str = Field(..., max_length=255, description="Titre")
    description: str = Field(..., description="Description du problème", json_schema_extra={"widget": "textarea"})
    priority: Priority = Field("normal", description="Priorité")
    address: str = Field(..., description="Adresse d'intervention")
    preferred_date: Optional[dt.date] = Field(None, description="Date souhaitée")
    preferred_time: Optional[str] = Field(None, description="Créneau souhaité")
    contact_phone: Optional[str] = Field(None, description="Téléphone de contact")
    equipment: Optional[str] = Field(None, description="Équipement concerné")
    symptoms: List[Symptom] = Field(default_factory=list, description="Symptômes constatés")
    access_instructions: Optional[str] = Field(None, description="Instructions d'accès", json_schema_extra={"widget": "textarea"})

    def to_payload(self):
        payload = super().to_payload()
        # the backend stores the address as an object
        payload["address"] = {"full": payload.pop("address")}
        return payload


class MissionForm(FormModel):
    """Mission creation and edit form."""
    title: str = Field(..., max_length=255, description="Titre")
    client_id: str = Field(..., description="Client")
    technician_id: Optional[str] = Field(None, description="Technicien")
    quote_id: Optional[str] = Field(None, description="Devis")
    service_type: Optional[str] = Field(None, description="Type de service")
    scheduled_date: dt.datetime = Field(..., description="Date prévue")
    address: str = Field(..., description="Adresse")
    status: MissionStatus = Field("pending", description="Statut")
    priority: Priority = Field("normal", description="Priorité")
    details: Optional[str] = Field(None, description="Détails", json_schema_extra={"widget": "textarea"})


class ServiceTypeForm(FormModel):
    """Service type form."""
    name: str = Field(..., max_length=255, description="Nom")
    category: RequestType = Field(..., description="Catégorie")
    description: str = Field(..., description="Description", json_schema_extra={"widget": "textarea"})


class ReportForm(FormModel):
    """Technical report form."""
    mission_id: str = Field(..., description="Mission")
    title: str = Field(..., max_length=255, description="Titre")
    content: str = Field(..., description="Travaux réalisés", json_schema_extra={"widget": "textarea"})
    type: Optional[ReportType] = Field(None, description="Type d'intervention")
    date: Optional[dt.date] = Field(None, description="Date d'intervention")
    start_time: Optional[str] = Field(None, pattern=r"^([01]\d|2[0-3]):([0-5]\d)$", description="Heure de début")
    end_time: Optional[str] = Field(None, pattern=r"^([01]\d|2[0-3]):([0-5]\d)$", description="Heure de fin")
    notes: Optional[str] = Field(None, description="Notes", json_schema_extra={"widget": "textarea"})


class AssignTechnicianForm(FormModel):
    technician_id: str = Field(..., description="Technicien")
