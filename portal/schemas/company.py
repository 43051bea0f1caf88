"""
Company form schemas.
"""
from typing import Literal, Optional

from pydantic import EmailStr, Field

from .forms import FormModel

CompanyType = Literal["restaurant", "bakery", "retail", "cafe", "office", "hotel", "pharmacy", "supermarket", "other"]


class CompanyAddress(FormModel):
    street: str = Field(..., description="Rue")
    city: str = Field(..., description="Ville")
    postal_code: str = Field(..., description="Code postal")
    country: Optional[str] = Field("France", description="Pays")


class CompanyContact(FormModel):
    first_name: str = Field(..., description="Prénom du contact")
    last_name: str = Field(..., description="Nom du contact")
    phone: str = Field(..., description="Téléphone du contact")
    email: EmailStr = Field(..., description="E-mail du contact")
    position: Optional[str] = Field(None, description="Fonction")


class CompanyForm(FormModel):
    """Company creation and edit form."""
    name: str = Field(..., max_length=255, description="Raison sociale")
    type: CompanyType = Field(..., description="Type d'établissement")
    siret: Optional[str] = Field(None, description="SIRET")
    address: CompanyAddress = Field(..., description="Adresse")
    contact: CompanyContact = Field(..., description="Contact")
    description: Optional[str] = Field(None, description="Description", json_schema_extra={"widget": "textarea"})
    website: Optional[str] = Field(None, description="Site web")
    is_active: bool = Field(False, description="Active")
