"""
User management form schemas.

Defines the admin forms used to create and edit users.
"""
from typing import Literal, Optional

from pydantic import EmailStr, Field

from .forms import FormModel

Role = Literal["admin", "technician", "client"]


class UserAddress(FormModel):
    street: Optional[str] = Field(None, description="Rue")
    city: Optional[str] = Field(None, description="Ville")
    postal_code: Optional[str] = Field(None, description="Code postal")
    country: Optional[str] = Field("France", description="Pays")


class UserUpdateForm(FormModel):
    """User edit form."""
    first_name: str = Field(..., max_length=100, description="Prénom")
    last_name: str = Field(..., max_length=100, description="Nom")
    email: EmailStr = Field(..., description="Adresse e-mail")
    role: Role = Field("client", description="Rôle")
    phone: Optional[str] = Field(None, max_length=30, description="Téléphone")
    company: Optional[str] = Field(None, description="Entreprise")
    departement: Optional[str] = Field(None, description="Département")
    address: UserAddress = Field(default_factory=UserAddress, description="Adresse")
    is_active: bool = Field(False, description="Compte actif")


class UserCreateForm(UserUpdateForm):
    """User creation form; the password is only set on creation."""
    password: str = Field(..., min_length=6, description="Mot de passe", json_schema_extra={"widget": "password"})
