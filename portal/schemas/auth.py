"""
Authentication and profile form schemas.

Defines the login, registration, profile, password change and notification
settings forms.
"""
from typing import Optional

from pydantic import EmailStr, Field, model_validator

from .forms import FormModel


class LoginForm(FormModel):
    """Login form."""
    email: EmailStr = Field(..., description="Adresse e-mail")
    password: str = Field(..., description="Mot de passe", json_schema_extra={"widget": "password"})


class RegisterForm(FormModel):
    """Client self-registration form."""
    first_name: str = Field(..., max_length=100, description="Prénom")
    last_name: str = Field(..., max_length=100, description="Nom")
    email: EmailStr = Field(..., description="Adresse e-mail")
    phone: Optional[str] = Field(None, max_length=30, description="Téléphone")
    company: Optional[str] = Field(None, description="Entreprise")
    password: str = Field(..., min_length=6, description="Mot de passe", json_schema_extra={"widget": "password"})
    confirm_password: str = Field(..., description="Confirmation du mot de passe", json_schema_extra={"widget": "password"})

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Les mots de passe ne correspondent pas")
        return self

    def to_payload(self):
        payload = super().to_payload()
        payload.pop("confirmPassword", None)
        payload["role"] = "client"
        return payload


class ProfileAddress(FormModel):
    street: Optional[str] = Field(None, description="Rue")
    city: Optional[str] = Field(None, description="Ville")
    postal_code: Optional[str] = Field(None, description="Code postal")
    country: Optional[str] = Field("France", description="Pays")


class ProfileForm(FormModel):
    """Profile update form."""
    first_name: str = Field(..., max_length=100, description="Prénom")
    last_name: str = Field(..., max_length=100, description="Nom")
    email: EmailStr = Field(..., description="Adresse e-mail")
    phone: Optional[str] = Field(None, max_length=30, description="Téléphone")
    company: Optional[str] = Field(None, description="Entreprise")
    address: ProfileAddress = Field(default_factory=ProfileAddress, description="Adresse")


class ChangePasswordForm(FormModel):
    """Password change form."""
    current_password: str = Field(..., description="Mot de passe actuel", json_schema_extra={"widget": "password"})
    new_password: str = Field(..., min_length=6, description="Nouveau mot de passe", json_schema_extra={"widget": "password"})
    confirm_password: str = Field(..., description="Confirmation", json_schema_extra={"widget": "password"})

    @model_validator(mode="after")
    def passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Les mots de passe ne correspondent pas")
        return self


class NotificationChannels(FormModel):
    email: bool = Field(False, description="E-mail")
    push: bool = Field(False, description="Notifications push")
    sms: bool = Field(False, description="SMS")
    system: bool = Field(False, description="Notifications système")


class NotificationTypes(FormModel):
    maintenance_planned: bool = Field(False, description="Maintenance planifiée")
    intervention_validated: bool = Field(False, description="Intervention validée")
    quote_received: bool = Field(False, description="Devis reçu")
    quote_accepted: bool = Field(False, description="Devis accepté")
    payment_pending: bool = Field(False, description="Paiement en attente")
    payment_received: bool = Field(False, description="Paiement reçu")
    system_updates: bool = Field(False, description="Mises à jour système")
    security_alerts: bool = Field(False, description="Alertes de sécurité")


class NotificationSettingsForm(FormModel):
    """Notification preferences; unchecked boxes are not posted, hence False."""
    channels: NotificationChannels = Field(default_factory=NotificationChannels)
    types: NotificationTypes = Field(default_factory=NotificationTypes)
