"""
Public site form schemas: quote request, contact, charging estimator and
site customization.
"""
import datetime as dt
import random
from typing import Literal, Optional

from pydantic import EmailStr, Field

from .forms import CHOICE_LABELS, FormModel

InstallationType = Literal["borne-recharge", "tableau-electrique", "cablage", "eclairage", "mise-aux-normes", "autre"]
DevisServiceType = Literal["installation", "maintenance", "reparation", "diagnostic", "mise-aux-normes"]
Urgency = Literal["flexible", "normal", "urgent", "immediat"]
Budget = Literal["0-1000", "1000-5000", "5000-10000", "10000-25000", "25000+"]

CHOICE_LABELS.update({
    "borne-recharge": "Borne de recharge électrique",
    "tableau-electrique": "Tableau électrique",
    "cablage": "Câblage et raccordement",
    "eclairage": "Éclairage LED",
    "mise-aux-normes": "Mise aux normes",
    "autre": "Autre (préciser en description)",
    "reparation": "Réparation",
    "flexible": "Flexible (dans le mois)",
    "immediat": "Immédiat (sous 48h)",
    "0-1000": "Moins de 1 000€",
    "1000-5000": "1 000€ - 5 000€",
    "5000-10000": "5 000€ - 10 000€",
    "10000-25000": "10 000€ - 25 000€",
    "25000+": "Plus de 25 000€",
})


def quote_request_reference(today: Optional[dt.date] = None) -> str:
    """Reference shown to the visitor, DEV-REQ-<year>-<3 digits>."""
    year = (today or dt.date.today()).year
    return f"DEV-REQ-{year}-{random.randint(0, 999):03d}"


class DevisForm(FormModel):
    """Public quote request."""
    first_name: str = Field(..., description="Prénom")
    last_name: str = Field(..., description="Nom")
    email: EmailStr = Field(..., description="Adresse e-mail")
    phone: str = Field(..., description="Téléphone")
    company: Optional[str] = Field(None, description="Entreprise")
    address: str = Field(..., description="Adresse")
    city: str = Field(..., description="Ville")
    postal_code: str = Field(..., description="Code postal")
    installation_type: InstallationType = Field(..., description="Type d'installation")
    service_type: DevisServiceType = Field(..., description="Type de service")
    description: str = Field(..., description="Description du projet", json_schema_extra={"widget": "textarea"})
    urgency: Urgency = Field(..., description="Délai souhaité")
    budget: Budget = Field(..., description="Budget estimé")

    def to_payload(self, reference: Optional[str] = None):
        payload = super().to_payload()
        payload.update({
            "status": "pending",
            "createdAt": dt.datetime.now(dt.timezone.utc).isoformat(),
            "reference": reference or quote_request_reference(),
        })
        return payload


class ContactForm(FormModel):
    """Contact form of the public site."""
    name: str = Field(..., description="Nom complet")
    email: EmailStr = Field(..., description="Adresse e-mail")
    phone: Optional[str] = Field(None, description="Téléphone")
    subject: str = Field(..., description="Sujet")
    message: str = Field(..., description="Message", json_schema_extra={"widget": "textarea"})


class SimulatorForm(FormModel):
    """Charging estimator inputs."""
    brand: str = Field(..., description="Marque")
    model: str = Field(..., description="Modèle")
    version: str = Field(..., description="Version")
    start_level: int = Field(20, ge=0, le=100, description="Batterie au départ (%)")
    end_level: int = Field(80, ge=0, le=100, description="Batterie visée (%)")


class GeneralSettings(FormModel):
    site_name: str = Field(..., description="Nom du site")
    site_tagline: Optional[str] = Field(None, description="Slogan")
    primary_color: Optional[str] = Field(None, pattern=r"^#[0-9a-fA-F]{6}$", description="Couleur principale")
    secondary_color: Optional[str] = Field(None, pattern=r"^#[0-9a-fA-F]{6}$", description="Couleur secondaire")


class HeroSettings(FormModel):
    title: Optional[str] = Field(None, description="Titre d'accueil")
    subtitle: Optional[str] = Field(None, description="Sous-titre d'accueil", json_schema_extra={"widget": "textarea"})
    cta_text: Optional[str] = Field(None, description="Texte du bouton")


class HomePageSettings(FormModel):
    hero: HeroSettings = Field(default_factory=HeroSettings)


class AboutPageSettings(FormModel):
    title: Optional[str] = Field(None, description="Titre « À propos »")
    description: Optional[str] = Field(None, description="Présentation", json_schema_extra={"widget": "textarea"})
    mission: Optional[str] = Field(None, description="Mission", json_schema_extra={"widget": "textarea"})
    vision: Optional[str] = Field(None, description="Vision", json_schema_extra={"widget": "textarea"})
    values: Optional[str] = Field(None, description="Valeurs", json_schema_extra={"widget": "textarea"})


class ContactPageSettings(FormModel):
    title: Optional[str] = Field(None, description="Titre « Contact »")
    description: Optional[str] = Field(None, description="Texte « Contact »", json_schema_extra={"widget": "textarea"})
    address: Optional[str] = Field(None, description="Adresse de l'entreprise")
    phone: Optional[str] = Field(None, description="Téléphone de l'entreprise")
    email: Optional[EmailStr] = Field(None, description="E-mail de l'entreprise")


class QuotePageSettings(FormModel):
    title: Optional[str] = Field(None, description="Titre « Devis »")
    description: Optional[str] = Field(None, description="Texte « Devis »", json_schema_extra={"widget": "textarea"})


class FooterSettings(FormModel):
    description: Optional[str] = Field(None, description="Texte du pied de page", json_schema_extra={"widget": "textarea"})
    copyright: Optional[str] = Field(None, description="Copyright")


class SeoSettings(FormModel):
    default_title: Optional[str] = Field(None, description="Titre SEO")
    default_description: Optional[str] = Field(None, description="Description SEO", json_schema_extra={"widget": "textarea"})


class SiteCustomizationForm(FormModel):
    """Editable part of the marketing-site customization."""
    general: GeneralSettings
    home_page: HomePageSettings = Field(default_factory=HomePageSettings)
    about_page: AboutPageSettings = Field(default_factory=AboutPageSettings)
    contact_page: ContactPageSettings = Field(default_factory=ContactPageSettings)
    quote_page: QuotePageSettings = Field(default_factory=QuotePageSettings)
    footer: FooterSettings = Field(default_factory=FooterSettings)
    seo: SeoSettings = Field(default_factory=SeoSettings)
