"""
Marketing-site customization.

Public pages render from the customization stored by the backend. When it
cannot be loaded the built-in defaults are used so the site stays up.
"""
import copy
import logging
from typing import Any, Dict

from ..client.errors import ApiError
from ..client.services import Backend
from ..config import ASSET_BASE_URL

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMIZATION: Dict[str, Any] = {
    "general": {
        "siteName": "ELECTRIBORNE",
        "siteTagline": "Solutions de recharge pour véhicules électriques",
        "logo": None,
        "primaryColor": "#3295a2",
        "secondaryColor": "#1888b0",
    },
    "homePage": {
        "hero": {
            "title": "La recharge électrique rendue accessible",
            "subtitle": (
                "Installations électriques professionnelles, bornes de recharge et solutions "
                "de mobilité électrique. Faites confiance à nos experts certifiés."
            ),
            "ctaText": "Demander un devis gratuit",
        },
        "services": [
            {
                "title": "Bornes de recharge",
                "description": "Installation de bornes électriques pour véhicules, conformes aux normes.",
                "features": ["Installation certifiée"],
            },
            {
                "title": "Installations électriques",
                "description": "Tableaux électriques, câblage et mise aux normes pour professionnels.",
                "features": ["Conformité NF C 15-100"],
            },
            {
                "title": "Maintenance préventive",
                "description": "Contrôles réguliers et maintenance de vos équipements électriques.",
                "features": ["Planning personnalisé"],
            },
        ],
        "testimonials": [
            {
                "name": "Pierre Bernard",
                "company": "Restaurant Le Gourmet",
                "content": "Installation parfaite de notre borne de recharge. Équipe professionnelle et délais respectés.",
                "rating": 5,
            },
        ],
        "ctaSection": {
            "title": "Prêt à démarrer votre projet ?",
            "subtitle": "Obtenez un devis gratuit en moins de 24h pour votre installation électrique",
            "buttonText": "Demander un devis gratuit",
        },
    },
    "aboutPage": {
        "title": "Qui sommes-nous ?",
        "description": (
            "Experts en installations électriques et mobilité électrique depuis plus de 10 ans, nous "
            "accompagnons les professionnels dans leur transition énergétique."
        ),
        "mission": (
            "Démocratiser l'accès à la mobilité électrique en proposant des solutions d'installation "
            "simples, fiables et conformes aux normes les plus strictes."
        ),
        "vision": (
            "Être le partenaire de référence pour l'infrastructure électrique de demain, en anticipant "
            "les besoins de la transition énergétique."
        ),
        "values": (
            "Excellence technique, transparence, respect des délais et satisfaction client sont au cœur "
            "de notre approche quotidienne."
        ),
    },
    "contactPage": {
        "title": "Contactez-nous",
        "description": (
            "Une question ? Un projet ? Notre équipe d'experts est à votre disposition pour vous "
            "accompagner dans vos projets électriques."
        ),
        "address": "59 rue de Ponthieu, 75008 Paris",
        "phone": "01 42 33 44 55",
        "email": "contact@electriborne.com",
    },
    "quotePage": {
        "title": "Demande de Devis Gratuit",
        "description": (
            "Décrivez votre projet en quelques minutes et recevez un devis personnalisé sous 24h par "
            "notre équipe d'experts."
        ),
        "advantages": [
            {"title": "Réponse rapide", "description": "Devis sous 24h"},
            {"title": "Installation certifiée", "description": "Techniciens qualifiés IRVE"},
            {"title": "Garantie 2 ans", "description": "Pièces et main d'œuvre"},
        ],
    },
    "footer": {
        "description": (
            "Spécialiste des installations électriques et de la mobilité électrique. Faites confiance "
            "à notre expertise pour tous vos projets."
        ),
        "copyright": "© ELECTRIBORNE. Tous droits réservés.",
    },
    "seo": {
        "defaultTitle": "ELECTRIBORNE - Solutions de recharge pour véhicules électriques",
        "defaultDescription": (
            "Installations électriques, bornes de recharge et solutions de mobilité électrique pour "
            "professionnels."
        ),
    },
}


def merge_customization(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep-merge override into a copy of base; empty values keep the default."""
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_customization(merged[key], value)
        elif value not in (None, "", []):
            merged[key] = value
    return merged


# PUBLIC_INTERFACE
async def load_customization(backend: Backend) -> Dict[str, Any]:
    """
    Load the site customization, falling back to the defaults.

    Args:
        backend: Backend services of the current browser

    Returns:
        Dict[str, Any]: Customization with every default key present
    """
    try:
        stored = await backend.site_customization.get()
    except ApiError as exc:
        logger.warning(f"Using default site customization: {exc.message}")
        return copy.deepcopy(DEFAULT_CUSTOMIZATION)
    return merge_customization(DEFAULT_CUSTOMIZATION, stored if isinstance(stored, dict) else {})


def asset_url(path: Any) -> str:
    """Absolute URL of an upload path returned by the backend."""
    if not path:
        return ""
    path = str(path)
    if path.startswith(("http://", "https://", "data:")):
        return path
    return f"{ASSET_BASE_URL.rstrip('/')}/{path.lstrip('/')}"
