"""
Resources managed through the admin CRUD pages.
"""
import asyncio
from typing import Any, Callable, Dict, Iterable, List, Tuple

from ..client.services import Backend
from ..schemas.billing import InvoiceForm, PaymentForm, QuoteForm
from ..schemas.company import CompanyForm
from ..schemas.equipment import EquipmentForm
from ..schemas.intervention import MissionForm, ReportForm, RequestForm, ServiceTypeForm
from ..schemas.user import UserCreateForm, UserUpdateForm
from .crud import Action, Column, ResourcePages
from .templating import person_name, record_id

OPTIONS_LIMIT = 100


def options(records: Iterable[Dict[str, Any]], label: Callable[[Dict[str, Any]], str] = person_name) -> List[Tuple[str, str]]:
    return [(record_id(record), label(record)) for record in records]


def record_title(record: Dict[str, Any]) -> str:
    reference = record.get("reference") or record.get("missionNumber")
    title = record.get("title") or record.get("name") or record_id(record)
    return f"{reference} - {title}" if reference else title


async def request_choices(backend: Backend):
    clients, service_types = await asyncio.gather(
        backend.users.clients(),
        backend.service_types.list(limit=OPTIONS_LIMIT),
    )
    return {"clientId": options(clients), "serviceTypeId": options(service_types, record_title)}


async def quote_choices(backend: Backend):
    clients, technicians, requests = await asyncio.gather(
        backend.users.clients(),
        backend.users.technicians(),
        backend.requests.list(limit=OPTIONS_LIMIT),
    )
    return {
        "clientId": options(clients),
        "technicianId": options(technicians),
        "requestId": options(requests, record_title),
    }


async def mission_choices(backend: Backend):
    clients, technicians, quotes, service_types = await asyncio.gather(
        backend.users.clients(),
        backend.users.technicians(),
        backend.quotes.list(limit=OPTIONS_LIMIT),
        backend.service_types.list(limit=OPTIONS_LIMIT),
    )
    return {
        "clientId": options(clients),
        "technicianId": options(technicians),
        "quoteId": options(quotes, record_title),
        "serviceType": options(service_types, record_title),
    }


async def invoice_choices(backend: Backend):
    return {"client": options(await backend.users.clients())}


async def payment_choices(backend: Backend):
    return {"quoteId": options(await backend.quotes.list(limit=OPTIONS_LIMIT), record_title)}


async def report_choices(backend: Backend):
    return {"missionId": options(await backend.missions.list(limit=OPTIONS_LIMIT), record_title)}


async def equipment_choices(backend: Backend):
    products = await backend.products.list(limit=OPTIONS_LIMIT)
    return {"productId": options(products, record_title)}


USERS = ResourcePages(
    name="users",
    service="users",
    title="Utilisateurs",
    create_form=UserCreateForm,
    update_form=UserUpdateForm,
    columns=[
        Column("Nom", "", "person"),
        Column("E-mail", "email"),
        Column("Rôle", "role", "label"),
        Column("Actif", "isActive", "yesno"),
    ],
    detail_columns=[
        Column("Nom", "", "person"),
        Column("E-mail", "email"),
        Column("Téléphone", "phone"),
        Column("Rôle", "role", "label"),
        Column("Entreprise", "company"),
        Column("Département", "departement"),
        Column("Ville", "address.city"),
        Column("Actif", "isActive", "yesno"),
        Column("Créé le", "createdAt", "date_fr"),
    ],
    actions=[Action("Activer / désactiver", "toggle-status")],
    created_message="Utilisateur créé avec succès !",
    updated_message="Utilisateur mis à jour avec succès !",
    deleted_message="Utilisateur supprimé avec succès",
    load_error="Erreur lors du chargement des utilisateurs",
    save_error="Erreur lors de l'enregistrement de l'utilisateur",
    delete_error="Erreur lors de la suppression de l'utilisateur",
)

COMPANIES = ResourcePages(
    name="companies",
    service="companies",
    title="Entreprises",
    create_form=CompanyForm,
    columns=[
        Column("Nom", "name"),
        Column("Type", "type", "label"),
        Column("Ville", "address.city"),
        Column("Contact", "contact.email"),
        Column("Active", "isActive", "yesno"),
    ],
    detail_columns=[
        Column("Nom", "name"),
        Column("Type", "type", "label"),
        Column("SIRET", "siret"),
        Column("Rue", "address.street"),
        Column("Code postal", "address.postalCode"),
        Column("Ville", "address.city"),
        Column("Contact", "contact", "person"),
        Column("Téléphone", "contact.phone"),
        Column("E-mail", "contact.email"),
        Column("Site web", "website"),
        Column("Active", "isActive", "yesno"),
    ],
    actions=[Action("Activer / désactiver", "toggle-status"), Action("Mettre à jour les statistiques", "update-stats")],
    created_message="Entreprise créée avec succès !",
    updated_message="Entreprise mise à jour avec succès !",
    deleted_message="Entreprise supprimée avec succès",
    load_error="Erreur lors du chargement des entreprises",
    save_error="Erreur lors de l'enregistrement de l'entreprise",
    delete_error="Erreur lors de la suppression de l'entreprise",
)

REQUESTS = ResourcePages(
    name="requests",
    service="requests",
    title="Demandes",
    create_form=RequestForm,
    choices=request_choices,
    columns=[
        Column("Titre", "title"),
        Column("Client", "clientId", "person"),
        Column("Type", "type", "label"),
        Column("Priorité", "priority", "label"),
        Column("Statut", "status", "label"),
        Column("Créée le", "createdAt", "date_fr"),
    ],
    detail_columns=[
        Column("Titre", "title"),
        Column("Description", "description"),
        Column("Client", "clientId", "person"),
        Column("Technicien", "assignedTechnician", "person"),
        Column("Type", "type", "label"),
        Column("Priorité", "priority", "label"),
        Column("Statut", "status", "label"),
        Column("Adresse", "address.street"),
        Column("Ville", "address.city"),
        Column("Budget estimé", "estimatedBudget", "currency"),
        Column("Date souhaitée", "preferredDate", "date_fr"),
    ],
    actions=[Action("Assigner un technicien", "assign", method="get"), Action("Marquer terminée", "complete")],
    status_filter=("pending", "assigned", "in-progress", "completed", "cancelled", "quoted"),
    created_message="Demande créée avec succès !",
    updated_message="Demande mise à jour avec succès !",
    deleted_message="Demande supprimée avec succès",
    load_error="Erreur lors du chargement des demandes",
    save_error="Erreur lors de l'enregistrement de la demande",
    delete_error="Erreur lors de la suppression de la demande",
)

QUOTES = ResourcePages(
    name="quotes",
    service="quotes",
    title="Devis",
    create_form=QuoteForm,
    choices=quote_choices,
    columns=[
        Column("Référence", "reference"),
        Column("Titre", "title"),
        Column("Client", "clientId", "person"),
        Column("Total TTC", "totalAmount", "currency"),
        Column("Statut", "status", "label"),
    ],
    detail_columns=[
        Column("Référence", "reference"),
        Column("Titre", "title"),
        Column("Description", "description"),
        Column("Client", "clientId", "person"),
        Column("Technicien", "technicianId", "person"),
        Column("Sous-total HT", "subtotal", "currency"),
        Column("TVA", "taxAmount", "currency"),
        Column("Total TTC", "totalAmount", "currency"),
        Column("Valable jusqu'au", "validUntil", "date_fr"),
        Column("Statut", "status", "label"),
    ],
    actions=[Action("Envoyer au client", "send"), Action("Télécharger le PDF", "pdf", method="get")],
    status_filter=("draft", "sent", "accepted", "rejected", "expired", "mission_assigned"),
    created_message="Devis créé avec succès !",
    updated_message="Devis mis à jour avec succès !",
    deleted_message="Devis supprimé avec succès",
    load_error="Erreur lors du chargement des devis",
    save_error="Erreur lors de la sauvegarde du devis",
    delete_error="Erreur lors de la suppression du devis",
)

MISSIONS = ResourcePages(
    name="missions",
    service="missions",
    title="Missions",
    create_form=MissionForm,
    choices=mission_choices,
    columns=[
        Column("Numéro", "missionNumber"),
        Column("Titre", "title"),
        Column("Client", "clientId", "person"),
        Column("Technicien", "technicianId", "person"),
        Column("Date prévue", "scheduledDate", "date_fr"),
        Column("Statut", "status", "label"),
    ],
    detail_columns=[
        Column("Numéro", "missionNumber"),
        Column("Titre", "title"),
        Column("Client", "clientId", "person"),
        Column("Technicien", "technicianId", "person"),
        Column("Type de service", "serviceType.name"),
        Column("Date prévue", "scheduledDate", "date_fr"),
        Column("Adresse", "address"),
        Column("Priorité", "priority", "label"),
        Column("Statut", "status", "label"),
        Column("Détails", "details"),
    ],
    status_filter=("pending", "accepted", "in-progress", "completed", "cancelled"),
    created_message="Mission créée avec succès !",
    updated_message="Mission mise à jour avec succès !",
    deleted_message="Mission supprimée avec succès",
    load_error="Erreur lors du chargement des missions",
    save_error="Erreur lors de l'enregistrement de la mission",
    delete_error="Erreur lors de la suppression de la mission",
)

INVOICES = ResourcePages(
    name="invoices",
    service="invoices",
    title="Factures",
    create_form=InvoiceForm,
    choices=invoice_choices,
    columns=[
        Column("Numéro", "invoiceNumber"),
        Column("Client", "client", "person"),
        Column("Échéance", "dueDate", "date_fr"),
        Column("Total TTC", "totalAmount", "currency"),
        Column("Statut", "status", "label"),
    ],
    actions=[Action("Télécharger le PDF", "pdf", method="get")],
    status_filter=("pending", "paid", "cancelled", "overdue"),
    created_message="Facture créée avec succès !",
    updated_message="Facture mise à jour avec succès !",
    deleted_message="Facture supprimée avec succès",
    load_error="Erreur lors du chargement des factures",
    save_error="Erreur lors de l'enregistrement de la facture",
    delete_error="Erreur lors de la suppression de la facture",
)

PAYMENTS = ResourcePages(
    name="payments",
    service="payments",
    title="Paiements",
    create_form=PaymentForm,
    choices=payment_choices,
    columns=[
        Column("Devis", "quoteId.reference"),
        Column("Montant", "amount", "currency"),
        Column("Moyen", "paymentMethod", "label"),
        Column("Statut", "status", "label"),
        Column("Date", "paymentDate", "date_fr"),
    ],
    detail_columns=[
        Column("Devis", "quoteId.reference"),
        Column("Montant", "amount", "currency"),
        Column("Moyen", "paymentMethod", "label"),
        Column("Statut", "status", "label"),
        Column("Date", "paymentDate", "date_fr"),
        Column("Transaction", "transactionId"),
    ],
    actions=[Action("Facture PDF", "invoice", method="get"), Action("Reçu PDF", "receipt", method="get")],
    status_filter=("pending", "completed", "failed", "refunded"),
    created_message="Paiement créé avec succès !",
    updated_message="Paiement mis à jour avec succès !",
    deleted_message="Paiement supprimé avec succès",
    load_error="Erreur lors du chargement des paiements",
    save_error="Erreur lors de la création du paiement.",
    delete_error="Erreur lors de la suppression du paiement",
)

SERVICE_TYPES = ResourcePages(
    name="service-types",
    service="service_types",
    title="Types de service",
    create_form=ServiceTypeForm,
    columns=[
        Column("Nom", "name"),
        Column("Catégorie", "category", "label"),
        Column("Description", "description"),
    ],
    created_message="Type de service créé avec succès",
    updated_message="Type de service mis à jour avec succès",
    deleted_message="Type de service supprimé avec succès",
    load_error="Erreur lors du chargement des types de service.",
    save_error="Erreur lors de l'enregistrement du type de service.",
    delete_error="Erreur lors de la suppression du type de service.",
)

REPORTS = ResourcePages(
    name="reports",
    service="reports",
    title="Rapports",
    create_form=ReportForm,
    choices=report_choices,
    columns=[
        Column("Titre", "title"),
        Column("Mission", "mission.missionNumber"),
        Column("Type", "type"),
        Column("Date", "date", "date_fr"),
        Column("Statut", "status", "label"),
    ],
    detail_columns=[
        Column("Titre", "title"),
        Column("Mission", "mission.missionNumber"),
        Column("Référence", "interventionReference"),
        Column("Type", "type"),
        Column("Date", "date", "date_fr"),
        Column("Début", "startTime"),
        Column("Fin", "endTime"),
        Column("Travaux réalisés", "content"),
        Column("Notes", "notes"),
        Column("Certificat", "certificateNumber"),
        Column("Statut", "status", "label"),
    ],
    actions=[
        Action("Générer le PDF", "generate-pdf"),
        Action("Envoyer au client", "send-to-client"),
        Action("Générer le certificat", "generate-certificate"),
    ],
    created_message="Rapport créé avec succès !",
    updated_message="Rapport mis à jour avec succès !",
    deleted_message="Rapport supprimé avec succès",
    load_error="Erreur lors du chargement des rapports",
    save_error="Erreur lors de l'enregistrement du rapport",
    delete_error="Erreur lors de la suppression du rapport",
)

EQUIPMENTS = ResourcePages(
    name="equipments",
    service="equipments",
    title="Équipements",
    create_form=EquipmentForm,
    choices=equipment_choices,
    columns=[
        Column("Nom", "name"),
        Column("Prix", "price", "currency"),
        Column("Actif", "isActive", "yesno"),
        Column("Créé le", "createdAt", "date_fr"),
    ],
    detail_columns=[
        Column("Nom", "name"),
        Column("Description", "description"),
        Column("Prix", "price", "currency"),
        Column("Actif", "isActive", "yesno"),
        Column("Créé le", "createdAt", "date_fr"),
    ],
    created_message="Kit créé avec succès !",
    updated_message="Kit mis à jour avec succès !",
    deleted_message="Kit supprimé avec succès !",
    load_error="Erreur lors du chargement des équipements.",
    save_error="Erreur lors de l'enregistrement du kit",
    delete_error="Erreur lors de la suppression du kit.",
)

ADMIN_RESOURCES = [
    USERS, COMPANIES, REQUESTS, QUOTES, MISSIONS, INVOICES, PAYMENTS, SERVICE_TYPES, REPORTS, EQUIPMENTS,
]
