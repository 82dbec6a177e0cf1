# models.py

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional
from enum import Enum


# ─────────────────────────────────────────
# ENUMS
# ─────────────────────────────────────────

class LeadStatus(str, Enum):
    NOUVEAU = "nouveau"
    CONTACTE = "contacte"
    QUALIFIE = "qualifie"
    PROPOSITION = "proposition"
    NEGOCIATION = "negociation"
    GAGNE = "gagne"
    PERDU = "perdu"


class InvoiceStatus(str, Enum):
    BROUILLON = "brouillon"
    EMISE = "emise"
    PAYEE = "payee"
    EN_RETARD = "en_retard"
    ANNULEE = "annulee"


class EmailLogStatus(str, Enum):
    ENVOYE = "envoye"
    ECHOUE = "echoue"
    EN_ATTENTE = "en_attente"
    OUVERT = "ouvert"
    CLIQUE = "clique"


class CampaignType(str, Enum):
    EMAIL = "email"
    ADS = "ads"
    SOCIAL = "social"
    EVENT = "event"
    SEO = "seo"
    AUTRE = "autre"


class CampaignStatus(str, Enum):
    BROUILLON = "brouillon"
    EN_COURS = "en_cours"
    ENVOYE = "envoye"
    TERMINE = "termine"


class TaskType(str, Enum):
    APPEL = "appel"
    EMAIL = "email"
    REUNION = "reunion"
    SUIVI = "suivi"
    AUTRE = "autre"


class TaskStatus(str, Enum):
    A_FAIRE = "a_faire"
    EN_COURS = "en_cours"
    TERMINEE = "terminee"
    ANNULEE = "annulee"


class UserRole(str, Enum):
    ADMIN = "admin"
    COMMERCIAL = "commercial"
    STANDARD = "standard"


# ─────────────────────────────────────────
# ORDRES CANONIQUES
# L'ordre d'affichage ne dépend jamais de l'ordre
# de découverte des enregistrements.
# ─────────────────────────────────────────

PIPELINE_ORDER = [s.value for s in LeadStatus]

CLOSED_STATUSES = (LeadStatus.GAGNE.value, LeadStatus.PERDU.value)

OPEN_STAGES = [s for s in PIPELINE_ORDER if s not in CLOSED_STATUSES]

INVOICE_STATUS_ORDER = [s.value for s in InvoiceStatus]

# Sources de lead et catégories de dépenses partagent ce vocabulaire
CHANNEL_ORDER = [
    "site_web", "email", "telephone", "salon", "recommandation", "autre"
]

# Un log compte comme "envoyé" dans ces statuts
DELIVERED_EMAIL_STATUSES = (
    EmailLogStatus.ENVOYE.value,
    EmailLogStatus.OUVERT.value,
    EmailLogStatus.CLIQUE.value,
)


# ─────────────────────────────────────────
# CORE MODELS
# Snapshots immuables : le moteur ne modifie
# jamais un enregistrement.
# ─────────────────────────────────────────

@dataclass(frozen=True)
class Lead:
    # Identité
    id: str
    title: str = ""

    # Valeur
    value: float = 0.0

    # Pipeline
    status: str = LeadStatus.NOUVEAU.value
    priority: str = ""

    # Acquisition
    source: str = ""                   # clé de canal (site_web, email...)
    campaign_id: Optional[str] = None

    # Relations
    contact_id: str = ""
    company_id: str = ""
    owner_id: str = ""

    # Dates
    expected_close: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_STATUSES

    @property
    def is_won(self) -> bool:
        return self.status == LeadStatus.GAGNE.value


@dataclass(frozen=True)
class Invoice:
    # Identité
    id: str

    # Montant
    status: str = InvoiceStatus.BROUILLON.value
    amount: float = 0.0
    tax_rate: float = 0.0
    total: float = 0.0

    # Relations
    lead_id: str = ""
    contact_id: str = ""

    # Dates critiques
    issued_at: Optional[datetime] = None
    due_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None


@dataclass(frozen=True)
class EmailLog:
    id: str
    status: str = EmailLogStatus.EN_ATTENTE.value
    campaign_id: Optional[str] = None

    # Engagement (compteurs incrémentés par le tracking)
    open_count: int = 0
    click_count: int = 0

    sent_at: Optional[datetime] = None
    opened_at: Optional[datetime] = None
    clicked_at: Optional[datetime] = None


@dataclass(frozen=True)
class MarketingExpense:
    id: str
    amount: float = 0.0
    category: str = "autre"            # clé de canal, toujours présente
    campaign_id: Optional[str] = None
    date: Optional[datetime] = None


@dataclass(frozen=True)
class Campaign:
    id: str
    name: str = ""
    type: str = CampaignType.AUTRE.value
    status: str = CampaignStatus.BROUILLON.value
    total: int = 0
    sent: int = 0
    failed: int = 0


@dataclass(frozen=True)
class Task:
    id: str
    type: str = TaskType.AUTRE.value
    status: str = TaskStatus.A_FAIRE.value
    assignee_id: str = ""
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class User:
    id: str
    name: str = ""
    role: str = UserRole.STANDARD.value


@dataclass(frozen=True)
class Contact:
    id: str
    first_name: str = ""
    last_name: str = ""
    company_id: str = ""
    tags: tuple = field(default_factory=tuple)
    created_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_client(self) -> bool:
        return "client" in self.tags


@dataclass(frozen=True)
class Company:
    id: str
    name: str = ""
    city: str = ""
    industry: str = ""


@dataclass(frozen=True)
class Activity:
    id: str
    type: str = ""
    description: str = ""
    user_id: str = ""
    created_at: Optional[datetime] = None


# ─────────────────────────────────────────
# RÈGLES MÉTIER SUR LES FACTURES
# ─────────────────────────────────────────

def invoice_total(amount: float, tax_rate: float) -> float:
    """Total TTC = montant HT × (1 + taux / 100)."""
    return round(amount * (1 + tax_rate / 100), 2)


def mark_invoice_paid(invoice: Invoice, paid_at: datetime) -> Invoice:
    """
    Retourne une nouvelle facture marquée payée.
    paid_at est l'instant de complétion du paiement.
    """
    return replace(
        invoice,
        status=InvoiceStatus.PAYEE.value,
        paid_at=paid_at,
        total=invoice_total(invoice.amount, invoice.tax_rate),
    )


def is_invoice_overdue(invoice: Invoice, now: datetime) -> bool:
    # Seules les factures émises basculent en retard
    if invoice.status != InvoiceStatus.EMISE.value or not invoice.due_at:
        return False
    return invoice.due_at < now
