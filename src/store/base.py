# store/base.py

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from threading import Event
from typing import Any, Optional
import logging

from errors import FetchAborted, ConfigurationError
from models import (
    Lead, Invoice, EmailLog, MarketingExpense, Campaign,
    Task, User, Contact, Company, Activity, invoice_total
)

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────
# CONTRAT DE REQUÊTE
# Filtre = conjonction de conditions (ET logique).
# Les noms de champs sont logiques (created_at, owner_id...) :
# chaque backend les traduit vers son schéma.
# ─────────────────────────────────────────

OPERATORS = ("=", "!=", ">=", "<", "in")


@dataclass(frozen=True)
class Condition:
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in OPERATORS:
            raise ConfigurationError(f"Opérateur de filtre inconnu : {self.op}")


def eq(field_name: str, value) -> Condition:
    return Condition(field_name, "=", value)


def neq(field_name: str, value) -> Condition:
    return Condition(field_name, "!=", value)


def gte(field_name: str, value) -> Condition:
    return Condition(field_name, ">=", value)


def lt(field_name: str, value) -> Condition:
    return Condition(field_name, "<", value)


def in_(field_name: str, values) -> Condition:
    return Condition(field_name, "in", tuple(values))


@dataclass(frozen=True)
class Query:
    entity: str
    conditions: tuple = ()
    sort: Optional[str] = None          # "-created_at" = décroissant
    page: int = 1
    per_page: int = 200
    window: Optional[tuple] = None      # (champ, début inclus, fin exclue)
    limit: Optional[int] = None         # nombre max d'items au total

    def all_conditions(self) -> tuple:
        if not self.window:
            return self.conditions
        field_name, start, end = self.window
        bounds = []
        if start is not None:
            bounds.append(gte(field_name, start))
        if end is not None:
            bounds.append(lt(field_name, end))
        return tuple(self.conditions) + tuple(bounds)

    def at_page(self, page: int) -> "Query":
        return replace(self, page=page)


@dataclass
class Page:
    items: list = field(default_factory=list)
    total_items: int = 0
    total_pages: int = 0
    page: int = 1


# ─────────────────────────────────────────
# NORMALISATION
# entité → (classe, méthode de normalisation)
# ─────────────────────────────────────────

ENTITIES = {
    "leads":              Lead,
    "invoices":           Invoice,
    "email_logs":         EmailLog,
    "marketing_expenses": MarketingExpense,
    "campaigns":          Campaign,
    "tasks":              Task,
    "users":              User,
    "contacts":           Contact,
    "companies":          Company,
    "activities":         Activity,
}


class BaseRecordStore(ABC):
    """
    Contrat que tous les backends respectent.

    → query()     : une page brute (dicts), à implémenter
    → fetch_all() : parcourt toutes les pages
    → fetch()     : fetch_all() + normalisation en snapshots typés
    """

    def __init__(self, page_size: int = 200):
        self.page_size = page_size
        self.source_name = self._get_source_name()

    @abstractmethod
    def _get_source_name(self) -> str:
        pass

    @abstractmethod
    def query(self, query: Query) -> Page:
        pass

    # ─────────────────────────────────────────
    # PAGINATION
    # ─────────────────────────────────────────

    def fetch_all(
        self, query: Query, cancel: Optional[Event] = None
    ) -> list[dict]:
        """
        Parcourt les pages jusqu'à page >= total_pages.
        L'annulation est vérifiée entre chaque page.
        """
        if query.entity not in ENTITIES:
            raise ConfigurationError(f"Entité inconnue : {query.entity}")

        query = replace(query, per_page=query.per_page or self.page_size)
        items: list[dict] = []
        page = query.page

        while True:
            if cancel is not None and cancel.is_set():
                raise FetchAborted(query.entity, "fetch annulé")

            result = self.query(query.at_page(page))
            items.extend(result.items)

            if query.limit and len(items) >= query.limit:
                return items[:query.limit]

            if not result.items or result.page >= result.total_pages:
                break
            page = result.page + 1

        logger.debug(
            f"[store.{self.source_name}] {query.entity} : {len(items)} items"
        )
        return items

    def fetch(self, query: Query, cancel: Optional[Event] = None) -> list:
        raws = self.fetch_all(query, cancel=cancel)
        records = []
        for raw in raws:
            record = self.normalize(query.entity, raw)
            if record is not None:
                records.append(record)
        return records

    # ─────────────────────────────────────────
    # NORMALISATION
    # Accepte les noms de champs du store d'origine
    # (owner, contact, created...) et les formes *_id.
    # ─────────────────────────────────────────

    def normalize(self, entity: str, raw: dict):
        method = getattr(self, f"_normalize_{entity}", None)
        if method is None:
            raise ConfigurationError(f"Entité inconnue : {entity}")
        if not raw or not raw.get("id"):
            logger.warning(
                f"[store.{self.source_name}] {entity} sans id ignoré"
            )
            return None
        return method(raw)

    def _normalize_leads(self, raw: dict) -> Lead:
        return Lead(
            id=self._safe_str(raw.get("id")),
            title=self._safe_str(raw.get("title")),
            value=max(0.0, self._safe_float(raw.get("value"))),
            status=self._safe_str(raw.get("status")) or "nouveau",
            priority=self._safe_str(raw.get("priority")),
            source=self._safe_str(raw.get("source")),
            campaign_id=self._safe_str(raw.get("campaign_id")) or None,
            contact_id=self._ref(raw, "contact"),
            company_id=self._ref(raw, "company"),
            owner_id=self._ref(raw, "owner"),
            expected_close=self._parse_datetime(raw.get("expected_close")),
            closed_at=self._parse_datetime(raw.get("closed_at")),
            created_at=self._created(raw),
        )

    def _normalize_invoices(self, raw: dict) -> Invoice:
        amount = self._safe_float(raw.get("amount"))
        tax_rate = self._safe_float(raw.get("tax_rate"))
        total = raw.get("total")
        return Invoice(
            id=self._safe_str(raw.get("id")),
            status=self._safe_str(raw.get("status")),
            amount=amount,
            tax_rate=tax_rate,
            # total absent → recalculé comme le ferait le hook de création
            total=(
                self._safe_float(total) if total not in (None, "")
                else invoice_total(amount, tax_rate)
            ),
            lead_id=self._ref(raw, "lead"),
            contact_id=self._ref(raw, "contact"),
            issued_at=self._parse_datetime(raw.get("issued_at")),
            due_at=self._parse_datetime(raw.get("due_at")),
            paid_at=self._parse_datetime(raw.get("paid_at")),
        )

    def _normalize_email_logs(self, raw: dict) -> EmailLog:
        return EmailLog(
            id=self._safe_str(raw.get("id")),
            status=self._safe_str(raw.get("status")),
            campaign_id=self._safe_str(raw.get("campaign_id")) or None,
            open_count=max(0, self._safe_int(raw.get("open_count"))),
            click_count=max(0, self._safe_int(raw.get("click_count"))),
            sent_at=self._parse_datetime(raw.get("sent_at")),
            opened_at=self._parse_datetime(raw.get("opened_at")),
            clicked_at=self._parse_datetime(raw.get("clicked_at")),
        )

    def _normalize_marketing_expenses(self, raw: dict) -> MarketingExpense:
        return MarketingExpense(
            id=self._safe_str(raw.get("id")),
            amount=max(0.0, self._safe_float(raw.get("amount"))),
            category=self._safe_str(raw.get("category")) or "autre",
            campaign_id=self._safe_str(raw.get("campaign_id")) or None,
            date=self._parse_datetime(raw.get("date")),
        )

    def _normalize_campaigns(self, raw: dict) -> Campaign:
        return Campaign(
            id=self._safe_str(raw.get("id")),
            name=self._safe_str(raw.get("name")),
            type=self._safe_str(raw.get("type")),
            status=self._safe_str(raw.get("status")),
            total=self._safe_int(raw.get("total")),
            sent=self._safe_int(raw.get("sent")),
            failed=self._safe_int(raw.get("failed")),
        )

    def _normalize_tasks(self, raw: dict) -> Task:
        return Task(
            id=self._safe_str(raw.get("id")),
            type=self._safe_str(raw.get("type")),
            status=self._safe_str(raw.get("status")),
            assignee_id=self._ref(raw, "assignee"),
            due_date=self._parse_datetime(raw.get("due_date")),
            completed_at=self._parse_datetime(raw.get("completed_at")),
            created_at=self._created(raw),
        )

    def _normalize_users(self, raw: dict) -> User:
        return User(
            id=self._safe_str(raw.get("id")),
            name=self._safe_str(raw.get("name")),
            role=self._safe_str(raw.get("role")) or "standard",
        )

    def _normalize_contacts(self, raw: dict) -> Contact:
        tags = raw.get("tags") or ()
        if isinstance(tags, str):
            tags = [t.strip() for t in tags.split(",") if t.strip()]
        return Contact(
            id=self._safe_str(raw.get("id")),
            first_name=self._safe_str(raw.get("first_name")),
            last_name=self._safe_str(raw.get("last_name")),
            company_id=self._ref(raw, "company"),
            tags=tuple(tags),
            created_at=self._created(raw),
        )

    def _normalize_companies(self, raw: dict) -> Company:
        return Company(
            id=self._safe_str(raw.get("id")),
            name=self._safe_str(raw.get("name")),
            city=self._safe_str(raw.get("city")),
            industry=self._safe_str(raw.get("industry")),
        )

    def _normalize_activities(self, raw: dict) -> Activity:
        return Activity(
            id=self._safe_str(raw.get("id")),
            type=self._safe_str(raw.get("type")),
            description=self._safe_str(raw.get("description")),
            user_id=self._ref(raw, "user"),
            created_at=self._created(raw),
        )

    # ─────────────────────────────────────────
    # UTILITAIRES COMMUNS
    # ─────────────────────────────────────────

    def _ref(self, raw: dict, name: str) -> str:
        return self._safe_str(raw.get(f"{name}_id") or raw.get(name))

    def _created(self, raw: dict) -> Optional[datetime]:
        return self._parse_datetime(raw.get("created_at") or raw.get("created"))

    def _safe_float(self, value, default: float = 0.0) -> float:
        try:
            return float(value) if value not in (None, "") else default
        except (ValueError, TypeError):
            return default

    def _safe_int(self, value, default: int = 0) -> int:
        try:
            return int(value) if value not in (None, "") else default
        except (ValueError, TypeError):
            return default

    def _safe_str(self, value, default: str = "") -> str:
        if value is None:
            return default
        return str(value).strip()

    def _parse_datetime(self, value) -> Optional[datetime]:
        """
        Parse universelle des dates, normalisées en UTC naive.

        Gère :
        → datetime natif Python
        → ISO 8601 avec "T" ou espace, avec ou sans Z
          ("2025-01-15 10:00:00.000Z" côté PocketBase)
        → Strings "YYYY-MM-DD"
        """
        return parse_datetime(value)


def parse_datetime(value) -> Optional[datetime]:
    if not value:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    try:
        s = str(value).strip().replace("Z", "+00:00")

        if len(s) > 10 and s[10] in ("T", " "):
            dt = datetime.fromisoformat(s)
            if dt.tzinfo is not None:
                dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
            return dt

        if len(s) >= 10:
            return datetime.strptime(s[:10], "%Y-%m-%d")

        return None

    except (ValueError, TypeError):
        return None
