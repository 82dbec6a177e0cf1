# analytics/rates.py

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional
import statistics

from models import (
    DELIVERED_EMAIL_STATUSES, EmailLogStatus, InvoiceStatus, LeadStatus
)


# ─────────────────────────────────────────
# POLITIQUE DÉNOMINATEUR NUL
# Jamais de NaN ni d'exception :
# → pourcentage sans dénominateur : {value: 0,    has_data: False}
# → métrique indéfinie sans donnée : {value: None, has_data: False}
# ─────────────────────────────────────────

@dataclass(frozen=True)
class Ratio:
    value: Optional[float]
    has_data: bool

    def to_dict(self) -> dict:
        return {"value": self.value, "has_data": self.has_data}


NO_DATA = Ratio(value=0.0, has_data=False)
UNDEFINED = Ratio(value=None, has_data=False)


def percentage(numerator: float, denominator: float, digits: int = 1) -> Ratio:
    if not denominator:
        return NO_DATA
    return Ratio(
        value=round(numerator / denominator * 100, digits), has_data=True
    )


def defined_ratio(
    numerator: float, denominator: float, digits: int = 2
) -> Ratio:
    """Ratio qui n'a pas de sens sans dénominateur (coût par lead, ROAS)."""
    if not denominator:
        return UNDEFINED
    return Ratio(value=round(numerator / denominator, digits), has_data=True)


# ─────────────────────────────────────────
# EMAIL
# ─────────────────────────────────────────

@dataclass(frozen=True)
class Engagement:
    total: int = 0
    sent: int = 0
    failed: int = 0
    opened: int = 0
    clicked: int = 0

    @property
    def open_rate(self) -> Ratio:
        return percentage(self.opened, self.sent)

    @property
    def click_rate(self) -> Ratio:
        return percentage(self.clicked, self.sent)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "sent": self.sent,
            "failed": self.failed,
            "opened": self.opened,
            "clicked": self.clicked,
            "open_rate": self.open_rate.to_dict(),
            "click_rate": self.click_rate.to_dict(),
        }


def engagement(logs: Iterable) -> Engagement:
    """
    sent    = statut ∈ {envoye, ouvert, clique}
    opened  = open_count > 0   (indépendamment du statut)
    clicked = click_count > 0  (indépendamment du statut)
    """
    total = sent = failed = opened = clicked = 0
    for log in logs:
        total += 1
        if log.status in DELIVERED_EMAIL_STATUSES:
            sent += 1
        if log.status == EmailLogStatus.ECHOUE.value:
            failed += 1
        if (log.open_count or 0) > 0:
            opened += 1
        if (log.click_count or 0) > 0:
            clicked += 1
    return Engagement(
        total=total, sent=sent, failed=failed, opened=opened, clicked=clicked
    )


# ─────────────────────────────────────────
# VENTES
# ─────────────────────────────────────────

def conversion_rate(leads: Iterable) -> Ratio:
    """Leads gagnés / tous les leads de la fenêtre × 100."""
    leads = list(leads)
    won = sum(1 for l in leads if l.status == LeadStatus.GAGNE.value)
    return percentage(won, len(leads))


def success_rate(won: int, total_leads: int) -> Ratio:
    return percentage(won, total_leads)


def evolution_pct(current: float, previous: float) -> Ratio:
    # previous = 0 → évolution indéfinie (pas "100%")
    if not previous:
        return UNDEFINED
    return Ratio(
        value=round((current - previous) / previous * 100, 1), has_data=True
    )


# ─────────────────────────────────────────
# MARKETING
# ─────────────────────────────────────────

def roi(revenue: float, cost: float) -> Ratio:
    """ROI = (revenu - coût) / coût × 100, défini seulement si coût > 0."""
    if cost <= 0:
        return UNDEFINED
    return Ratio(value=round((revenue - cost) / cost * 100, 1), has_data=True)


def roas(revenue: float, cost: float) -> Ratio:
    if cost <= 0:
        return UNDEFINED
    return Ratio(value=round(revenue / cost, 2), has_data=True)


def cost_per_lead(total_expenses: float, total_leads: int) -> Ratio:
    return defined_ratio(total_expenses, total_leads)


# ─────────────────────────────────────────
# DÉLAIS MOYENS
# ─────────────────────────────────────────

def _mean_days(pairs: Iterable) -> Ratio:
    durations = [
        (end - start).total_seconds() / 86400
        for start, end in pairs
        if isinstance(start, datetime) and isinstance(end, datetime)
    ]
    if not durations:
        return UNDEFINED
    return Ratio(value=round(statistics.mean(durations)), has_data=True)


def avg_payment_delay(invoices: Iterable) -> Ratio:
    """Moyenne (paid_at - issued_at) en jours entiers, factures payées."""
    return _mean_days(
        (i.issued_at, i.paid_at)
        for i in invoices
        if i.status == InvoiceStatus.PAYEE.value
    )


def avg_close_days(leads: Iterable) -> Ratio:
    """Moyenne (closed_at - created_at) en jours entiers, leads gagnés."""
    return _mean_days(
        (l.created_at, l.closed_at)
        for l in leads
        if l.status == LeadStatus.GAGNE.value
    )
