# analytics/attribution.py

"""
Jointure dépenses marketing ↔ leads par canal ou par campagne.

Le revenu est attribué au canal / à la campagne d'ORIGINE du lead,
à sa valeur actuelle, jamais à la facture : une facture qui modifie
le montant ne change pas l'attribution.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from analytics.rates import Ratio, engagement, roi, roas
from models import CHANNEL_ORDER


@dataclass
class Attribution:
    key: str
    cost: float = 0.0
    revenue: float = 0.0
    leads: int = 0
    deals: int = 0

    @property
    def roi(self) -> Ratio:
        return roi(self.revenue, self.cost)

    @property
    def roas(self) -> Ratio:
        return roas(self.revenue, self.cost)

    def to_dict(self, key_name: str) -> dict:
        return {
            key_name: self.key,
            "cost": round(self.cost, 2),
            "revenue": round(self.revenue, 2),
            "leads": self.leads,
            "deals": self.deals,
            "roi": self.roi.to_dict(),
            "roas": self.roas.to_dict(),
        }


def _join(
    leads: Iterable,
    expenses: Iterable,
    window,
    lead_key: Callable,
    expense_key: Callable,
) -> dict[str, Attribution]:
    rows: dict[str, Attribution] = {}

    for expense in expenses:
        key = expense_key(expense)
        if not key or not window.in_current(expense.date):
            continue
        row = rows.setdefault(key, Attribution(key=key))
        row.cost += float(expense.amount or 0)

    for lead in leads:
        key = lead_key(lead)
        if not key or not window.in_current(lead.created_at):
            continue
        row = rows.setdefault(key, Attribution(key=key))
        row.leads += 1
        if lead.is_won:
            row.deals += 1
            row.revenue += float(lead.value or 0)

    return rows


def attribute_by_channel(
    leads: Iterable, expenses: Iterable, window
) -> list[Attribution]:
    """
    Par clé de canal :
    → cost    : dépenses de la fenêtre, category = canal
    → leads   : leads créés dans la fenêtre, source = canal
    → deals   : parmi ces leads, ceux gagnés
    → revenue : Σ value de ces deals

    Un canal sans coût mais avec des leads apparaît quand même
    (ROI/ROAS non applicables).
    """
    rows = _join(
        leads, expenses, window,
        lead_key=lambda l: l.source,
        expense_key=lambda e: e.category,
    )
    ordered = [c for c in CHANNEL_ORDER if c in rows]
    ordered += sorted(c for c in rows if c not in CHANNEL_ORDER)
    return [rows[c] for c in ordered]


def attribute_by_campaign(
    leads: Iterable, expenses: Iterable, window
) -> dict[str, Attribution]:
    return _join(
        leads, expenses, window,
        lead_key=lambda l: l.campaign_id,
        expense_key=lambda e: e.campaign_id,
    )


def campaign_performance(
    campaigns: Iterable,
    leads: Iterable,
    expenses: Iterable,
    logs: Iterable,
    window,
) -> list[dict]:
    """
    Une ligne par campagne active sur la fenêtre (coût, leads ou emails),
    avec attribution et engagement email.
    Les logs sans campaign_id ne participent pas.
    """
    by_id = {c.id: c for c in campaigns}
    attributions = attribute_by_campaign(leads, expenses, window)

    logs_by_campaign: dict[str, list] = {}
    for log in logs:
        if not log.campaign_id or not window.in_current(log.sent_at):
            continue
        logs_by_campaign.setdefault(log.campaign_id, []).append(log)

    campaign_ids = set(attributions) | set(logs_by_campaign)

    def sort_key(cid: str) -> tuple:
        campaign = by_id.get(cid)
        return (campaign.name if campaign else "", cid)

    rows = []
    for cid in sorted(campaign_ids, key=sort_key):
        campaign = by_id.get(cid)
        attribution = attributions.get(cid) or Attribution(key=cid)
        stats = engagement(logs_by_campaign.get(cid, []))

        row = attribution.to_dict("campaign_id")
        row.update({
            "name": campaign.name if campaign else "",
            "type": campaign.type if campaign else "",
            "status": campaign.status if campaign else "",
            "sent": stats.sent,
            "opened": stats.opened,
            "clicked": stats.clicked,
            "open_rate": stats.open_rate.to_dict(),
            "click_rate": stats.click_rate.to_dict(),
        })
        rows.append(row)

    return rows


def channel_roi(
    attributions: list[Attribution], channel: str
) -> Optional[Attribution]:
    return next((a for a in attributions if a.key == channel), None)
