# reports/clients.py

from datetime import datetime

from analytics.periods import PeriodWindow
from analytics.rates import defined_ratio
from analytics.rollups import group_by_key, group_by_person
from models import LeadStatus
from reports.base import BaseReport
from store.base import Query, eq


class ClientsReport(BaseReport):
    """
    Clients : contacts tagués "client", segmentation
    par ville et secteur (via l'entreprise), panier moyen
    et top N par valeur vie client (LTV = Σ leads gagnés).
    """

    def _get_name(self) -> str:
        return "clients"

    def _queries(self, window: PeriodWindow, now: datetime) -> dict[str, Query]:
        return {
            "contacts": self._query("contacts"),
            "companies": self._query("companies"),
            "won_leads": self._query(
                "leads", eq("status", LeadStatus.GAGNE.value)
            ),
        }

    def _build(self, window: PeriodWindow, data: dict, now: datetime) -> dict:
        contacts = data["contacts"]
        companies = {c.id: c for c in data["companies"]}
        won = data["won_leads"]
        limit = self.config.segment_limit

        clients = [c for c in contacts if c.is_client]

        active = {
            l.contact_id for l in won
            if l.contact_id and window.in_current(l.closed_at)
        }

        def company_field(name):
            def key_of(contact):
                company = companies.get(contact.company_id)
                return getattr(company, name) if company else None
            return key_of

        by_city = group_by_key(contacts, company_field("city")).sorted_by_count(limit)
        by_industry = group_by_key(contacts, company_field("industry")).sorted_by_count(limit)

        # LTV : somme des leads gagnés par contact, toutes périodes
        ltv = group_by_person(won, lambda l: l.contact_id, lambda l: l.value)

        return {
            "total_clients": len(clients),
            "new_clients": sum(1 for c in clients if window.in_current(c.created_at)),
            "active_clients": len(active),
            "by_city": by_city.rows("city"),
            "by_industry": by_industry.rows("industry"),
            "avg_basket": defined_ratio(
                sum(g.sum for g in ltv.groups.values()), len(ltv.groups), digits=0
            ).to_dict(),
            "top_clients": self._top_clients(contacts, ltv),
        }

    def _top_clients(self, contacts: list, ltv) -> list[dict]:
        names = {c.id: c.full_name for c in contacts}
        rows = [
            {
                "contact_id": contact_id,
                "name": names.get(contact_id, ""),
                "ltv": round(group.sum, 2),
            }
            for contact_id, group in ltv.groups.items()
            if group.sum > 0 and contact_id in names
        ]
        rows.sort(key=lambda r: (-r["ltv"], r["name"], r["contact_id"]))
        return rows[:self.config.top_clients_limit]
