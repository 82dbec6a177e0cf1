# reports/sales.py

from datetime import datetime

from analytics.periods import PeriodWindow
from analytics.rates import avg_close_days, conversion_rate
from analytics.rollups import (
    group_by_month, group_by_person, group_by_status, name_sort_key
)
from reports.base import BaseReport
from store.base import Query

# libellé des leads sans commercial connu
UNASSIGNED = "N/A"


class SalesReport(BaseReport):
    """
    Ventes : CA gagné, répartition par commercial,
    pipeline ouvert et entonnoir des leads créés sur la période.
    """

    def _get_name(self) -> str:
        return "sales"

    def _queries(self, window: PeriodWindow, now: datetime) -> dict[str, Query]:
        # pipeline ouvert = tous les leads non clôturés, quelle que soit leur date
        return {
            "leads": self._query("leads"),
            "users": self._query("users"),
        }

    def _build(self, window: PeriodWindow, data: dict, now: datetime) -> dict:
        leads = data["leads"]
        users_by_id = self._users_by_id(data["users"])

        created = [l for l in leads if window.in_current(l.created_at)]
        won = [l for l in leads if l.is_won and window.in_current(l.closed_at)]
        open_leads = [l for l in leads if not l.is_closed]

        trend = group_by_month(
            (l for l in leads if l.is_won),
            lambda l: l.closed_at,
            lambda l: l.value,
            window.buckets,
        )

        by_person = group_by_person(won, lambda l: l.owner_id, lambda l: l.value)
        salespeople = [
            {
                "user_id": user_id,
                "name": users_by_id[user_id].name if user_id in users_by_id else UNASSIGNED,
                "revenue": round(group.sum, 2),
                "deals": group.count,
            }
            for user_id, group in by_person.groups.items()
        ]

        # leads gagnés sans commercial : une ligne N/A, le CA reste ventilé
        orphans = [l for l in won if not l.owner_id]
        if orphans:
            salespeople.append({
                "user_id": None,
                "name": UNASSIGNED,
                "revenue": round(sum(l.value for l in orphans), 2),
                "deals": len(orphans),
            })
        salespeople.sort(
            key=lambda r: (-r["revenue"], name_sort_key(r["name"]), r["user_id"] or "")
        )

        pipeline = group_by_status(open_leads, lambda l: l.status, lambda l: l.value)
        funnel = group_by_status(created, lambda l: l.status, include_empty=True)

        return {
            "revenue_by_month": [
                {"month": row["month"], "revenue": row["sum"]} for row in trend
            ],
            "by_salesperson": salespeople,
            "pipeline": pipeline.rows("stage", sum_name="amount"),
            "funnel": funnel.rows("stage"),
            "pipeline_value": round(pipeline.total_sum, 2),
            "won_value": round(sum(l.value for l in won), 2),
            "conversion_rate": conversion_rate(created).to_dict(),
            "avg_close_days": avg_close_days(won).to_dict(),
        }
