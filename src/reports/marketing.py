# reports/marketing.py

from datetime import datetime
import logging

from analytics.attribution import (
    attribute_by_channel, campaign_performance, channel_roi
)
from analytics.periods import PeriodWindow
from analytics.rates import UNDEFINED, cost_per_lead, engagement
from analytics.rollups import group_by_channel, group_by_month, group_by_status
from reports.base import BaseReport
from store.base import Query

logger = logging.getLogger(__name__)


class MarketingReport(BaseReport):
    """
    Marketing : acquisition (leads par mois, par source, entonnoir),
    engagement email, budget et ROI par canal, performance des campagnes.

    ROI/ROAS d'un canal sans coût = non applicable, jamais 0%.
    """

    def _get_name(self) -> str:
        return "marketing"

    def _queries(self, window: PeriodWindow, now: datetime) -> dict[str, Query]:
        since = min(window.current_start, window.trend_start)
        current = (window.current_start, window.current_end)

        return {
            "leads": self._query(
                "leads", window=("created_at", since, window.current_end)
            ),
            "expenses": self._query(
                "marketing_expenses", window=("date", *current)
            ),
            "email_logs": self._query(
                "email_logs", window=("sent_at", *current)
            ),
            "campaigns": self._query("campaigns"),
        }

    def _build(self, window: PeriodWindow, data: dict, now: datetime) -> dict:
        all_leads = data["leads"]
        expenses = data["expenses"]
        logs = data["email_logs"]

        leads = [l for l in all_leads if window.in_current(l.created_at)]

        leads_by_month = group_by_month(
            all_leads, lambda l: l.created_at, buckets=window.buckets
        )
        by_source = group_by_channel(leads, lambda l: l.source).sorted_by_count()
        funnel = group_by_status(leads, lambda l: l.status, include_empty=True)

        total_expenses = sum(e.amount for e in expenses)
        by_category = group_by_channel(
            expenses, lambda e: e.category, lambda e: e.amount
        )
        channels = attribute_by_channel(leads, expenses, window)
        email_channel = channel_roi(channels, "email")

        if total_expenses == 0:
            logger.info(
                f"[reports.{self.name}] Aucune dépense sur la période, "
                f"ROI non applicable"
            )

        return {
            "leads_by_month": [
                {"month": row["month"], "count": row["count"]}
                for row in leads_by_month
            ],
            "by_source": by_source.rows("source"),
            "total_leads": len(leads),
            "funnel": funnel.rows("stage"),
            "email_stats": engagement(logs).to_dict(),
            "total_expenses": round(total_expenses, 2),
            "has_budget": total_expenses > 0,
            "expenses_by_category": by_category.rows("category", sum_name="amount"),
            "cost_per_lead": cost_per_lead(total_expenses, len(leads)).to_dict(),
            "email_roi": (
                email_channel.roi if email_channel else UNDEFINED
            ).to_dict(),
            "roi_by_channel": [c.to_dict("channel") for c in channels],
            "campaign_performance": campaign_performance(
                data["campaigns"], leads, expenses, logs, window
            ),
        }
