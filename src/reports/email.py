# reports/email.py

from datetime import datetime

from analytics.periods import PeriodWindow
from analytics.rates import engagement
from reports.base import BaseReport
from store.base import Query


class EmailReport(BaseReport):
    """
    Statistiques d'envoi : global + par campagne.

    Les compteurs d'un log en attente n'ont pas de sent_at :
    on lit donc tous les logs, pas seulement ceux de la fenêtre.
    """

    def _get_name(self) -> str:
        return "email"

    def _queries(self, window: PeriodWindow, now: datetime) -> dict[str, Query]:
        return {
            "email_logs": self._query("email_logs"),
            "campaigns": self._query("campaigns"),
        }

    def _build(self, window: PeriodWindow, data: dict, now: datetime) -> dict:
        logs = data["email_logs"]

        logs_by_campaign: dict[str, list] = {}
        for log in logs:
            if log.campaign_id:
                logs_by_campaign.setdefault(log.campaign_id, []).append(log)

        campaigns = []
        for campaign in sorted(data["campaigns"], key=lambda c: (c.name, c.id)):
            row = {
                "campaign_id": campaign.id,
                "campaign_name": campaign.name,
                "campaign_status": campaign.status,
            }
            row.update(engagement(logs_by_campaign.get(campaign.id, [])).to_dict())
            campaigns.append(row)

        return {
            "global": engagement(logs).to_dict(),
            "campaigns": campaigns,
        }
