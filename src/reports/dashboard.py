# reports/dashboard.py

from datetime import datetime, timedelta
import logging

from analytics.periods import PeriodWindow
from analytics.rates import evolution_pct
from analytics.rollups import group_by_month, group_by_status
from models import OPEN_STAGES, LeadStatus, TaskStatus, TaskType
from reports.base import BaseReport
from store.base import Query, eq, in_

logger = logging.getLogger(__name__)

OPEN_TASK_STATUSES = (TaskStatus.A_FAIRE.value, TaskStatus.EN_COURS.value)


class DashboardReport(BaseReport):
    """
    Vue d'accueil : période courante vs précédente,
    agenda du jour, pipeline ouvert, activité récente.
    """

    def _get_name(self) -> str:
        return "dashboard"

    def _queries(self, window: PeriodWindow, now: datetime) -> dict[str, Query]:
        # la tendance peut remonter plus loin que la période précédente
        since = min(window.previous_start, window.trend_start)

        return {
            "won_leads": self._query(
                "leads",
                eq("status", LeadStatus.GAGNE.value),
                window=("closed_at", since, window.current_end),
            ),
            "new_leads": self._query(
                "leads",
                window=("created_at", window.previous_start, window.current_end),
            ),
            "open_leads": self._query(
                "leads", in_("status", OPEN_STAGES),
            ),
            "tasks": self._query(
                "tasks", in_("status", OPEN_TASK_STATUSES),
            ),
            "activities": self._query(
                "activities",
                sort="-created_at",
                limit=self.config.recent_activities_limit,
            ),
            "users": self._query("users"),
        }

    def _build(self, window: PeriodWindow, data: dict, now: datetime) -> dict:
        won = data["won_leads"]
        new_leads = data["new_leads"]

        revenue_current = sum(l.value for l in won if window.in_current(l.closed_at))
        revenue_previous = sum(l.value for l in won if window.in_previous(l.closed_at))

        prospects_current = sum(1 for l in new_leads if window.in_current(l.created_at))
        prospects_previous = sum(1 for l in new_leads if window.in_previous(l.created_at))

        pipeline = group_by_status(data["open_leads"], lambda l: l.status, lambda l: l.value)

        trend = group_by_month(
            won, lambda l: l.closed_at, lambda l: l.value, window.buckets
        )

        return {
            "revenue": {
                "current": round(revenue_current, 2),
                "previous": round(revenue_previous, 2),
                "evolution_pct": evolution_pct(revenue_current, revenue_previous).to_dict(),
            },
            "new_prospects": {
                "current": prospects_current,
                "previous": prospects_previous,
                "evolution_pct": evolution_pct(prospects_current, prospects_previous).to_dict(),
            },
            "meetings_today": self._meetings_today(data["tasks"], now),
            "overdue_tasks": sum(
                1 for t in data["tasks"] if t.due_date and t.due_date < now
            ),
            "pipeline_by_stage": pipeline.rows("stage", sum_name="amount"),
            "recent_activities": self._recent_activities(
                data["activities"], data["users"]
            ),
            "revenue_trend": [
                {"month": row["month"], "revenue": row["sum"]} for row in trend
            ],
        }

    # ─────────────────────────────────────────
    # SECTIONS
    # ─────────────────────────────────────────

    def _meetings_today(self, tasks: list, now: datetime) -> int:
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        day_end = day_start + timedelta(days=1)
        return sum(
            1 for t in tasks
            if t.type == TaskType.REUNION.value
            and t.due_date
            and day_start <= t.due_date < day_end
        )

    def _recent_activities(self, activities: list, users: list) -> list[dict]:
        users_by_id = self._users_by_id(users)
        ordered = sorted(
            activities,
            key=lambda a: (a.created_at or datetime.min, a.id),
            reverse=True,
        )[:self.config.recent_activities_limit]

        rows = []
        for activity in ordered:
            user = users_by_id.get(activity.user_id)
            rows.append({
                "id": activity.id,
                "type": activity.type,
                "description": activity.description,
                "created": activity.created_at.isoformat() if activity.created_at else None,
                "user_id": activity.user_id,
                "user_name": user.name if user else "",
            })
        return rows
