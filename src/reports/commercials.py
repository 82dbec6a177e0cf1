# reports/commercials.py

from datetime import datetime

from analytics.leaderboard import build_leaderboard
from analytics.periods import PeriodWindow
from reports.base import BaseReport
from store.base import Query, in_


class CommercialsReport(BaseReport):

    def _get_name(self) -> str:
        return "commercials"

    def _queries(self, window: PeriodWindow, now: datetime) -> dict[str, Query]:
        # un lead peut être créé avant la période et gagné pendant :
        # on lit tous les leads, le ranker applique la fenêtre
        return {
            "users": self._query("users", in_("role", self.config.ranked_roles)),
            "leads": self._query("leads"),
            "tasks": self._query(
                "tasks",
                window=("created_at", window.current_start, window.current_end),
            ),
        }

    def _build(self, window: PeriodWindow, data: dict, now: datetime) -> dict:
        entries = build_leaderboard(
            data["users"],
            data["leads"],
            data["tasks"],
            window,
            roles=self.config.ranked_roles,
        )
        return {"leaderboard": [e.to_dict() for e in entries]}
