# analytics/leaderboard.py

from dataclasses import dataclass
from typing import Iterable

from analytics.rates import Ratio, success_rate
from analytics.rollups import name_sort_key
from models import TaskType


# type de tâche → compteur d'activité
_ACTIVITY_COUNTERS = {
    TaskType.APPEL.value: "calls",
    TaskType.EMAIL.value: "emails",
    TaskType.REUNION.value: "meetings",
}


@dataclass
class LeaderboardEntry:
    user_id: str
    name: str
    won: int = 0
    revenue: float = 0.0
    total_leads: int = 0
    calls: int = 0
    emails: int = 0
    meetings: int = 0
    total_tasks: int = 0

    @property
    def success_rate(self) -> Ratio:
        return success_rate(self.won, self.total_leads)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "name": self.name,
            "won": self.won,
            "revenue": round(self.revenue, 2),
            "total_leads": self.total_leads,
            "success_rate": self.success_rate.to_dict(),
            "calls": self.calls,
            "emails": self.emails,
            "meetings": self.meetings,
            "total_tasks": self.total_tasks,
        }


def rank_key(entry: LeaderboardEntry) -> tuple:
    # revenue ↓, won ↓, name ↑ : ordre déterministe
    return (-entry.revenue, -entry.won, name_sort_key(entry.name), entry.user_id)


def build_leaderboard(
    users: Iterable,
    leads: Iterable,
    tasks: Iterable,
    window,
    roles: Iterable = ("admin", "commercial"),
) -> list[LeaderboardEntry]:
    """
    Classement des commerciaux sur la fenêtre courante.

    → won / revenue : leads possédés, gagnés, clôturés dans la fenêtre
    → total_leads   : leads possédés créés dans la fenêtre
    → calls / emails / meetings : tâches assignées créées dans la fenêtre
    """
    roles = set(roles)
    entries = {
        u.id: LeaderboardEntry(user_id=u.id, name=u.name)
        for u in users
        if u.role in roles
    }

    for lead in leads:
        entry = entries.get(lead.owner_id)
        if entry is None:
            continue
        if window.in_current(lead.created_at):
            entry.total_leads += 1
        if lead.is_won and window.in_current(lead.closed_at):
            entry.won += 1
            entry.revenue += float(lead.value or 0)

    for task in tasks:
        entry = entries.get(task.assignee_id)
        if entry is None or not window.in_current(task.created_at):
            continue
        entry.total_tasks += 1
        counter = _ACTIVITY_COUNTERS.get(task.type)
        if counter:
            setattr(entry, counter, getattr(entry, counter) + 1)

    return sorted(entries.values(), key=rank_key)
