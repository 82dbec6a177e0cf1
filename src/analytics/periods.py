# analytics/periods.py

import calendar
from dataclasses import dataclass
from datetime import datetime, timedelta

from errors import ConfigurationError


# ─────────────────────────────────────────
# TABLES DE PÉRIODES
# Table de configuration, pas une formule.
# ─────────────────────────────────────────

PERIODS = ("week", "month", "quarter", "year")

# période → (unité du décalage, valeur)
_SPANS = {
    "week":    ("days", 7),
    "month":   ("months", 1),
    "quarter": ("months", 3),
    "year":    ("months", 12),
}

# période → (granularité des buckets de tendance, nombre)
TREND_BUCKETS = {
    "week":    ("day", 7),
    "month":   ("month", 12),
    "quarter": ("month", 12),
    "year":    ("month", 12),
}


@dataclass(frozen=True)
class Bucket:
    label: str          # "YYYY-MM" ou "YYYY-MM-DD"
    start: datetime
    end: datetime       # exclusif

    def contains(self, dt: datetime) -> bool:
        return self.start <= dt < self.end


@dataclass(frozen=True)
class PeriodWindow:
    period: str
    current_start: datetime
    current_end: datetime
    previous_start: datetime
    previous_end: datetime
    buckets: tuple

    @property
    def trend_start(self) -> datetime:
        return self.buckets[0].start

    def in_current(self, dt) -> bool:
        return dt is not None and self.current_start <= dt < self.current_end

    def in_previous(self, dt) -> bool:
        return dt is not None and self.previous_start <= dt < self.previous_end

    def to_dict(self) -> dict:
        return {
            "start": self.current_start.isoformat(),
            "end": self.current_end.isoformat(),
        }


def resolve_period(period: str, now: datetime) -> PeriodWindow:
    """
    Fenêtre courante = [now - span, now)
    Fenêtre précédente = même durée, juste avant.

    previous_end == current_start, toujours.
    """
    if period not in _SPANS:
        raise ConfigurationError(
            f"Période inconnue : {period!r} (attendu : {', '.join(PERIODS)})"
        )

    unit, amount = _SPANS[period]
    if unit == "days":
        current_start = now - timedelta(days=amount)
    else:
        current_start = shift_months(now, -amount)

    duration = now - current_start

    return PeriodWindow(
        period=period,
        current_start=current_start,
        current_end=now,
        previous_start=current_start - duration,
        previous_end=current_start,
        buckets=tuple(trend_buckets(period, now)),
    )


def trend_buckets(period: str, now: datetime) -> list[Bucket]:
    """
    N sous-périodes contiguës, ordonnées, la dernière contient now.
    week → 7 jours ; les autres → 12 mois calendaires.
    """
    if period not in TREND_BUCKETS:
        raise ConfigurationError(f"Période inconnue : {period!r}")

    granularity, count = TREND_BUCKETS[period]
    buckets = []

    if granularity == "day":
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        for offset in range(count - 1, -1, -1):
            start = today - timedelta(days=offset)
            buckets.append(Bucket(
                label=start.strftime("%Y-%m-%d"),
                start=start,
                end=start + timedelta(days=1),
            ))
        return buckets

    month_start = now.replace(
        day=1, hour=0, minute=0, second=0, microsecond=0
    )
    for offset in range(count - 1, -1, -1):
        start = shift_months(month_start, -offset)
        buckets.append(Bucket(
            label=start.strftime("%Y-%m"),
            start=start,
            end=shift_months(start, 1),
        ))
    return buckets


def shift_months(dt: datetime, months: int) -> datetime:
    # 31 mars - 1 mois → 28/29 février (jour borné à la fin du mois)
    index = dt.year * 12 + (dt.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)
