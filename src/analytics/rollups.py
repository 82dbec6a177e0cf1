# analytics/rollups.py

"""
Réducteurs purs : un ensemble d'enregistrements → comptes/sommes groupés.

Règles communes :
→ un enregistrement sans clé de groupement est exclu de la ventilation
  mais reste compté dans les totaux globaux
→ l'ordre de sortie est canonique (ordre du pipeline, ordre des canaux),
  jamais l'ordre de découverte
"""

import unicodedata
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from models import PIPELINE_ORDER, CHANNEL_ORDER


@dataclass
class Group:
    count: int = 0
    sum: float = 0.0

    def add(self, value: float) -> None:
        self.count += 1
        self.sum += value


@dataclass
class Rollup:
    groups: dict = field(default_factory=dict)     # clé → Group, ordonné
    total_count: int = 0
    total_sum: float = 0.0

    def rows(
        self,
        key_name: str,
        sum_name: Optional[str] = None,
        count_name: str = "count",
    ) -> list[dict]:
        """Forme "liste de lignes" attendue par les payloads JSON."""
        result = []
        for key, group in self.groups.items():
            row = {key_name: key, count_name: group.count}
            if sum_name:
                row[sum_name] = round(group.sum, 2)
            result.append(row)
        return result

    def sorted_by_count(self, limit: Optional[int] = None) -> "Rollup":
        # count décroissant, puis clé croissante pour la stabilité
        ordered = sorted(
            self.groups.items(),
            key=lambda kv: (-kv[1].count, name_sort_key(kv[0]), kv[0]),
        )
        if limit is not None:
            ordered = ordered[:limit]
        return Rollup(
            groups=dict(ordered),
            total_count=self.total_count,
            total_sum=self.total_sum,
        )


def name_sort_key(name: str) -> str:
    """Clé alphabétique sans accents ni casse : 'anne' < 'Élodie' < 'Zoé'."""
    decomposed = unicodedata.normalize("NFKD", name or "")
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()


def _no_value(_record) -> float:
    return 0.0


def group_by_key(
    records: Iterable,
    key_of: Callable,
    value_of: Optional[Callable] = None,
    order: Optional[list] = None,
    keep_unknown: bool = True,
    include_empty: bool = False,
) -> Rollup:
    """
    Groupement générique.

    order         : ordre canonique des clés (les autres viennent
                    ensuite, triées alphabétiquement)
    keep_unknown  : False → les clés hors `order` sont retirées de la
                    ventilation (mais comptées dans les totaux)
    include_empty : True → chaque clé de `order` apparaît, même à 0
    """
    value_of = value_of or _no_value
    order = order or []
    buckets: dict[str, Group] = {}
    rollup = Rollup()

    for record in records:
        value = float(value_of(record) or 0)
        rollup.total_count += 1
        rollup.total_sum += value

        key = key_of(record)
        if key is None or key == "":
            continue
        if not keep_unknown and key not in order:
            continue

        buckets.setdefault(key, Group()).add(value)

    known = [k for k in order if k in buckets or include_empty]
    extra = sorted(k for k in buckets if k not in order)

    for key in known + extra:
        rollup.groups[key] = buckets.get(key) or Group()

    return rollup


def group_by_status(
    records: Iterable,
    status_of: Callable,
    value_of: Optional[Callable] = None,
    order: Optional[list] = None,
    include_empty: bool = False,
) -> Rollup:
    """
    Ventilation par statut dans l'ordre canonique du pipeline
    (ou de l'ordre fourni, ex: statuts de facture).
    Un statut hors de l'ensemble canonique est exclu des groupes.
    """
    return group_by_key(
        records,
        status_of,
        value_of=value_of,
        order=order or PIPELINE_ORDER,
        keep_unknown=False,
        include_empty=include_empty,
    )


def group_by_channel(
    records: Iterable,
    channel_of: Callable,
    value_of: Optional[Callable] = None,
) -> Rollup:
    return group_by_key(
        records, channel_of, value_of=value_of, order=CHANNEL_ORDER
    )


def group_by_person(
    records: Iterable,
    person_of: Callable,
    value_of: Optional[Callable] = None,
) -> Rollup:
    return group_by_key(records, person_of, value_of=value_of)


def group_by_month(
    records: Iterable,
    date_of: Callable,
    value_of: Optional[Callable] = None,
    buckets: Iterable = (),
) -> list[dict]:
    """
    Série ordonnée [{month, sum, count}] couvrant TOUS les buckets
    de la fenêtre de tendance, y compris les buckets vides (sum=0).

    Les enregistrements hors de la fenêtre sont ignorés.
    value_of absent → on compte (sum == count).
    """
    buckets = list(buckets)
    totals = {b.label: Group() for b in buckets}

    for record in records:
        dt = date_of(record)
        if dt is None:
            continue
        for bucket in buckets:
            if bucket.contains(dt):
                value = float(value_of(record) or 0) if value_of else 1.0
                totals[bucket.label].add(value)
                break

    return [
        {
            "month": b.label,
            "sum": round(totals[b.label].sum, 2),
            "count": totals[b.label].count,
        }
        for b in buckets
    ]
