# store/memory.py

import math
from datetime import datetime
from typing import Optional

from store.base import BaseRecordStore, Condition, Page, Query, parse_datetime
from store.pocketbase import FIELD_MAP


class MemoryStore(BaseRecordStore):
    """
    Snapshot en mémoire : {entité: [dicts bruts]}.

    Même contrat que les backends distants (filtres, tri, pagination),
    utilisé par les tests et pour rejouer un rapport sur un export.
    """

    def __init__(self, data: Optional[dict] = None, page_size: int = 200):
        super().__init__(page_size=page_size)
        self.data = {k: list(v) for k, v in (data or {}).items()}
        self.calls: list[Query] = []

    def _get_source_name(self) -> str:
        return "memory"

    def query(self, query: Query) -> Page:
        self.calls.append(query)

        rows = [
            r for r in self.data.get(query.entity, [])
            if all(self._matches(r, c) for c in query.all_conditions())
        ]

        if query.sort:
            for part in reversed([p.strip() for p in query.sort.split(",")]):
                name = part.lstrip("-+")
                rows.sort(
                    key=lambda r: self._sort_value(self._field(r, name)),
                    reverse=part.startswith("-"),
                )

        per_page = query.per_page or self.page_size
        start = (query.page - 1) * per_page
        return Page(
            items=rows[start:start + per_page],
            total_items=len(rows),
            total_pages=math.ceil(len(rows) / per_page) if rows else 0,
            page=query.page,
        )

    # ─────────────────────────────────────────
    # ÉVALUATION DES CONDITIONS
    # ─────────────────────────────────────────

    def _field(self, raw: dict, name: str):
        if name in raw:
            return raw[name]
        return raw.get(FIELD_MAP.get(name, name))

    def _matches(self, raw: dict, condition: Condition) -> bool:
        actual = self._field(raw, condition.field)

        if condition.op == "in":
            return actual in condition.value
        if condition.op == "=":
            return actual == condition.value
        if condition.op == "!=":
            return actual != condition.value

        # comparaisons d'ordre : dates ou nombres
        if isinstance(condition.value, datetime):
            actual = parse_datetime(actual)
        if actual is None or actual == "":
            return False
        if condition.op == ">=":
            return actual >= condition.value
        return actual < condition.value

    def _sort_value(self, value) -> tuple:
        # None en premier, dates comparées après parsing
        parsed = value
        if isinstance(value, str):
            parsed = parse_datetime(value) or value
        if parsed is None or parsed == "":
            return (0, "")
        if isinstance(parsed, datetime):
            return (1, parsed.isoformat())
        return (1, parsed)
