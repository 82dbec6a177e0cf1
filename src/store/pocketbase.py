# store/pocketbase.py

import json
import logging
import math
from datetime import datetime

import requests

from errors import FetchFailed
from store.base import BaseRecordStore, Condition, Page, Query

logger = logging.getLogger(__name__)

POCKETBASE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S.000Z"

# PocketBase impose un perPage maximum
POCKETBASE_MAX_PER_PAGE = 500

# nom logique → nom de champ PocketBase
FIELD_MAP = {
    "created_at":  "created",
    "updated_at":  "updated",
    "owner_id":    "owner",
    "contact_id":  "contact",
    "company_id":  "company",
    "assignee_id": "assignee",
    "user_id":     "user",
    "lead_id":     "lead",
}


class PocketBaseStore(BaseRecordStore):
    """
    Record store PocketBase via l'API REST :
    GET /api/collections/{collection}/records?page=&perPage=&filter=&sort=

    Réponse : {items, totalItems, totalPages, page, perPage}
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        page_size: int = 200,
        timeout: int = 15,
        session: requests.Session = None,
    ):
        super().__init__(page_size=min(page_size, POCKETBASE_MAX_PER_PAGE))
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get_source_name(self) -> str:
        return "pocketbase"

    def _get_headers(self) -> dict:
        if self.token:
            return {"Authorization": self.token}
        return {}

    # ─────────────────────────────────────────
    # REQUÊTE
    # ─────────────────────────────────────────

    def query(self, query: Query) -> Page:
        params = {
            "page": query.page,
            "perPage": min(query.per_page or self.page_size,
                           POCKETBASE_MAX_PER_PAGE),
        }

        filter_expr = self.render_filter(query.all_conditions())
        if filter_expr:
            params["filter"] = filter_expr
        if query.sort:
            params["sort"] = self.render_sort(query.sort)

        url = f"{self.base_url}/api/collections/{query.entity}/records"

        try:
            response = self.session.get(
                url,
                params=params,
                headers=self._get_headers(),
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.error(f"[store.pocketbase] {query.entity} page {query.page} : {e}")
            raise FetchFailed(query.entity, str(e)) from e
        except ValueError as e:
            raise FetchFailed(query.entity, f"réponse JSON invalide : {e}") from e

        items = data.get("items") or []
        total_items = int(data.get("totalItems", len(items)))
        per_page = int(data.get("perPage") or params["perPage"])
        total_pages = int(
            data.get("totalPages", math.ceil(total_items / per_page) if per_page else 1)
        )

        return Page(
            items=items,
            total_items=total_items,
            total_pages=total_pages,
            page=int(data.get("page", query.page)),
        )

    # ─────────────────────────────────────────
    # RENDU DU FILTRE
    # ─────────────────────────────────────────

    def render_filter(self, conditions) -> str:
        """
        Conjonction de conditions → syntaxe de filtre PocketBase.
        ex: status = "gagne" && closed_at >= "2025-01-01 00:00:00.000Z"
        Un "in" devient un groupe de "||".
        """
        parts = [self._render_condition(c) for c in conditions]
        return " && ".join(p for p in parts if p)

    def _render_condition(self, condition: Condition) -> str:
        name = FIELD_MAP.get(condition.field, condition.field)

        if condition.op == "in":
            values = list(condition.value)
            if not values:
                # in [] ne matche rien
                return 'id = ""'
            alternatives = [
                f"{name} = {self._render_value(v)}" for v in values
            ]
            return "(" + " || ".join(alternatives) + ")"

        return f"{name} {condition.op} {self._render_value(condition.value)}"

    def _render_value(self, value) -> str:
        if isinstance(value, datetime):
            value = value.strftime(POCKETBASE_DATE_FORMAT)
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        # json.dumps échappe guillemets et antislashs
        return json.dumps(str(value))

    def render_sort(self, sort: str) -> str:
        fields = []
        for part in sort.split(","):
            part = part.strip()
            prefix = "-" if part.startswith("-") else ""
            name = part.lstrip("-+")
            fields.append(prefix + FIELD_MAP.get(name, name))
        return ",".join(fields)
