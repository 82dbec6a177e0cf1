# store/supabase.py

import logging
import math
import os
from datetime import datetime

from supabase import create_client, Client

from errors import ConfigurationError, FetchFailed
from store.base import BaseRecordStore, Condition, Page, Query

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────
# CONNEXION
# ─────────────────────────────────────────

def get_client() -> Client:
    url = os.environ.get("SUPABASE_URL", "")
    key = os.environ.get("SUPABASE_SERVICE_KEY", "")
    if not url or not key:
        raise ConfigurationError("SUPABASE_URL ou SUPABASE_SERVICE_KEY non configuré")
    return create_client(url, key)


class SupabaseStore(BaseRecordStore):
    """
    Record store Supabase (PostgREST).
    Schéma supposé en snake_case avec colonnes *_id et created_at.

    Pagination via .range(début, fin) inclusif, total via count="exact".
    """

    def __init__(self, client: Client = None, page_size: int = 200):
        super().__init__(page_size=page_size)
        self._client = client

    def _get_source_name(self) -> str:
        return "supabase"

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_client()
        return self._client

    # ─────────────────────────────────────────
    # REQUÊTE
    # ─────────────────────────────────────────

    def query(self, query: Query) -> Page:
        per_page = query.per_page or self.page_size
        start = (query.page - 1) * per_page
        end = start + per_page - 1
        client = self.client

        try:
            builder = client.table(query.entity).select("*", count="exact")

            for condition in query.all_conditions():
                builder = self._apply(builder, condition)

            if query.sort:
                for part in query.sort.split(","):
                    part = part.strip()
                    builder = builder.order(
                        part.lstrip("-+"), desc=part.startswith("-")
                    )

            result = builder.range(start, end).execute()

        except Exception as e:
            logger.error(
                f"[store.supabase] {query.entity} page {query.page} : {e}"
            )
            raise FetchFailed(query.entity, str(e)) from e

        items = result.data or []
        total_items = result.count if result.count is not None else len(items)

        return Page(
            items=items,
            total_items=total_items,
            total_pages=math.ceil(total_items / per_page) if total_items else 0,
            page=query.page,
        )

    def _apply(self, builder, condition: Condition):
        value = condition.value
        if isinstance(value, datetime):
            value = value.isoformat()

        if condition.op == "=":
            return builder.eq(condition.field, value)
        if condition.op == "!=":
            return builder.neq(condition.field, value)
        if condition.op == ">=":
            return builder.gte(condition.field, value)
        if condition.op == "<":
            return builder.lt(condition.field, value)
        return builder.in_(condition.field, list(value))
