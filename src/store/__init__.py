# store/__init__.py

"""
Factory centralisée pour les record stores.

Utilisation :
    from store import get_store

    store = get_store("pocketbase")
    leads = store.fetch(Query("leads", (eq("status", "gagne"),)))

Un seul endroit à modifier si un backend change de nom.
"""

import importlib
import logging
import os
from typing import Optional

from errors import ConfigurationError
from store.base import (
    BaseRecordStore, Condition, Page, Query, eq, neq, gte, lt, in_
)

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────
# MAP : nom backend → classe
# Ajouter un backend = ajouter une ligne ici
# ─────────────────────────────────────────

_STORE_MAP = {
    "pocketbase": ("store.pocketbase", "PocketBaseStore"),
    "supabase":   ("store.supabase",   "SupabaseStore"),
    "memory":     ("store.memory",     "MemoryStore"),
}


def get_store(
    name: Optional[str] = None, page_size: int = 200, **kwargs
) -> BaseRecordStore:
    """
    Instancie le backend demandé.

    name absent → CRM_STORE_BACKEND, puis "pocketbase".
    Les paramètres de connexion viennent de l'environnement
    s'ils ne sont pas passés explicitement.

    Backend inconnu → ConfigurationError (pas de repli silencieux).
    """
    name = (name or os.environ.get("CRM_STORE_BACKEND") or "pocketbase").lower()
    entry = _STORE_MAP.get(name)

    if not entry:
        raise ConfigurationError(f"Backend de record store inconnu : {name}")

    module_path, class_name = entry
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)

    if name == "pocketbase":
        kwargs.setdefault("base_url", os.environ.get("POCKETBASE_URL", ""))
        kwargs.setdefault("token", os.environ.get("POCKETBASE_TOKEN", ""))
        if not kwargs["base_url"]:
            raise ConfigurationError("POCKETBASE_URL non configuré")

    logger.debug(f"[store] backend {name} instancié")
    return cls(page_size=page_size, **kwargs)


def list_supported_backends() -> list[str]:
    return list(_STORE_MAP.keys())
