# reports/__init__.py

"""
Registre des rapports.

Utilisation :
    from reports import build_report

    payload = build_report("marketing", store, "month")

Un rapport est identifié par (nom, période) et renvoie
un payload JSON-sérialisable aux noms de champs stables.
"""

import importlib
import logging
from datetime import datetime
from threading import Event
from typing import Optional

from config import AnalyticsConfig
from errors import ConfigurationError
from reports.base import BaseReport, utcnow
from store.base import BaseRecordStore

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────
# MAP : nom du rapport → classe
# Ajouter un rapport = ajouter une ligne ici
# ─────────────────────────────────────────

_REPORT_MAP = {
    "dashboard":   ("reports.dashboard",   "DashboardReport"),
    "sales":       ("reports.sales",       "SalesReport"),
    "clients":     ("reports.clients",     "ClientsReport"),
    "financial":   ("reports.financial",   "FinancialReport"),
    "marketing":   ("reports.marketing",   "MarketingReport"),
    "commercials": ("reports.commercials", "CommercialsReport"),
    "email":       ("reports.email",       "EmailReport"),
}


def get_report(
    name: str,
    store: BaseRecordStore,
    config: Optional[AnalyticsConfig] = None,
) -> BaseReport:
    entry = _REPORT_MAP.get(name)
    if not entry:
        raise ConfigurationError(
            f"Rapport inconnu : {name!r} "
            f"(attendu : {', '.join(list_reports())})"
        )

    module_path, class_name = entry
    module = importlib.import_module(module_path)
    return getattr(module, class_name)(store, config)


def build_report(
    name: str,
    store: BaseRecordStore,
    period: str,
    now: Optional[datetime] = None,
    config: Optional[AnalyticsConfig] = None,
    cancel: Optional[Event] = None,
) -> dict:
    """
    Point d'entrée unique.
    ConfigurationError si le rapport ou la période est inconnu,
    ReportUnavailable si un seul fetch échoue.
    """
    report = get_report(name, store, config)
    return report.run(period, now=now, cancel=cancel)


def list_reports() -> list[str]:
    return list(_REPORT_MAP.keys())
