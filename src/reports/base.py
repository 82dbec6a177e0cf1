# reports/base.py

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from threading import Event
from typing import Optional

from analytics.periods import PeriodWindow, resolve_period
from config import AnalyticsConfig, load_config
from errors import FetchError, ReportUnavailable
from store.base import BaseRecordStore, Query

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    # UTC naive, comme les dates normalisées par le store
    return datetime.now(timezone.utc).replace(tzinfo=None)


class _AnyEvent:
    """Annulé dès que l'un des événements l'est."""

    def __init__(self, *events):
        self.events = [e for e in events if e is not None]

    def is_set(self) -> bool:
        return any(e.is_set() for e in self.events)


# ─────────────────────────────────────────
# BASE REPORT
# ─────────────────────────────────────────

class BaseReport(ABC):
    """
    Un rapport = composition fixe des calculs d'analytics.

    Cycle :
    1. résoudre la période (ConfigurationError si inconnue)
    2. déclarer les ensembles d'enregistrements nécessaires
    3. les récupérer en parallèle, point de jonction
    4. réduire et mettre en forme

    Frontière unique de capture des erreurs de fetch :
    un seul ensemble en échec → tout le rapport échoue.
    Jamais de section silencieusement à zéro.
    """

    def __init__(
        self,
        store: BaseRecordStore,
        config: Optional[AnalyticsConfig] = None,
    ):
        self.store = store
        self.config = config or load_config()
        self.name = self._get_name()

    @abstractmethod
    def _get_name(self) -> str:
        pass

    @abstractmethod
    def _queries(self, window: PeriodWindow, now: datetime) -> dict[str, Query]:
        pass

    @abstractmethod
    def _build(
        self, window: PeriodWindow, data: dict[str, list], now: datetime
    ) -> dict:
        pass

    def run(
        self,
        period: str,
        now: Optional[datetime] = None,
        cancel: Optional[Event] = None,
    ) -> dict:
        now = now or utcnow()
        window = resolve_period(period, now)
        started_at = utcnow()

        logger.info(f"[reports.{self.name}] Démarrage, période {period}")

        data = self._gather(self._queries(window, now), cancel)
        payload = {
            "period": period,
            "window": window.to_dict(),
            **self._build(window, data, now),
        }

        duration = (utcnow() - started_at).total_seconds()
        logger.info(
            f"[reports.{self.name}] Terminé en {duration:.2f}s "
            f"({sum(len(v) for v in data.values())} enregistrements)"
        )
        return payload

    # ─────────────────────────────────────────
    # FETCH PARALLÈLE + POINT DE JONCTION
    # ─────────────────────────────────────────

    def _gather(
        self, queries: dict[str, Query], cancel: Optional[Event] = None
    ) -> dict[str, list]:
        """
        Lectures indépendantes → parallèles.
        Les réducteurs ne démarrent qu'une fois TOUT reçu.
        Au premier échec, les autres fetchs sont interrompus
        entre deux pages.
        """
        if not queries:
            return {}

        abort = Event()
        token = _AnyEvent(abort, cancel)
        results: dict[str, list] = {}
        workers = max(1, min(self.config.fetch_workers, len(queries)))

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(self.store.fetch, query, token): key
                for key, query in queries.items()
            }
            try:
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
            except FetchError as e:
                abort.set()
                logger.error(
                    f"[reports.{self.name}] Fetch {e.entity} en échec : {e}"
                )
                raise ReportUnavailable(self.name, e) from e

        # ordre des clés stable quel que soit l'ordre d'arrivée
        return {key: results[key] for key in queries}

    # ─────────────────────────────────────────
    # CONSTRUCTION DES REQUÊTES
    # ─────────────────────────────────────────

    def _query(
        self,
        entity: str,
        *conditions,
        window: Optional[tuple] = None,
        sort: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Query:
        return Query(
            entity=entity,
            conditions=tuple(conditions),
            sort=sort,
            per_page=self.config.page_size,
            window=window,
            limit=limit,
        )

    def _users_by_id(self, users: list) -> dict:
        return {u.id: u for u in users}
