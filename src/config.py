# config.py

import os
import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from errors import ConfigurationError

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────
# POIDS DE PROBABILITÉ PAR STAGE
# Constante de politique versionnée : toute
# modification change la version.
# ─────────────────────────────────────────

STAGE_WEIGHTS_VERSION = "2025.1"

DEFAULT_STAGE_WEIGHTS = {
    "nouveau":     0.10,
    "contacte":    0.20,
    "qualifie":    0.40,
    "proposition": 0.60,
    "negociation": 0.80,
}


# ─────────────────────────────────────────
# CONFIG PAR DÉFAUT
# Si un paramètre n'est ni dans l'environnement
# ni dans les overrides, on utilise ces valeurs.
# ─────────────────────────────────────────

DEFAULT_CONFIG = {
    "store_backend": "pocketbase",
    "page_size": 200,
    "fetch_workers": 4,
    "top_clients_limit": 10,
    "segment_limit": 10,
    "recent_activities_limit": 10,
    "ranked_roles": ["admin", "commercial"],
    "digest_recipients": [],
    "digest_period": "week",
    "scheduler_timezone": "Europe/Paris",
}

# variable d'environnement → (clé, convertisseur)
_ENV_MAP = {
    "CRM_STORE_BACKEND":  ("store_backend", str),
    "CRM_PAGE_SIZE":      ("page_size", int),
    "CRM_FETCH_WORKERS":  ("fetch_workers", int),
    "CRM_TOP_CLIENTS":    ("top_clients_limit", int),
    "DIGEST_RECIPIENTS":  ("digest_recipients",
                           lambda v: [e.strip() for e in v.split(",") if e.strip()]),
    "DIGEST_PERIOD":      ("digest_period", str),
    "SCHEDULER_TIMEZONE": ("scheduler_timezone", str),
}


@dataclass(frozen=True)
class AnalyticsConfig:
    """
    Configuration explicite passée à chaque calcul de rapport.
    Pas d'état global : deux appels avec la même config
    et le même snapshot donnent le même résultat.
    """
    stage_weights: dict = field(
        default_factory=lambda: dict(DEFAULT_STAGE_WEIGHTS)
    )
    stage_weights_version: str = STAGE_WEIGHTS_VERSION
    store_backend: str = "pocketbase"
    page_size: int = 200
    fetch_workers: int = 4
    top_clients_limit: int = 10
    segment_limit: int = 10
    recent_activities_limit: int = 10
    ranked_roles: tuple = ("admin", "commercial")
    digest_recipients: tuple = ()
    digest_period: str = "week"
    scheduler_timezone: str = "Europe/Paris"

    def with_overrides(self, **overrides) -> "AnalyticsConfig":
        return replace(self, **overrides)


def validate_stage_weights(weights: dict) -> None:
    """
    Chaque poids doit être dans ]0, 1].
    Un poids hors bornes est une erreur de configuration,
    jamais corrigé silencieusement.
    """
    if not weights:
        raise ConfigurationError("Table de poids des stages vide")

    for stage, weight in weights.items():
        try:
            w = float(weight)
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"Poids invalide pour le stage {stage} : {weight!r}"
            )
        if not 0 < w <= 1:
            raise ConfigurationError(
                f"Poids hors bornes pour le stage {stage} : {w}"
            )


def load_config(overrides: Optional[dict] = None) -> AnalyticsConfig:
    """
    Fusionne defaults ← environnement ← overrides explicites.

    Les overrides gagnent toujours : c'est ce que les tests
    et les appels manuels utilisent.
    """
    merged = dict(DEFAULT_CONFIG)

    for env_name, (key, convert) in _ENV_MAP.items():
        raw = os.environ.get(env_name)
        if raw is None or raw == "":
            continue
        try:
            merged[key] = convert(raw)
        except ValueError:
            raise ConfigurationError(
                f"Valeur invalide pour {env_name} : {raw!r}"
            )

    weights = dict(DEFAULT_STAGE_WEIGHTS)
    version = STAGE_WEIGHTS_VERSION

    for key, value in (overrides or {}).items():
        if key == "stage_weights":
            weights = dict(value)
        elif key == "stage_weights_version":
            version = value
        else:
            merged[key] = value

    validate_stage_weights(weights)

    if merged["page_size"] <= 0:
        raise ConfigurationError(
            f"page_size doit être positif : {merged['page_size']}"
        )

    known = set(AnalyticsConfig.__dataclass_fields__)
    unknown = set(merged) - known
    if unknown:
        raise ConfigurationError(
            f"Paramètres de configuration inconnus : {sorted(unknown)}"
        )

    merged["ranked_roles"] = tuple(merged["ranked_roles"])
    merged["digest_recipients"] = tuple(merged["digest_recipients"])

    logger.debug(
        f"[config] backend={merged['store_backend']} "
        f"weights_version={version}"
    )

    return AnalyticsConfig(
        stage_weights=weights,
        stage_weights_version=version,
        **merged
    )
