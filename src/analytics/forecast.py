# analytics/forecast.py

from dataclasses import dataclass
from typing import Iterable, Optional

from config import DEFAULT_STAGE_WEIGHTS, validate_stage_weights
from errors import ConfigurationError
from models import OPEN_STAGES


@dataclass(frozen=True)
class StageForecast:
    stage: str
    count: int
    total_amount: float
    weighted: float

    def to_dict(self) -> dict:
        return {
            "stage": self.stage,
            "total_amount": round(self.total_amount, 2),
            "weighted": round(self.weighted, 2),
        }


def compute_forecast(
    leads: Iterable,
    weights: Optional[dict] = None,
) -> tuple[list[StageForecast], float]:
    """
    Forecast pondéré du pipeline ouvert.

    Pour chaque stage ouvert :
        total_amount = Σ value
        weighted     = total_amount × poids(stage)

    Forecast global = Σ weighted.
    Un lead ouvert dont le stage n'a pas de poids → ConfigurationError :
    on ne devine jamais une probabilité.
    """
    weights = DEFAULT_STAGE_WEIGHTS if weights is None else weights
    validate_stage_weights(weights)

    totals: dict[str, list] = {}
    for lead in leads:
        if lead.is_closed:
            continue
        if lead.status not in weights:
            raise ConfigurationError(
                f"Pas de poids de probabilité pour le stage {lead.status!r}"
            )
        entry = totals.setdefault(lead.status, [0, 0.0])
        entry[0] += 1
        entry[1] += float(lead.value or 0)

    ordered = [s for s in OPEN_STAGES if s in totals]
    ordered += sorted(s for s in totals if s not in OPEN_STAGES)

    stages = []
    for stage in ordered:
        count, amount = totals[stage]
        stages.append(StageForecast(
            stage=stage,
            count=count,
            total_amount=amount,
            weighted=amount * float(weights[stage]),
        ))

    return stages, sum(s.weighted for s in stages)
