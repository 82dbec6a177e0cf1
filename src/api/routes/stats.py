# api/routes/stats.py

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Depends
from pydantic import BaseModel

from api.dependencies import (
    get_config, get_record_store, require_admin, verify_api_key
)
from config import AnalyticsConfig
from errors import ConfigurationError, ReportUnavailable
from models import User
from reports import build_report, list_reports
from reports.digest import send_digest
from store.base import BaseRecordStore

router = APIRouter()
logger = logging.getLogger(__name__)


# ─────────────────────────────────────────
# MODÈLES DE REQUÊTE
# ─────────────────────────────────────────

class DigestRequest(BaseModel):
    recipients: list[str] = []     # vide → DIGEST_RECIPIENTS
    period: Optional[str] = None   # absent → DIGEST_PERIOD


# ─────────────────────────────────────────
# ROUTES
# ─────────────────────────────────────────

@router.get("/")
def get_available_reports(user: User = Depends(verify_api_key)) -> dict:
    return {"reports": list_reports()}


@router.post("/digest")
def post_digest(
    body: DigestRequest,
    user: User = Depends(require_admin),
    store: BaseRecordStore = Depends(get_record_store),
    config: AnalyticsConfig = Depends(get_config),
) -> dict:
    """
    Envoie le digest à la demande.
    Réservé aux admins.
    """
    if body.period:
        config = config.with_overrides(digest_period=body.period)

    try:
        sent = send_digest(store, config, recipients=body.recipients or None)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ReportUnavailable as e:
        logger.error(f"[api.stats] Digest demandé par {user.id} : {e}")
        raise HTTPException(status_code=503, detail=str(e))

    return {"sent": sent, "period": config.digest_period}


@router.get("/{report}")
def get_report_stats(
    report: str,
    period: str = Query("month"),
    user: User = Depends(verify_api_key),
    store: BaseRecordStore = Depends(get_record_store),
    config: AnalyticsConfig = Depends(get_config),
) -> dict:
    """
    Payload JSON d'un rapport pour une période.
    period ∈ week | month | quarter | year
    """
    try:
        return build_report(report, store, period, config=config)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ReportUnavailable as e:
        logger.error(f"[api.stats] {report}/{period} : {e}")
        raise HTTPException(status_code=503, detail=str(e))
