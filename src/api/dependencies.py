# api/dependencies.py

from typing import Optional

from fastapi import Depends, Header, HTTPException

from config import AnalyticsConfig, load_config
from errors import ConfigurationError, FetchError
from models import User, UserRole
from store import get_store
from store.base import BaseRecordStore, Query, eq


def get_config() -> AnalyticsConfig:
    try:
        return load_config()
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=str(e))


def get_record_store(
    config: AnalyticsConfig = Depends(get_config),
) -> BaseRecordStore:
    try:
        return get_store(config.store_backend, page_size=config.page_size)
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=str(e))


def verify_api_key(
    x_api_key: Optional[str] = Header(None),
    store: BaseRecordStore = Depends(get_record_store),
) -> User:
    """
    Une API key par utilisateur (champ api_key de la collection users).
    Retourne l'utilisateur authentifié avec son rôle.
    Header attendu : X-API-KEY
    """
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Non autorisé")

    try:
        users = store.fetch(Query("users", (eq("api_key", x_api_key),), limit=1))
    except FetchError as e:
        raise HTTPException(status_code=503, detail=f"Store indisponible : {e}")

    if not users:
        raise HTTPException(status_code=401, detail="Non autorisé")

    return users[0]


def require_admin(user: User = Depends(verify_api_key)) -> User:
    if user.role != UserRole.ADMIN.value:
        raise HTTPException(status_code=403, detail="Forbidden")
    return user
