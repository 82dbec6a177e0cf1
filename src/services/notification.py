# services/notification.py

import os
import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"


# ─────────────────────────────────────────
# EMAIL (via Resend)
# Seul canal sortant : le digest des rapports
# ─────────────────────────────────────────

def send_email(
    to: str | list[str],
    subject: str,
    body: str,
    from_name: str = "CRM Analytics",
    reply_to: Optional[str] = None,
    session: Optional[requests.Session] = None,
) -> bool:
    """
    Envoie un email texte via Resend.
    Retourne False si la clé n'est pas configurée ou si l'API refuse.
    """
    api_key = os.environ.get("RESEND_API_KEY", "")
    from_email = os.environ.get("RESEND_FROM_EMAIL", "stats@crm.local")

    if not api_key:
        logger.error("[notification] RESEND_API_KEY non configuré")
        return False

    recipients = [to] if isinstance(to, str) else list(to)
    if not recipients:
        logger.warning("[notification] Aucun destinataire, envoi ignoré")
        return False

    payload = {
        "from": f"{from_name} <{from_email}>",
        "to": recipients,
        "subject": subject,
        "text": body,
    }
    if reply_to:
        payload["reply_to"] = reply_to

    http = session or requests

    try:
        response = http.post(
            RESEND_URL,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            json=payload,
            timeout=15,
        )
        response.raise_for_status()

    except requests.RequestException as e:
        logger.error(f"[notification] Échec d'envoi à {recipients} : {e}")
        return False

    logger.info(f"[notification] Email envoyé à {recipients} : {subject}")
    return True
