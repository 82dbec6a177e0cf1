# reports/digest.py

import logging
from datetime import datetime
from typing import Optional

from config import AnalyticsConfig, load_config
from reports import build_report
from reports.base import utcnow
from services.notification import send_email
from store.base import BaseRecordStore

logger = logging.getLogger(__name__)

DIGEST_REPORTS = ("dashboard", "commercials")


# ─────────────────────────────────────────
# POINT D'ENTRÉE
# ─────────────────────────────────────────

def send_digest(
    store: BaseRecordStore,
    config: Optional[AnalyticsConfig] = None,
    now: Optional[datetime] = None,
    recipients: Optional[list[str]] = None,
) -> bool:
    """
    Compile et envoie le digest (dashboard + classement).
    Appelé par le scheduler chaque lundi à 6h30, ou à la demande.

    Un rapport indisponible → ReportUnavailable remonte :
    pas de digest partiel.
    Retourne True si l'email a été envoyé.
    """
    config = config or load_config()
    recipients = list(recipients or config.digest_recipients)

    if not recipients:
        logger.error("[digest] Aucun destinataire configuré (DIGEST_RECIPIENTS)")
        return False

    reports = collect_reports(store, config, now)
    subject = build_subject(reports)
    body = build_body(reports)

    success = send_email(to=recipients, subject=subject, body=body)
    status = "envoyé" if success else "échec"
    logger.info(f"[digest] {status} ({len(recipients)} destinataire(s))")
    return success


def collect_reports(
    store: BaseRecordStore,
    config: AnalyticsConfig,
    now: Optional[datetime] = None,
) -> dict:
    # même instant pour tous les rapports du digest
    now = now or utcnow()
    return {
        name: build_report(name, store, config.digest_period, now=now, config=config)
        for name in DIGEST_REPORTS
    }


# ─────────────────────────────────────────
# CONSTRUCTION DU SUJET
# ─────────────────────────────────────────

def build_subject(reports: dict) -> str:
    dashboard = reports["dashboard"]
    revenue = dashboard["revenue"]
    end = dashboard["window"]["end"][:10]

    evolution = revenue["evolution_pct"]
    if evolution["has_data"]:
        return (
            f"Digest CRM {end} : {revenue['current']:,.0f}€ "
            f"({evolution['value']:+.1f}%)"
        )
    return f"Digest CRM {end} : {revenue['current']:,.0f}€"


# ─────────────────────────────────────────
# CONSTRUCTION DU CORPS
# Structure fixe, texte brut
# ─────────────────────────────────────────

def build_body(reports: dict) -> str:
    dashboard = reports["dashboard"]
    leaderboard = reports["commercials"]["leaderboard"]
    window = dashboard["window"]

    lines = []
    lines.append("Bonjour,")
    lines.append("")
    lines.append(
        f"Voici le digest du {window['start'][:10]} au {window['end'][:10]}."
    )
    lines.append("")

    # ── ACTIVITÉ ──
    lines.append("─" * 50)
    lines.append("ACTIVITÉ")
    lines.append("")

    revenue = dashboard["revenue"]
    prospects = dashboard["new_prospects"]
    lines.append(
        f"CA gagné : {revenue['current']:,.0f}€ "
        f"(précédent : {revenue['previous']:,.0f}€, "
        f"{_format_evolution(revenue['evolution_pct'])})"
    )
    lines.append(
        f"Nouveaux prospects : {prospects['current']} "
        f"(précédent : {prospects['previous']}, "
        f"{_format_evolution(prospects['evolution_pct'])})"
    )
    lines.append(f"Réunions aujourd'hui : {dashboard['meetings_today']}")

    if dashboard["overdue_tasks"] > 0:
        lines.append(f"⚠ Tâches en retard : {dashboard['overdue_tasks']}")

    lines.append("")

    # ── PIPELINE ──
    lines.append("─" * 50)
    lines.append("PIPELINE OUVERT")
    lines.append("")

    if dashboard["pipeline_by_stage"]:
        for row in dashboard["pipeline_by_stage"]:
            lines.append(
                f"  → {row['stage']} : {row['count']} lead(s), "
                f"{row['amount']:,.0f}€"
            )
    else:
        lines.append("Aucun lead ouvert")

    lines.append("")

    # ── CLASSEMENT ──
    lines.append("─" * 50)
    lines.append("CLASSEMENT COMMERCIAL")
    lines.append("")

    if leaderboard:
        for rank, entry in enumerate(leaderboard[:5], start=1):
            lines.append(
                f"  {rank}. {entry['name']} : {entry['revenue']:,.0f}€, "
                f"{entry['won']} gagné(s), "
                f"{entry['calls']} appel(s), {entry['meetings']} réunion(s)"
            )
    else:
        lines.append("Aucun commercial classé sur la période")

    lines.append("")
    lines.append("─" * 50)
    lines.append("Ce digest est généré automatiquement.")

    return "\n".join(lines)


def _format_evolution(evolution: dict) -> str:
    if not evolution["has_data"]:
        return "évolution n/a"
    return f"{evolution['value']:+.1f}%"
