# scheduler.py

import logging
import os

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from dotenv import load_dotenv

from config import load_config
from errors import AnalyticsError
from reports.digest import send_digest
from store import get_store

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s [%(levelname)s] %(name)s : %(message)s"
)
logger = logging.getLogger(__name__)


# ─────────────────────────────────────────
# JOBS
# Le moteur est sans état : c'est ici que
# se décide la cadence de rafraîchissement.
# ─────────────────────────────────────────

def run_weekly_digest() -> None:
    """6h30, lundi uniquement."""
    try:
        config = load_config()
        store = get_store(config.store_backend, page_size=config.page_size)
        success = send_digest(store, config)
        status = "envoyé" if success else "échec"
        logger.info(f"[digest] Digest hebdomadaire {status}")
    except AnalyticsError as e:
        # rapport indisponible ou config invalide : pas de digest partiel
        logger.error(f"[digest] Digest annulé : {e}")


# ─────────────────────────────────────────
# LISTENERS
# ─────────────────────────────────────────

def _on_job_executed(event) -> None:
    if event.exception:
        logger.error(f"[scheduler] Job {event.job_id} : exception levée")


# ─────────────────────────────────────────
# BUILD SCHEDULER
# ─────────────────────────────────────────

def build_scheduler() -> BlockingScheduler:
    timezone = load_config().scheduler_timezone
    scheduler = BlockingScheduler(timezone=timezone)
    scheduler.add_listener(
        _on_job_executed,
        EVENT_JOB_ERROR | EVENT_JOB_EXECUTED
    )

    # 6h30 lundi : digest dashboard + classement
    scheduler.add_job(
        run_weekly_digest,
        trigger=CronTrigger(day_of_week="mon", hour=6, minute=30),
        id="weekly_digest",
        name="Digest hebdomadaire",
        max_instances=1,
        coalesce=True
    )

    return scheduler


# ─────────────────────────────────────────
# POINT D'ENTRÉE
# ─────────────────────────────────────────

def main() -> None:
    logger.info("=" * 50)
    logger.info("CRM Analytics Scheduler : démarrage")
    logger.info("=" * 50)

    scheduler = build_scheduler()

    logger.info("Jobs configurés :")
    for job in scheduler.get_jobs():
        logger.info(f"  → {job.name}")

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler arrêté proprement.")


if __name__ == "__main__":
    main()
