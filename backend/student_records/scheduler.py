"""
Planificateur APScheduler : nettoyage périodique des images temporaires.

Chaque image reçue est retirée du dossier temporaire après son envoi ;
ce job supprime les fichiers restés en place (arrêt brutal, erreur disque...).
"""

import logging
from datetime import timedelta

from apscheduler.schedulers.background import BackgroundScheduler

from student_records.config import settings
from student_records.services.upload_staging import sweep_stale_uploads

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def _sweep_uploads_scheduled() -> None:
    """Tâche planifiée : supprime les fichiers temporaires plus vieux que UPLOAD_STALE_MINUTES."""
    try:
        removed = sweep_stale_uploads(timedelta(minutes=settings.UPLOAD_STALE_MINUTES))
        if removed:
            logger.info("Nettoyage des images temporaires : %d fichier(s) supprimé(s)", removed)
    except OSError as exc:
        logger.error("Erreur lors du nettoyage des images temporaires : %s", exc)


def start_scheduler() -> None:
    """Démarre le planificateur en arrière-plan (appelé au démarrage de l'API)."""
    if not settings.UPLOAD_SWEEP_ENABLED:
        logger.info("Nettoyage des images temporaires désactivé.")
        return
    scheduler.add_job(
        _sweep_uploads_scheduled,
        trigger="interval",
        minutes=settings.UPLOAD_STALE_MINUTES,
        id="stale_upload_sweep",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        "Scheduler démarré: nettoyage des images temporaires toutes les %d minutes.",
        settings.UPLOAD_STALE_MINUTES,
    )


def stop_scheduler() -> None:
    """Arrête le planificateur proprement (appelé à l'arrêt de l'API)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
