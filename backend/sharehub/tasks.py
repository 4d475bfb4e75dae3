import os
from celery import Celery
from celery.schedules import crontab
from celery.utils.log import get_task_logger

from .database import SessionLocal
from .services import file_store
from .storage import get_blob_store

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "memory://")
celery_app = Celery("sharehub", broker=CELERY_BROKER_URL)
celery_app.conf.task_always_eager = (
    CELERY_BROKER_URL == "memory://" or os.getenv("TESTING") == "1"
)

_logger = get_task_logger(__name__)

celery_app.conf.beat_schedule = {
    "reclaim-orphaned-blobs": {
        "task": "sharehub.tasks.reclaim_orphaned_blobs",
        "schedule": crontab(hour=3, minute=0),
    },
}


@celery_app.task(name="sharehub.tasks.reclaim_orphaned_blobs")
def reclaim_orphaned_blobs(limit: int = 1000, min_age: float = file_store.ORPHAN_GRACE_SECONDS):
    """Remove blobs left behind by failed deletions or aborted uploads."""
    db = SessionLocal()
    try:
        reclaimed = file_store.reclaim_orphaned_blobs(db, get_blob_store(), limit=limit, min_age=min_age)
    finally:
        db.close()
    _logger.info("Orphan reclamation removed %d blob(s)", len(reclaimed))
    return reclaimed


def enqueue_reclaim_orphaned_blobs(limit: int = 1000, min_age: float = file_store.ORPHAN_GRACE_SECONDS):
    if celery_app.conf.task_always_eager:
        return reclaim_orphaned_blobs(limit, min_age)
    return reclaim_orphaned_blobs.delay(limit, min_age)
