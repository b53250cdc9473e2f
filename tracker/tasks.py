import json
import logging
import uuid

from celery import shared_task
from django.conf import settings
from django.utils import timezone
import redis

from .exceptions import StudentNotFound
from .services.repository import StudentRepository
from .services.sync import build_sync_service

logger = logging.getLogger(__name__)

SYNC_ALL_LOCK_KEY = "tracker:sync_all_students"

_redis_client = None


# Compare-and-delete: only the pass holding the token may release the lock.
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


def _get_redis_client():
    global _redis_client
    if _redis_client is None:
        url = getattr(settings, "CELERY_BROKER_URL", "redis://localhost:6379/0")
        _redis_client = redis.Redis.from_url(url)
    return _redis_client


def _acquire_lock(lock_key: str, ttl_seconds: int = 600) -> str | None:
    """Returns the owner token, or None while another pass holds the lock."""
    token = uuid.uuid4().hex
    try:
        client = _get_redis_client()
        if client.set(lock_key, token, nx=True, ex=ttl_seconds):
            return token
        return None
    except redis.RedisError:
        logger.exception("Lock failure for %s; continuing without lock.", lock_key)
        return token


def _release_lock(lock_key: str, token: str) -> None:
    try:
        released = _get_redis_client().eval(_RELEASE_SCRIPT, 1, lock_key, token)
    except redis.RedisError:
        logger.exception("Failed to release lock %s", lock_key)
        return
    if not released:
        logger.warning("Lock %s expired before the pass finished; left to its new owner", lock_key)


def _set_task_health(task_name: str, payload: dict, ttl_seconds: int = 2 * 24 * 3600) -> None:
    data = {
        "task": task_name,
        "at": timezone.now().isoformat(),
        **(payload or {}),
    }
    try:
        _get_redis_client().set(
            f"task_health:{task_name}",
            json.dumps(data, default=str),
            ex=ttl_seconds,
        )
    except redis.RedisError:
        logger.exception("Failed to store task health for %s", task_name)


@shared_task
def sync_all_students() -> dict:
    """Daily pass over every student."""
    ttl_seconds = int(getattr(settings, "SYNC_ALL_LOCK_SECONDS", 6 * 60 * 60))
    token = _acquire_lock(SYNC_ALL_LOCK_KEY, ttl_seconds=ttl_seconds)
    if token is None:
        logger.info("sync_all_students skipped: previous pass still running")
        return {"status": "locked"}

    try:
        batch = build_sync_service().sync_all()
    finally:
        _release_lock(SYNC_ALL_LOCK_KEY, token)

    summary = {
        "status": "ok",
        "students": len(batch.results),
        "succeeded": len(batch.succeeded),
        "failed": [result.handle for result in batch.failed],
        "reminders": batch.reminders_sent,
        "duration_ms": batch.duration_ms,
    }
    _set_task_health("sync_all_students", summary)
    return summary


@shared_task
def sync_student(student_id: int) -> dict:
    """On-demand sync of one student (new student, handle change, admin action)."""
    try:
        snapshot = StudentRepository().load_by_id(student_id)
    except StudentNotFound:
        return {"status": "missing", "student_id": student_id}

    result = build_sync_service().sync_subject(snapshot.handle)
    return {
        "status": "ok" if result.ok else "failed",
        "student_id": student_id,
        "handle": result.handle,
        "error": result.error,
        "reminder_sent": result.reminder_sent,
        "failed_contests": result.failed_contests,
    }
