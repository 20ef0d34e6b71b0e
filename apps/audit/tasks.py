import logging

from celery import shared_task
from django.db import DatabaseError

from .services import AuditLogger

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=2, default_retry_delay=10, soft_time_limit=10, time_limit=20, ignore_result=True)
def record_audit_event(self, payload: dict):
    try:
        AuditLogger.record(payload)
    except DatabaseError as exc:
        logger.warning(f"Audit write failed for {payload.get('resource')}:{payload.get('resource_id')}, retrying")
        raise self.retry(exc=exc)
