import json
import logging
from dataclasses import asdict, dataclass
from typing import Optional

from django.core.serializers.json import DjangoJSONEncoder

from .models import AuditLog

logger = logging.getLogger(__name__)


@dataclass
class AuditEvent:
    action: str
    resource: str
    resource_id: str = ""
    user_id: Optional[int] = None
    old_values: Optional[dict] = None
    new_values: Optional[dict] = None

    def to_payload(self) -> dict:
        # Celery JSON serializer cannot handle Decimal/UUID directly
        return json.loads(json.dumps(asdict(self), cls=DjangoJSONEncoder))


class AuditLogger:

    @staticmethod
    def record(event) -> AuditLog:
        """
        Accepts an AuditEvent or the dict produced by AuditEvent.to_payload().
        """
        if isinstance(event, AuditEvent):
            event = event.to_payload()

        entry = AuditLog.objects.create(
            user_id=event.get("user_id"),
            action=event["action"],
            resource=event["resource"],
            resource_id=str(event.get("resource_id") or ""),
            old_values=event.get("old_values"),
            new_values=event.get("new_values"),
        )
        logger.debug("Audit %s %s:%s", entry.action, entry.resource, entry.resource_id)
        return entry
