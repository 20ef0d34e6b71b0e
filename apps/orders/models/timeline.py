from django.conf import settings
from django.db import models

from apps.utils.models import AppendOnlyModel
from ..status import TimelineEvent, localized, status_text
from .order import Order

__all__ = ["OrderTimeline"]


class OrderTimeline(AppendOnlyModel):
    """
    Append-only status history. First entry is always CREATED.
    """
    order = models.ForeignKey(Order, related_name="timeline", on_delete=models.PROTECT)

    status = models.CharField(max_length=20, choices=TimelineEvent.choices)
    description = models.JSONField(default=dict)  # {"en": ..., "ar": ...}
    timestamp = models.DateTimeField(auto_now_add=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL
    )

    class Meta:
        ordering = ["timestamp"]

    def __str__(self):
        return f"{self.order_id}: {self.status}"

    @classmethod
    def append(cls, order, event, created_by=None):
        return cls.objects.create(
            order=order,
            status=event,
            description=localized("timeline", event),
            created_by=created_by,
        )

    def text(self, lang="en"):
        return self.description.get(lang) or status_text("timeline", self.status, lang)
