import uuid

from django.conf import settings
from django.db import models


class AuditLog(models.Model):
    """
    Who changed what. Written only by AuditLogger, after the business
    transaction has committed.
    """
    class Action(models.TextChoices):
        CREATE = "CREATE", "Create"
        UPDATE = "UPDATE", "Update"
        DELETE = "DELETE", "Delete"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="audit_logs",
    )
    action = models.CharField(max_length=10, choices=Action.choices)
    resource = models.CharField(max_length=50)
    resource_id = models.CharField(max_length=64, blank=True, db_index=True)

    old_values = models.JSONField(null=True, blank=True)
    new_values = models.JSONField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["resource", "resource_id"]),
        ]

    def __str__(self):
        return f"{self.action} {self.resource}:{self.resource_id}"
