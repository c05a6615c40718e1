"""
AuditLog model - immutable chronological record of domain events.

Audit logs are append-only. No update or delete operations, including
queryset-level bulk update() and delete().
"""

import uuid
from django.db import models

APPEND_ONLY_MESSAGE = "AuditLog entries are append-only. {} are not allowed."

ENTITY_TYPES = [
    "WorkItem",
    "Submission",
    "Payment",
    "Business",
    "Contractor",
    "Contract",
]


class AuditLogQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise ValueError(APPEND_ONLY_MESSAGE.format("Updates"))

    def delete(self):
        raise ValueError(APPEND_ONLY_MESSAGE.format("Deletions"))


class AuditLog(models.Model):
    """AuditLog model - immutable audit trail."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event_type = models.CharField(max_length=50)
    actor = models.ForeignKey(
        "users.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_actions",
    )
    # Set for SYSTEM events (webhook, reconciliation) that have no user
    actor_name = models.CharField(max_length=150, null=True, blank=True)
    business_id = models.UUIDField(null=True, blank=True)
    entity_type = models.CharField(max_length=50)
    entity_id = models.UUIDField()
    request_id = models.CharField(max_length=64, null=True, blank=True)
    previous_state = models.JSONField(null=True, blank=True)
    new_state = models.JSONField(null=True, blank=True)
    occurred_at = models.DateTimeField(auto_now_add=True)

    objects = AuditLogQuerySet.as_manager()

    class Meta:
        db_table = "audit_logs"
        indexes = [
            models.Index(fields=["entity_type", "entity_id"], name="idx_audit_entity"),
            models.Index(fields=["occurred_at"], name="idx_audit_occurred"),
            models.Index(fields=["actor"], name="idx_audit_actor"),
            models.Index(fields=["business_id"], name="idx_audit_business"),
        ]
        ordering = ["-occurred_at"]

    def __str__(self):
        return (
            f"{self.event_type} - {self.entity_type}:{self.entity_id} at "
            f"{self.occurred_at}"
        )

    def save(self, *args, **kwargs):
        """Override save to prevent updates."""
        if self.pk and AuditLog.objects.filter(pk=self.pk).exists():
            raise ValueError(APPEND_ONLY_MESSAGE.format("Updates"))
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        """Override delete to prevent deletion."""
        raise ValueError(APPEND_ONLY_MESSAGE.format("Deletions"))
