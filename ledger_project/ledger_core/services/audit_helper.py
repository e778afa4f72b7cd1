from typing import Optional

from django.utils.module_loading import import_string

from ..conf import ledger_setting
from ..models import AuditLog, Company


class AuditService:
    """
    Sink for audit entries. Entries are plain dicts:
    entity_type, entity_id, action, old_values, new_values, org_id, user_id.
    """

    def log_audit(self, entry: dict):
        raise NotImplementedError


class DatabaseAuditService(AuditService):
    """Writes entries to AuditLog, inside the caller's transaction."""

    def log_audit(self, entry: dict):
        AuditLog.objects.create(
            company_id=entry.get("org_id"),
            user_id=entry.get("user_id"),
            action=entry["action"],
            object_type=entry["entity_type"],
            object_id=str(entry["entity_id"]),
            old_values=entry.get("old_values"),
            changes=entry.get("new_values"),
        )


def get_audit_service() -> AuditService:
    return import_string(ledger_setting("AUDIT_SERVICE"))()


def log_action(
    *,
    action: str,
    instance,
    user=None,
    company: Optional[Company] = None,
    changes: dict | None = None,
    old_values: dict | None = None,
    service: AuditService | None = None,
):
    """
    Central audit logger.
    Safe to call multiple times (caller ensures idempotency).
    """
    if not company:
        company = getattr(instance, "company", None)

    (service or get_audit_service()).log_audit({
        "entity_type": instance.__class__.__name__,
        "entity_id": str(instance.pk),
        "action": action,
        "old_values": old_values,
        "new_values": changes,
        "org_id": getattr(company, "pk", None),
        "user_id": getattr(user, "pk", None),
    })
