from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models

from ..managers import TenantManager
from .company import Company


# ---------- Audit / Event log ----------
class AuditLog(models.Model):  # accountability and traceability across the ledger
    company = models.ForeignKey(
        Company,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    # Nullable in case the action was automated (celery batch, import script)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="+",
    )
    action = models.CharField(max_length=50)  # CREATE, UPDATE, POST, REVERSE, ...
    object_type = models.CharField(max_length=100)  # "VendorBill", "JournalEntry"
    object_id = models.CharField(max_length=100)
    # before/after values; Decimals and dates serialized as strings
    old_values = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    changes = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(
                fields=["company", "object_type", "object_id"],
                name="audit_company_object_idx",
            ),
            models.Index(fields=["company", "created_at"], name="audit_company_created_idx"),
        ]

    def __str__(self):
        return f"[{self.created_at:%Y-%m-%d %H:%M}] {self.user} {self.action} {self.object_type}({self.object_id})"
