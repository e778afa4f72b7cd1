from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .account import Account
from .company import Company

FREQUENCY_CHOICES = [
    ("monthly", "Monthly"),
    ("quarterly", "Quarterly"),
    ("yearly", "Yearly"),
]


# ---------- Journal templates ----------
class JournalTemplate(models.Model):
    """Reusable skeleton of a journal entry, driven by recurring entries."""
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["company", "name"],
                                    name="uq_company_template_name"),
        ]

    def __str__(self):
        return self.name


class JournalTemplateLine(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    template = models.ForeignKey(
        JournalTemplate, on_delete=models.CASCADE, related_name="lines"
    )
    account = models.ForeignKey(Account, on_delete=models.PROTECT, related_name="+")
    # Formulas are plain numbers for now ("1500.00"); anything that does not
    # parse evaluates to zero
    debit_formula = models.CharField(max_length=200, blank=True, default="")
    credit_formula = models.CharField(max_length=200, blank=True, default="")
    description = models.CharField(max_length=400, blank=True, default="")
    sequence = models.PositiveIntegerField(default=10)

    objects = TenantManager()

    class Meta:
        ordering = ("template", "sequence", "id")

    def __str__(self):
        return f"{self.template_id}#{self.sequence} {self.account_id}"

    def clean(self):
        if self.account_id and self.account.company_id != self.company_id:
            raise ValidationError("Template account must belong to the same company.")

    def save(self, *args, **kwargs):
        if not self.company_id and self.template_id:
            self.company_id = self.template.company_id
        self.full_clean()
        return super().save(*args, **kwargs)


# ---------- Recurring entries ----------
class RecurringJournalEntry(models.Model):
    """Posts its template every `frequency` starting one interval after start_date."""
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    name = models.CharField(max_length=200)
    template = models.ForeignKey(
        JournalTemplate, on_delete=models.PROTECT, related_name="recurring_entries"
    )
    frequency = models.CharField(max_length=10, choices=FREQUENCY_CHOICES)
    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)
    next_run_date = models.DateField()
    last_run_date = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        verbose_name_plural = "recurring journal entries"
        indexes = [
            models.Index(
                fields=["company", "is_active", "next_run_date"],
                name="recurring_company_next_idx",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.frequency}, next {self.next_run_date})"

    def clean(self):
        if self.template_id and self.template.company_id != self.company_id:
            raise ValidationError("Template must belong to the same company.")
        if self.end_date and self.start_date and self.end_date < self.start_date:
            raise ValidationError("end_date must not be before start_date")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
