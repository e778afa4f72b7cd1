from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .company import Company


# ---------- Fiscal year ----------
class FiscalYear(models.Model):
    company = models.ForeignKey(Company, on_delete=models.PROTECT)
    name = models.CharField(max_length=50)  # "FY2025"
    start_date = models.DateField()
    end_date = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["company", "name"],
                                    name="uq_company_fiscal_year_name"),
        ]
        ordering = ("company", "start_date")

    def __str__(self):
        return f"{self.company.slug} {self.name}"

    def clean(self):
        if self.start_date and self.end_date and self.start_date >= self.end_date:
            raise ValidationError("start_date must be before end_date")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


# ---------- Fiscal period (accounting period) ----------
class FiscalPeriod(models.Model):  # time bucket during which postings are grouped

    # Every company has its own independent calendar of periods
    company = models.ForeignKey(Company, on_delete=models.PROTECT)
    fiscal_year = models.ForeignKey(
        FiscalYear,
        on_delete=models.PROTECT,
        related_name="periods",
    )

    name = models.CharField(max_length=50)  # "January 2025"
    start_date = models.DateField()
    end_date = models.DateField()

    # Once True, no posting may be dated inside [start_date, end_date]
    is_closed = models.BooleanField(default=False)
    closed_at = models.DateTimeField(null=True, blank=True)
    closed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="+",
    )

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "start_date"], name="period_company_start_idx"),
            models.Index(fields=["company", "is_closed"], name="period_company_closed_idx"),
        ]
        constraints = [
            models.UniqueConstraint(fields=["company", "name"],
                                    name="uq_company_period_name"),
        ]
        ordering = ("company", "start_date")

    def __str__(self):
        return f"{self.company.slug} {self.name}"

    def contains(self, day):
        return self.start_date <= day <= self.end_date

    @classmethod
    def is_date_closed(cls, company, day):
        """True when `day` falls inside any closed period of `company`."""
        return cls.objects.filter(
            company=company, is_closed=True,
            start_date__lte=day, end_date__gte=day,
        ).exists()

    def clean(self):
        # single day periods are fine (a year ending on the 1st of a month)
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValidationError("start_date must not be after end_date")
        if self.fiscal_year_id and self.fiscal_year.company_id != self.company_id:
            raise ValidationError("Fiscal year must belong to the same company.")
        # closing is one-way
        if self.pk:
            orig = FiscalPeriod.objects.filter(pk=self.pk).first()
            if orig and orig.is_closed and not self.is_closed:
                raise ValidationError("A closed period cannot be reopened.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
