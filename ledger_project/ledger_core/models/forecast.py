from django.conf import settings
from django.db import models

from ..managers import TenantManager
from ..money import ZERO
from .company import Company

FORECAST_ITEM_TYPES = [
    ("INFLOW", "Inflow"),
    ("OUTFLOW", "Outflow"),
]

CONFIDENCE_CHOICES = [
    ("HIGH", "High"),
    ("MEDIUM", "Medium"),
    ("LOW", "Low"),
]


# ---------- Cash flow forecasting ----------
class CashFlowForecast(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    start_date = models.DateField()
    end_date = models.DateField()
    currency_code = models.CharField(max_length=10, default="USD")
    opening_balance = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    # opening + inflows - outflows
    projected_closing_balance = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    def __str__(self):
        return f"{self.name} ({self.start_date} - {self.end_date})"


class CashFlowForecastItem(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    forecast = models.ForeignKey(CashFlowForecast, on_delete=models.CASCADE, related_name="items")
    item_date = models.DateField()
    item_type = models.CharField(max_length=10, choices=FORECAST_ITEM_TYPES)
    category = models.CharField(max_length=100)
    description = models.CharField(max_length=400, blank=True, default="")
    projected_amount = models.DecimalField(max_digits=18, decimal_places=2)
    confidence = models.CharField(max_length=10, choices=CONFIDENCE_CHOICES, default="MEDIUM")
    source = models.CharField(max_length=100, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    objects = TenantManager()

    class Meta:
        ordering = ("forecast", "item_date", "id")

    def __str__(self):
        return f"{self.item_date} {self.item_type} {self.projected_amount}"
