from django.conf import settings
from django.db import models


# ---------- Tenant / Company ----------
class Company(models.Model):

    """Tenant / Organization. Every ledger row hangs off exactly one company."""
    name = models.CharField(max_length=200)

    slug = models.SlugField(  # A URL-friendly identifier
        max_length=80, unique=True  # no two companies can have the same slug
    )

    # Link to a user account (creator or admin of company)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="owned_companies",
    )

    # Functional currency, used as default for bills, payments and bank accounts
    currency_code = models.CharField(max_length=10, default="USD")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "companies"

    def __str__(self):
        return self.name
