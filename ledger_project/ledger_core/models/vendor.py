from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .account import Account
from .company import Company


class Vendor(models.Model):  # supplier we owe money to (Accounts Payable)

    company = models.ForeignKey(Company, on_delete=models.CASCADE)

    name = models.CharField(max_length=200)
    contact_email = models.EmailField(null=True, blank=True)
    payment_terms_days = models.IntegerField(default=30)
    is_active = models.BooleanField(default=True)

    """ If set: bill approvals and payments for this vendor
    book their AP side to this account. """
    default_ap_account = models.ForeignKey(
        Account,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="vendors_default_ap",
        help_text="Default AP account used for this vendor",
    )

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "name"], name="vendor_company_name_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "name"], name="uq_company_vendor_name"
            ),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        dap = self.default_ap_account
        if dap and dap.company_id != self.company_id:
            raise ValidationError(
                "Default AP account and vendor must belong to same company"
            )
        # Only liability control accounts can be set as default AP
        if dap and (not dap.is_control_account or dap.ac_type != "liability"):
            raise ValidationError(
                "Default AP account must be a liability control account")
        return super().clean()

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
