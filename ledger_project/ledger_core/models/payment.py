from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from ..money import ZERO
from .bill import VendorBill
from .company import Company
from .vendor import Vendor

PAYMENT_METHODS = [
    ("cash", "Cash"),
    ("check", "Check"),
    ("ach", "ACH"),
    ("wire", "Wire"),
    ("card", "Card"),
    ("other", "Other"),
]

PAYMENT_STATUS_CHOICES = [
    ("scheduled", "Scheduled"),
    ("processing", "Processing"),
    ("completed", "Completed"),
    ("failed", "Failed"),
]

ONLINE_PAYMENT_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("completed", "Completed"),
    ("failed", "Failed"),
]


# ---------- Vendor payments ----------
class VendorPayment(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    vendor = models.ForeignKey(Vendor, on_delete=models.PROTECT, related_name="payments")
    payment_number = models.CharField(max_length=64)  # VPAY-000001
    payment_date = models.DateField()
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    currency_code = models.CharField(max_length=10, default="USD")
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHODS, default="ach")
    reference = models.CharField(max_length=200, null=True, blank=True)
    check_number = models.CharField(max_length=50, null=True, blank=True)
    bank_account = models.ForeignKey(
        "BankAccount", null=True, blank=True, on_delete=models.PROTECT,
        related_name="vendor_payments",
    )

    status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default="completed")
    scheduled_date = models.DateField(null=True, blank=True)
    processed_date = models.DateField(null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)

    # allocated_amount + unallocated_amount == amount
    allocated_amount = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    unallocated_amount = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)

    # GL entry posted once the payment is completed
    journal_entry = models.OneToOneField(
        "JournalEntry", null=True, blank=True, on_delete=models.PROTECT, related_name="+"
    )

    notes = models.TextField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(
                fields=["company", "status", "scheduled_date"],
                name="vpay_company_sched_idx",
            ),
            models.Index(fields=["company", "vendor"], name="vpay_company_vendor_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "payment_number"], name="uq_payment_company_number"
            ),
            models.CheckConstraint(
                condition=models.Q(allocated_amount__gte=0) & models.Q(unallocated_amount__gte=0),
                name="vpay_non_negative_allocation",
            ),
        ]

    def __str__(self):
        return f"{self.payment_number} {self.amount} [{self.status}]"

    def add_allocation(self, amount):
        self.allocated_amount += amount
        self.unallocated_amount = self.amount - self.allocated_amount

    def clean(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError("Payment amount must be positive")
        if self.vendor_id and self.vendor.company_id != self.company_id:
            raise ValidationError("Vendor must belong to the same company.")
        if self.bank_account_id and self.bank_account.company_id != self.company_id:
            raise ValidationError("Bank account must belong to the same company.")
        if self.allocated_amount + self.unallocated_amount != self.amount:
            raise ValidationError("Allocated plus unallocated must equal the payment amount")
        if self.status == "scheduled" and not self.scheduled_date:
            raise ValidationError("A scheduled payment needs a scheduled_date")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def transition_to(self, new_status, error_message=None):
        allowed = {
            "scheduled": ["processing"],
            "processing": ["completed", "failed"],
            "completed": [],
            "failed": [],
        }
        if new_status not in allowed.get(self.status, []):
            raise ValidationError(f"Cannot go from {self.status} to {new_status}")
        self.status = new_status
        if error_message is not None:
            self.error_message = error_message
        self.save()


class VendorPaymentAllocation(models.Model):  # bridge between payments and bills
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    payment = models.ForeignKey(VendorPayment, on_delete=models.CASCADE, related_name="allocations")
    bill = models.ForeignKey(VendorBill, on_delete=models.PROTECT, related_name="allocations")
    allocated_amount = models.DecimalField(max_digits=18, decimal_places=2)
    allocation_date = models.DateField(auto_now_add=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "payment"], name="vpa_company_payment_idx"),
            models.Index(fields=["company", "bill"], name="vpa_company_bill_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(allocated_amount__gt=0),
                name="vpa_positive_amount",
            ),
        ]

    def __str__(self):
        return f"{self.payment_id} -> {self.bill_id}: {self.allocated_amount}"

    def clean(self):
        if self.allocated_amount <= 0:
            raise ValidationError("Allocated amount must be positive")
        if self.payment_id and self.payment.company_id != self.company_id:
            raise ValidationError("Payment must belong to the same company.")
        if self.bill_id and self.bill.company_id != self.company_id:
            raise ValidationError("Bill must belong to the same company.")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


# ---------- Online payments ----------
class PaymentGateway(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    name = models.CharField(max_length=100)
    gateway_type = models.CharField(max_length=50)  # stripe, paypal, ...
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    def __str__(self):
        return self.name


class OnlinePayment(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    gateway = models.ForeignKey(PaymentGateway, on_delete=models.PROTECT, related_name="payments")
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    currency_code = models.CharField(max_length=10, default="USD")
    reference = models.CharField(max_length=200, blank=True, default="")
    status = models.CharField(
        max_length=20, choices=ONLINE_PAYMENT_STATUS_CHOICES, default="pending"
    )
    settlement_date = models.DateField(null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "status"], name="onlinepay_company_status_idx"),
        ]

    def __str__(self):
        return f"{self.gateway_id} {self.amount} [{self.status}]"

    def clean(self):
        if self.amount is not None and self.amount <= Decimal("0"):
            raise ValidationError("Online payment amount must be positive")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
