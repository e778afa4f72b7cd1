from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from ..money import ZERO, money, percent_of
from .account import Account
from .company import Company
from .purchasing import GoodsReceipt, PurchaseOrder, PurchaseOrderLine
from .vendor import Vendor

BILL_STATUS_CHOICES = [
    ("submitted", "Submitted"),
    ("partially_paid", "Partially paid"),
    ("paid", "Paid"),
]

APPROVAL_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("approved", "Approved"),
]

MATCHING_STATUS_CHOICES = [
    ("unmatched", "Unmatched"),
    ("fully_matched", "Fully matched"),
    ("variance", "Variance"),
]


def compute_line_amounts(quantity, unit_price, discount_percent, tax_percent):
    """
    (subtotal, discount, tax, total) for one bill line.
    Tax is charged on the discounted base.
    """
    subtotal = money(Decimal(quantity) * Decimal(unit_price))
    discount = percent_of(subtotal, discount_percent or 0)
    tax = percent_of(subtotal - discount, tax_percent or 0)
    return subtotal, discount, tax, subtotal - discount + tax


# ---------- Vendor bills ----------
class VendorBill(models.Model):  # Accounts Payable document
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    vendor = models.ForeignKey(Vendor, on_delete=models.PROTECT, related_name="bills")

    bill_number = models.CharField(max_length=64)  # ours, BILL-000001
    vendor_bill_number = models.CharField(max_length=100, null=True, blank=True)  # theirs
    bill_date = models.DateField()
    due_date = models.DateField()
    currency_code = models.CharField(max_length=10, default="USD")

    subtotal = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    discount_amount = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    tax_amount = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    total_amount = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    paid_amount = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    # always total_amount - paid_amount
    outstanding_amount = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)

    status = models.CharField(max_length=20, choices=BILL_STATUS_CHOICES, default="submitted")
    approval_status = models.CharField(
        max_length=20, choices=APPROVAL_STATUS_CHOICES, default="pending"
    )
    matching_status = models.CharField(
        max_length=20, choices=MATCHING_STATUS_CHOICES, default="fully_matched"
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    approved_at = models.DateTimeField(null=True, blank=True)

    purchase_order = models.ForeignKey(
        PurchaseOrder, null=True, blank=True, on_delete=models.PROTECT, related_name="bills"
    )
    receipt = models.ForeignKey(
        GoodsReceipt, null=True, blank=True, on_delete=models.PROTECT, related_name="bills"
    )

    # GL entry posted on approval
    journal_entry = models.OneToOneField(
        "JournalEntry", null=True, blank=True, on_delete=models.PROTECT, related_name="+"
    )

    terms = models.TextField(null=True, blank=True)
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
                fields=["company", "vendor", "due_date"],
                name="bill_company_due_idx",
            ),
            models.Index(fields=["company", "status"], name="bill_company_status_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "bill_number"], name="uq_bill_company_number"
            ),
            models.CheckConstraint(
                condition=models.Q(outstanding_amount__gte=0) & models.Q(paid_amount__gte=0),
                name="bill_non_negative_balances",
            ),
        ]

    def __str__(self):
        return f"Bill: {self.bill_number or self.pk}"

    @property
    def is_approved(self):
        return self.approval_status == "approved"

    def recalc_totals(self):
        """Re-derive header totals from the saved line items."""
        lines = list(self.lines.all())
        self.subtotal = sum((line.line_subtotal for line in lines), ZERO)
        self.discount_amount = sum((line.discount_amount for line in lines), ZERO)
        self.tax_amount = sum((line.tax_amount for line in lines), ZERO)
        self.total_amount = sum((line.line_total for line in lines), ZERO)
        self.outstanding_amount = self.total_amount - self.paid_amount

    def _derive_status(self):
        if self.outstanding_amount == 0 and self.total_amount > 0:
            return "paid"
        if self.paid_amount > 0:
            return "partially_paid"
        return "submitted"

    def apply_payment(self, amount):
        """Book `amount` against this bill in memory; caller saves."""
        if amount > self.outstanding_amount:
            raise ValidationError("Applied amount cannot exceed bill outstanding")
        self.paid_amount += amount
        self.outstanding_amount -= amount
        self.status = self._derive_status()

    def release_payment(self, amount):
        """Undo apply_payment() for a payment that did not settle."""
        self.paid_amount -= amount
        self.outstanding_amount += amount
        self.status = self._derive_status()

    def clean(self):
        if self.vendor_id and self.vendor.company_id != self.company_id:
            raise ValidationError("Vendor must belong to the same company.")
        if self.due_date and self.bill_date and self.due_date < self.bill_date:
            raise ValidationError("due_date must not be before bill_date")

        # Balance invariants
        if self.outstanding_amount < 0:
            raise ValidationError("Outstanding amount cannot be negative")
        if self.outstanding_amount > self.total_amount:
            raise ValidationError("Outstanding amount cannot exceed bill total")
        if self.outstanding_amount != self.total_amount - self.paid_amount:
            raise ValidationError("Outstanding amount must equal total minus paid")

        """Make paid bills immutable in all code paths"""
        if self.pk and self.status == "paid":
            orig = VendorBill.objects.filter(pk=self.pk).first()
            if orig and orig.status == "paid":
                changed_fields = [
                    f for f in ("bill_number", "total_amount", "vendor_id", "company_id")
                    if getattr(orig, f) != getattr(self, f)
                ]
                if changed_fields:
                    raise ValidationError(
                        f"Cannot modify {changed_fields} on a paid bill.")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class BillLineItem(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    bill = models.ForeignKey(VendorBill, on_delete=models.CASCADE, related_name="lines")

    item_code = models.CharField(max_length=64, blank=True, default="")
    description = models.TextField(null=True, blank=True)

    quantity = models.DecimalField(max_digits=14, decimal_places=4, default=Decimal("1"))
    unit_price = models.DecimalField(max_digits=18, decimal_places=4, default=ZERO)
    discount_percent = models.DecimalField(max_digits=7, decimal_places=4, default=ZERO)
    tax_percent = models.DecimalField(max_digits=7, decimal_places=4, default=ZERO)

    # derived, recomputed on every save
    line_subtotal = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    discount_amount = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    tax_amount = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    line_total = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)

    # Expense/asset account debited when the bill is approved
    account = models.ForeignKey(
        Account, null=True, blank=True, on_delete=models.PROTECT, related_name="+"
    )
    purchase_order_line = models.ForeignKey(
        PurchaseOrderLine, null=True, blank=True, on_delete=models.PROTECT, related_name="+"
    )

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "bill"], name="billline_company_bill_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=0) & models.Q(unit_price__gte=0),
                name="bl_non_negative_amounts",
            ),
        ]

    def __str__(self):
        return f"{self.bill_id}: {self.quantity} x {self.unit_price}"

    def compute_amounts(self):
        (self.line_subtotal, self.discount_amount,
         self.tax_amount, self.line_total) = compute_line_amounts(
            self.quantity, self.unit_price, self.discount_percent, self.tax_percent
        )

    def clean(self):
        if self.quantity < 0:
            raise ValidationError("Quantity must be >= 0")
        if self.unit_price < 0:
            raise ValidationError("Unit price must be >= 0")
        if not (0 <= self.discount_percent <= 100):
            raise ValidationError("Discount percent must be between 0 and 100")
        if self.tax_percent < 0:
            raise ValidationError("Tax percent must be >= 0")

        if self.bill_id and self.bill.company_id != self.company_id:
            raise ValidationError("BillLineItem.company must match Bill.company")
        if self.account_id and self.account.company_id != self.company_id:
            raise ValidationError("BillLineItem.company must match Account.company")

    def save(self, *args, **kwargs):
        if not self.company_id and self.bill_id:
            self.company_id = self.bill.company_id
        # Force amounts to be recomputed before save, regardless of input
        self.compute_amounts()
        self.full_clean()
        return super().save(*args, **kwargs)


# ---------- Three-way match result ----------
class ThreeWayMatch(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    bill = models.ForeignKey(VendorBill, on_delete=models.CASCADE, related_name="matches")
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.PROTECT, related_name="+")
    receipt = models.ForeignKey(GoodsReceipt, on_delete=models.PROTECT, related_name="+")

    status = models.CharField(max_length=20, choices=MATCHING_STATUS_CHOICES)
    quantity_variance = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))
    price_variance = models.DecimalField(max_digits=18, decimal_places=4, default=Decimal("0"))
    total_variance = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    tolerance_exceeded = models.BooleanField(default=False)
    exceptions = models.JSONField(default=list, blank=True)

    matched_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    matched_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        indexes = [models.Index(fields=["company", "bill"], name="match_company_bill_idx")]

    def __str__(self):
        return f"Match {self.bill_id}: {self.status}"
