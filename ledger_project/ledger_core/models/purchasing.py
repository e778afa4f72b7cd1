from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .company import Company
from .vendor import Vendor


# ---------- Purchase orders & goods receipts ----------
# Only what the three-way match needs: what was ordered at which price,
# and how much of it actually arrived.
class PurchaseOrder(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    vendor = models.ForeignKey(Vendor, on_delete=models.PROTECT, related_name="purchase_orders")
    po_number = models.CharField(max_length=64)
    order_date = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["company", "po_number"],
                                    name="uq_company_po_number"),
        ]

    def __str__(self):
        return self.po_number

    def clean(self):
        if self.vendor_id and self.vendor.company_id != self.company_id:
            raise ValidationError("Vendor must belong to the same company.")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class PurchaseOrderLine(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    purchase_order = models.ForeignKey(
        PurchaseOrder, on_delete=models.CASCADE, related_name="lines"
    )
    item_code = models.CharField(max_length=64, blank=True, default="")
    description = models.CharField(max_length=400, blank=True, default="")
    quantity = models.DecimalField(max_digits=14, decimal_places=4)
    unit_price = models.DecimalField(max_digits=18, decimal_places=4)

    objects = TenantManager()

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=0) & models.Q(unit_price__gte=0),
                name="pol_non_negative_amounts",
            ),
        ]

    def __str__(self):
        return f"{self.purchase_order_id}: {self.item_code or self.description}"

    def save(self, *args, **kwargs):
        if not self.company_id and self.purchase_order_id:
            self.company_id = self.purchase_order.company_id
        self.full_clean()
        return super().save(*args, **kwargs)


class GoodsReceipt(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    purchase_order = models.ForeignKey(
        PurchaseOrder, on_delete=models.PROTECT, related_name="receipts"
    )
    receipt_number = models.CharField(max_length=64)
    received_date = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["company", "receipt_number"],
                                    name="uq_company_receipt_number"),
        ]

    def __str__(self):
        return self.receipt_number

    def clean(self):
        if self.purchase_order_id and self.purchase_order.company_id != self.company_id:
            raise ValidationError("Purchase order must belong to the same company.")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def received_quantity_for(self, po_line_id):
        return self.lines.filter(purchase_order_line_id=po_line_id).aggregate(
            q=models.Sum("quantity_received")
        )["q"] or Decimal("0")


class GoodsReceiptLine(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    receipt = models.ForeignKey(GoodsReceipt, on_delete=models.CASCADE, related_name="lines")
    purchase_order_line = models.ForeignKey(
        PurchaseOrderLine, on_delete=models.PROTECT, related_name="receipt_lines"
    )
    quantity_received = models.DecimalField(max_digits=14, decimal_places=4)

    objects = TenantManager()

    def __str__(self):
        return f"{self.receipt_id}: {self.purchase_order_line_id} x {self.quantity_received}"

    def clean(self):
        if self.quantity_received is not None and self.quantity_received < 0:
            raise ValidationError("Received quantity must be >= 0")
        if (self.receipt_id and self.purchase_order_line_id
                and self.purchase_order_line.purchase_order_id != self.receipt.purchase_order_id):
            raise ValidationError("Receipt line must reference a line of the receipt's order.")

    def save(self, *args, **kwargs):
        if not self.company_id and self.receipt_id:
            self.company_id = self.receipt.company_id
        self.full_clean()
        return super().save(*args, **kwargs)
