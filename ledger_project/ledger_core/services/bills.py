import datetime
import logging
from dataclasses import asdict, dataclass, field
from decimal import Decimal

from django.utils import timezone

from ..exceptions import LedgerError, MatchVarianceError
from ..models import (Account, BillLineItem, GoodsReceipt, PurchaseOrder,
                      PurchaseOrderLine, Vendor, VendorBill)
from ..models.bill import compute_line_amounts
from ..models.numbering import SERIES_BILL, NumberingSeries
from ..money import ZERO
from .matching import three_way_match
from .posting import post_bill_journal
from .validation import as_date, as_decimal

logger = logging.getLogger(__name__)


# ----------------------------
# Bill lifecycle
# ----------------------------
def _bill_line_kwargs(company, raw):
    """Validate one requested line item and resolve its references."""
    kwargs = {
        "item_code": raw.get("item_code") or "",
        "description": raw.get("description"),
        "quantity": as_decimal(raw.get("quantity", 1), "quantity"),
        "unit_price": as_decimal(raw.get("unit_price", 0), "unit_price"),
        "discount_percent": as_decimal(raw.get("discount_percent") or 0, "discount_percent"),
        "tax_percent": as_decimal(raw.get("tax_percent") or 0, "tax_percent"),
    }
    if kwargs["quantity"] < 0 or kwargs["unit_price"] < 0:
        raise LedgerError("Quantity and unit price must be >= 0", code="invalid_amount")
    try:
        compute_line_amounts(kwargs["quantity"], kwargs["unit_price"],
                             kwargs["discount_percent"], kwargs["tax_percent"])
    except ValueError:
        raise LedgerError(
            f"Line amount out of range: {kwargs['quantity']} x {kwargs['unit_price']}",
            code="invalid_amount",
        )
    if raw.get("account_id"):
        kwargs["account"] = Account.objects.get_for_company(company, raw["account_id"])
    if raw.get("purchase_order_line_id"):
        kwargs["purchase_order_line"] = PurchaseOrderLine.objects.get_for_company(
            company, raw["purchase_order_line_id"]
        )
    return kwargs


def create_bill(uow, vendor_id, lines, bill_date, due_date=None, *,
                purchase_order_id=None, receipt_id=None, vendor_bill_number=None,
                currency_code=None, terms=None, notes=None) -> VendorBill:
    """
    Record a vendor bill with its line items.

    Nothing reaches the ledger yet: the GL entry is posted on approval.
    With both a purchase order and a receipt the bill starts `unmatched` and
    the three-way match runs straight away.
    """
    if not lines:
        raise LedgerError("A bill needs at least one line item", code="invalid_bill")
    bill_date = as_date(bill_date, "bill_date")

    with uow:
        vendor = Vendor.objects.get_for_company(uow.company, vendor_id)
        if due_date:
            due_date = as_date(due_date, "due_date")
        else:
            due_date = bill_date + datetime.timedelta(days=vendor.payment_terms_days)

        po = receipt = None
        if purchase_order_id:
            po = PurchaseOrder.objects.get_for_company(uow.company, purchase_order_id)
        if receipt_id:
            receipt = GoodsReceipt.objects.get_for_company(uow.company, receipt_id)

        line_kwargs = [_bill_line_kwargs(uow.company, raw) for raw in lines]

        bill = VendorBill.objects.create(
            company=uow.company,
            vendor=vendor,
            bill_number=NumberingSeries.objects.next_code(uow.company, SERIES_BILL),
            vendor_bill_number=vendor_bill_number,
            bill_date=bill_date,
            due_date=due_date,
            currency_code=currency_code or uow.company.currency_code,
            status="submitted",
            approval_status="pending",
            matching_status="unmatched" if (po and receipt) else "fully_matched",
            purchase_order=po,
            receipt=receipt,
            terms=terms,
            notes=notes,
            created_by=uow.user,
        )
        for kwargs in line_kwargs:
            BillLineItem.objects.create(company=uow.company, bill=bill, **kwargs)

        bill.recalc_totals()
        bill.save()

        if po and receipt:
            three_way_match(uow, bill.pk, po.pk, receipt.pk)
            bill.refresh_from_db()

        uow.log_audit(bill, "CREATE", changes={
            "bill_number": bill.bill_number,
            "vendor": vendor.pk,
            "subtotal": bill.subtotal,
            "discount_amount": bill.discount_amount,
            "tax_amount": bill.tax_amount,
            "total_amount": bill.total_amount,
            "matching_status": bill.matching_status,
            "lines": len(line_kwargs),
        })
    logger.info("Created bill %s for %s: %s", bill.bill_number, vendor.name, bill.total_amount)
    return bill


def approve_bill(uow, bill_id) -> VendorBill:
    """pending -> approved, posting the bill to the ledger (Dr expense / Cr AP)."""
    with uow:
        bill = (VendorBill.objects.select_for_update()
                .select_related("vendor").get_for_company(uow.company, bill_id))
        if bill.is_approved:
            return bill
        if bill.matching_status != "fully_matched":
            raise MatchVarianceError(
                f"Bill {bill.bill_number} cannot be approved while its match status is "
                f"{bill.matching_status}"
            )
        je = post_bill_journal(uow, bill)
        bill.approval_status = "approved"
        bill.approved_by = uow.user
        bill.approved_at = timezone.now()
        bill.journal_entry = je
        bill.save()
        uow.log_audit(bill, "APPROVE", old_values={"approval_status": "pending"},
                      changes={"approval_status": "approved", "journal_entry": je.entry_number})
    logger.info("Approved bill %s (%s)", bill.bill_number, je.entry_number)
    return bill


# ----------------------------
# Aging
# ----------------------------
AGING_BUCKETS = ("current", "days30", "days60", "days90", "over90")


def aging_bucket(days_overdue):
    if days_overdue <= 0:
        return "current"
    if days_overdue <= 30:
        return "days30"
    if days_overdue <= 60:
        return "days60"
    if days_overdue <= 90:
        return "days90"
    return "over90"


@dataclass
class AgingBill:
    id: int
    bill_number: str
    bill_date: datetime.date
    due_date: datetime.date
    total_amount: Decimal
    outstanding_amount: Decimal
    days_overdue: int
    bucket: str


@dataclass
class VendorAging:
    vendor_id: int
    vendor_name: str
    aging: dict = field(default_factory=lambda: {b: ZERO for b in AGING_BUCKETS + ("total",)})
    bills: list = field(default_factory=list)

    def add(self, bill: AgingBill):
        self.aging[bill.bucket] += bill.outstanding_amount
        self.aging["total"] += bill.outstanding_amount
        self.bills.append(bill)

    def as_dict(self):
        return asdict(self)


def aging_report(company, vendor_id=None, as_of=None):
    """
    Outstanding bills per vendor, bucketed by days past due as of `as_of`.
    Bills dated after `as_of` are left out.
    """
    as_of = as_date(as_of, "as_of") if as_of else timezone.localdate()
    qs = (VendorBill.objects.for_company(company)
          .filter(outstanding_amount__gt=0, bill_date__lte=as_of)
          .select_related("vendor")
          .order_by("vendor__name", "due_date", "id"))
    if vendor_id is not None:
        Vendor.objects.get_for_company(company, vendor_id)
        qs = qs.filter(vendor_id=vendor_id)

    report = {}
    for bill in qs:
        days_overdue = max(0, (as_of - bill.due_date).days)
        vendor = report.setdefault(bill.vendor_id, VendorAging(bill.vendor_id, bill.vendor.name))
        vendor.add(AgingBill(
            id=bill.pk,
            bill_number=bill.bill_number,
            bill_date=bill.bill_date,
            due_date=bill.due_date,
            total_amount=bill.total_amount,
            outstanding_amount=bill.outstanding_amount,
            days_overdue=days_overdue,
            bucket=aging_bucket(days_overdue),
        ))
    return list(report.values())
