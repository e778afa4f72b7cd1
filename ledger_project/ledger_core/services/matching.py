import logging
from dataclasses import asdict, dataclass, field
from decimal import Decimal

from django.db.models import Sum

from ..conf import ledger_decimal
from ..models import GoodsReceipt, PurchaseOrder, ThreeWayMatch, VendorBill
from ..money import ZERO, money

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


@dataclass
class MatchResult:
    match_id: int
    status: str
    quantity_variance: Decimal
    price_variance: Decimal
    total_variance: Decimal
    tolerance_exceeded: bool
    exceptions: list = field(default_factory=list)

    @property
    def is_matched(self):
        return self.status == "fully_matched"

    def as_dict(self):
        data = asdict(self)
        data["is_matched"] = self.is_matched
        return data


def three_way_match(uow, bill_id, purchase_order_id, receipt_id) -> MatchResult:
    """
    Compare a bill against what was ordered (PO) and what arrived (receipt).

    Per bill line, matched to a PO line by reference or else by item code:
        quantity variance = billed qty - received qty
        price variance    = billed price - ordered price
    A line is out of tolerance when a variance exceeds the configured
    percentage of the ordered quantity / price. Structural problems
    (unmatched lines, wrong vendor, receipt for another PO) are exceptions
    too. Any exception puts the bill in `variance`, which blocks approval.
    """
    qty_pct = ledger_decimal("MATCH_QUANTITY_TOLERANCE_PCT")
    price_pct = ledger_decimal("MATCH_PRICE_TOLERANCE_PCT")

    with uow:
        bill = VendorBill.objects.select_for_update().get_for_company(uow.company, bill_id)
        po = PurchaseOrder.objects.get_for_company(uow.company, purchase_order_id)
        receipt = GoodsReceipt.objects.get_for_company(uow.company, receipt_id)

        exceptions = []
        if po.vendor_id != bill.vendor_id:
            exceptions.append("Purchase order vendor does not match bill vendor")
        if receipt.purchase_order_id != po.pk:
            exceptions.append(f"Receipt {receipt.receipt_number} does not belong to {po.po_number}")

        po_lines = list(po.lines.all())
        by_id = {line.pk: line for line in po_lines}
        by_code = {line.item_code: line for line in po_lines if line.item_code}
        received = {
            row["purchase_order_line_id"]: row["qty"]
            for row in receipt.lines.values("purchase_order_line_id").annotate(
                qty=Sum("quantity_received"))
        }

        qty_variance = Decimal("0")
        price_variance = Decimal("0")
        total_variance = ZERO
        bill_lines = list(bill.lines.order_by("id"))
        if not bill_lines:
            exceptions.append("Bill has no line items")

        for line in bill_lines:
            label = line.item_code or line.description or f"line {line.pk}"
            if line.purchase_order_line_id:
                po_line = by_id.get(line.purchase_order_line_id)
            else:
                po_line = by_code.get(line.item_code) if line.item_code else None
            if po_line is None:
                exceptions.append(f"{label}: no matching purchase order line")
                continue

            received_qty = received.get(po_line.pk, Decimal("0"))
            qv = line.quantity - received_qty
            pv = line.unit_price - po_line.unit_price
            qty_variance += qv
            price_variance += pv
            total_variance += money(line.quantity * line.unit_price - received_qty * po_line.unit_price)

            if abs(qv) > po_line.quantity * qty_pct / HUNDRED:
                exceptions.append(
                    f"{label}: quantity variance {qv} exceeds {qty_pct}% tolerance"
                )
            if abs(pv) > po_line.unit_price * price_pct / HUNDRED:
                exceptions.append(
                    f"{label}: price variance {pv} exceeds {price_pct}% tolerance"
                )

        tolerance_exceeded = bool(exceptions)
        status = "variance" if tolerance_exceeded else "fully_matched"
        match = ThreeWayMatch.objects.create(
            company=uow.company,
            bill=bill,
            purchase_order=po,
            receipt=receipt,
            status=status,
            quantity_variance=qty_variance,
            price_variance=price_variance,
            total_variance=total_variance,
            tolerance_exceeded=tolerance_exceeded,
            exceptions=exceptions,
            matched_by=uow.user,
        )

        old_status = bill.matching_status
        bill.matching_status = status
        bill.purchase_order = po
        bill.receipt = receipt
        bill.save()
        uow.log_audit(bill, "MATCH", old_values={"matching_status": old_status},
                      changes={"matching_status": status, "exceptions": exceptions})

    if tolerance_exceeded:
        logger.info("Bill %s failed three-way match: %s", bill.bill_number, "; ".join(exceptions))
    return MatchResult(
        match_id=match.pk,
        status=status,
        quantity_variance=qty_variance,
        price_variance=price_variance,
        total_variance=total_variance,
        tolerance_exceeded=tolerance_exceeded,
        exceptions=exceptions,
    )
