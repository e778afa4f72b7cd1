import logging

from django.db import transaction
from django.utils import timezone

from ..exceptions import (AllocationExceedsOutstanding,
                          AllocationExceedsPayment, LedgerError, NotFound)
from ..models import (BankAccount, Vendor, VendorBill, VendorPayment,
                      VendorPaymentAllocation)
from ..models.numbering import SERIES_PAYMENT, NumberingSeries
from ..money import ZERO
from .posting import post_payment_journal
from .settlement import get_settlement_backend
from .uow import UnitOfWork, run_batch_item
from .validation import as_date, as_money

logger = logging.getLogger(__name__)


# ----------------------------
# Payment-related workflows
# ----------------------------
def record_payment(uow, vendor_id, amount, payment_date, payment_method="ach", *,
                   bank_account_id=None, scheduled_date=None, allocations=None,
                   reference=None, check_number=None, notes=None,
                   currency_code=None) -> VendorPayment:
    """
    Record a payment to a vendor and spread it over the vendor's bills.

    Explicit allocations are applied as given; without them the payment is
    auto-allocated to the oldest bills first. A payment with a scheduled
    date waits for process_scheduled_payments() before it reaches the
    ledger, otherwise it is completed and posted (Dr AP / Cr bank) now.
    """
    amount = as_money(amount)
    if amount <= 0:
        raise LedgerError("Payment amount must be positive", code="invalid_amount")
    payment_date = as_date(payment_date, "payment_date")
    scheduled_date = as_date(scheduled_date, "scheduled_date") if scheduled_date else None

    with uow:
        vendor = Vendor.objects.get_for_company(uow.company, vendor_id)
        bank_account = None
        if bank_account_id:
            bank_account = BankAccount.objects.get_for_company(uow.company, bank_account_id)

        payment = VendorPayment.objects.create(
            company=uow.company,
            vendor=vendor,
            payment_number=NumberingSeries.objects.next_code(uow.company, SERIES_PAYMENT),
            payment_date=payment_date,
            amount=amount,
            currency_code=currency_code or uow.company.currency_code,
            payment_method=payment_method,
            reference=reference,
            check_number=check_number,
            bank_account=bank_account,
            status="scheduled" if scheduled_date else "completed",
            scheduled_date=scheduled_date,
            processed_date=None if scheduled_date else payment_date,
            allocated_amount=ZERO,
            unallocated_amount=amount,
            notes=notes,
            created_by=uow.user,
        )

        if allocations:
            allocate_payment(uow, payment.pk, allocations)
        else:
            auto_allocate_payment(uow, payment.pk)
        payment.refresh_from_db()

        if payment.status == "completed":
            payment.journal_entry = post_payment_journal(uow, payment)
            payment.save()

        uow.log_audit(payment, "CREATE", changes={
            "payment_number": payment.payment_number,
            "vendor": vendor.pk,
            "amount": payment.amount,
            "status": payment.status,
            "allocated_amount": payment.allocated_amount,
            "unallocated_amount": payment.unallocated_amount,
        })
    logger.info("Recorded payment %s to %s: %s [%s]",
                payment.payment_number, vendor.name, payment.amount, payment.status)
    return payment


def _lock_payment(uow, payment_id):
    payment = VendorPayment.objects.select_for_update().get_for_company(uow.company, payment_id)
    if payment.status == "failed":
        raise LedgerError(f"Payment {payment.payment_number} has failed and cannot be allocated",
                          code="invalid_payment_state")
    return payment


def _apply_allocation(uow, payment, bill, amount):
    """Book `amount` of `payment` against `bill`. Both rows must be locked."""
    if amount > bill.outstanding_amount:
        raise AllocationExceedsOutstanding(
            f"Allocation amount {amount} exceeds outstanding amount "
            f"{bill.outstanding_amount} on bill {bill.bill_number}"
        )
    VendorPaymentAllocation.objects.create(
        company=uow.company,
        payment=payment,
        bill=bill,
        allocated_amount=amount,
        created_by=uow.user,
    )
    bill.apply_payment(amount)
    bill.save()
    payment.add_allocation(amount)


def allocate_payment(uow, payment_id, allocations):
    """
    Apply a payment to specific bills: [{"bill_id": 1, "amount": "100.00"}, ...].
    Any allocation above a bill's outstanding amount rejects the whole call.
    """
    requested = []
    for alloc in allocations:
        amount = as_money(alloc.get("amount"))
        if amount <= 0:
            raise LedgerError("Allocation amount must be positive", code="invalid_amount")
        requested.append((str(alloc.get("bill_id")), amount))

    with uow:
        payment = _lock_payment(uow, payment_id)
        total = sum((amount for _, amount in requested), ZERO)
        if total > payment.unallocated_amount:
            raise AllocationExceedsPayment(
                f"Allocations total {total} exceeds unallocated amount "
                f"{payment.unallocated_amount} of payment {payment.payment_number}"
            )

        # lock every bill once, in primary key order
        bill_ids = {bill_id for bill_id, _ in requested}
        try:
            bills = {
                str(b.pk): b for b in VendorBill.objects.select_for_update()
                .for_company(uow.company).filter(pk__in=bill_ids).order_by("pk")
            }
        except ValueError:
            bills = {}
        for bill_id, amount in requested:
            bill = bills.get(bill_id)
            if bill is None:
                raise NotFound(f"Bill {bill_id} not found")
            if bill.vendor_id != payment.vendor_id:
                raise LedgerError(f"Bill {bill.bill_number} belongs to another vendor",
                                  code="vendor_mismatch")
            _apply_allocation(uow, payment, bill, amount)

        payment.save()
        uow.log_audit(payment, "ALLOCATE", changes={
            "allocations": [{"bill": b, "amount": a} for b, a in requested],
            "unallocated_amount": payment.unallocated_amount,
        })
    return payment


def auto_allocate_payment(uow, payment_id, vendor_id=None, amount=None):
    """
    Spread `amount` (default: the payment's unallocated part) over the
    vendor's outstanding bills, earliest due date first. Returns the
    allocations made as (bill, amount) pairs; leftovers stay unallocated.
    """
    with uow:
        payment = _lock_payment(uow, payment_id)
        if vendor_id is not None and int(vendor_id) != payment.vendor_id:
            raise LedgerError(f"Payment {payment.payment_number} belongs to another vendor",
                              code="vendor_mismatch")
        vendor_id = payment.vendor_id
        remaining = payment.unallocated_amount if amount is None else as_money(amount)
        if remaining > payment.unallocated_amount:
            raise AllocationExceedsPayment(
                f"Cannot allocate {remaining}: only {payment.unallocated_amount} is unallocated"
            )

        bills = (VendorBill.objects.select_for_update().for_company(uow.company)
                 .filter(vendor_id=vendor_id, outstanding_amount__gt=0)
                 .order_by("due_date", "bill_date", "id"))
        made = []
        for bill in bills:
            if remaining <= 0:
                break
            portion = min(remaining, bill.outstanding_amount)
            _apply_allocation(uow, payment, bill, portion)
            remaining -= portion
            made.append((bill, portion))

        payment.save()
        if made:
            uow.log_audit(payment, "ALLOCATE", changes={
                "allocations": [{"bill": b.pk, "amount": a} for b, a in made],
                "unallocated_amount": payment.unallocated_amount,
            })
    return made


def release_allocations(uow, payment):
    """Give a payment's allocations back to their bills. Payment must be locked."""
    released = []
    for alloc in payment.allocations.order_by("bill_id"):
        bill = VendorBill.objects.select_for_update().get(pk=alloc.bill_id)
        bill.release_payment(alloc.allocated_amount)
        bill.save()
        released.append({"bill": bill.pk, "amount": alloc.allocated_amount})
    payment.allocations.all().delete()
    payment.allocated_amount = ZERO
    payment.unallocated_amount = payment.amount
    return released


# ----------------------------
# Scheduled payments
# ----------------------------
def _claim_scheduled_payment(payment_id, today):
    """scheduled -> processing, committed on its own so the state is visible."""
    with transaction.atomic():
        payment = (VendorPayment.objects.select_for_update()
                   .filter(pk=payment_id, status="scheduled").first())
        if payment is None:
            return False
        payment.processed_date = today
        payment.transition_to("processing")
    return True


def _settle_payment(company, payment_id, backend):
    uow = UnitOfWork(company)
    with uow:
        payment = (VendorPayment.objects.select_for_update()
                   .select_related("vendor", "bank_account").get(pk=payment_id))
        backend.settle(payment)
        payment.journal_entry = post_payment_journal(uow, payment, payment.processed_date)
        payment.transition_to("completed")
        uow.log_audit(payment, "SETTLE", old_values={"status": "processing"},
                      changes={"status": "completed",
                               "journal_entry": payment.journal_entry.entry_number})
    logger.info("Scheduled payment processed: %s amount=%s vendor=%s",
                payment.payment_number, payment.amount, payment.vendor_id)


def _fail_payment(company, payment_id, message):
    uow = UnitOfWork(company)
    with uow:
        payment = VendorPayment.objects.select_for_update().get(pk=payment_id)
        released = release_allocations(uow, payment)
        payment.transition_to("failed", error_message=message)
        uow.log_audit(payment, "FAIL", old_values={"status": "processing"},
                      changes={"status": "failed", "error": message, "released": released})


def process_scheduled_payments(company, today=None, backend=None):
    """
    Settle every scheduled payment of `company` due on or before `today`.
    Each payment is claimed, settled and committed independently; a failed
    one is marked failed and its bill allocations are released.
    """
    today = today or timezone.localdate()
    backend = backend or get_settlement_backend()
    due = list(
        VendorPayment.objects.for_company(company)
        .filter(status="scheduled", scheduled_date__lte=today)
        .order_by("scheduled_date", "id")
        .values_list("pk", flat=True)
    )
    results = []
    for payment_id in due:
        if not _claim_scheduled_payment(payment_id, today):
            continue
        results.append(run_batch_item(
            payment_id,
            lambda payment_id=payment_id: _settle_payment(company, payment_id, backend),
            on_failure=lambda message, payment_id=payment_id: _fail_payment(
                company, payment_id, message),
            label="scheduled payment",
        ))
    return results
