import datetime
from decimal import Decimal

from django.db import transaction
from django.test import override_settings

from ledger_core.exceptions import (AllocationExceedsOutstanding,
                                    AllocationExceedsPayment, LedgerError,
                                    MatchVarianceError, MissingAccountError,
                                    NotFound, SettlementError)
from ledger_core.models import (AuditLog, BankAccount, GoodsReceipt,
                                GoodsReceiptLine, JournalEntry, PurchaseOrder,
                                PurchaseOrderLine, Vendor, VendorBill,
                                VendorPayment, VendorPaymentAllocation)
from ledger_core.services import (aging_report, allocate_payment,
                                  approve_bill, auto_allocate_payment,
                                  create_bill, process_scheduled_payments,
                                  record_payment, three_way_match)
from ledger_core.services.bills import aging_bucket
from ledger_core.services.settlement import SettlementBackend

from .base import LedgerTestCase

BILL_DATE = datetime.date(2025, 1, 10)


class FailingBackend(SettlementBackend):
    def settle(self, payment):
        raise SettlementError("Insufficient funds")


class PickyBackend(SettlementBackend):
    """Refuses anything above 100."""

    def settle(self, payment):
        if payment.amount > 100:
            raise SettlementError(f"Amount {payment.amount} over limit")


class PayablesTestCase(LedgerTestCase):

    def make_bill(self, amount="100.00", due_date=None, approve=True, vendor=None):
        bill = create_bill(
            self.uow, (vendor or self.vendor).pk,
            [{"account_id": self.supplies.pk, "quantity": "1", "unit_price": amount}],
            BILL_DATE, due_date,
        )
        if approve:
            bill = approve_bill(self.uow, bill.pk)
        return bill


class BillTests(PayablesTestCase):

    def test_create_bill_computes_totals(self):
        bill = create_bill(self.uow, self.vendor.pk, [
            {"account_id": self.supplies.pk, "quantity": "2", "unit_price": "50",
             "discount_percent": "10", "tax_percent": "5"},
            {"account_id": self.rent.pk, "quantity": "3", "unit_price": "0.333"},
        ], BILL_DATE)

        # line 1: 100.00 - 10.00 discount + 4.50 tax; line 2: 3 x 0.333 = 1.00
        self.assertMoney(bill.subtotal, "101.00")
        self.assertMoney(bill.discount_amount, "10.00")
        self.assertMoney(bill.tax_amount, "4.50")
        self.assertMoney(bill.total_amount, "95.50")
        self.assertMoney(bill.outstanding_amount, "95.50")
        self.assertEqual(bill.bill_number, "BILL-000001")
        self.assertEqual(bill.due_date, BILL_DATE + datetime.timedelta(days=30))
        self.assertEqual(bill.approval_status, "pending")
        self.assertEqual(bill.matching_status, "fully_matched")
        self.assertIsNone(bill.journal_entry)
        self.assertTrue(AuditLog.objects.filter(object_type="VendorBill", action="CREATE").exists())

    def test_discount_then_tax_line(self):
        bill = create_bill(self.uow, self.vendor.pk, [
            {"account_id": self.supplies.pk, "quantity": "10", "unit_price": "100",
             "discount_percent": "5", "tax_percent": "10"},
        ], BILL_DATE)

        line = bill.lines.get()
        self.assertMoney(line.line_subtotal, "1000.00")
        self.assertMoney(line.discount_amount, "50.00")
        self.assertMoney(line.tax_amount, "95.00")
        self.assertMoney(bill.total_amount, "1045.00")

    def test_bill_needs_lines(self):
        with self.assertRaises(LedgerError) as cm:
            create_bill(self.uow, self.vendor.pk, [], BILL_DATE)
        self.assertEqual(cm.exception.code, "invalid_bill")

    def test_negative_quantity_is_rejected(self):
        with self.assertRaises(LedgerError):
            create_bill(self.uow, self.vendor.pk, [
                {"account_id": self.supplies.pk, "quantity": "-1", "unit_price": "10"},
            ], BILL_DATE)
        self.assertFalse(VendorBill.objects.exists())

    def test_vendor_of_other_company_is_not_found(self):
        with self.assertRaises(NotFound):
            create_bill(self.uow, 999999, [{"unit_price": "1"}], BILL_DATE)

    def test_approval_posts_expense_against_ap(self):
        bill = self.make_bill("250.00")

        self.assertEqual(bill.approval_status, "approved")
        self.assertEqual(bill.approved_by, self.user)
        je = bill.journal_entry
        self.assertEqual(je.status, "posted")
        self.assertEqual(je.source_type, "vendor_bill")
        self.assertEqual(je.reference, bill.bill_number)
        self.assertMoney(self.balance(self.supplies), "250.00")
        self.assertMoney(self.balance(self.ap), "250.00")

    def test_approval_is_idempotent(self):
        bill = self.make_bill("250.00")
        approve_bill(self.uow, bill.pk)

        self.assertEqual(JournalEntry.objects.filter(source_type="vendor_bill").count(), 1)
        self.assertMoney(self.balance(self.ap), "250.00")

    def test_approval_without_ap_account_leaves_bill_pending(self):
        self.ap.is_control_account = False
        self.ap.save()
        bill = self.make_bill(approve=False)

        with self.assertRaises(MissingAccountError):
            approve_bill(self.uow, bill.pk)
        bill.refresh_from_db()
        self.assertEqual(bill.approval_status, "pending")
        self.assertFalse(JournalEntry.objects.exists())

    def test_line_without_account_cannot_be_approved(self):
        bill = create_bill(self.uow, self.vendor.pk, [{"unit_price": "10"}], BILL_DATE)
        with self.assertRaises(MissingAccountError):
            approve_bill(self.uow, bill.pk)

    def test_vendor_default_ap_account_wins(self):
        other_ap = self.make_account("2100", "AP - Imports", "liability", control=True)
        vendor = Vendor.objects.create(company=self.company, name="Overseas",
                                       default_ap_account=other_ap)
        self.make_bill("80.00", vendor=vendor)

        self.assertMoney(self.balance(other_ap), "80.00")
        self.assertMoney(self.balance(self.ap), "0.00")

    def test_posted_bill_cannot_be_deleted(self):
        bill = self.make_bill()
        with self.assertRaises(LedgerError), transaction.atomic():
            bill.delete()
        self.assertTrue(VendorBill.objects.filter(pk=bill.pk).exists())

    def test_pending_bill_follows_its_lines(self):
        bill = self.make_bill("10.00", approve=False)
        line = bill.lines.get()
        line.unit_price = Decimal("12.00")
        line.save()

        bill.refresh_from_db()
        self.assertMoney(bill.total_amount, "12.00")
        self.assertMoney(bill.outstanding_amount, "12.00")


class ThreeWayMatchTests(PayablesTestCase):

    def setUp(self):
        super().setUp()
        self.po = PurchaseOrder.objects.create(
            company=self.company, vendor=self.vendor, po_number="PO-1", order_date=BILL_DATE,
        )
        self.po_line = PurchaseOrderLine.objects.create(
            purchase_order=self.po, item_code="W1", quantity=Decimal("10"),
            unit_price=Decimal("5.00"),
        )
        self.receipt = GoodsReceipt.objects.create(
            company=self.company, purchase_order=self.po, receipt_number="GR-1",
            received_date=BILL_DATE,
        )
        GoodsReceiptLine.objects.create(
            receipt=self.receipt, purchase_order_line=self.po_line,
            quantity_received=Decimal("10"),
        )

    def bill_for(self, quantity, unit_price):
        return create_bill(
            self.uow, self.vendor.pk,
            [{"account_id": self.supplies.pk, "item_code": "W1",
              "quantity": quantity, "unit_price": unit_price}],
            BILL_DATE, purchase_order_id=self.po.pk, receipt_id=self.receipt.pk,
        )

    def test_matching_bill_can_be_approved(self):
        bill = self.bill_for("10", "5.00")

        self.assertEqual(bill.matching_status, "fully_matched")
        self.assertEqual(bill.matches.get().status, "fully_matched")
        approve_bill(self.uow, bill.pk)

    def test_small_quantity_difference_is_within_tolerance(self):
        # 0.1 over a 2% tolerance of 10 units
        bill = self.bill_for("10.1", "5.00")
        self.assertEqual(bill.matching_status, "fully_matched")

    def test_price_variance_blocks_approval(self):
        bill = self.bill_for("10", "5.50")

        self.assertEqual(bill.matching_status, "variance")
        match = bill.matches.get()
        self.assertTrue(match.tolerance_exceeded)
        self.assertEqual(match.price_variance, Decimal("0.5"))
        self.assertMoney(match.total_variance, "5.00")
        self.assertIn("W1: price variance", match.exceptions[0])

        with self.assertRaises(MatchVarianceError):
            approve_bill(self.uow, bill.pk)

    def test_rematch_after_correction(self):
        bill = self.bill_for("12", "5.00")
        self.assertEqual(bill.matching_status, "variance")

        # the missing units arrive
        extra = GoodsReceipt.objects.create(
            company=self.company, purchase_order=self.po, receipt_number="GR-2",
            received_date=BILL_DATE,
        )
        GoodsReceiptLine.objects.create(receipt=extra, purchase_order_line=self.po_line,
                                        quantity_received=Decimal("12"))
        result = three_way_match(self.uow, bill.pk, self.po.pk, extra.pk)

        self.assertTrue(result.is_matched)
        bill.refresh_from_db()
        self.assertEqual(bill.matching_status, "fully_matched")
        self.assertEqual(bill.matches.count(), 2)

    def test_unknown_item_is_an_exception(self):
        bill = create_bill(
            self.uow, self.vendor.pk,
            [{"account_id": self.supplies.pk, "item_code": "ZZ", "unit_price": "1"}],
            BILL_DATE, purchase_order_id=self.po.pk, receipt_id=self.receipt.pk,
        )
        self.assertEqual(bill.matching_status, "variance")
        self.assertEqual(bill.matches.get().exceptions, ["ZZ: no matching purchase order line"])


class PaymentTests(PayablesTestCase):

    def test_immediate_payment_with_explicit_allocation(self):
        bill = self.make_bill("94.50")

        payment = record_payment(self.uow, self.vendor.pk, "50.00", "2025-01-20",
                                 allocations=[{"bill_id": bill.pk, "amount": "50.00"}])

        self.assertEqual(payment.payment_number, "VPAY-000001")
        self.assertEqual(payment.status, "completed")
        self.assertMoney(payment.allocated_amount, "50.00")
        self.assertMoney(payment.unallocated_amount, "0.00")
        bill.refresh_from_db()
        self.assertMoney(bill.paid_amount, "50.00")
        self.assertMoney(bill.outstanding_amount, "44.50")
        self.assertEqual(bill.status, "partially_paid")

        # Dr AP / Cr cash
        self.assertEqual(payment.journal_entry.source_type, "vendor_payment")
        self.assertMoney(self.balance(self.ap), "44.50")
        self.assertMoney(self.balance(self.cash), "-50.00")

    def test_payment_through_bank_account_credits_its_gl_account(self):
        bank = BankAccount.objects.create(
            company=self.company, name="Checking", account_number="123456789",
            bank_name="First Bank", gl_account=self.bank_gl,
        )
        self.make_bill("30.00")
        record_payment(self.uow, self.vendor.pk, "30.00", "2025-01-20", bank_account_id=bank.pk)

        self.assertMoney(self.balance(self.bank_gl), "-30.00")
        self.assertMoney(self.balance(self.cash), "0.00")

    def test_auto_allocation_pays_earliest_due_first(self):
        later = self.make_bill("100.00", due_date="2025-02-28")
        earlier = self.make_bill("60.00", due_date="2025-01-31")

        payment = record_payment(self.uow, self.vendor.pk, "120.00", "2025-01-20")

        earlier.refresh_from_db()
        later.refresh_from_db()
        self.assertEqual(earlier.status, "paid")
        self.assertMoney(earlier.outstanding_amount, "0.00")
        self.assertMoney(later.outstanding_amount, "40.00")
        self.assertMoney(payment.unallocated_amount, "0.00")
        self.assertEqual(payment.allocations.count(), 2)

    def test_auto_allocation_splits_across_bills(self):
        first = self.make_bill("300.00", due_date="2025-01-31")
        second = self.make_bill("400.00", due_date="2025-02-28")

        record_payment(self.uow, self.vendor.pk, "500.00", "2025-01-20")

        first.refresh_from_db()
        second.refresh_from_db()
        self.assertEqual(first.status, "paid")
        self.assertEqual(second.status, "partially_paid")
        self.assertMoney(second.paid_amount, "200.00")
        self.assertMoney(second.outstanding_amount, "200.00")

    def test_overpayment_stays_unallocated(self):
        self.make_bill("60.00")
        payment = record_payment(self.uow, self.vendor.pk, "100.00", "2025-01-20")

        self.assertMoney(payment.allocated_amount, "60.00")
        self.assertMoney(payment.unallocated_amount, "40.00")

        bill = self.make_bill("25.00")
        allocate_payment(self.uow, payment.pk, [{"bill_id": bill.pk, "amount": "25.00"}])
        payment.refresh_from_db()
        self.assertMoney(payment.unallocated_amount, "15.00")

    def test_allocation_above_outstanding_rolls_everything_back(self):
        bill = self.make_bill("94.50")

        with self.assertRaises(AllocationExceedsOutstanding):
            record_payment(self.uow, self.vendor.pk, "200.00", "2025-01-20",
                           allocations=[{"bill_id": bill.pk, "amount": "100.00"}])

        self.assertFalse(VendorPayment.objects.exists())
        self.assertFalse(VendorPaymentAllocation.objects.exists())
        bill.refresh_from_db()
        self.assertMoney(bill.outstanding_amount, "94.50")
        self.assertMoney(self.balance(self.ap), "94.50")

    def test_allocations_above_payment_amount(self):
        first = self.make_bill("80.00")
        second = self.make_bill("80.00")

        with self.assertRaises(AllocationExceedsPayment):
            record_payment(self.uow, self.vendor.pk, "100.00", "2025-01-20", allocations=[
                {"bill_id": first.pk, "amount": "60.00"},
                {"bill_id": second.pk, "amount": "60.00"},
            ])

    def test_bill_of_other_vendor_is_rejected(self):
        other = Vendor.objects.create(company=self.company, name="Globex")
        bill = self.make_bill(vendor=other)

        with self.assertRaises(LedgerError) as cm:
            record_payment(self.uow, self.vendor.pk, "10.00", "2025-01-20",
                           allocations=[{"bill_id": bill.pk, "amount": "10.00"}])
        self.assertEqual(cm.exception.code, "vendor_mismatch")

    def test_auto_allocation_for_another_vendor_is_rejected(self):
        other = Vendor.objects.create(company=self.company, name="Globex")
        globex_bill = self.make_bill("80.00", vendor=other)
        payment = record_payment(self.uow, self.vendor.pk, "50.00", "2025-01-20")
        self.assertMoney(payment.unallocated_amount, "50.00")

        with self.assertRaises(LedgerError) as cm:
            auto_allocate_payment(self.uow, payment.pk, vendor_id=other.pk)
        self.assertEqual(cm.exception.code, "vendor_mismatch")

        globex_bill.refresh_from_db()
        self.assertMoney(globex_bill.outstanding_amount, "80.00")
        self.assertFalse(VendorPaymentAllocation.objects.exists())

    def test_amount_must_be_positive(self):
        with self.assertRaises(LedgerError) as cm:
            record_payment(self.uow, self.vendor.pk, "0", "2025-01-20")
        self.assertEqual(cm.exception.code, "invalid_amount")


class ScheduledPaymentTests(PayablesTestCase):

    def setUp(self):
        super().setUp()
        self.bill = self.make_bill("150.00")

    def schedule(self, amount="150.00", day="2025-03-01"):
        return record_payment(self.uow, self.vendor.pk, amount, "2025-02-20",
                              scheduled_date=day)

    def test_scheduled_payment_waits_for_its_date(self):
        payment = self.schedule()

        self.assertEqual(payment.status, "scheduled")
        self.assertIsNone(payment.journal_entry)
        # allocation reserves the bill right away
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.status, "paid")

        self.assertEqual(process_scheduled_payments(self.company, datetime.date(2025, 2, 28)), [])

    def test_due_payment_is_settled_and_posted(self):
        payment = self.schedule()

        [result] = process_scheduled_payments(self.company, datetime.date(2025, 3, 1))

        self.assertTrue(result.ok)
        payment.refresh_from_db()
        self.assertEqual(payment.status, "completed")
        self.assertEqual(payment.processed_date, datetime.date(2025, 3, 1))
        self.assertEqual(payment.journal_entry.posting_date, datetime.date(2025, 3, 1))
        self.assertMoney(self.balance(self.ap), "0.00")
        self.assertMoney(self.balance(self.cash), "-150.00")

        # already completed, nothing left to run
        self.assertEqual(process_scheduled_payments(self.company, datetime.date(2025, 3, 2)), [])

    def test_failed_settlement_releases_allocations(self):
        payment = self.schedule()

        [result] = process_scheduled_payments(self.company, datetime.date(2025, 3, 1),
                                              backend=FailingBackend())

        self.assertFalse(result.ok)
        self.assertEqual(result.error_code, "settlement_failed")
        payment.refresh_from_db()
        self.assertEqual(payment.status, "failed")
        self.assertEqual(payment.error_message, "Insufficient funds")
        self.assertIsNone(payment.journal_entry)
        self.assertFalse(payment.allocations.exists())
        self.bill.refresh_from_db()
        self.assertMoney(self.bill.outstanding_amount, "150.00")
        self.assertEqual(self.bill.status, "submitted")
        self.assertMoney(self.balance(self.cash), "0.00")

    @override_settings(LEDGER_SETTLEMENT_BACKEND="ledger_core.tests.test_payables.PickyBackend")
    def test_one_failure_does_not_stop_the_batch(self):
        big = self.schedule("150.00")
        small_bill = self.make_bill("80.00")
        small = record_payment(self.uow, self.vendor.pk, "80.00", "2025-02-20",
                               scheduled_date="2025-03-01",
                               allocations=[{"bill_id": small_bill.pk, "amount": "80.00"}])

        results = {r.item_id: r for r in process_scheduled_payments(self.company,
                                                                    datetime.date(2025, 3, 1))}

        self.assertFalse(results[big.pk].ok)
        self.assertTrue(results[small.pk].ok)
        self.assertEqual(VendorPayment.objects.get(pk=big.pk).status, "failed")
        self.assertEqual(VendorPayment.objects.get(pk=small.pk).status, "completed")

    def test_failed_payment_cannot_be_allocated(self):
        payment = self.schedule()
        process_scheduled_payments(self.company, datetime.date(2025, 3, 1),
                                   backend=FailingBackend())

        with self.assertRaises(LedgerError) as cm:
            allocate_payment(self.uow, payment.pk, [{"bill_id": self.bill.pk, "amount": "1"}])
        self.assertEqual(cm.exception.code, "invalid_payment_state")


class AgingReportTests(PayablesTestCase):

    def test_bills_are_bucketed_by_days_overdue(self):
        self.make_bill("100.00", due_date="2025-01-31")   # 43 days late
        self.make_bill("40.00", due_date="2025-03-31")    # not due yet
        paid = self.make_bill("10.00", due_date="2025-01-15")
        record_payment(self.uow, self.vendor.pk, "10.00", "2025-01-20",
                       allocations=[{"bill_id": paid.pk, "amount": "10.00"}])

        [vendor] = aging_report(self.company, as_of="2025-03-15")

        self.assertEqual(vendor.vendor_name, "Acme Supplies")
        self.assertMoney(vendor.aging["days60"], "100.00")
        self.assertMoney(vendor.aging["current"], "40.00")
        self.assertMoney(vendor.aging["total"], "140.00")
        self.assertEqual([b.days_overdue for b in vendor.bills], [43, 0])

    def test_bucket_boundaries(self):
        self.assertEqual(aging_bucket(0), "current")
        self.assertEqual(aging_bucket(1), "days30")
        self.assertEqual(aging_bucket(30), "days30")
        self.assertEqual(aging_bucket(31), "days60")
        self.assertEqual(aging_bucket(45), "days60")
        self.assertEqual(aging_bucket(60), "days60")
        self.assertEqual(aging_bucket(90), "days90")
        self.assertEqual(aging_bucket(91), "over90")

    def test_bills_after_as_of_are_left_out(self):
        self.make_bill("100.00")
        self.assertEqual(aging_report(self.company, as_of="2025-01-01"), [])

    def test_filter_by_vendor(self):
        other = Vendor.objects.create(company=self.company, name="Globex")
        self.make_bill("10.00", vendor=other)
        self.make_bill("20.00")

        [row] = aging_report(self.company, vendor_id=other.pk, as_of="2025-01-31")
        self.assertEqual(row.vendor_id, other.pk)
        self.assertMoney(row.aging["total"], "10.00")
