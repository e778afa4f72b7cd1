import datetime
from io import StringIO
from unittest import mock

from django.core.management import call_command

from ledger_core import tasks
from ledger_core.exceptions import NotFound
from ledger_core.models import (Account, BankAccount, Company, FiscalPeriod,
                                JournalEntry, VendorBill, VendorPayment)
from ledger_core.services import (UnitOfWork, approve_bill, create_bill,
                                  record_payment)

from .base import LedgerTestCase


class BatchTaskTests(LedgerTestCase):

    def test_scheduled_payments_task_returns_summary(self):
        bill = create_bill(self.uow, self.vendor.pk, [
            {"account_id": self.supplies.pk, "unit_price": "80.00"},
        ], "2025-02-01")
        approve_bill(self.uow, bill.pk)
        payment = record_payment(self.uow, self.vendor.pk, "80.00", "2025-02-20",
                                 scheduled_date="2025-03-01")

        summary = tasks.process_scheduled_payments_task(self.company.pk, "2025-03-01")

        self.assertEqual(summary, {"processed": 1, "failed": 0, "failures": []})
        payment.refresh_from_db()
        self.assertEqual(payment.status, "completed")

    def test_recurring_task_with_nothing_due(self):
        summary = tasks.process_recurring_entries_task(self.company.pk, "2025-03-01")
        self.assertEqual(summary["processed"], 0)

    def test_recompute_balances_fixes_drift(self):
        self.post(self.cash, self.revenue, "100.00", datetime.date(2025, 1, 5))
        Account.objects.filter(pk=self.cash.pk).update(balance="90.00")

        drift = tasks.recompute_account_balances(self.company.pk)

        self.assertEqual(drift, {"1000": "10.00"})
        self.assertMoney(self.balance(self.cash), "100.00")
        self.assertEqual(tasks.recompute_account_balances(self.company.pk), {})

    def test_daily_batches_fan_out_per_company(self):
        Company.objects.create(name="Second Co", slug="second-co")

        with mock.patch.object(tasks.process_scheduled_payments_task, "delay") as payments, \
                mock.patch.object(tasks.process_recurring_entries_task, "delay") as recurring, \
                mock.patch.object(tasks.process_online_payments_task, "delay") as online:
            count = tasks.run_daily_batches("2025-03-01")

        self.assertEqual(count, 2)
        self.assertEqual(payments.call_count, 2)
        self.assertEqual(recurring.call_count, 2)
        self.assertEqual(online.call_count, 2)
        payments.assert_any_call(self.company.pk, "2025-03-01")


class TenantIsolationTests(LedgerTestCase):

    def setUp(self):
        super().setUp()
        self.other = Company.objects.create(name="Other Co", slug="other-co")

    def test_lookup_by_foreign_id_is_not_found(self):
        with self.assertRaises(NotFound):
            Account.objects.get_for_company(self.other, self.cash.pk)
        self.assertEqual(Account.objects.get_for_company(self.company, self.cash.pk), self.cash)

    def test_for_company_only_sees_own_rows(self):
        self.assertEqual(Account.objects.for_company(self.other).count(), 0)
        self.assertEqual(Account.objects.for_company(self.company).count(), 7)

    def test_bill_for_foreign_vendor_is_not_found(self):
        with self.assertRaises(NotFound):
            create_bill(UnitOfWork(self.other, self.user), self.vendor.pk, [
                {"account_id": self.supplies.pk, "unit_price": "1.00"},
            ], "2025-01-10")
        self.assertFalse(VendorBill.objects.exists())


class ManagementCommandTests(LedgerTestCase):

    def test_seed_demo_then_run_batches(self):
        out = StringIO()
        call_command("seed_demo", "--company", "Demo Ltd", "--year", "2025", stdout=out)

        company = Company.objects.get(slug="demo-ltd")
        self.assertEqual(Account.objects.for_company(company).count(), 10)
        self.assertEqual(FiscalPeriod.objects.for_company(company).count(), 12)
        self.assertEqual(BankAccount.objects.for_company(company).count(), 1)
        opening = JournalEntry.objects.get(company=company, reference="OPENING")
        self.assertMoney(opening.total_debit, "25000.00")
        self.assertIn("Demo data seeded successfully!", out.getvalue())

        # running it again leaves the company alone
        call_command("seed_demo", "--company", "Demo Ltd", "--year", "2025", stdout=StringIO())
        self.assertEqual(Company.objects.filter(name="Demo Ltd").count(), 1)

        out = StringIO()
        call_command("run_ledger_batches", "--company", "demo-ltd", "--date", "2025-03-01",
                     stdout=out)
        self.assertIn("demo-ltd: scheduled payments: 0 processed, 0 failed", out.getvalue())
        self.assertIn("All batches completed", out.getvalue())
        self.assertFalse(VendorPayment.objects.filter(company=company).exists())
