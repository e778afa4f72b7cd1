import datetime

from django.utils import timezone

from ledger_core.exceptions import (LedgerError, MissingAccountError,
                                    SettlementError,
                                    UnsupportedStatementFormat)
from ledger_core.models import (BankAccount, BankStatementImport,
                                BankTransaction, CashFlowForecastItem,
                                OnlinePayment, PaymentGateway)
from ledger_core.services import (create_bank_account,
                                  create_cash_flow_forecast, import_statement,
                                  import_statement_file,
                                  process_online_payments, reconcile,
                                  reconciliation_summary)
from ledger_core.services.parsers import CsvStatementParser
from ledger_core.services.settlement import SettlementBackend

from .base import LedgerTestCase

STATEMENT_CSV = (
    "Date,Description,Amount,Balance,Reference\n"
    "2025-01-03,Opening deposit,1500.00,1500.00,DEP-1\n"
    "2025-01-05,,10.00,,\n"
    "2025-01-06,Check 101,-200.00,1300.00,\n"
)


class BankingTestCase(LedgerTestCase):

    def setUp(self):
        super().setUp()
        self.bank = create_bank_account(self.uow, "Operating", "000111222", "First Bank",
                                        gl_account_id=self.bank_gl.pk)


class BankAccountTests(BankingTestCase):

    def test_bank_account_maps_to_asset_account(self):
        self.assertEqual(self.bank.gl_account, self.bank_gl)
        self.assertEqual(self.bank.currency_code, "USD")
        self.assertEqual(self.bank.masked_number, "****1222")

    def test_liability_gl_account_is_rejected(self):
        with self.assertRaises(LedgerError) as cm:
            create_bank_account(self.uow, "Card", "999", "Bank", gl_account_id=self.ap.pk)
        self.assertEqual(cm.exception.code, "invalid_gl_account")

    def test_account_number_is_unique_per_company(self):
        with self.assertRaises(LedgerError) as cm:
            create_bank_account(self.uow, "Copy", "000111222", "First Bank")
        self.assertEqual(cm.exception.code, "duplicate_bank_account")


class StatementImportTests(BankingTestCase):

    def test_import_skips_duplicates(self):
        rows = [
            {"date": "2025-01-03", "description": "Deposit", "amount": "100.00"},
            {"date": "2025-01-04", "description": "Fee", "amount": "-2.50"},
            {"date": "2025-01-04", "description": "Fee", "amount": "-2.50"},
        ]

        first = import_statement(self.uow, self.bank.pk, rows)
        self.assertEqual((first.imported, first.duplicates, first.errors), (2, 1, []))

        again = import_statement(self.uow, self.bank.pk, rows)
        self.assertEqual((again.imported, again.duplicates), (0, 3))
        self.assertEqual(BankTransaction.objects.filter(bank_account=self.bank).count(), 2)

    def test_bad_rows_are_reported_not_fatal(self):
        result = import_statement(self.uow, self.bank.pk, [
            {"date": "2025-01-03", "description": "Deposit", "amount": "100.00"},
            {"date": "not-a-date", "description": "Broken", "amount": "1"},
            {"date": "2025-01-04", "description": "Bad amount", "amount": "abc"},
        ])

        self.assertEqual(result.imported, 1)
        self.assertEqual(len(result.errors), 2)
        self.assertTrue(result.errors[0].startswith("Transaction 2:"))
        record = BankStatementImport.objects.get(pk=result.import_id)
        self.assertEqual(record.status, "completed")
        self.assertEqual(record.successful_imports, 1)
        self.assertEqual(record.failed_imports, 2)

    def test_out_of_range_amount_is_a_row_error(self):
        result = import_statement(self.uow, self.bank.pk, [
            {"date": "2025-01-03", "description": "Deposit", "amount": "10.00"},
            {"date": "2025-01-04", "description": "Huge", "amount": "1e30"},
        ])

        self.assertEqual(result.imported, 1)
        self.assertEqual(len(result.errors), 1)
        self.assertTrue(result.errors[0].startswith("Transaction 2:"))

    def test_out_of_range_amount_in_csv_file(self):
        content = (
            "Date,Description,Amount\n"
            "2025-01-03,Deposit,10.00\n"
            "2025-01-04,Huge,1e30\n"
        )
        result = import_statement_file(self.uow, self.bank.pk, content.encode(),
                                       "huge.csv", "csv")

        self.assertEqual(result.imported, 1)
        self.assertEqual(len(result.errors), 1)
        self.assertEqual(BankTransaction.objects.filter(bank_account=self.bank).count(), 1)

    def test_import_totals_count_each_row_once(self):
        result = import_statement(self.uow, self.bank.pk, [
            {"date": "2025-01-03", "description": "Deposit", "amount": "100.00"},
            {"date": "2025-01-04", "description": "", "amount": "5.00"},
            # passes row parsing but is too long for the stored column
            {"date": "2025-01-05", "description": "x" * 600, "amount": "7.00"},
        ])

        self.assertEqual(result.imported, 1)
        self.assertEqual(len(result.errors), 2)
        record = BankStatementImport.objects.get(pk=result.import_id)
        self.assertEqual(record.total_transactions, 3)
        self.assertEqual(record.successful_imports, 1)
        self.assertEqual(record.failed_imports, 2)

    def test_csv_file_import(self):
        result = import_statement_file(self.uow, self.bank.pk, STATEMENT_CSV.encode(),
                                       "jan.csv", "csv")

        self.assertEqual(result.imported, 2)
        self.assertEqual(result.errors, ["Row 3: description is empty"])

        deposit = BankTransaction.objects.get(bank_account=self.bank, reference="DEP-1")
        self.assertMoney(deposit.amount, "1500.00")
        self.assertEqual(deposit.transaction_date, datetime.date(2025, 1, 3))
        self.assertEqual(deposit.imported_from, "CSV")
        self.assertEqual(deposit.reconciliation_status, "unreconciled")

        self.bank.refresh_from_db()
        self.assertMoney(self.bank.current_balance, "1300.00")

        record = BankStatementImport.objects.get(pk=result.import_id)
        self.assertEqual(record.statement_start_date, datetime.date(2025, 1, 3))
        self.assertEqual(record.statement_end_date, datetime.date(2025, 1, 6))

    def test_unsupported_format(self):
        with self.assertRaises(UnsupportedStatementFormat):
            import_statement_file(self.uow, self.bank.pk, b"", "jan.ofx", "OFX")


class CsvParserTests(LedgerTestCase):

    def test_bom_and_header_case_are_ignored(self):
        blob = "\ufeffDATE,Description,AMOUNT\n2025-02-01,Interest,0.42\n".encode("utf-8")

        parsed = CsvStatementParser().parse(blob)

        self.assertEqual(parsed.errors, [])
        [txn] = parsed.transactions
        self.assertMoney(txn.amount, "0.42")
        self.assertIsNone(txn.running_balance)

    def test_missing_columns(self):
        parsed = CsvStatementParser().parse("date,description\n2025-02-01,Interest\n")

        self.assertEqual(parsed.transactions, [])
        self.assertEqual(parsed.errors, ["Missing column(s): amount"])


class ReconciliationTests(BankingTestCase):

    def setUp(self):
        super().setUp()
        # books: 1000 in, 200 out by check -> 800
        self.post(self.bank_gl, self.equity, "1000.00", datetime.date(2025, 1, 2))
        self.check = self.post(self.rent, self.bank_gl, "200.00", datetime.date(2025, 1, 10))

    def test_balanced_reconciliation_updates_bank_account(self):
        rec = reconcile(self.uow, self.bank.pk, "2025-01-31", "900.00", [
            {"item_type": "OUTSTANDING_CHECK", "amount": "200.00"},
            {"item_type": "DEPOSIT_IN_TRANSIT", "amount": "100.00"},
        ])

        self.assertMoney(rec.book_balance, "800.00")
        self.assertMoney(rec.adjusted_bank_balance, "800.00")
        self.assertMoney(rec.adjusted_book_balance, "800.00")
        self.assertMoney(rec.variance, "0.00")
        self.assertTrue(rec.is_balanced)
        self.assertEqual(rec.items.count(), 2)

        self.bank.refresh_from_db()
        self.assertEqual(self.bank.last_reconciled, datetime.date(2025, 1, 31))
        self.assertMoney(self.bank.reconciled_balance, "800.00")

    def test_deposits_in_transit_and_outstanding_checks(self):
        self.post(self.bank_gl, self.equity, "200.00", datetime.date(2025, 1, 3))

        rec = reconcile(self.uow, self.bank.pk, "2025-01-31", "970.00", [
            {"item_type": "DEPOSIT_IN_TRANSIT", "amount": "50.00"},
            {"item_type": "OUTSTANDING_CHECK", "amount": "20.00"},
        ])

        self.assertMoney(rec.book_balance, "1000.00")
        self.assertMoney(rec.adjusted_book_balance, "1000.00")
        self.assertMoney(rec.adjusted_bank_balance, "1000.00")
        self.assertTrue(rec.is_balanced)

    def test_variance_is_recorded_but_not_applied(self):
        rec = reconcile(self.uow, self.bank.pk, "2025-01-31", "850.00")

        self.assertFalse(rec.is_balanced)
        self.assertMoney(rec.variance, "50.00")
        self.bank.refresh_from_db()
        self.assertIsNone(self.bank.last_reconciled)

    def test_book_adjustment_closes_the_gap(self):
        rec = reconcile(self.uow, self.bank.pk, "2025-01-31", "795.00", [
            {"item_type": "BOOK_ADJUSTMENT", "amount": "-5.00", "description": "Bank fee"},
        ])
        self.assertTrue(rec.is_balanced)
        self.assertMoney(rec.adjusted_book_balance, "795.00")

    def test_book_balance_ignores_later_postings(self):
        self.post(self.bank_gl, self.revenue, "300.00", datetime.date(2025, 2, 3))

        rec = reconcile(self.uow, self.bank.pk, "2025-01-31", "800.00")
        self.assertMoney(rec.book_balance, "800.00")
        self.assertTrue(rec.is_balanced)

    def test_items_clear_bank_transactions_and_gl_lines(self):
        import_statement(self.uow, self.bank.pk, [
            {"date": "2025-01-12", "description": "Check 101", "amount": "-200.00"},
        ])
        txn = BankTransaction.objects.get(bank_account=self.bank)
        gl_line = self.check.lines.get(account=self.bank_gl)

        reconcile(self.uow, self.bank.pk, "2025-01-31", "800.00", [
            {"item_type": "BANK_ADJUSTMENT", "amount": "0.00",
             "bank_transaction_id": txn.pk, "gl_line_id": gl_line.pk},
        ])

        txn.refresh_from_db()
        gl_line.refresh_from_db()
        self.assertEqual(txn.reconciliation_status, "cleared")
        self.assertTrue(txn.is_cleared)
        self.assertEqual(txn.reconciled_date, timezone.localdate())
        self.assertTrue(gl_line.is_cleared)

    def test_item_of_other_bank_account_is_rejected(self):
        other = create_bank_account(self.uow, "Savings", "555", "First Bank",
                                    gl_account_id=self.cash.pk)
        import_statement(self.uow, other.pk, [
            {"date": "2025-01-12", "description": "Interest", "amount": "1.00"},
        ])
        txn = BankTransaction.objects.get(bank_account=other)

        with self.assertRaises(LedgerError) as cm:
            reconcile(self.uow, self.bank.pk, "2025-01-31", "800.00", [
                {"item_type": "BANK_ADJUSTMENT", "amount": "1.00", "bank_transaction_id": txn.pk},
            ])
        self.assertEqual(cm.exception.code, "invalid_reconciliation_item")

    def test_unknown_item_type(self):
        with self.assertRaises(LedgerError) as cm:
            reconcile(self.uow, self.bank.pk, "2025-01-31", "800.00",
                      [{"item_type": "MYSTERY", "amount": "1"}])
        self.assertEqual(cm.exception.code, "invalid_reconciliation_item")

    def test_bank_account_without_gl_account(self):
        unlinked = BankAccount.objects.create(company=self.company, name="Petty",
                                              account_number="42", bank_name="Tin box")
        with self.assertRaises(MissingAccountError):
            reconcile(self.uow, unlinked.pk, "2025-01-31", "0")

    def test_summary_counts_open_transactions(self):
        import_statement(self.uow, self.bank.pk, [
            {"date": "2025-01-12", "description": "Check 101", "amount": "-200.00"},
            {"date": "2025-01-13", "description": "Deposit", "amount": "50.00"},
        ])

        [summary] = reconciliation_summary(self.company)

        self.assertEqual(summary.bank_account_id, self.bank.pk)
        self.assertEqual(summary.unreconciled_transactions, 2)
        self.assertMoney(summary.unreconciled_amount, "-150.00")
        self.assertIsNone(summary.last_reconciled)


class CashFlowForecastTests(LedgerTestCase):

    def test_projected_closing_balance(self):
        forecast = create_cash_flow_forecast(
            self.uow, "Q1", "2025-01-01", "2025-03-31", "1000.00", [
                {"item_date": "2025-01-15", "item_type": "inflow", "category": "Sales",
                 "projected_amount": "500.00", "confidence": "high"},
                {"item_date": "2025-02-01", "item_type": "OUTFLOW", "category": "Rent",
                 "projected_amount": "300.00"},
            ],
        )

        self.assertMoney(forecast.projected_closing_balance, "1200.00")
        items = list(CashFlowForecastItem.objects.filter(forecast=forecast))
        self.assertEqual([i.item_type for i in items], ["INFLOW", "OUTFLOW"])
        self.assertEqual(items[1].confidence, "MEDIUM")

    def test_unknown_item_type(self):
        with self.assertRaises(LedgerError) as cm:
            create_cash_flow_forecast(self.uow, "Q1", "2025-01-01", "2025-03-31", "0", [
                {"item_date": "2025-01-15", "item_type": "SIDEWAYS", "projected_amount": "1"},
            ])
        self.assertEqual(cm.exception.code, "invalid_forecast_item")


class OnlinePaymentTests(LedgerTestCase):

    def setUp(self):
        super().setUp()
        self.gateway = PaymentGateway.objects.create(company=self.company, name="Stripe",
                                                     gateway_type="stripe")

    def make_payment(self, amount):
        return OnlinePayment.objects.create(company=self.company, gateway=self.gateway,
                                            amount=amount, reference=f"ch_{amount}")

    def test_pending_payments_are_settled(self):
        payment = self.make_payment("25.00")

        [result] = process_online_payments(self.company, datetime.date(2025, 3, 1))

        self.assertTrue(result.ok)
        payment.refresh_from_db()
        self.assertEqual(payment.status, "completed")
        self.assertEqual(payment.settlement_date, datetime.date(2025, 3, 1))
        self.assertEqual(process_online_payments(self.company), [])

    def test_failed_settlement_is_recorded(self):
        class Declined(SettlementBackend):
            def settle(self, payment):
                raise SettlementError("Card declined")

        payment = self.make_payment("25.00")

        [result] = process_online_payments(self.company, backend=Declined())

        self.assertEqual(result.error_code, "settlement_failed")
        payment.refresh_from_db()
        self.assertEqual(payment.status, "failed")
        self.assertEqual(payment.error_message, "Card declined")
