import json

from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse

from ledger_core.models import BankAccount, Company, VendorBill
from ledger_core.services import approve_bill, create_bill

from .base import LedgerTestCase


class LedgerViewTests(LedgerTestCase):

    def url(self, name, **kwargs):
        return reverse(name, kwargs={"company_id": self.company.pk, **kwargs})

    def post_json(self, url, payload):
        return self.client.post(url, data=json.dumps(payload), content_type="application/json")

    def make_bill(self, amount="94.50"):
        bill = create_bill(self.uow, self.vendor.pk, [
            {"account_id": self.supplies.pk, "unit_price": amount},
        ], "2025-01-10")
        return approve_bill(self.uow, bill.pk)

    def test_create_and_approve_bill(self):
        resp = self.post_json(self.url("create-bill"), {
            "vendor_id": self.vendor.pk,
            "bill_date": "2025-01-10",
            "lines": [{"account_id": self.supplies.pk, "quantity": "2", "unit_price": "12.50"}],
        })

        self.assertEqual(resp.status_code, 201)
        data = resp.json()
        self.assertEqual(data["bill_number"], "BILL-000001")
        self.assertEqual(data["total_amount"], "25.00")

        resp = self.post_json(self.url("approve-bill", bill_id=data["id"]), {})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["approval_status"], "approved")
        self.assertMoney(self.balance(self.ap), "25.00")

    def test_rule_violation_is_400_with_code(self):
        resp = self.post_json(self.url("create-bill"), {
            "vendor_id": self.vendor.pk, "bill_date": "2025-01-10", "lines": [],
        })

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {
            "ok": False, "error": "A bill needs at least one line item", "code": "invalid_bill",
        })

    def test_record_from_other_company_is_404(self):
        other = Company.objects.create(name="Other", slug="other")
        bill = self.make_bill()

        resp = self.post_json(
            reverse("approve-bill", kwargs={"company_id": other.pk, "bill_id": bill.pk}), {}
        )

        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["code"], "not_found")

    def test_unknown_company_is_404(self):
        resp = self.client.get(reverse("aging-report", kwargs={"company_id": 987654}))
        self.assertEqual(resp.status_code, 404)

    def test_invalid_json(self):
        resp = self.client.post(self.url("create-bill"), data="{not json",
                                content_type="application/json")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["code"], "invalid_json")

    def test_wrong_method(self):
        self.assertEqual(self.client.get(self.url("create-bill")).status_code, 405)
        self.assertEqual(self.client.post(self.url("aging-report")).status_code, 405)

    def test_payment_allocation_and_aging(self):
        bill = self.make_bill("100.00")

        resp = self.post_json(self.url("record-payment"), {
            "vendor_id": self.vendor.pk, "amount": "60.00", "payment_date": "2025-01-20",
            "allocations": [{"bill_id": bill.pk, "amount": "60.00"}],
        })
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["status"], "completed")

        resp = self.client.get(self.url("aging-report"), {"as_of": "2025-02-22"})
        [vendor] = resp.json()["vendors"]
        self.assertEqual(vendor["aging"]["days30"], "40.00")
        self.assertEqual(vendor["bills"][0]["days_overdue"], 13)

    def test_over_allocation_is_rejected(self):
        bill = self.make_bill("10.00")
        resp = self.post_json(self.url("record-payment"), {
            "vendor_id": self.vendor.pk, "amount": "60.00", "payment_date": "2025-01-20",
            "allocations": [{"bill_id": bill.pk, "amount": "60.00"}],
        })
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["code"], "allocation_exceeds_outstanding")
        self.assertEqual(VendorBill.objects.get(pk=bill.pk).outstanding_amount, bill.total_amount)

    def test_out_of_range_amount_is_400(self):
        resp = self.post_json(self.url("record-payment"), {
            "vendor_id": self.vendor.pk, "amount": "1e30", "payment_date": "2025-01-20",
        })
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["code"], "invalid_amount")

        resp = self.post_json(self.url("create-bill"), {
            "vendor_id": self.vendor.pk, "bill_date": "2025-01-10",
            "lines": [{"account_id": self.supplies.pk, "quantity": "1e15",
                       "unit_price": "1e15"}],
        })
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["code"], "invalid_amount")
        self.assertFalse(VendorBill.objects.exists())

    def test_reverse_journal_and_general_ledger(self):
        je = self.post(self.cash, self.revenue, "100.00", "2025-01-05", "SALE-1")

        resp = self.post_json(self.url("reverse-journal", journal_id=je.pk),
                              {"reverse_date": "2025-01-06", "reason": "Duplicate"})
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["reference"], "REV-SALE-1")

        resp = self.client.get(self.url("general-ledger"), {"account_id": self.cash.pk})
        rows = resp.json()["rows"]
        self.assertEqual([r["running_balance"] for r in rows], ["100.00", "0.00"])

    def test_close_period(self):
        from ledger_core.services import create_fiscal_year

        fy = create_fiscal_year(self.uow, "FY2025", "2025-01-01", "2025-12-31")
        period = fy.periods.get(name="January 2025")

        resp = self.post_json(self.url("close-period", period_id=period.pk), {})
        self.assertEqual(resp.json(), {"ok": True, "name": "January 2025", "is_closed": True})

        resp = self.post_json(self.url("close-period", period_id=period.pk), {})
        self.assertEqual(resp.json()["code"], "period_already_closed")

    def test_statement_upload_and_reconcile(self):
        bank = BankAccount.objects.create(company=self.company, name="Operating",
                                          account_number="000111222", bank_name="First Bank",
                                          gl_account=self.bank_gl)
        self.post(self.bank_gl, self.equity, "500.00", "2025-01-02")
        upload = SimpleUploadedFile(
            "jan.csv", b"date,description,amount\n2025-01-02,Capital,500.00\n", "text/csv",
        )

        resp = self.client.post(self.url("import-statement", bank_account_id=bank.pk),
                                {"file": upload, "file_format": "CSV"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["imported"], 1)

        resp = self.post_json(self.url("reconcile", bank_account_id=bank.pk), {
            "statement_date": "2025-01-31", "statement_balance": "500.00",
        })
        self.assertEqual(resp.status_code, 201)
        self.assertTrue(resp.json()["is_balanced"])

        [summary] = self.client.get(self.url("reconciliation-summary")).json()["accounts"]
        self.assertEqual(summary["last_reconciled"], "2025-01-31")
        self.assertEqual(summary["unreconciled_transactions"], 1)
