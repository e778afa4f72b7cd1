from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase

from ledger_core.models import Account, Company, Vendor
from ledger_core.services import UnitOfWork, post_journal


class LedgerTestCase(TestCase):
    """One company with a small chart of accounts, a vendor and a user."""

    def setUp(self):
        self.user = get_user_model().objects.create_user(username="clerk", password="x")
        self.company = Company.objects.create(name="Test Co", slug="test-co", owner=self.user)

        self.cash = self.make_account("1000", "Cash", "asset")
        self.bank_gl = self.make_account("1010", "Operating Checking", "asset")
        self.ap = self.make_account("2000", "Accounts Payable", "liability", control=True)
        self.equity = self.make_account("3000", "Owner's Equity", "equity")
        self.revenue = self.make_account("4000", "Revenue", "income")
        self.supplies = self.make_account("6100", "Office Supplies", "expense")
        self.rent = self.make_account("6200", "Rent", "expense")

        self.vendor = Vendor.objects.create(company=self.company, name="Acme Supplies")
        self.uow = UnitOfWork(self.company, self.user)

    def make_account(self, code, name, ac_type, control=False, company=None):
        return Account.objects.create(
            company=company or self.company, code=code, name=name,
            ac_type=ac_type, is_control_account=control,
        )

    def post(self, debit_account, credit_account, amount, day, reference=None):
        """Two line entry: Dr debit_account / Cr credit_account."""
        return post_journal(
            self.uow,
            [
                {"account_id": debit_account.pk, "debit": amount},
                {"account_id": credit_account.pk, "credit": amount},
            ],
            day,
            reference=reference,
        )

    def balance(self, account):
        account.refresh_from_db()
        return account.balance

    def assertMoney(self, value, expected):
        self.assertEqual(value, Decimal(expected))
