from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .company import Company

# Choice Lists
AC_TYPES = [
    # Used in Account model to classify general ledger accounts
    ("asset", "Asset"),
    ("liability", "Liability"),
    ("equity", "Equity"),
    ("income", "Income"),
    ("expense", "Expense"),
]

# Assets/Expenses grow with debits, Liabilities/Equity/Income with credits
DEBIT_NORMAL_TYPES = ("asset", "expense")


class Account(models.Model):
    """
    Actual ledger account entry in Chart of Accounts.
    - code should be unique per company
    - ac_type: determines reporting -BS vs P&L and the sign of the balance
    - balance: running balance, only ever moved by journal postings
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    code = models.CharField(max_length=32)
    name = models.CharField(max_length=200)  # "Cash on Hand", "Accounts Payable"

    ac_type = models.CharField(max_length=10, choices=AC_TYPES)

    # Optional hierarchy: 1000 Cash -> 1001 Petty Cash
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="children",
    )

    # “soft deactivate” accounts (stop new postings) without deleting history
    is_active = models.BooleanField(default=True)

    # marker for accounts that must reconcile with subledgers (AP, AR)
    is_control_account = models.BooleanField(default=False)

    # Signed by account type: debit - credit for asset/expense,
    # credit - debit for the rest
    balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "ac_type"], name="acct_company_type_idx"),
            models.Index(fields=["company", "code"], name="acct_company_code_idx"),
            models.Index(fields=["company", "parent"], name="acct_company_parent_idx"),
        ]

        """ Each company defines its own chart of accounts.
               Codes repeat across companies but must be unique within one. """
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_account_code"
            )
        ]

    def __str__(self):
        return f"{self.code} {self.name}"

    @property
    def normal_balance(self):
        return "debit" if self.ac_type in DEBIT_NORMAL_TYPES else "credit"

    def balance_delta(self, debit, credit):
        """How much a debit/credit pair moves this account's balance."""
        if self.ac_type in DEBIT_NORMAL_TYPES:
            return debit - credit
        return credit - debit

    def clean(self):
        # Check if parent account belongs to same company
        if self.parent and self.parent.company_id != self.company_id:
            raise ValidationError(
                "Parent & child accounts must belong to the same company"
            )

    def save(self, *args, **kwargs):
        self.full_clean()
        if not self.pk:
            return super().save(*args, **kwargs)

        old = Account.objects.filter(pk=self.pk).first()
        if old:
            # balance moves through JournalEntry.post() only (queryset updates),
            # a stale or hand-edited instance never overwrites it
            self.balance = old.balance
            # can't disable accounts used in journal lines
            if old.is_active and not self.is_active:
                from .journal import JournalLine

                if JournalLine.objects.filter(account=self).exists():
                    raise ValidationError(
                        "Cannot disable an account that is used in journal lines."
                    )
        return super().save(*args, **kwargs)
