from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from ..money import ZERO
from .account import Account
from .company import Company

BANK_ACCOUNT_TYPES = [
    ("checking", "Checking"),
    ("savings", "Savings"),
    ("credit_card", "Credit card"),
    ("money_market", "Money market"),
]

RECONCILIATION_STATUS_CHOICES = [
    ("unreconciled", "Unreconciled"),
    ("cleared", "Cleared"),
]

IMPORT_STATUS_CHOICES = [
    ("processing", "Processing"),
    ("completed", "Completed"),
    ("failed", "Failed"),
]

# How each reconciling item moves the adjusted balances
DEPOSIT_IN_TRANSIT = "DEPOSIT_IN_TRANSIT"   # + bank side
OUTSTANDING_CHECK = "OUTSTANDING_CHECK"     # - bank side
BANK_ADJUSTMENT = "BANK_ADJUSTMENT"         # +/- bank side
BOOK_ADJUSTMENT = "BOOK_ADJUSTMENT"         # +/- book side

RECONCILIATION_ITEM_TYPES = [
    (DEPOSIT_IN_TRANSIT, "Deposit in transit"),
    (OUTSTANDING_CHECK, "Outstanding check"),
    (BANK_ADJUSTMENT, "Bank adjustment"),
    (BOOK_ADJUSTMENT, "Book adjustment"),
]


# ---------- Banking ----------
class BankAccount(models.Model):  # bank account the company maintains
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    name = models.CharField(max_length=200)  # "Operating Checking"
    account_number = models.CharField(max_length=50)
    routing_number = models.CharField(max_length=50, null=True, blank=True)
    bank_name = models.CharField(max_length=200)
    account_type = models.CharField(max_length=20, choices=BANK_ACCOUNT_TYPES, default="checking")
    currency_code = models.CharField(max_length=10, default="USD")

    # Ledger side of this bank account; book balance for reconciliation
    gl_account = models.ForeignKey(
        Account, null=True, blank=True, on_delete=models.PROTECT, related_name="bank_accounts"
    )

    # As reported by the bank (statement imports)
    current_balance = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    available_balance = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    # As of the last balanced reconciliation
    reconciled_balance = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    last_reconciled = models.DateField(null=True, blank=True)

    is_active = models.BooleanField(default=True)
    is_default = models.BooleanField(default=False)
    notes = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "name"], name="uq_company_bankaccount_name"
            ),
            models.UniqueConstraint(
                fields=["company", "account_number"], name="uq_company_bankaccount_number"
            ),
        ]
        indexes = [
            models.Index(fields=["company", "is_active"], name="bank_company_active_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.masked_number})"

    @property
    def masked_number(self):
        return f"****{self.account_number[-4:]}"

    def clean(self):
        gl = self.gl_account
        if gl and gl.company_id != self.company_id:
            raise ValidationError("GL account must belong to the same company.")
        if gl and gl.ac_type != "asset":
            raise ValidationError("A bank account must map to an asset GL account.")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class BankStatementImport(models.Model):  # one row per imported statement file
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    bank_account = models.ForeignKey(BankAccount, on_delete=models.PROTECT, related_name="imports")
    file_name = models.CharField(max_length=255)
    file_format = models.CharField(max_length=10)
    import_date = models.DateTimeField(auto_now_add=True)
    statement_start_date = models.DateField(null=True, blank=True)
    statement_end_date = models.DateField(null=True, blank=True)
    total_transactions = models.PositiveIntegerField(default=0)
    successful_imports = models.PositiveIntegerField(default=0)
    failed_imports = models.PositiveIntegerField(default=0)
    duplicate_transactions = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=20, choices=IMPORT_STATUS_CHOICES, default="processing")
    error_log = models.JSONField(default=list, blank=True)
    imported_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )

    objects = TenantManager()

    def __str__(self):
        return f"{self.file_name} -> {self.bank_account_id} [{self.status}]"


class BankTransaction(models.Model):  # single inflow/outflow in a bank account
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    bank_account = models.ForeignKey(
        BankAccount, on_delete=models.PROTECT, related_name="transactions"
    )
    transaction_date = models.DateField()
    value_date = models.DateField(null=True, blank=True)
    # positive = inflow (deposit), negative = outflow (payment)
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    description = models.CharField(max_length=500)
    reference = models.CharField(max_length=200, null=True, blank=True)
    check_number = models.CharField(max_length=50, null=True, blank=True)
    payee = models.CharField(max_length=200, null=True, blank=True)
    # balance reported by the bank after this line, when the statement has one
    running_balance = models.DecimalField(max_digits=18, decimal_places=2, null=True, blank=True)

    reconciliation_status = models.CharField(
        max_length=20, choices=RECONCILIATION_STATUS_CHOICES, default="unreconciled"
    )
    is_cleared = models.BooleanField(default=False)
    cleared_date = models.DateField(null=True, blank=True)
    reconciled_date = models.DateField(null=True, blank=True)

    imported_from = models.CharField(max_length=50, null=True, blank=True)
    statement_import = models.ForeignKey(
        BankStatementImport, null=True, blank=True, on_delete=models.SET_NULL,
        related_name="transactions",
    )
    original_data = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(
                fields=["company", "bank_account", "transaction_date"],
                name="banktx_company_date_idx",
            ),
            models.Index(
                fields=["company", "reconciliation_status"],
                name="banktx_company_status_idx",
            ),
        ]

    def __str__(self):
        return f"{self.transaction_date} {self.amount} {self.description[:40]}"

    @property
    def transaction_type(self):
        return "deposit" if self.amount >= 0 else "withdrawal"

    def clean(self):
        if self.bank_account_id and self.bank_account.company_id != self.company_id:
            raise ValidationError("Bank account must belong to the same company.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)


class BankReconciliation(models.Model):
    """Snapshot of one reconciliation run; never edited afterwards."""
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    bank_account = models.ForeignKey(
        BankAccount, on_delete=models.PROTECT, related_name="reconciliations"
    )
    reconciliation_date = models.DateField()
    statement_date = models.DateField()
    statement_balance = models.DecimalField(max_digits=18, decimal_places=2)
    book_balance = models.DecimalField(max_digits=18, decimal_places=2)
    total_deposits_in_transit = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    total_outstanding_checks = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    total_bank_adjustments = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    total_book_adjustments = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    adjusted_book_balance = models.DecimalField(max_digits=18, decimal_places=2)
    adjusted_bank_balance = models.DecimalField(max_digits=18, decimal_places=2)
    variance = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    is_balanced = models.BooleanField(default=False)
    notes = models.TextField(null=True, blank=True)
    reconciled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(
                fields=["company", "bank_account", "statement_date"],
                name="bankrec_company_date_idx",
            ),
        ]

    def __str__(self):
        state = "balanced" if self.is_balanced else f"variance {self.variance}"
        return f"{self.bank_account_id} @ {self.statement_date}: {state}"


class ReconciliationItem(models.Model):
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    reconciliation = models.ForeignKey(
        BankReconciliation, on_delete=models.CASCADE, related_name="items"
    )
    item_type = models.CharField(max_length=30, choices=RECONCILIATION_ITEM_TYPES)
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    description = models.CharField(max_length=400, blank=True, default="")
    bank_transaction = models.ForeignKey(
        BankTransaction, null=True, blank=True, on_delete=models.PROTECT, related_name="+"
    )
    gl_line = models.ForeignKey(
        "JournalLine", null=True, blank=True, on_delete=models.PROTECT, related_name="+"
    )
    is_cleared = models.BooleanField(default=True)

    objects = TenantManager()

    def __str__(self):
        return f"{self.item_type} {self.amount}"
