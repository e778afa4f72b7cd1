import hashlib
import json
from collections import defaultdict
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.db.models import F
from django.utils import timezone

from ..exceptions import (AlreadyPostedDifferentPayload, InvalidJournalLine,
                          PeriodClosedError, UnbalancedJournalError)
from ..managers import TenantManager
from .account import Account
from .company import Company
from .numbering import SERIES_JOURNAL, NumberingSeries
from .period import FiscalPeriod

JOURNAL_STATUS = [
    ("draft", "Draft"),  # still editable, no effect on balances
    ("posted", "Posted"),  # finalized, immutable
]

ZERO = Decimal("0.00")


# ---------- Journal (Header) & JournalLine ----------
class JournalEntry(models.Model):  # Represents one accounting transaction
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    entry_number = models.CharField(max_length=64, blank=True)  # JE-000001
    posting_date = models.DateField()
    reference = models.CharField(max_length=200, null=True, blank=True)
    description = models.TextField(null=True, blank=True)
    status = models.CharField(max_length=10, choices=JOURNAL_STATUS, default="draft")

    # Stored on posting so reports do not have to re-aggregate lines
    total_debit = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    total_credit = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)

    posted_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="+",
    )
    # optional polymorphic source info (bill, payment, period close, ...)
    source_type = models.CharField(max_length=50, null=True, blank=True)
    source_id = models.BigIntegerField(null=True, blank=True)

    # Set on the reversing entry, points at the entry it cancels
    reversal_of = models.ForeignKey(
        "self",
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name="reversals",
    )
    # Fingerprint-based idempotency (safe to call post() twice)
    posting_fingerprint = models.CharField(max_length=64, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        verbose_name_plural = "journal entries"
        indexes = [
            models.Index(fields=["company", "posting_date"], name="je_company_date_idx"),
            models.Index(fields=["company", "status"], name="je_company_status_idx"),
            models.Index(
                fields=["company", "source_type", "source_id"],
                name="je_company_source_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "entry_number"], name="uq_je_company_number"
            ),
        ]

    def __str__(self):
        return f"{self.entry_number} {self.posting_date} [{self.status}]"

    @property
    def is_posted(self):
        return self.status == "posted"

    # Aggregate all debit and credit amounts across entry’s lines
    def compute_totals(self):
        """Return debits, credits sums for lines"""
        aggs = self.lines.aggregate(
            total_debit=models.Sum("debit"),
            total_credit=models.Sum("credit"),
        )
        return (aggs["total_debit"] or ZERO, aggs["total_credit"] or ZERO)

    def is_balanced(self):
        debit, credit = self.compute_totals()
        return debit == credit

    def _posting_payload(self, lines):
        """Deterministic JSON snapshot of what matters for posting."""
        payload = {
            "company": self.company_id,
            "date": self.posting_date.isoformat(),
            "lines": [
                {
                    "acct": line.account_id,
                    "debit": str(line.debit),
                    "credit": str(line.credit),
                    "desc": line.description or "",
                }
                for line in lines
            ],
        }
        return json.dumps(payload, separators=(",", ":"), sort_keys=True)

    def _fingerprint(self, lines):
        return hashlib.sha256(self._posting_payload(lines).encode()).hexdigest()

    @transaction.atomic
    def post(self, user=None):
        """
        Post the entry: validate, flip to posted and move account balances.

        Calling post() again on an entry whose lines did not change is a
        no-op; if the lines changed since posting it raises
        AlreadyPostedDifferentPayload.
        """
        # Lock row + lines to prevent concurrent modifications
        je = JournalEntry.objects.select_for_update().get(pk=self.pk)
        lines = list(
            je.lines.select_for_update().select_related("account").order_by("id")
        )

        if not lines:  # Prevent posting an empty entry
            raise InvalidJournalLine("JournalEntry must have at least one JournalLine.")

        # Recompute totals fresh from DB & ignore any stale cached values
        td = sum((line.debit for line in lines), ZERO)
        tc = sum((line.credit for line in lines), ZERO)
        if td != tc:
            raise UnbalancedJournalError(
                f"Journal not balanced: debits={td}, credits={tc}"
            )

        # every line must belong to same company as journal
        if any(line.company_id != je.company_id for line in lines):
            raise InvalidJournalLine(
                "All journal lines must belong to same company as journal."
            )

        fp = je._fingerprint(lines)

        """ Idempotency & immutability """
        if je.status == "posted":
            if je.posting_fingerprint == fp:
                return je
            raise AlreadyPostedDifferentPayload(
                "Journal already posted with different payload."
            )

        if FiscalPeriod.is_date_closed(je.company_id, je.posting_date):
            raise PeriodClosedError(
                f"Cannot post on {je.posting_date}: the fiscal period is closed."
            )

        """ Update state """
        je.status = "posted"
        je.posted_at = timezone.now()
        je.total_debit = td
        je.total_credit = tc
        if user and not je.created_by_id:
            je.created_by = user
        je.posting_fingerprint = fp
        je.save(update_fields=[
            "status", "posted_at", "total_debit", "total_credit",
            "created_by", "posting_fingerprint",
        ])
        JournalLine.objects.filter(journal=je).update(is_posted=True)

        # Move running balances; F() keeps concurrent postings additive
        deltas = defaultdict(Decimal)
        for line in lines:
            deltas[line.account_id] += line.account.balance_delta(line.debit, line.credit)
        for account_id, delta in deltas.items():
            if delta:
                Account.objects.filter(pk=account_id).update(balance=F("balance") + delta)

        # keep the caller's instance in sync with the row
        for field in ("status", "posted_at", "total_debit", "total_credit",
                      "created_by_id", "posting_fingerprint"):
            setattr(self, field, getattr(je, field))
        return je

    def clean(self):
        if self.pk and self.status == "posted":
            orig = JournalEntry.objects.filter(pk=self.pk).first()
            # Don't modify posted journals
            if orig and orig.status == "posted":
                for f in ("posting_date", "description", "reference",
                          "entry_number", "company_id", "reversal_of_id"):
                    if getattr(orig, f) != getattr(self, f):
                        raise ValidationError(
                            "Cannot modify a posted JournalEntry. It is immutable."
                        )

        # Don't allow drafts in closed periods
        if (self.status == "draft" and self.company_id and self.posting_date
                and FiscalPeriod.is_date_closed(self.company_id, self.posting_date)):
            raise PeriodClosedError(
                "Cannot create or edit journal inside a closed period."
            )

    def save(self, *args, **kwargs):
        if not self.entry_number:
            self.entry_number = NumberingSeries.objects.next_code(
                self.company, SERIES_JOURNAL
            )
        if self.pk:
            orig = JournalEntry.objects.filter(pk=self.pk).only("status").first()
            if orig and orig.status == "posted" and self.status != "posted":
                raise ValidationError("Cannot unpost a posted journal")
        # post() writes through update_fields after doing its own checks
        if kwargs.get("update_fields") is None:
            self.full_clean()
        super().save(*args, **kwargs)


class JournalLine(models.Model):  # Stores Lines ( credits / debits )
    """
    Each line belongs to a journal entry and to a GL account.
    Exactly one of debit / credit is non-zero.
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    journal = models.ForeignKey(
        JournalEntry,
        on_delete=models.CASCADE,
        related_name="lines",
    )
    account = models.ForeignKey(Account, on_delete=models.PROTECT, related_name="lines")
    description = models.CharField(max_length=400, null=True, blank=True)

    debit = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    credit = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)

    # traceability back to the AP document that caused it
    bill = models.ForeignKey(
        "VendorBill", null=True, blank=True, on_delete=models.SET_NULL,
        related_name="gl_lines",
    )

    # populated when the journal is posted
    is_posted = models.BooleanField(default=False)

    # set by bank reconciliation
    is_cleared = models.BooleanField(default=False)
    cleared_date = models.DateField(null=True, blank=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "account"], name="jl_company_account_idx"),
            models.Index(fields=["company", "journal"], name="jl_company_journal_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(debit__gte=0) & models.Q(credit__gte=0),
                name="jl_non_negative_amounts",
            ),
            models.CheckConstraint(
                condition=~(models.Q(debit=0) & models.Q(credit=0)),
                name="jl_debit_or_credit_nonzero",
            ),
        ]

    def __str__(self):
        return f"{self.journal_id} | {self.account_id} | D:{self.debit} C:{self.credit}"

    @property
    def amount(self):
        return self.debit or self.credit

    def clean(self):
        # redundant with CheckConstraint but gives a readable error
        if self.debit < 0 or self.credit < 0:
            raise ValidationError("Debit and credit must be >= 0")
        if self.debit > 0 and self.credit > 0:
            raise ValidationError("JournalLine should not have both debit and credit > 0")
        if self.debit == 0 and self.credit == 0:
            raise ValidationError(
                "JournalLine requires a non-0 amount on either debit or credit"
            )

        if self.account_id and self.account.company_id != self.company_id:
            raise ValidationError("JournalLine.account must belong to the same company.")
        if not self.pk and self.account_id and not self.account.is_active:
            raise ValidationError("Cannot post to an inactive account.")

        if self.journal_id and self.journal.company_id != self.company_id:
            raise ValidationError("JournalLine.company must equal JournalEntry.company")

        if self.bill_id and self.bill.company_id != self.company_id:
            raise ValidationError("JournalLine.bill must belong to the same company.")

        # lines of a posted journal are frozen
        if self.journal_id and JournalEntry.objects.filter(
            pk=self.journal_id, status="posted"
        ).exists():
            if not self.pk:
                raise ValidationError("Cannot add JournalLine: parent journal is posted.")
            orig = JournalLine.objects.get(pk=self.pk)
            if (orig.debit != self.debit or orig.credit != self.credit
                    or orig.account_id != self.account_id):
                raise ValidationError(
                    "Cannot modify JournalLine: parent JournalEntry is posted."
                )

    def save(self, *args, **kwargs):
        # copy company from the parent journal when not given
        if not self.company_id and self.journal_id:
            self.company_id = self.journal.company_id
        self.full_clean()
        return super().save(*args, **kwargs)
