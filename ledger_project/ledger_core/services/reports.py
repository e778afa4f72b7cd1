import datetime
from collections import defaultdict
from dataclasses import asdict, dataclass
from decimal import Decimal

from django.db.models import Q, Sum

from ..exceptions import LedgerError
from ..models import Account, JournalLine
from ..money import ZERO
from .validation import as_date


@dataclass(frozen=True)
class GeneralLedgerRow:
    line_id: int
    journal_entry_id: int
    entry_number: str
    posting_date: datetime.date
    reference: str
    description: str
    account_id: int
    account_code: str
    account_name: str
    account_type: str
    debit: Decimal
    credit: Decimal
    running_balance: Decimal

    def as_dict(self):
        return asdict(self)


SORT_KEYS = {
    "date": lambda r: (r.posting_date, r.entry_number, r.line_id),
    "account": lambda r: (r.account_code, r.posting_date, r.line_id),
    "amount": lambda r: (r.debit or r.credit, r.line_id),
    "reference": lambda r: (r.reference, r.posting_date, r.line_id),
}

CLOSING_ENTRIES = Q(journal__source_type="period_close")


def general_ledger_report(company, account_id=None, start_date=None, end_date=None,
                          include_closing_entries=True, sort_by="date", sort_order="asc"):
    """
    Posted GL lines with a per-account running balance.

    The running balance follows the account's sign convention and is built in
    posting order; when a start date is given it opens with everything
    posted before that date. Sorting is applied afterwards, so each row keeps
    the balance as of its own position in time.
    """
    if sort_by not in SORT_KEYS:
        raise LedgerError(f"Unsupported sort field: {sort_by}", code="invalid_sort")
    if sort_order not in ("asc", "desc"):
        raise LedgerError(f"Unsupported sort order: {sort_order}", code="invalid_sort")

    qs = (JournalLine.objects.for_company(company)
          .filter(journal__status="posted")
          .select_related("journal", "account"))
    if account_id is not None:
        Account.objects.get_for_company(company, account_id)  # NotFound for foreign ids
        qs = qs.filter(account_id=account_id)
    if not include_closing_entries:
        qs = qs.exclude(CLOSING_ENTRIES)

    running = defaultdict(Decimal)
    if start_date is not None:
        start_date = as_date(start_date, "start_date")
        opening = (qs.filter(journal__posting_date__lt=start_date)
                   .values("account_id", "account__ac_type")
                   .annotate(d=Sum("debit"), c=Sum("credit")))
        for row in opening:
            sample = Account(ac_type=row["account__ac_type"])
            running[row["account_id"]] = sample.balance_delta(row["d"] or ZERO, row["c"] or ZERO)
        qs = qs.filter(journal__posting_date__gte=start_date)
    if end_date is not None:
        qs = qs.filter(journal__posting_date__lte=as_date(end_date, "end_date"))

    rows = []
    for line in qs.order_by("journal__posting_date", "journal_id", "id"):
        running[line.account_id] += line.account.balance_delta(line.debit, line.credit)
        rows.append(GeneralLedgerRow(
            line_id=line.pk,
            journal_entry_id=line.journal_id,
            entry_number=line.journal.entry_number,
            posting_date=line.journal.posting_date,
            reference=line.journal.reference or "",
            description=line.description or line.journal.description or "",
            account_id=line.account_id,
            account_code=line.account.code,
            account_name=line.account.name,
            account_type=line.account.ac_type,
            debit=line.debit,
            credit=line.credit,
            running_balance=running[line.account_id],
        ))

    rows.sort(key=SORT_KEYS[sort_by], reverse=(sort_order == "desc"))
    return rows
