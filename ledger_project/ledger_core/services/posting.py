import logging
from collections import defaultdict
from decimal import Decimal

from django.db.models import Sum

from ..exceptions import (AlreadyReversedError, JournalNotPostedError,
                          LedgerError, MissingAccountError, NotFound,
                          PeriodClosedError)
from ..models import Account, FiscalPeriod, JournalEntry, JournalLine
from ..models.numbering import (SERIES_JOURNAL, SERIES_REVERSAL,
                                NumberingSeries)
from ..money import ZERO
from .validation import LineSpec, as_date, validate_lines

logger = logging.getLogger(__name__)


# ----------------------------
# Journal-related workflows
# ----------------------------
def _accounts_for(company, account_ids):
    """Load the referenced accounts of `company`, all or nothing."""
    accounts = {
        a.pk: a for a in Account.objects.for_company(company).filter(pk__in=account_ids)
    }
    for account_id in account_ids:
        if account_id not in accounts:
            raise NotFound(f"Account {account_id} not found")
        if not accounts[account_id].is_active:
            raise LedgerError(
                f"Account {accounts[account_id].code} is inactive",
                code="inactive_account",
            )
    return accounts


def _write_entry(uow, specs, posting_date, reference, description, *,
                 series=SERIES_JOURNAL, source_type=None, source_id=None,
                 reversal_of=None, bill=None):
    """Persist a draft header plus its lines. Caller holds the transaction."""
    if FiscalPeriod.is_date_closed(uow.company, posting_date):
        raise PeriodClosedError(
            f"Cannot post on {posting_date}: the fiscal period is closed."
        )
    accounts = _accounts_for(uow.company, {s.account_id for s in specs})
    je = JournalEntry.objects.create(
        company=uow.company,
        entry_number=NumberingSeries.objects.next_code(uow.company, series),
        posting_date=posting_date,
        reference=reference,
        description=description,
        status="draft",
        created_by=uow.user,
        source_type=source_type,
        source_id=source_id,
        reversal_of=reversal_of,
    )
    for spec in specs:
        JournalLine.objects.create(
            company=uow.company,
            journal=je,
            account=accounts[spec.account_id],
            description=spec.description or None,
            debit=spec.debit,
            credit=spec.credit,
            bill=bill,
        )
    return je


def post_journal(uow, lines, posting_date, reference=None, description=None, *,
                 series=SERIES_JOURNAL, source_type=None, source_id=None,
                 reversal_of=None, bill=None) -> JournalEntry:
    """
    Create and post one balanced journal entry.

    The lines are validated before anything is written, so an unbalanced
    request never leaves a header behind. Header, lines, balance updates and
    the audit row share one transaction.
    """
    specs = [LineSpec.coerce(line) for line in lines]
    validate_lines(specs)
    posting_date = as_date(posting_date, "posting_date")

    with uow:
        je = _write_entry(
            uow, specs, posting_date, reference, description,
            series=series, source_type=source_type, source_id=source_id,
            reversal_of=reversal_of, bill=bill,
        )
        je.post(user=uow.user)
        uow.log_audit(je, "POST", changes={
            "entry_number": je.entry_number,
            "posting_date": je.posting_date,
            "reference": je.reference,
            "total": je.total_debit,
        })
    logger.info("Posted journal %s dated %s for %s (total %s)",
                je.entry_number, je.posting_date, uow.company.slug, je.total_debit)
    return je


def create_draft_journal(uow, lines, posting_date, reference=None, description=None):
    """Save an entry without posting it. Drafts do not move balances."""
    specs = [LineSpec.coerce(line) for line in lines]
    validate_lines(specs, require_balance=False)
    posting_date = as_date(posting_date, "posting_date")
    with uow:
        je = _write_entry(uow, specs, posting_date, reference, description)
        uow.log_audit(je, "CREATE", changes={"entry_number": je.entry_number,
                                             "posting_date": je.posting_date})
    return je


def post_journal_entry(uow, journal_entry_id):
    """
    Post a saved draft. Posting an already posted entry with unchanged lines
    returns it untouched.
    """
    with uow:
        je = JournalEntry.objects.select_for_update().get_for_company(
            uow.company, journal_entry_id
        )
        was_posted = je.is_posted
        je.post(user=uow.user)
        if not was_posted:
            uow.log_audit(je, "POST", changes={"entry_number": je.entry_number,
                                               "total": je.total_debit})
    if not was_posted:
        logger.info("Posted draft journal %s", je.entry_number)
    return je


def reverse_journal_entry(uow, journal_entry_id, reverse_date, reason=""):
    """
    Post the mirror image of a posted entry: every line with debit and
    credit swapped. Together the two entries move no balance.
    """
    reverse_date = as_date(reverse_date, "reverse_date")
    with uow:
        original = JournalEntry.objects.select_for_update().get_for_company(
            uow.company, journal_entry_id
        )
        if not original.is_posted:
            raise JournalNotPostedError(
                f"Journal {original.entry_number} is not posted and cannot be reversed"
            )
        if original.reversals.exists():
            raise AlreadyReversedError(
                f"Journal {original.entry_number} has already been reversed"
            )

        specs = [
            LineSpec(
                account_id=line.account_id,
                debit=line.credit,
                credit=line.debit,
                description=f"Reversal: {line.description or ''}".strip(),
            )
            for line in original.lines.order_by("id")
        ]
        reversal = post_journal(
            uow, specs, reverse_date,
            reference=f"REV-{original.reference or original.entry_number}",
            description=f"Reversal of {original.entry_number}: {reason}".rstrip(": "),
            series=SERIES_REVERSAL,
            source_type="reversal",
            source_id=original.pk,
            reversal_of=original,
        )
        uow.log_audit(original, "REVERSE", changes={
            "reversal_entry": reversal.entry_number,
            "reason": reason,
        })
    logger.info("Reversed journal %s with %s", original.entry_number, reversal.entry_number)
    return reversal


# ----------------------------
# Account resolution
# ----------------------------
def _get_ap_account_for_company(company):
    # lowest-coded active liability control account, e.g. 2000 Accounts Payable
    ap = (Account.objects.for_company(company)
          .filter(ac_type="liability", is_control_account=True, is_active=True)
          .order_by("code").first())
    if not ap:
        raise MissingAccountError("No AP control account configured for company")
    return ap


def _resolve_bank_ledger_account(company, bank_account=None):
    """
    Ledger Account that money leaves from: the bank account's GL account,
    else the company's cash account.
    """
    if bank_account is not None and bank_account.gl_account_id:
        return bank_account.gl_account
    cash = (Account.objects.for_company(company)
            .filter(ac_type="asset", is_active=True, name__icontains="cash")
            .order_by("code").first())
    if not cash:
        raise MissingAccountError(
            "No GL account for the payment: link the bank account to a GL "
            "account or create a cash account."
        )
    return cash


def ap_account_for_vendor(vendor):
    return vendor.default_ap_account or _get_ap_account_for_company(vendor.company)


# ----------------------------
# AP postings
# ----------------------------
def post_bill_journal(uow, bill) -> JournalEntry:
    """
    Debit: expense/asset account per line (aggregated) = line totals
    Credit: AP control account = bill total
    """
    if bill.total_amount <= 0:
        raise LedgerError("Bill total must be > 0 to post it to the ledger",
                          code="invalid_bill")

    debits = defaultdict(Decimal)
    for line in bill.lines.order_by("id"):
        if not line.account_id:
            raise MissingAccountError(f"Bill line {line.pk} has no expense account")
        debits[line.account_id] += line.line_total

    ap_account = ap_account_for_vendor(bill.vendor)
    specs = [
        LineSpec(account_id=account_id, debit=amount, description=f"Bill {bill.bill_number}")
        for account_id, amount in debits.items() if amount
    ]
    specs.append(LineSpec(account_id=ap_account.pk, credit=bill.total_amount,
                          description=f"AP for bill {bill.bill_number}"))
    return post_journal(
        uow, specs, bill.bill_date,
        reference=bill.bill_number,
        description=f"Vendor bill {bill.bill_number} from {bill.vendor.name}",
        source_type="vendor_bill",
        source_id=bill.pk,
        bill=bill,
    )


def post_payment_journal(uow, payment, posting_date=None) -> JournalEntry:
    """
    Debit: AP control account = payment amount
    Credit: bank GL account (or cash) = payment amount
    """
    ap_account = ap_account_for_vendor(payment.vendor)
    cash_account = _resolve_bank_ledger_account(uow.company, payment.bank_account)
    specs = [
        LineSpec(account_id=ap_account.pk, debit=payment.amount,
                 description=f"Payment {payment.payment_number} to {payment.vendor.name}"),
        LineSpec(account_id=cash_account.pk, credit=payment.amount,
                 description=f"Payment {payment.payment_number}"),
    ]
    return post_journal(
        uow, specs, posting_date or payment.payment_date,
        reference=payment.payment_number,
        description=f"Vendor payment {payment.payment_number}",
        source_type="vendor_payment",
        source_id=payment.pk,
    )


def account_balance(company, account_id, as_of=None):
    """Running balance of an account, or its balance at the end of `as_of`."""
    account = Account.objects.get_for_company(company, account_id)
    if as_of is None:
        return account.balance
    totals = JournalLine.objects.filter(
        company=company, account=account, journal__status="posted",
        journal__posting_date__lte=as_date(as_of, "as_of"),
    ).aggregate(d=Sum("debit"), c=Sum("credit"))
    return account.balance_delta(totals["d"] or ZERO, totals["c"] or ZERO)
