import datetime
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from django.utils.dateparse import parse_date

from ..exceptions import InvalidJournalLine, LedgerError, UnbalancedJournalError
from ..money import MAX_AMOUNT, ZERO, money


# ------------------------------------
# Journal line validation
# ------------------------------------
@dataclass(frozen=True)
class LineSpec:
    """One requested GL line, before anything touches the database."""
    account_id: int
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: str = ""

    @classmethod
    def coerce(cls, value):
        """Accept a LineSpec or a dict such as {"account_id": 1, "debit": "10.00"}."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, Mapping):
            raise InvalidJournalLine(f"Unsupported journal line: {value!r}")
        account = value.get("account_id", value.get("account"))
        if account is None:
            raise InvalidJournalLine("Journal line is missing account_id")
        return cls(
            account_id=getattr(account, "pk", account),
            debit=_line_amount(value.get("debit")),
            credit=_line_amount(value.get("credit")),
            description=value.get("description") or "",
        )


def _line_amount(value):
    if value in (None, ""):
        return ZERO
    try:
        return money(value)
    except ValueError as exc:
        raise InvalidJournalLine(str(exc))


def validate_line(spec: LineSpec):
    if spec.debit < 0 or spec.credit < 0:
        raise InvalidJournalLine("Debit and credit must be >= 0")
    if spec.debit > 0 and spec.credit > 0:
        raise InvalidJournalLine("A journal line cannot carry both a debit and a credit")
    if spec.debit == 0 and spec.credit == 0:
        raise InvalidJournalLine("A journal line needs a non-zero debit or credit")


def line_totals(specs):
    td = sum((s.debit for s in specs), ZERO)
    tc = sum((s.credit for s in specs), ZERO)
    return td, tc


def validate_lines(specs, require_balance=True):
    """
    Check a set of lines before writing them. Returns (debits, credits).
    Raises UnbalancedJournalError when debits != credits.
    """
    if not specs:
        raise InvalidJournalLine("A journal entry needs at least one line")
    for spec in specs:
        validate_line(spec)
    td, tc = line_totals(specs)
    if require_balance and td != tc:
        raise UnbalancedJournalError(f"Journal not balanced: debits={td}, credits={tc}")
    return td, tc


def as_date(value, field="date"):
    """date / datetime / ISO string -> date."""
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    parsed = None
    if isinstance(value, str):
        try:
            parsed = parse_date(value.strip())
        except ValueError:
            parsed = None
    if parsed is None:
        raise LedgerError(f"Invalid {field}: {value!r}", code="invalid_date")
    return parsed


def as_decimal(value, field="amount"):
    """Exact Decimal for quantities and prices (not rounded to cents)."""
    if isinstance(value, Decimal):
        d = value
    else:
        try:
            d = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise LedgerError(f"Invalid {field}: {value!r}", code="invalid_amount")
    if not d.is_finite() or abs(d) >= MAX_AMOUNT:
        raise LedgerError(f"Invalid {field}: {value!r}", code="invalid_amount")
    return d


def as_money(value, field="amount"):
    try:
        return money(as_decimal(value, field))
    except ValueError:
        raise LedgerError(f"Invalid {field}: {value!r}", code="invalid_amount")
