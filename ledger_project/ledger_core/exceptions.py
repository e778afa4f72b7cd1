from django.core.exceptions import ValidationError


class LedgerError(ValidationError):
    """
    Base class for every business rule violation raised by the ledger.

    Subclasses only differ by `default_code`, which is what views and batch
    results report back as the error kind.
    """
    default_code = "invalid"

    def __init__(self, message, code=None, params=None):
        super().__init__(message, code=code or self.default_code, params=params)

    @property
    def text(self):
        return "; ".join(self.messages)


class NotFound(LedgerError):
    """Referenced record does not exist inside the caller's company."""
    default_code = "not_found"


class UnbalancedJournalError(LedgerError):
    """Raised when a JournalEntry fails double-entry balance check."""
    default_code = "unbalanced_journal"


class InvalidJournalLine(LedgerError):
    default_code = "invalid_journal_line"


class AlreadyPostedDifferentPayload(LedgerError):
    """Raised when a JournalEntry already posted with different payload """
    default_code = "already_posted_different_payload"


class JournalNotPostedError(LedgerError):
    default_code = "journal_not_posted"


class AlreadyReversedError(LedgerError):
    default_code = "already_reversed"


class AllocationExceedsOutstanding(LedgerError):
    default_code = "allocation_exceeds_outstanding"


class AllocationExceedsPayment(LedgerError):
    default_code = "allocation_exceeds_payment"


class PeriodClosedError(LedgerError):
    """Posting date falls inside a closed fiscal period."""
    default_code = "period_closed"


class PeriodAlreadyClosedError(LedgerError):
    default_code = "period_already_closed"


class UnpostedEntriesError(LedgerError):
    default_code = "unposted_entries"


class PeriodOverlapError(LedgerError):
    default_code = "period_overlap"


class MatchVarianceError(LedgerError):
    """Bill cannot be approved while its three-way match shows a variance."""
    default_code = "match_variance"


class MissingAccountError(LedgerError):
    default_code = "missing_account"


class UnsupportedStatementFormat(LedgerError):
    default_code = "unsupported_statement_format"


class SettlementError(LedgerError):
    default_code = "settlement_failed"


class InvalidTemplateError(LedgerError):
    default_code = "invalid_template"
