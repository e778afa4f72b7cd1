"""
Ledger operations. Every mutating call takes a UnitOfWork first:

    uow = UnitOfWork(company, user)
    bill = create_bill(uow, vendor.pk, lines, "2025-01-15")
"""
from .banking import (create_bank_account, create_cash_flow_forecast,
                      import_statement, import_statement_file,
                      process_online_payments, reconcile,
                      reconciliation_summary)
from .bills import aging_report, approve_bill, create_bill
from .matching import three_way_match
from .payment import (allocate_payment, auto_allocate_payment,
                      process_scheduled_payments, record_payment)
from .periods import (close_fiscal_period, create_fiscal_year,
                      create_journal_template, create_recurring_entry,
                      process_recurring_entries)
from .posting import (account_balance, create_draft_journal, post_journal,
                      post_journal_entry, reverse_journal_entry)
from .reports import general_ledger_report
from .uow import BatchItemResult, UnitOfWork

__all__ = (
    "UnitOfWork", "BatchItemResult",
    # GL
    "post_journal", "create_draft_journal", "post_journal_entry", "reverse_journal_entry",
    "account_balance", "general_ledger_report",
    "create_fiscal_year", "close_fiscal_period",
    "create_journal_template", "create_recurring_entry", "process_recurring_entries",
    # AP
    "create_bill", "approve_bill", "three_way_match", "aging_report",
    "record_payment", "allocate_payment", "auto_allocate_payment",
    "process_scheduled_payments",
    # Banking
    "create_bank_account", "import_statement", "import_statement_file", "reconcile",
    "reconciliation_summary", "create_cash_flow_forecast", "process_online_payments",
)
