import logging
from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Sum
from django.utils import timezone

from ..conf import ledger_decimal
from ..exceptions import LedgerError, MissingAccountError
from ..models import (Account, BankAccount, BankReconciliation,
                      BankStatementImport, BankTransaction, CashFlowForecast,
                      CashFlowForecastItem, JournalLine, OnlinePayment,
                      ReconciliationItem)
from ..models.banking import (BANK_ADJUSTMENT, BOOK_ADJUSTMENT,
                              DEPOSIT_IN_TRANSIT, OUTSTANDING_CHECK,
                              RECONCILIATION_ITEM_TYPES)
from ..models.forecast import CONFIDENCE_CHOICES
from ..money import ZERO
from .parsers import NormalizedTransaction, get_statement_parser
from .settlement import get_settlement_backend
from .uow import run_batch_item
from .validation import as_date, as_money

logger = logging.getLogger(__name__)

ITEM_TYPES = {code for code, _ in RECONCILIATION_ITEM_TYPES}
CONFIDENCE_LEVELS = {code for code, _ in CONFIDENCE_CHOICES}


# ----------------------------
# Bank accounts
# ----------------------------
def create_bank_account(uow, name, account_number, bank_name, *, account_type="checking",
                        gl_account_id=None, routing_number=None, currency_code=None,
                        current_balance=ZERO, is_default=False, notes=None) -> BankAccount:
    with uow:
        gl_account = None
        if gl_account_id:
            gl_account = Account.objects.get_for_company(uow.company, gl_account_id)
            if gl_account.ac_type != "asset":
                raise LedgerError(f"GL account {gl_account.code} must be an asset account",
                                  code="invalid_gl_account")
        if BankAccount.objects.for_company(uow.company).filter(
                account_number=account_number).exists():
            raise LedgerError(f"Bank account with number {account_number} already exists",
                              code="duplicate_bank_account")

        opening = as_money(current_balance)
        bank_account = BankAccount.objects.create(
            company=uow.company,
            name=name,
            account_number=account_number,
            routing_number=routing_number,
            bank_name=bank_name,
            account_type=account_type,
            currency_code=currency_code or uow.company.currency_code,
            gl_account=gl_account,
            current_balance=opening,
            available_balance=opening,
            is_default=is_default,
            notes=notes,
        )
        uow.log_audit(bank_account, "CREATE", changes={
            "name": name,
            "account_number": bank_account.masked_number,
            "gl_account": gl_account.code if gl_account else None,
        })
    return bank_account


# ----------------------------
# Statement import
# ----------------------------
@dataclass
class ImportResult:
    imported: int = 0
    duplicates: int = 0
    errors: List[str] = field(default_factory=list)
    import_id: Optional[int] = None

    def as_dict(self):
        return asdict(self)


def _coerce_transaction(value) -> NormalizedTransaction:
    if isinstance(value, NormalizedTransaction):
        return value
    day = value.get("transaction_date", value.get("date"))
    balance = value.get("running_balance", value.get("balance"))
    description = (value.get("description") or "").strip()
    if not description:
        raise LedgerError("description is empty", code="invalid_row")
    return NormalizedTransaction(
        transaction_date=as_date(day, "transaction_date"),
        amount=as_money(value.get("amount")),
        description=description,
        reference=value.get("reference") or None,
        check_number=value.get("check_number") or None,
        payee=value.get("payee") or None,
        running_balance=as_money(balance, "balance") if balance not in (None, "") else None,
        value_date=as_date(value["value_date"], "value_date") if value.get("value_date") else None,
        original_data=value.get("original_data"),
    )


def import_statement(uow, bank_account_id, transactions, *, file_name="manual",
                     file_format="MANUAL", parse_errors=None) -> ImportResult:
    """
    Insert statement transactions that the account does not already hold.

    A transaction is a duplicate when (date, amount, description) matches an
    existing one on the same bank account. Rows that cannot be read are
    reported in `errors` and skipped; the rest of the statement is imported.
    """
    result = ImportResult(errors=list(parse_errors or []))
    with uow:
        bank_account = BankAccount.objects.select_for_update().get_for_company(
            uow.company, bank_account_id
        )
        record = BankStatementImport.objects.create(
            company=uow.company,
            bank_account=bank_account,
            file_name=file_name,
            file_format=file_format,
            status="processing",
            imported_by=uow.user,
        )

        accepted = []
        for position, raw in enumerate(transactions, start=1):
            try:
                accepted.append(_coerce_transaction(raw))
            except LedgerError as exc:
                result.errors.append(f"Transaction {position}: {exc.text}")
        # rows that never became a transaction; insert failures are added below
        unreadable = len(result.errors)

        existing = set(
            BankTransaction.objects.filter(
                bank_account=bank_account,
                transaction_date__in={t.transaction_date for t in accepted},
            ).values_list("transaction_date", "amount", "description")
        )
        for txn in accepted:
            key = (txn.transaction_date, txn.amount, txn.description)
            if key in existing:
                result.duplicates += 1
                continue
            try:
                with transaction.atomic():
                    BankTransaction.objects.create(
                        company=uow.company,
                        bank_account=bank_account,
                        transaction_date=txn.transaction_date,
                        value_date=txn.value_date or txn.transaction_date,
                        amount=txn.amount,
                        description=txn.description,
                        reference=txn.reference,
                        check_number=txn.check_number,
                        payee=txn.payee,
                        running_balance=txn.running_balance,
                        reconciliation_status="unreconciled",
                        imported_from=file_format,
                        statement_import=record,
                        original_data=txn.original_data,
                    )
            except ValidationError as exc:
                result.errors.append(f"Transaction {txn.description}: {'; '.join(exc.messages)}")
                continue
            existing.add(key)
            result.imported += 1

        dates = [t.transaction_date for t in accepted]
        record.statement_start_date = min(dates) if dates else None
        record.statement_end_date = max(dates) if dates else None
        record.total_transactions = len(accepted) + unreadable
        record.successful_imports = result.imported
        record.failed_imports = len(result.errors)
        record.duplicate_transactions = result.duplicates
        record.error_log = result.errors
        record.status = "completed"
        record.save()

        # the bank's own view of the balance, when the statement reports one
        if accepted and accepted[-1].running_balance is not None:
            bank_account.current_balance = accepted[-1].running_balance
            bank_account.available_balance = accepted[-1].running_balance
            bank_account.save(update_fields=["current_balance", "available_balance"])

        result.import_id = record.pk
        uow.log_audit(record, "IMPORT", changes={
            "bank_account": bank_account.pk,
            "imported": result.imported,
            "duplicates": result.duplicates,
            "errors": len(result.errors),
        })
    logger.info("Imported statement %s into %s: %s new, %s duplicates, %s errors",
                file_name, bank_account.masked_number, result.imported,
                result.duplicates, len(result.errors))
    return result


def import_statement_file(uow, bank_account_id, blob, file_name, file_format="CSV"):
    """Parse a statement file with the parser registered for its format, then import it."""
    parser = get_statement_parser(file_format)
    parsed = parser.parse(blob)
    return import_statement(
        uow, bank_account_id, parsed.transactions,
        file_name=file_name, file_format=file_format.upper(), parse_errors=parsed.errors,
    )


# ----------------------------
# Reconciliation
# ----------------------------
def book_balance(bank_account, as_of) -> Decimal:
    """Balance of the bank account's GL account from posted lines up to `as_of`."""
    gl = bank_account.gl_account
    if gl is None:
        raise MissingAccountError(
            f"Bank account {bank_account.name} is not linked to a GL account"
        )
    totals = JournalLine.objects.filter(
        company_id=bank_account.company_id, account=gl, journal__status="posted",
        journal__posting_date__lte=as_of,
    ).aggregate(d=Sum("debit"), c=Sum("credit"))
    return gl.balance_delta(totals["d"] or ZERO, totals["c"] or ZERO)


def _reconciliation_items(uow, bank_account, items):
    parsed = []
    for item in items:
        item_type = item.get("item_type")
        if item_type not in ITEM_TYPES:
            raise LedgerError(f"Unknown reconciliation item type {item_type!r}",
                              code="invalid_reconciliation_item")
        bank_txn = gl_line = None
        if item.get("bank_transaction_id"):
            bank_txn = BankTransaction.objects.select_for_update().get_for_company(
                uow.company, item["bank_transaction_id"]
            )
            if bank_txn.bank_account_id != bank_account.pk:
                raise LedgerError(
                    f"Bank transaction {bank_txn.pk} belongs to another bank account",
                    code="invalid_reconciliation_item",
                )
        if item.get("gl_line_id"):
            gl_line = JournalLine.objects.select_for_update().get_for_company(
                uow.company, item["gl_line_id"]
            )
            if gl_line.account_id != bank_account.gl_account_id:
                raise LedgerError(
                    f"GL line {gl_line.pk} is not on the bank's GL account",
                    code="invalid_reconciliation_item",
                )
        parsed.append((item_type, as_money(item.get("amount")),
                       item.get("description") or "", bank_txn, gl_line))
    return parsed


def reconcile(uow, bank_account_id, statement_date, statement_balance, items=(),
              notes=None) -> BankReconciliation:
    """
    adjusted book = book balance + book adjustments
    adjusted bank = statement balance + deposits in transit
                    - outstanding checks + bank adjustments

    Balanced when the two differ by less than RECONCILIATION_TOLERANCE. The
    reconciliation is recorded either way; the bank account only takes the
    new reconciled balance when it is balanced.
    """
    statement_date = as_date(statement_date, "statement_date")
    statement_balance = as_money(statement_balance, "statement_balance")
    today = timezone.localdate()

    with uow:
        bank_account = (BankAccount.objects.select_for_update().select_related("gl_account")
                        .get_for_company(uow.company, bank_account_id))
        books = book_balance(bank_account, statement_date)
        parsed = _reconciliation_items(uow, bank_account, items)

        totals = {t: ZERO for t in ITEM_TYPES}
        for item_type, amount, _, _, _ in parsed:
            totals[item_type] += amount

        adjusted_book = books + totals[BOOK_ADJUSTMENT]
        adjusted_bank = (statement_balance + totals[DEPOSIT_IN_TRANSIT]
                         - totals[OUTSTANDING_CHECK] + totals[BANK_ADJUSTMENT])
        variance = abs(adjusted_book - adjusted_bank)
        is_balanced = variance < ledger_decimal("RECONCILIATION_TOLERANCE")

        rec = BankReconciliation.objects.create(
            company=uow.company,
            bank_account=bank_account,
            reconciliation_date=today,
            statement_date=statement_date,
            statement_balance=statement_balance,
            book_balance=books,
            total_deposits_in_transit=totals[DEPOSIT_IN_TRANSIT],
            total_outstanding_checks=totals[OUTSTANDING_CHECK],
            total_bank_adjustments=totals[BANK_ADJUSTMENT],
            total_book_adjustments=totals[BOOK_ADJUSTMENT],
            adjusted_book_balance=adjusted_book,
            adjusted_bank_balance=adjusted_bank,
            variance=variance,
            is_balanced=is_balanced,
            notes=notes,
            reconciled_by=uow.user,
        )

        for item_type, amount, description, bank_txn, gl_line in parsed:
            ReconciliationItem.objects.create(
                company=uow.company,
                reconciliation=rec,
                item_type=item_type,
                amount=amount,
                description=description,
                bank_transaction=bank_txn,
                gl_line=gl_line,
                is_cleared=True,
            )
            if bank_txn is not None:
                bank_txn.reconciliation_status = "cleared"
                bank_txn.is_cleared = True
                bank_txn.cleared_date = today
                bank_txn.reconciled_date = today
                bank_txn.save()
            if gl_line is not None:
                gl_line.is_cleared = True
                gl_line.cleared_date = today
                gl_line.save()

        if is_balanced:
            bank_account.last_reconciled = statement_date
            bank_account.reconciled_balance = adjusted_book
            bank_account.save(update_fields=["last_reconciled", "reconciled_balance"])

        uow.log_audit(rec, "CREATE", changes={
            "bank_account": bank_account.pk,
            "statement_date": statement_date,
            "statement_balance": statement_balance,
            "book_balance": books,
            "variance": variance,
            "is_balanced": is_balanced,
            "items": len(parsed),
        })
    logger.info("Reconciled %s at %s: book=%s statement=%s variance=%s balanced=%s",
                bank_account.masked_number, statement_date, books, statement_balance,
                variance, is_balanced)
    return rec


@dataclass
class ReconciliationSummary:
    bank_account_id: int
    name: str
    last_reconciled: Optional[date]
    reconciled_balance: Decimal
    current_balance: Decimal
    unreconciled_transactions: int
    unreconciled_amount: Decimal

    def as_dict(self):
        return asdict(self)


def reconciliation_summary(company) -> List[ReconciliationSummary]:
    summaries = []
    for account in BankAccount.objects.active(company).order_by("name"):
        open_items = BankTransaction.objects.filter(
            bank_account=account, reconciliation_status="unreconciled"
        ).aggregate(n=Count("id"), total=Sum("amount"))
        summaries.append(ReconciliationSummary(
            bank_account_id=account.pk,
            name=account.name,
            last_reconciled=account.last_reconciled,
            reconciled_balance=account.reconciled_balance,
            current_balance=account.current_balance,
            unreconciled_transactions=open_items["n"],
            unreconciled_amount=open_items["total"] or ZERO,
        ))
    return summaries


# ----------------------------
# Cash flow forecast
# ----------------------------
def create_cash_flow_forecast(uow, name, start_date, end_date, opening_balance, items=(),
                              description="", currency_code=None) -> CashFlowForecast:
    start_date = as_date(start_date, "start_date")
    end_date = as_date(end_date, "end_date")
    if end_date < start_date:
        raise LedgerError("end_date must not be before start_date", code="invalid_date")
    opening = as_money(opening_balance, "opening_balance")

    rows = []
    for item in items:
        item_type = (item.get("item_type") or "").upper()
        if item_type not in ("INFLOW", "OUTFLOW"):
            raise LedgerError(f"Unknown forecast item type {item.get('item_type')!r}",
                              code="invalid_forecast_item")
        confidence = (item.get("confidence") or "MEDIUM").upper()
        if confidence not in CONFIDENCE_LEVELS:
            raise LedgerError(f"Unknown confidence {item.get('confidence')!r}",
                              code="invalid_forecast_item")
        rows.append(dict(
            item_date=as_date(item.get("item_date"), "item_date"),
            item_type=item_type,
            category=item.get("category") or "General",
            description=item.get("description") or "",
            projected_amount=as_money(item.get("projected_amount"), "projected_amount"),
            confidence=confidence,
            source=item.get("source") or "",
            notes=item.get("notes") or "",
        ))

    inflows = sum((r["projected_amount"] for r in rows if r["item_type"] == "INFLOW"), ZERO)
    outflows = sum((r["projected_amount"] for r in rows if r["item_type"] == "OUTFLOW"), ZERO)

    with uow:
        forecast = CashFlowForecast.objects.create(
            company=uow.company,
            name=name,
            description=description,
            start_date=start_date,
            end_date=end_date,
            currency_code=currency_code or uow.company.currency_code,
            opening_balance=opening,
            projected_closing_balance=opening + inflows - outflows,
            created_by=uow.user,
        )
        CashFlowForecastItem.objects.bulk_create([
            CashFlowForecastItem(company=uow.company, forecast=forecast, **row) for row in rows
        ])
        uow.log_audit(forecast, "CREATE", changes={
            "name": name,
            "opening_balance": opening,
            "inflows": inflows,
            "outflows": outflows,
            "projected_closing_balance": forecast.projected_closing_balance,
        })
    return forecast


# ----------------------------
# Online payments
# ----------------------------
def _settle_online_payment(payment_id, today, backend):
    payment = (OnlinePayment.objects.select_for_update().select_related("gateway")
               .get(pk=payment_id))
    if payment.status != "pending":
        return
    backend.settle(payment)
    payment.status = "completed"
    payment.settlement_date = today
    payment.save()
    logger.info("Online payment processed: %s amount=%s gateway=%s",
                payment.pk, payment.amount, payment.gateway.gateway_type)


def _fail_online_payment(payment_id, message):
    OnlinePayment.objects.filter(pk=payment_id, status="pending").update(
        status="failed", error_message=message
    )


def process_online_payments(company, today=None, backend=None):
    """Settle every pending gateway payment of `company`, one transaction each."""
    today = today or timezone.localdate()
    backend = backend or get_settlement_backend()
    pending = list(
        OnlinePayment.objects.for_company(company).filter(status="pending")
        .order_by("created_at", "id").values_list("pk", flat=True)
    )
    return [
        run_batch_item(
            payment_id,
            lambda payment_id=payment_id: _settle_online_payment(payment_id, today, backend),
            on_failure=lambda message, payment_id=payment_id: _fail_online_payment(
                payment_id, message),
            label="online payment",
        )
        for payment_id in pending
    ]
