import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional

from django.utils.module_loading import import_string

from ..conf import ledger_setting
from ..exceptions import LedgerError, UnsupportedStatementFormat
from .validation import as_date, as_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedTransaction:
    """One statement line, whatever file format it came from."""
    transaction_date: date
    amount: Decimal              # positive = deposit, negative = withdrawal
    description: str
    reference: Optional[str] = None
    check_number: Optional[str] = None
    payee: Optional[str] = None
    running_balance: Optional[Decimal] = None
    value_date: Optional[date] = None
    original_data: Optional[dict] = None


@dataclass
class ParsedStatement:
    transactions: List[NormalizedTransaction] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class StatementParser:
    """
    parse(blob) -> ParsedStatement

    Parsers never raise for a bad row; the row is reported in `errors` and
    the rest of the statement is still returned.
    """
    file_format = None

    def parse(self, blob) -> ParsedStatement:
        raise NotImplementedError


class CsvStatementParser(StatementParser):
    """
    Header row followed by one transaction per row:

        date,description,amount,balance,reference
        2025-01-03,Opening deposit,1500.00,1500.00,DEP-1

    `balance` and `reference` are optional columns.
    """
    file_format = "CSV"
    required_columns = ("date", "description", "amount")

    def parse(self, blob) -> ParsedStatement:
        if isinstance(blob, bytes):
            blob = blob.decode("utf-8-sig")  # strip BOM
        reader = csv.DictReader(io.StringIO(blob))
        result = ParsedStatement()

        header = [(h or "").strip().lower() for h in (reader.fieldnames or [])]
        missing = [c for c in self.required_columns if c not in header]
        if missing:
            result.errors.append(f"Missing column(s): {', '.join(missing)}")
            return result
        reader.fieldnames = header

        # row 1 is the header
        for row_number, row in enumerate(reader, start=2):
            try:
                result.transactions.append(self._parse_row(row))
            except LedgerError as exc:
                result.errors.append(f"Row {row_number}: {exc.text}")
        return result

    def _parse_row(self, row):
        def value(name):
            return (row.get(name) or "").strip()

        description = value("description")
        if not description:
            raise LedgerError("description is empty", code="invalid_row")
        balance = value("balance")
        return NormalizedTransaction(
            transaction_date=as_date(value("date"), "date"),
            amount=as_money(value("amount")),
            description=description,
            reference=value("reference") or None,
            running_balance=as_money(balance, "balance") if balance else None,
            original_data={k: v for k, v in row.items() if k},
        )


def get_statement_parser(file_format) -> StatementParser:
    parsers = ledger_setting("STATEMENT_PARSERS")
    path = parsers.get((file_format or "").upper())
    if path is None:
        raise UnsupportedStatementFormat(
            f"Unsupported statement format {file_format!r}; "
            f"supported: {', '.join(sorted(parsers))}"
        )
    return import_string(path)()
