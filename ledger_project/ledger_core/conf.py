"""
Ledger specific settings.

Every value can be overridden from Django settings by adding the LEDGER_
prefix, e.g. LEDGER_MATCH_PRICE_TOLERANCE_PCT = 0.5
"""
from decimal import Decimal

from django.conf import settings

DEFAULTS = {
    # three-way match tolerances, in percent of the ordered quantity / price
    "MATCH_QUANTITY_TOLERANCE_PCT": "2",
    "MATCH_PRICE_TOLERANCE_PCT": "1",
    # |adjusted bank - adjusted book| below this counts as reconciled
    "RECONCILIATION_TOLERANCE": "0.01",
    # zero padding used when a numbering series is created on first use
    "NUMBERING_PAD_LENGTH": 6,
    "AUDIT_SERVICE": "ledger_core.services.audit_helper.DatabaseAuditService",
    "SETTLEMENT_BACKEND": "ledger_core.services.settlement.ImmediateSettlementBackend",
    "STATEMENT_PARSERS": {
        "CSV": "ledger_core.services.parsers.CsvStatementParser",
    },
}


def ledger_setting(name):
    """Return LEDGER_<name> from Django settings, falling back to the default."""
    return getattr(settings, f"LEDGER_{name}", DEFAULTS[name])


def ledger_decimal(name) -> Decimal:
    # str() first so floats in settings do not leak binary noise into Decimal
    return Decimal(str(ledger_setting(name)))
