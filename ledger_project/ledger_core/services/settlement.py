import logging

from django.utils.module_loading import import_string

from ..conf import ledger_setting

logger = logging.getLogger(__name__)


class SettlementBackend:
    """
    Moves the money for a vendor or online payment.

    settle() returns on success and raises SettlementError (or anything
    else) when the money could not be moved; the batch marks the payment
    failed with that message.
    """

    def settle(self, payment):
        raise NotImplementedError


class ImmediateSettlementBackend(SettlementBackend):
    """No external rail: every payment settles as soon as it is processed."""

    def settle(self, payment):
        logger.debug("Settled %s %s immediately", payment.__class__.__name__, payment.pk)


def get_settlement_backend() -> SettlementBackend:
    return import_string(ledger_setting("SETTLEMENT_BACKEND"))()
