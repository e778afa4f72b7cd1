import logging
from dataclasses import asdict, dataclass
from typing import Callable, Optional

from django.db import DEFAULT_DB_ALIAS, transaction

from ..exceptions import LedgerError
from .audit_helper import AuditService, get_audit_service, log_action

logger = logging.getLogger(__name__)


class UnitOfWork:
    """
    Transaction boundary handed through the service layer.

        uow = UnitOfWork(company, user)
        with uow:
            bill = create_bill(uow, ...)
            approve_bill(uow, bill.pk)

    Every service enters the unit of work it was given. The outermost
    `with` opens the database transaction, nested ones become savepoints,
    so a multi-step operation either commits as a whole or leaves nothing
    behind. Audit entries go through the same connection and therefore
    share the fate of the change they describe.
    """

    def __init__(self, company, user=None, using: str = DEFAULT_DB_ALIAS,
                 audit_service: Optional[AuditService] = None):
        self.company = company
        self.user = user
        self.using = using
        self.audit_service = audit_service or get_audit_service()
        self._atomics = []

    def __enter__(self):
        atomic = transaction.atomic(using=self.using)
        atomic.__enter__()
        self._atomics.append(atomic)
        return self

    def __exit__(self, exc_type, exc, tb):
        return self._atomics.pop().__exit__(exc_type, exc, tb)

    @property
    def in_transaction(self):
        return bool(self._atomics)

    def log_audit(self, instance, action, changes=None, old_values=None):
        log_action(
            action=action,
            instance=instance,
            user=self.user,
            company=self.company,
            changes=changes,
            old_values=old_values,
            service=self.audit_service,
        )


# ----------------------------
# Batch item results
# ----------------------------
@dataclass(frozen=True)
class BatchItemResult:
    item_id: int
    ok: bool
    error_code: Optional[str] = None
    message: str = ""

    def as_dict(self):
        return asdict(self)


def run_batch_item(item_id, work: Callable[[], None],
                   on_failure: Optional[Callable[[str], None]] = None,
                   label: str = "item") -> BatchItemResult:
    """
    Run one batch item in its own transaction and report the outcome.

    A failing item is rolled back, logged, handed to `on_failure` (which
    persists the failure in a fresh transaction) and reported as a failed
    BatchItemResult; it never stops the caller's loop.
    """
    try:
        with transaction.atomic():
            work()
    except Exception as exc:
        if isinstance(exc, LedgerError):
            code, message = exc.code, exc.text
            logger.error("%s %s failed: %s", label, item_id, message)
        else:
            code, message = "unexpected_error", str(exc) or exc.__class__.__name__
            logger.exception("%s %s failed unexpectedly", label, item_id)
        if on_failure is not None:
            try:
                with transaction.atomic():
                    on_failure(message)
            except Exception:
                logger.exception("could not record failure of %s %s", label, item_id)
        return BatchItemResult(item_id=item_id, ok=False, error_code=code, message=message)
    return BatchItemResult(item_id=item_id, ok=True)
