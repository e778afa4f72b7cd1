import logging

from celery import shared_task
from django.db import models, transaction
from django.utils import timezone

logger = logging.getLogger(__name__)


def _summary(results):
    failed = [r.as_dict() for r in results if not r.ok]
    return {"processed": len(results), "failed": len(failed), "failures": failed}


def _today(today):
    # beat passes nothing; manual runs may pass an ISO date
    from .services.validation import as_date
    return as_date(today, "today") if today else timezone.localdate()


@shared_task  # register this function as a Celery task
def process_scheduled_payments_task(company_id, today=None):
    # import lazily to avoid circular imports at module import time
    from .models import Company
    from .services.payment import process_scheduled_payments

    company = Company.objects.get(pk=company_id)
    summary = _summary(process_scheduled_payments(company, _today(today)))
    logger.info("Scheduled payments for %s: %s", company.slug, summary)
    return summary


@shared_task
def process_recurring_entries_task(company_id, today=None):
    from .models import Company
    from .services.periods import process_recurring_entries

    company = Company.objects.get(pk=company_id)
    summary = _summary(process_recurring_entries(company, _today(today)))
    logger.info("Recurring entries for %s: %s", company.slug, summary)
    return summary


@shared_task
def process_online_payments_task(company_id, today=None):
    from .models import Company
    from .services.banking import process_online_payments

    company = Company.objects.get(pk=company_id)
    summary = _summary(process_online_payments(company, _today(today)))
    logger.info("Online payments for %s: %s", company.slug, summary)
    return summary


@shared_task
def recompute_account_balances(company_id):
    """
    Rebuild every account's running balance from its posted journal lines.
    Any difference from the stored balance is logged and corrected.
    """
    from .models import Account, JournalLine

    drift = {}
    with transaction.atomic():
        company_accounts = Account.objects.select_for_update().filter(company_id=company_id)
        for account in company_accounts:
            # Compute agg with Sum(...) first, None when nothing is posted
            agg = JournalLine.objects.filter(account=account, is_posted=True).aggregate(
                debit=models.Sum("debit"),
                credit=models.Sum("credit"),
            )
            expected = account.balance_delta(agg["debit"] or 0, agg["credit"] or 0)
            if expected != account.balance:
                logger.warning("Balance drift on account %s (%s): stored=%s expected=%s",
                               account.code, account.pk, account.balance, expected)
                drift[account.code] = str(expected - account.balance)
                # balance is owned by postings, so save() would not write it
                Account.objects.filter(pk=account.pk).update(balance=expected)
    return drift


@shared_task
def run_daily_batches(today=None):
    """Fan the batch tasks out per company; wired to CELERY_BEAT_SCHEDULE."""
    from .models import Company

    count = 0
    for company_id in Company.objects.values_list("pk", flat=True):
        process_scheduled_payments_task.delay(company_id, today)
        process_recurring_entries_task.delay(company_id, today)
        process_online_payments_task.delay(company_id, today)
        count += 1
    logger.info("Queued daily ledger batches for %s companies", count)
    return count
