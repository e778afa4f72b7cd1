import datetime
import logging
from decimal import Decimal

from dateutil.relativedelta import relativedelta
from django.utils import timezone

from ..exceptions import (InvalidTemplateError, LedgerError,
                          PeriodAlreadyClosedError, PeriodOverlapError,
                          UnbalancedJournalError, UnpostedEntriesError)
from ..models import (Account, FiscalPeriod, FiscalYear, JournalEntry,
                      JournalTemplate, JournalTemplateLine,
                      RecurringJournalEntry)
from ..models.numbering import SERIES_CLOSING
from ..models.template import FREQUENCY_CHOICES
from ..money import ZERO, money
from .posting import post_journal
from .uow import UnitOfWork, run_batch_item
from .validation import LineSpec, as_date, line_totals, validate_line

logger = logging.getLogger(__name__)

ONE_DAY = datetime.timedelta(days=1)

FREQUENCY_STEPS = {
    "monthly": relativedelta(months=1),
    "quarterly": relativedelta(months=3),
    "yearly": relativedelta(years=1),
}


# ----------------------------
# Fiscal years & periods
# ----------------------------
def create_fiscal_year(uow, name, start_date, end_date) -> FiscalYear:
    """Create a fiscal year split into monthly periods ("January 2025", ...)."""
    start_date = as_date(start_date, "start_date")
    end_date = as_date(end_date, "end_date")
    if start_date >= end_date:
        raise LedgerError("start_date must be before end_date", code="invalid_date")

    with uow:
        overlapping = FiscalYear.objects.for_company(uow.company).filter(
            start_date__lte=end_date, end_date__gte=start_date
        )
        if overlapping.exists():
            raise PeriodOverlapError(
                f"Fiscal year {name} overlaps {overlapping.first().name}"
            )
        fy = FiscalYear.objects.create(
            company=uow.company, name=name, start_date=start_date, end_date=end_date
        )

        cursor = start_date
        while cursor <= end_date:
            # last period is clamped to the fiscal year end
            period_end = min(cursor + relativedelta(months=1) - ONE_DAY, end_date)
            FiscalPeriod.objects.create(
                company=uow.company,
                fiscal_year=fy,
                name=cursor.strftime("%B %Y"),
                start_date=cursor,
                end_date=period_end,
            )
            cursor = period_end + ONE_DAY

        uow.log_audit(fy, "CREATE", changes={
            "name": name, "start_date": start_date, "end_date": end_date,
            "periods": fy.periods.count(),
        })
    logger.info("Created fiscal year %s for %s", name, uow.company.slug)
    return fy


def close_fiscal_period(uow, period_id, closing_entries=None) -> FiscalPeriod:
    """
    Close a period for good. Optional closing lines are posted as one
    CLOSING- entry dated on the last day of the period, before the lock.
    """
    with uow:
        period = FiscalPeriod.objects.select_for_update().get_for_company(uow.company, period_id)
        if period.is_closed:
            raise PeriodAlreadyClosedError(f"Period {period.name} is already closed")

        unposted = JournalEntry.objects.for_company(uow.company).filter(
            status="draft",
            posting_date__gte=period.start_date,
            posting_date__lte=period.end_date,
        ).count()
        if unposted:
            raise UnpostedEntriesError(
                f"Cannot close period {period.name}: {unposted} unposted journal entries"
            )

        closing_entry = None
        if closing_entries:
            specs = [LineSpec.coerce(line) for line in closing_entries]
            for spec in specs:
                validate_line(spec)
            td, tc = line_totals(specs)
            # amounts are in whole cents, so equal means within 0.01
            if td != tc:
                raise UnbalancedJournalError(
                    f"Closing entries not balanced: debits={td}, credits={tc}"
                )
            closing_entry = post_journal(
                uow, specs, period.end_date,
                reference=f"CLOSING-{period.name}",
                description=f"Period closing entries for {period.name}",
                series=SERIES_CLOSING,
                source_type="period_close",
                source_id=period.pk,
            )

        period.is_closed = True
        period.closed_at = timezone.now()
        period.closed_by = uow.user
        period.save()
        uow.log_audit(period, "CLOSE", old_values={"is_closed": False}, changes={
            "is_closed": True,
            "closing_entry": closing_entry.entry_number if closing_entry else None,
        })
    logger.info("Closed period %s for %s", period.name, uow.company.slug)
    return period


# ----------------------------
# Templates & recurring entries
# ----------------------------
def evaluate_formula(formula) -> Decimal:
    """
    Amount for one template cell. Only literal numbers are understood;
    anything else counts as zero.
    """
    if formula in (None, ""):
        return ZERO
    try:
        value = money(str(formula).strip())
    except ValueError:
        return ZERO
    return value if value.is_finite() else ZERO


def calculate_next_run_date(day, frequency):
    try:
        return day + FREQUENCY_STEPS[frequency]
    except KeyError:
        raise LedgerError(f"Unsupported frequency: {frequency}", code="invalid_frequency")


def create_journal_template(uow, name, lines, description="") -> JournalTemplate:
    if not lines:
        raise InvalidTemplateError("A journal template needs at least one line")
    with uow:
        template = JournalTemplate.objects.create(
            company=uow.company, name=name, description=description or ""
        )
        for index, line in enumerate(lines):
            account = Account.objects.get_for_company(
                uow.company, line.get("account_id", line.get("account"))
            )
            JournalTemplateLine.objects.create(
                company=uow.company,
                template=template,
                account=account,
                debit_formula=str(line.get("debit_formula") or ""),
                credit_formula=str(line.get("credit_formula") or ""),
                description=line.get("description") or "",
                sequence=line.get("sequence") or (index + 1) * 10,
            )
        uow.log_audit(template, "CREATE", changes={"name": name, "lines": len(lines)})
    return template


def create_recurring_entry(uow, name, template_id, frequency, start_date,
                           end_date=None) -> RecurringJournalEntry:
    """First run is one interval after start_date."""
    if frequency not in dict(FREQUENCY_CHOICES):
        raise LedgerError(f"Unsupported frequency: {frequency}", code="invalid_frequency")
    start_date = as_date(start_date, "start_date")
    end_date = as_date(end_date, "end_date") if end_date else None

    with uow:
        template = JournalTemplate.objects.get_for_company(uow.company, template_id)
        if not template.is_active:
            raise InvalidTemplateError(f"Template {template.name} is inactive")
        recurring = RecurringJournalEntry.objects.create(
            company=uow.company,
            name=name,
            template=template,
            frequency=frequency,
            start_date=start_date,
            end_date=end_date,
            next_run_date=calculate_next_run_date(start_date, frequency),
        )
        uow.log_audit(recurring, "CREATE", changes={
            "name": name, "template": template.pk, "frequency": frequency,
            "next_run_date": recurring.next_run_date,
        })
    return recurring


def _template_lines(template):
    specs = []
    for tl in template.lines.all():
        spec = LineSpec(
            account_id=tl.account_id,
            debit=evaluate_formula(tl.debit_formula),
            credit=evaluate_formula(tl.credit_formula),
            description=tl.description,
        )
        # cells that evaluate to nothing are skipped, not posted as zero lines
        if spec.debit or spec.credit:
            specs.append(spec)
    if not specs:
        raise InvalidTemplateError(f"Template {template.name} produced no amounts")
    return specs


def _run_recurring(company, recurring_id, today):
    uow = UnitOfWork(company)
    with uow:
        recurring = (RecurringJournalEntry.objects.select_for_update()
                     .select_related("template").get(pk=recurring_id))
        # someone else already ran it
        if not recurring.is_active or recurring.next_run_date > today:
            return
        run_date = recurring.next_run_date
        je = post_journal(
            uow, _template_lines(recurring.template), run_date,
            reference=f"AUTO-{recurring.name}",
            description=f"Recurring entry: {recurring.name}",
            source_type="recurring_entry",
            source_id=recurring.pk,
        )
        recurring.last_run_date = run_date
        recurring.next_run_date = calculate_next_run_date(run_date, recurring.frequency)
        if recurring.end_date and recurring.next_run_date > recurring.end_date:
            recurring.is_active = False
        recurring.save()
        uow.log_audit(recurring, "RUN", changes={
            "journal_entry": je.entry_number,
            "next_run_date": recurring.next_run_date,
            "is_active": recurring.is_active,
        })
    logger.info("Processed recurring entry %s -> %s", recurring.name, je.entry_number)


def process_recurring_entries(company, today=None):
    """
    Post every due recurring entry of `company` once. Each entry commits on
    its own; failures are logged and reported in the returned results.
    """
    today = today or timezone.localdate()
    due = (RecurringJournalEntry.objects.for_company(company)
           .filter(is_active=True, next_run_date__lte=today)
           .order_by("next_run_date", "id")
           .values_list("pk", flat=True))
    return [
        run_batch_item(
            recurring_id,
            lambda recurring_id=recurring_id: _run_recurring(company, recurring_id, today),
            label="recurring entry",
        )
        for recurring_id in list(due)
    ]
