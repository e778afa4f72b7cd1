from django.core.management.base import BaseCommand

from ledger_core.models import Company
from ledger_core.services import (process_online_payments,
                                  process_recurring_entries,
                                  process_scheduled_payments)
from ledger_core.services.validation import as_date

BATCHES = (
    ("scheduled payments", process_scheduled_payments),
    ("recurring entries", process_recurring_entries),
    ("online payments", process_online_payments),
)


class Command(BaseCommand):
    help = "Runs the daily ledger batches for every company (cron alternative to Celery beat)."

    def add_arguments(self, parser):
        parser.add_argument("--company", help="Only run for the company with this slug.")
        parser.add_argument("--date", help="Process as of this ISO date instead of today.")

    def handle(self, *args, **options):
        today = as_date(options["date"], "date") if options["date"] else None
        companies = Company.objects.order_by("pk")
        if options["company"]:
            companies = companies.filter(slug=options["company"])

        failures = 0
        for company in companies:
            for label, batch in BATCHES:
                results = batch(company, today)
                failed = [r for r in results if not r.ok]
                failures += len(failed)
                self.stdout.write(f"{company.slug}: {label}: {len(results)} processed, "
                                  f"{len(failed)} failed")
                for r in failed:
                    self.stdout.write(self.style.ERROR(
                        f"  {r.item_id}: [{r.error_code}] {r.message}"))

        if failures:
            self.stdout.write(self.style.WARNING(f"{failures} item(s) failed"))
        else:
            self.stdout.write(self.style.SUCCESS("All batches completed"))
