import datetime

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.utils.text import slugify

from ledger_core.models import Account, Company, Vendor
from ledger_core.services import (UnitOfWork, create_bank_account,
                                  create_fiscal_year, post_journal)

User = get_user_model()

CHART_OF_ACCOUNTS = [
    # code, name, type, control account
    ("1000", "Cash", "asset", False),
    ("1010", "Operating Checking", "asset", False),
    ("1400", "Inventory", "asset", False),
    ("2000", "Accounts Payable", "liability", True),
    ("3000", "Owner's Equity", "equity", False),
    ("3900", "Retained Earnings", "equity", False),
    ("4000", "Revenue", "income", False),
    ("5000", "Cost of Goods Sold", "expense", False),
    ("6100", "Office Supplies", "expense", False),
    ("6200", "Rent", "expense", False),
]


class Command(BaseCommand):
    help = "Seeds a demo company: chart of accounts, a vendor, a bank account and a fiscal year."

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--company",  # Define flag
            type=str,
            default="Demo Ltd",
            help="Name of the demo company (default: Demo Ltd)",
        )
        parser.add_argument("--username", default="demo", help="Username for the demo owner.")
        parser.add_argument("--password", default="demo123", help="Password for the demo owner.")
        parser.add_argument("--year", type=int, default=datetime.date.today().year,
                            help="Fiscal year to create (calendar year).")

    def handle(self, *args, **options):
        com_name = options["company"]  # Read argument from add_arguments()
        self.stdout.write(self.style.NOTICE(f"Seeding demo data for {com_name}..."))

        # 1. Owner
        user, created = User.objects.get_or_create(
            username=options["username"],
            defaults={"email": f"{options['username']}@example.com"},
        )
        if created:  # if user newly created
            user.set_password(options["password"])
            user.save()

        # 2. Company, slug made unique with -1, -2, ...
        company = Company.objects.filter(name=com_name).first()
        if company is not None:
            self.stdout.write(self.style.WARNING(f"Company {company} already exists, nothing to do"))
            return
        base = slugify(com_name) or "company"
        slug, i = base, 1
        while Company.objects.filter(slug=slug).exists():
            slug = f"{base}-{i}"
            i += 1
        company = Company.objects.create(name=com_name, slug=slug, owner=user)
        self.stdout.write(self.style.SUCCESS(f"Created company: {company}"))

        uow = UnitOfWork(company, user)
        with uow:
            # 3. Chart of accounts
            accounts = {}
            for code, name, ac_type, control in CHART_OF_ACCOUNTS:
                accounts[code] = Account.objects.create(
                    company=company, code=code, name=name, ac_type=ac_type,
                    is_control_account=control,
                )
            self.stdout.write(self.style.SUCCESS(f"Created {len(accounts)} accounts"))

            # 4. Fiscal year with monthly periods
            year = options["year"]
            fy = create_fiscal_year(uow, f"FY{year}", datetime.date(year, 1, 1),
                                    datetime.date(year, 12, 31))
            self.stdout.write(self.style.SUCCESS(
                f"Created fiscal year {fy.name} with {fy.periods.count()} periods"))

            # 5. Vendor and bank account
            vendor = Vendor.objects.create(
                company=company, name="Acme Supplies", contact_email="ap@acme.example",
                default_ap_account=accounts["2000"],
            )
            bank = create_bank_account(
                uow, "Operating Checking", "000123456789", "First Demo Bank",
                gl_account_id=accounts["1010"].pk,
            )
            self.stdout.write(self.style.SUCCESS(f"Created vendor {vendor} and bank {bank}"))

            # 6. Opening capital
            je = post_journal(
                uow,
                [
                    {"account_id": accounts["1010"].pk, "debit": "25000.00"},
                    {"account_id": accounts["3000"].pk, "credit": "25000.00"},
                ],
                datetime.date(year, 1, 1),
                reference="OPENING",
                description="Opening capital",
            )
            self.stdout.write(self.style.SUCCESS(f"Posted opening entry {je.entry_number}"))

        self.stdout.write(self.style.SUCCESS("Demo data seeded successfully!"))
