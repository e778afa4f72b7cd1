from decimal import Decimal

import django.core.serializers.json
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        # ---------- Tenant ----------
        migrations.CreateModel(
            name="Company",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("slug", models.SlugField(max_length=80, unique=True)),
                ("currency_code", models.CharField(default="USD", max_length=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("owner", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="owned_companies", to=settings.AUTH_USER_MODEL)),
            ],
            options={"verbose_name_plural": "companies"},
        ),
        # ---------- Chart of accounts ----------
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=32)),
                ("name", models.CharField(max_length=200)),
                ("ac_type", models.CharField(choices=[("asset", "Asset"), ("liability", "Liability"), ("equity", "Equity"), ("income", "Income"), ("expense", "Expense")], max_length=10)),
                ("is_active", models.BooleanField(default=True)),
                ("is_control_account", models.BooleanField(default=False)),
                ("balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("parent", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="children", to="ledger_core.account")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "ac_type"], name="acct_company_type_idx"),
                    models.Index(fields=["company", "code"], name="acct_company_code_idx"),
                    models.Index(fields=["company", "parent"], name="acct_company_parent_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "code"), name="uq_company_account_code"),
                ],
            },
        ),
        migrations.CreateModel(
            name="NumberingSeries",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("kind", models.CharField(max_length=20)),
                ("prefix", models.CharField(blank=True, default="", max_length=20)),
                ("suffix", models.CharField(blank=True, default="", max_length=20)),
                ("current_number", models.PositiveBigIntegerField(default=1)),
                ("pad_length", models.PositiveSmallIntegerField(default=6)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
            ],
            options={
                "verbose_name_plural": "numbering series",
                "constraints": [
                    models.UniqueConstraint(fields=("company", "kind"), name="uq_company_numbering_kind"),
                ],
            },
        ),
        # ---------- Fiscal calendar ----------
        migrations.CreateModel(
            name="FiscalYear",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=50)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, to="ledger_core.company")),
            ],
            options={
                "ordering": ("company", "start_date"),
                "constraints": [
                    models.UniqueConstraint(fields=("company", "name"), name="uq_company_fiscal_year_name"),
                ],
            },
        ),
        migrations.CreateModel(
            name="FiscalPeriod",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=50)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("is_closed", models.BooleanField(default=False)),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("closed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, to="ledger_core.company")),
                ("fiscal_year", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="periods", to="ledger_core.fiscalyear")),
            ],
            options={
                "ordering": ("company", "start_date"),
                "indexes": [
                    models.Index(fields=["company", "start_date"], name="period_company_start_idx"),
                    models.Index(fields=["company", "is_closed"], name="period_company_closed_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "name"), name="uq_company_period_name"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=100)),
                ("object_id", models.CharField(max_length=100)),
                ("old_values", models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ("changes", models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="ledger_core.company")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "object_type", "object_id"], name="audit_company_object_idx"),
                    models.Index(fields=["company", "created_at"], name="audit_company_created_idx"),
                ],
            },
        ),
        # ---------- Purchasing ----------
        migrations.CreateModel(
            name="Vendor",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("contact_email", models.EmailField(blank=True, max_length=254, null=True)),
                ("payment_terms_days", models.IntegerField(default=30)),
                ("is_active", models.BooleanField(default=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("default_ap_account", models.ForeignKey(blank=True, help_text="Default AP account used for this vendor", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="vendors_default_ap", to="ledger_core.account")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "name"], name="vendor_company_name_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "name"), name="uq_company_vendor_name"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PurchaseOrder",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("po_number", models.CharField(max_length=64)),
                ("order_date", models.DateField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("vendor", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="purchase_orders", to="ledger_core.vendor")),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("company", "po_number"), name="uq_company_po_number"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PurchaseOrderLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("item_code", models.CharField(blank=True, default="", max_length=64)),
                ("description", models.CharField(blank=True, default="", max_length=400)),
                ("quantity", models.DecimalField(decimal_places=4, max_digits=14)),
                ("unit_price", models.DecimalField(decimal_places=4, max_digits=18)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("purchase_order", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="ledger_core.purchaseorder")),
            ],
            options={
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("quantity__gte", 0), ("unit_price__gte", 0)), name="pol_non_negative_amounts"),
                ],
            },
        ),
        migrations.CreateModel(
            name="GoodsReceipt",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("receipt_number", models.CharField(max_length=64)),
                ("received_date", models.DateField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("purchase_order", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="receipts", to="ledger_core.purchaseorder")),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("company", "receipt_number"), name="uq_company_receipt_number"),
                ],
            },
        ),
        migrations.CreateModel(
            name="GoodsReceiptLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("quantity_received", models.DecimalField(decimal_places=4, max_digits=14)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("purchase_order_line", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="receipt_lines", to="ledger_core.purchaseorderline")),
                ("receipt", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="ledger_core.goodsreceipt")),
            ],
        ),
        # ---------- Journal ----------
        migrations.CreateModel(
            name="JournalEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("entry_number", models.CharField(blank=True, max_length=64)),
                ("posting_date", models.DateField()),
                ("reference", models.CharField(blank=True, max_length=200, null=True)),
                ("description", models.TextField(blank=True, null=True)),
                ("status", models.CharField(choices=[("draft", "Draft"), ("posted", "Posted")], default="draft", max_length=10)),
                ("total_debit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("total_credit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("posted_at", models.DateTimeField(blank=True, null=True)),
                ("source_type", models.CharField(blank=True, max_length=50, null=True)),
                ("source_id", models.BigIntegerField(blank=True, null=True)),
                ("posting_fingerprint", models.CharField(blank=True, max_length=64, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("reversal_of", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="reversals", to="ledger_core.journalentry")),
            ],
            options={
                "verbose_name_plural": "journal entries",
                "indexes": [
                    models.Index(fields=["company", "posting_date"], name="je_company_date_idx"),
                    models.Index(fields=["company", "status"], name="je_company_status_idx"),
                    models.Index(fields=["company", "source_type", "source_id"], name="je_company_source_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "entry_number"), name="uq_je_company_number"),
                ],
            },
        ),
        # ---------- Vendor bills ----------
        migrations.CreateModel(
            name="VendorBill",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("bill_number", models.CharField(max_length=64)),
                ("vendor_bill_number", models.CharField(blank=True, max_length=100, null=True)),
                ("bill_date", models.DateField()),
                ("due_date", models.DateField()),
                ("currency_code", models.CharField(default="USD", max_length=10)),
                ("subtotal", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("discount_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("tax_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("total_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("paid_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("outstanding_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("status", models.CharField(choices=[("submitted", "Submitted"), ("partially_paid", "Partially paid"), ("paid", "Paid")], default="submitted", max_length=20)),
                ("approval_status", models.CharField(choices=[("pending", "Pending"), ("approved", "Approved")], default="pending", max_length=20)),
                ("matching_status", models.CharField(choices=[("unmatched", "Unmatched"), ("fully_matched", "Fully matched"), ("variance", "Variance")], default="fully_matched", max_length=20)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("terms", models.TextField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("approved_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("journal_entry", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="ledger_core.journalentry")),
                ("purchase_order", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="bills", to="ledger_core.purchaseorder")),
                ("receipt", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="bills", to="ledger_core.goodsreceipt")),
                ("vendor", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="bills", to="ledger_core.vendor")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "vendor", "due_date"], name="bill_company_due_idx"),
                    models.Index(fields=["company", "status"], name="bill_company_status_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "bill_number"), name="uq_bill_company_number"),
                    models.CheckConstraint(condition=models.Q(("outstanding_amount__gte", 0), ("paid_amount__gte", 0)), name="bill_non_negative_balances"),
                ],
            },
        ),
        migrations.CreateModel(
            name="JournalLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("description", models.CharField(blank=True, max_length=400, null=True)),
                ("debit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("credit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("is_posted", models.BooleanField(default=False)),
                ("is_cleared", models.BooleanField(default=False)),
                ("cleared_date", models.DateField(blank=True, null=True)),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="lines", to="ledger_core.account")),
                ("bill", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="gl_lines", to="ledger_core.vendorbill")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("journal", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="ledger_core.journalentry")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "account"], name="jl_company_account_idx"),
                    models.Index(fields=["company", "journal"], name="jl_company_journal_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("debit__gte", 0), ("credit__gte", 0)), name="jl_non_negative_amounts"),
                    models.CheckConstraint(condition=models.Q(models.Q(("debit", 0), ("credit", 0)), _negated=True), name="jl_debit_or_credit_nonzero"),
                ],
            },
        ),
        migrations.CreateModel(
            name="BillLineItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("item_code", models.CharField(blank=True, default="", max_length=64)),
                ("description", models.TextField(blank=True, null=True)),
                ("quantity", models.DecimalField(decimal_places=4, default=Decimal("1"), max_digits=14)),
                ("unit_price", models.DecimalField(decimal_places=4, default=Decimal("0.00"), max_digits=18)),
                ("discount_percent", models.DecimalField(decimal_places=4, default=Decimal("0.00"), max_digits=7)),
                ("tax_percent", models.DecimalField(decimal_places=4, default=Decimal("0.00"), max_digits=7)),
                ("line_subtotal", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("discount_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("tax_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("line_total", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("account", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="ledger_core.account")),
                ("bill", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="ledger_core.vendorbill")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("purchase_order_line", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="ledger_core.purchaseorderline")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "bill"], name="billline_company_bill_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("quantity__gte", 0), ("unit_price__gte", 0)), name="bl_non_negative_amounts"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ThreeWayMatch",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status", models.CharField(choices=[("unmatched", "Unmatched"), ("fully_matched", "Fully matched"), ("variance", "Variance")], max_length=20)),
                ("quantity_variance", models.DecimalField(decimal_places=4, default=Decimal("0"), max_digits=18)),
                ("price_variance", models.DecimalField(decimal_places=4, default=Decimal("0"), max_digits=18)),
                ("total_variance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("tolerance_exceeded", models.BooleanField(default=False)),
                ("exceptions", models.JSONField(blank=True, default=list)),
                ("matched_at", models.DateTimeField(auto_now_add=True)),
                ("bill", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="matches", to="ledger_core.vendorbill")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("matched_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("purchase_order", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="+", to="ledger_core.purchaseorder")),
                ("receipt", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="+", to="ledger_core.goodsreceipt")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "bill"], name="match_company_bill_idx"),
                ],
            },
        ),
        # ---------- Templates / recurrence ----------
        migrations.CreateModel(
            name="JournalTemplate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("company", "name"), name="uq_company_template_name"),
                ],
            },
        ),
        migrations.CreateModel(
            name="JournalTemplateLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("debit_formula", models.CharField(blank=True, default="", max_length=200)),
                ("credit_formula", models.CharField(blank=True, default="", max_length=200)),
                ("description", models.CharField(blank=True, default="", max_length=400)),
                ("sequence", models.PositiveIntegerField(default=10)),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="+", to="ledger_core.account")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("template", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="ledger_core.journaltemplate")),
            ],
            options={"ordering": ("template", "sequence", "id")},
        ),
        migrations.CreateModel(
            name="RecurringJournalEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("frequency", models.CharField(choices=[("monthly", "Monthly"), ("quarterly", "Quarterly"), ("yearly", "Yearly")], max_length=10)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField(blank=True, null=True)),
                ("next_run_date", models.DateField()),
                ("last_run_date", models.DateField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("template", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="recurring_entries", to="ledger_core.journaltemplate")),
            ],
            options={
                "verbose_name_plural": "recurring journal entries",
                "indexes": [
                    models.Index(fields=["company", "is_active", "next_run_date"], name="recurring_company_next_idx"),
                ],
            },
        ),
        # ---------- Banking ----------
        migrations.CreateModel(
            name="BankAccount",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("account_number", models.CharField(max_length=50)),
                ("routing_number", models.CharField(blank=True, max_length=50, null=True)),
                ("bank_name", models.CharField(max_length=200)),
                ("account_type", models.CharField(choices=[("checking", "Checking"), ("savings", "Savings"), ("credit_card", "Credit card"), ("money_market", "Money market")], default="checking", max_length=20)),
                ("currency_code", models.CharField(default="USD", max_length=10)),
                ("current_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("available_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("reconciled_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("last_reconciled", models.DateField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("is_default", models.BooleanField(default=False)),
                ("notes", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("gl_account", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="bank_accounts", to="ledger_core.account")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "is_active"], name="bank_company_active_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "name"), name="uq_company_bankaccount_name"),
                    models.UniqueConstraint(fields=("company", "account_number"), name="uq_company_bankaccount_number"),
                ],
            },
        ),
        # ---------- Payments ----------
        migrations.CreateModel(
            name="VendorPayment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("payment_number", models.CharField(max_length=64)),
                ("payment_date", models.DateField()),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("currency_code", models.CharField(default="USD", max_length=10)),
                ("payment_method", models.CharField(choices=[("cash", "Cash"), ("check", "Check"), ("ach", "ACH"), ("wire", "Wire"), ("card", "Card"), ("other", "Other")], default="ach", max_length=20)),
                ("reference", models.CharField(blank=True, max_length=200, null=True)),
                ("check_number", models.CharField(blank=True, max_length=50, null=True)),
                ("status", models.CharField(choices=[("scheduled", "Scheduled"), ("processing", "Processing"), ("completed", "Completed"), ("failed", "Failed")], default="completed", max_length=20)),
                ("scheduled_date", models.DateField(blank=True, null=True)),
                ("processed_date", models.DateField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, null=True)),
                ("allocated_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("unallocated_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("notes", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("bank_account", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="vendor_payments", to="ledger_core.bankaccount")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("journal_entry", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="ledger_core.journalentry")),
                ("vendor", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="ledger_core.vendor")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "status", "scheduled_date"], name="vpay_company_sched_idx"),
                    models.Index(fields=["company", "vendor"], name="vpay_company_vendor_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("company", "payment_number"), name="uq_payment_company_number"),
                    models.CheckConstraint(condition=models.Q(("allocated_amount__gte", 0), ("unallocated_amount__gte", 0)), name="vpay_non_negative_allocation"),
                ],
            },
        ),
        migrations.CreateModel(
            name="VendorPaymentAllocation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("allocated_amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("allocation_date", models.DateField(auto_now_add=True)),
                ("bill", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="allocations", to="ledger_core.vendorbill")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("payment", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="allocations", to="ledger_core.vendorpayment")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "payment"], name="vpa_company_payment_idx"),
                    models.Index(fields=["company", "bill"], name="vpa_company_bill_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("allocated_amount__gt", 0)), name="vpa_positive_amount"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentGateway",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100)),
                ("gateway_type", models.CharField(max_length=50)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
            ],
        ),
        migrations.CreateModel(
            name="OnlinePayment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("currency_code", models.CharField(default="USD", max_length=10)),
                ("reference", models.CharField(blank=True, default="", max_length=200)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("completed", "Completed"), ("failed", "Failed")], default="pending", max_length=20)),
                ("settlement_date", models.DateField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("gateway", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="ledger_core.paymentgateway")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "status"], name="onlinepay_company_status_idx"),
                ],
            },
        ),
        # ---------- Statements / reconciliation ----------
        migrations.CreateModel(
            name="BankStatementImport",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("file_name", models.CharField(max_length=255)),
                ("file_format", models.CharField(max_length=10)),
                ("import_date", models.DateTimeField(auto_now_add=True)),
                ("statement_start_date", models.DateField(blank=True, null=True)),
                ("statement_end_date", models.DateField(blank=True, null=True)),
                ("total_transactions", models.PositiveIntegerField(default=0)),
                ("successful_imports", models.PositiveIntegerField(default=0)),
                ("failed_imports", models.PositiveIntegerField(default=0)),
                ("duplicate_transactions", models.PositiveIntegerField(default=0)),
                ("status", models.CharField(choices=[("processing", "Processing"), ("completed", "Completed"), ("failed", "Failed")], default="processing", max_length=20)),
                ("error_log", models.JSONField(blank=True, default=list)),
                ("bank_account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="imports", to="ledger_core.bankaccount")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("imported_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name="BankTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("transaction_date", models.DateField()),
                ("value_date", models.DateField(blank=True, null=True)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("description", models.CharField(max_length=500)),
                ("reference", models.CharField(blank=True, max_length=200, null=True)),
                ("check_number", models.CharField(blank=True, max_length=50, null=True)),
                ("payee", models.CharField(blank=True, max_length=200, null=True)),
                ("running_balance", models.DecimalField(blank=True, decimal_places=2, max_digits=18, null=True)),
                ("reconciliation_status", models.CharField(choices=[("unreconciled", "Unreconciled"), ("cleared", "Cleared")], default="unreconciled", max_length=20)),
                ("is_cleared", models.BooleanField(default=False)),
                ("cleared_date", models.DateField(blank=True, null=True)),
                ("reconciled_date", models.DateField(blank=True, null=True)),
                ("imported_from", models.CharField(blank=True, max_length=50, null=True)),
                ("original_data", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("bank_account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="transactions", to="ledger_core.bankaccount")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("statement_import", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="transactions", to="ledger_core.bankstatementimport")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "bank_account", "transaction_date"], name="banktx_company_date_idx"),
                    models.Index(fields=["company", "reconciliation_status"], name="banktx_company_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="BankReconciliation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("reconciliation_date", models.DateField()),
                ("statement_date", models.DateField()),
                ("statement_balance", models.DecimalField(decimal_places=2, max_digits=18)),
                ("book_balance", models.DecimalField(decimal_places=2, max_digits=18)),
                ("total_deposits_in_transit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("total_outstanding_checks", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("total_bank_adjustments", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("total_book_adjustments", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("adjusted_book_balance", models.DecimalField(decimal_places=2, max_digits=18)),
                ("adjusted_bank_balance", models.DecimalField(decimal_places=2, max_digits=18)),
                ("variance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("is_balanced", models.BooleanField(default=False)),
                ("notes", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("bank_account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="reconciliations", to="ledger_core.bankaccount")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("reconciled_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["company", "bank_account", "statement_date"], name="bankrec_company_date_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ReconciliationItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("item_type", models.CharField(choices=[("DEPOSIT_IN_TRANSIT", "Deposit in transit"), ("OUTSTANDING_CHECK", "Outstanding check"), ("BANK_ADJUSTMENT", "Bank adjustment"), ("BOOK_ADJUSTMENT", "Book adjustment")], max_length=30)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("description", models.CharField(blank=True, default="", max_length=400)),
                ("is_cleared", models.BooleanField(default=True)),
                ("bank_transaction", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="ledger_core.banktransaction")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("gl_line", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="ledger_core.journalline")),
                ("reconciliation", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="ledger_core.bankreconciliation")),
            ],
        ),
        # ---------- Cash flow forecasting ----------
        migrations.CreateModel(
            name="CashFlowForecast",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("currency_code", models.CharField(default="USD", max_length=10)),
                ("opening_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("projected_closing_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name="CashFlowForecastItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("item_date", models.DateField()),
                ("item_type", models.CharField(choices=[("INFLOW", "Inflow"), ("OUTFLOW", "Outflow")], max_length=10)),
                ("category", models.CharField(max_length=100)),
                ("description", models.CharField(blank=True, default="", max_length=400)),
                ("projected_amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("confidence", models.CharField(choices=[("HIGH", "High"), ("MEDIUM", "Medium"), ("LOW", "Low")], default="MEDIUM", max_length=10)),
                ("source", models.CharField(blank=True, default="", max_length=100)),
                ("notes", models.TextField(blank=True, default="")),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, to="ledger_core.company")),
                ("forecast", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="ledger_core.cashflowforecast")),
            ],
            options={"ordering": ("forecast", "item_date", "id")},
        ),
    ]
