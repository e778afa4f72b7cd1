from django.urls import path

from . import views

company = "companies/<int:company_id>/"

urlpatterns = [
    # accounts payable
    path(company + "bills/", views.create_bill_view, name="create-bill"),
    path(company + "bills/<int:bill_id>/approve/", views.approve_bill_view, name="approve-bill"),
    path(company + "bills/<int:bill_id>/match/", views.three_way_match_view, name="match-bill"),
    path(company + "payments/", views.record_payment_view, name="record-payment"),
    path(company + "payments/<int:payment_id>/allocate/", views.allocate_payment_view,
         name="allocate-payment"),
    path(company + "reports/aging/", views.aging_report_view, name="aging-report"),
    # general ledger
    path(company + "periods/<int:period_id>/close/", views.close_period_view, name="close-period"),
    path(company + "journals/<int:journal_id>/reverse/", views.reverse_journal_view,
         name="reverse-journal"),
    path(company + "reports/general-ledger/", views.general_ledger_view, name="general-ledger"),
    # banking
    path(company + "bank-accounts/<int:bank_account_id>/import/", views.import_statement_view,
         name="import-statement"),
    path(company + "bank-accounts/<int:bank_account_id>/reconcile/", views.reconcile_view,
         name="reconcile"),
    path(company + "reports/reconciliation/", views.reconciliation_summary_view,
         name="reconciliation-summary"),
]
