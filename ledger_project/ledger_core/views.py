import json
from functools import wraps

from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .exceptions import LedgerError, NotFound
from .models import Company
from .services import (UnitOfWork, aging_report, allocate_payment,
                       approve_bill, close_fiscal_period, create_bill,
                       general_ledger_report, import_statement,
                       import_statement_file, reconcile,
                       reconciliation_summary, record_payment,
                       reverse_journal_entry, three_way_match)


def _error(message, code, status):
    return JsonResponse({"ok": False, "error": message, "code": code}, status=status)


def ledger_view(view):
    """
    Resolve the company from the URL, hand the view a UnitOfWork and turn
    ledger errors into JSON: NotFound -> 404, any other rule violation -> 400.
    """
    @csrf_exempt
    @wraps(view)
    def wrapper(request, company_id, *args, **kwargs):
        # Look up Company by its primary key; if none found, raise 404
        company = get_object_or_404(Company, pk=company_id)
        user = getattr(request, "user", None)
        if user is not None and not user.is_authenticated:
            user = None
        try:
            payload = {}
            if request.content_type == "application/json":
                payload = json.loads(request.body or b"{}")
        except ValueError:
            return _error("Request body is not valid JSON", "invalid_json", 400)
        try:
            return view(request, UnitOfWork(company, user), payload, *args, **kwargs)
        except NotFound as e:
            return _error(e.text, e.code, 404)
        except LedgerError as e:
            return _error(e.text, e.code, 400)
        except ValidationError as e:
            # model level validation (full_clean) not wrapped by a service
            return _error("; ".join(e.messages), "invalid", 400)
    return wrapper


# ---------- Accounts payable ----------
@require_POST
@ledger_view
def create_bill_view(request, uow, payload):
    bill = create_bill(
        uow, payload.get("vendor_id"), payload.get("lines") or [], payload.get("bill_date"),
        payload.get("due_date"),
        purchase_order_id=payload.get("purchase_order_id"),
        receipt_id=payload.get("receipt_id"),
        vendor_bill_number=payload.get("vendor_bill_number"),
        terms=payload.get("terms"),
        notes=payload.get("notes"),
    )
    return JsonResponse({
        "ok": True,
        "id": bill.pk,
        "bill_number": bill.bill_number,
        "total_amount": bill.total_amount,
        "outstanding_amount": bill.outstanding_amount,
        "matching_status": bill.matching_status,
    }, status=201)


@require_POST
@ledger_view
def approve_bill_view(request, uow, payload, bill_id):
    bill = approve_bill(uow, bill_id)
    return JsonResponse({
        "ok": True,
        "approval_status": bill.approval_status,
        "journal_entry": bill.journal_entry.entry_number if bill.journal_entry_id else None,
    })


@require_POST
@ledger_view
def three_way_match_view(request, uow, payload, bill_id):
    result = three_way_match(uow, bill_id, payload.get("purchase_order_id"),
                             payload.get("receipt_id"))
    return JsonResponse({"ok": True, **result.as_dict()})


@require_POST
@ledger_view
def record_payment_view(request, uow, payload):
    payment = record_payment(
        uow, payload.get("vendor_id"), payload.get("amount"), payload.get("payment_date"),
        payload.get("payment_method") or "ach",
        bank_account_id=payload.get("bank_account_id"),
        scheduled_date=payload.get("scheduled_date"),
        allocations=payload.get("allocations"),
        reference=payload.get("reference"),
        check_number=payload.get("check_number"),
        notes=payload.get("notes"),
    )
    return JsonResponse({
        "ok": True,
        "id": payment.pk,
        "payment_number": payment.payment_number,
        "status": payment.status,
        "allocated_amount": payment.allocated_amount,
        "unallocated_amount": payment.unallocated_amount,
    }, status=201)


@require_POST
@ledger_view
def allocate_payment_view(request, uow, payload, payment_id):
    payment = allocate_payment(uow, payment_id, payload.get("allocations") or [])
    return JsonResponse({
        "ok": True,
        "allocated_amount": payment.allocated_amount,
        "unallocated_amount": payment.unallocated_amount,
    })


@require_GET
@ledger_view
def aging_report_view(request, uow, payload):
    report = aging_report(uow.company, request.GET.get("vendor_id"), request.GET.get("as_of"))
    return JsonResponse({"ok": True, "vendors": [v.as_dict() for v in report]})


# ---------- General ledger ----------
@require_POST
@ledger_view
def close_period_view(request, uow, payload, period_id):
    period = close_fiscal_period(uow, period_id, payload.get("closing_entries"))
    return JsonResponse({"ok": True, "name": period.name, "is_closed": period.is_closed})


@require_POST
@ledger_view
def reverse_journal_view(request, uow, payload, journal_id):
    reversal = reverse_journal_entry(uow, journal_id, payload.get("reverse_date"),
                                     payload.get("reason") or "")
    return JsonResponse({
        "ok": True,
        "id": reversal.pk,
        "entry_number": reversal.entry_number,
        "reference": reversal.reference,
    }, status=201)


@require_GET
@ledger_view
def general_ledger_view(request, uow, payload):
    params = request.GET
    rows = general_ledger_report(
        uow.company,
        account_id=params.get("account_id"),
        start_date=params.get("start_date"),
        end_date=params.get("end_date"),
        include_closing_entries=params.get("include_closing_entries", "true").lower() != "false",
        sort_by=params.get("sort_by", "date"),
        sort_order=params.get("sort_order", "asc"),
    )
    return JsonResponse({"ok": True, "rows": [r.as_dict() for r in rows]})


# ---------- Banking ----------
@require_POST
@ledger_view
def import_statement_view(request, uow, payload, bank_account_id):
    upload = request.FILES.get("file")
    if upload is not None:
        result = import_statement_file(
            uow, bank_account_id, upload.read(), upload.name,
            request.POST.get("file_format", "CSV"),
        )
    else:
        result = import_statement(
            uow, bank_account_id, payload.get("transactions") or [],
            file_name=payload.get("file_name") or "api",
            file_format=payload.get("file_format") or "JSON",
        )
    return JsonResponse({"ok": True, **result.as_dict()})


@require_POST
@ledger_view
def reconcile_view(request, uow, payload, bank_account_id):
    rec = reconcile(uow, bank_account_id, payload.get("statement_date"),
                    payload.get("statement_balance"), payload.get("items") or [],
                    notes=payload.get("notes"))
    return JsonResponse({
        "ok": True,
        "id": rec.pk,
        "book_balance": rec.book_balance,
        "adjusted_book_balance": rec.adjusted_book_balance,
        "adjusted_bank_balance": rec.adjusted_bank_balance,
        "variance": rec.variance,
        "is_balanced": rec.is_balanced,
    }, status=201)


@require_GET
@ledger_view
def reconciliation_summary_view(request, uow, payload):
    return JsonResponse({
        "ok": True,
        "accounts": [s.as_dict() for s in reconciliation_summary(uow.company)],
    })
