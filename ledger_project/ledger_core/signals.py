from django.db.models.signals import post_delete, post_save, pre_delete
from django.dispatch import receiver

from .exceptions import LedgerError
from .models import (Account, BillLineItem, FiscalPeriod, JournalEntry,
                     JournalLine, VendorBill, VendorPaymentAllocation)

""" Block bill deletion once money or the ledger depends on it."""


# pre_delete signal auto-fires just before Django deletes a model instance
# it's connected to the VendorBill model
@receiver(pre_delete, sender=VendorBill)
def prevent_delete_bill_with_payments(sender, instance, **kwargs):
    # Check if any allocation rows point to this bill
    if VendorPaymentAllocation.objects.filter(bill=instance).exists():
        raise LedgerError("Cannot delete bill with applied payments.", code="protected")
    if instance.journal_entry_id:
        raise LedgerError("Cannot delete a bill that is posted to the ledger.", code="protected")


"""
    Recalculate bill totals when a line is added/updated/removed.
    Approved bills are already in the ledger, so only pending ones follow their lines.
"""


@receiver((post_save, post_delete), sender=BillLineItem)
def bill_line_changed(sender, instance, **kwargs):
    try:
        bill = VendorBill.objects.get(pk=instance.bill_id)
    except VendorBill.DoesNotExist:
        return
    if bill.approval_status != "pending":
        return
    bill.recalc_totals()
    bill.save()


@receiver(pre_delete, sender=BillLineItem)
def prevent_delete_line_of_approved_bill(sender, instance, **kwargs):
    if VendorBill.objects.filter(pk=instance.bill_id, approval_status="approved").exists():
        raise LedgerError("Cannot delete a line of an approved bill.", code="protected")


"""Block deletion if account has ever been used in a journal line."""


@receiver(pre_delete, sender=Account)
def prevent_delete_account_with_journal_lines(sender, instance, **kwargs):
    if JournalLine.objects.filter(account=instance).exists():
        raise LedgerError("Cannot delete account used in journal lines.", code="protected")


"""Closed periods are permanent."""


@receiver(pre_delete, sender=FiscalPeriod)
def prevent_delete_closed_period(sender, instance, **kwargs):
    if instance.is_closed:
        raise LedgerError(f"Cannot delete closed period {instance.name}.", code="protected")


"""Posted journals are corrected by reversal, never by deletion."""


@receiver(pre_delete, sender=JournalEntry)
def prevent_delete_posted_journal(sender, instance, **kwargs):
    if instance.status == "posted":
        raise LedgerError(
            f"Cannot delete posted journal {instance.entry_number}; reverse it instead.",
            code="protected",
        )


@receiver(pre_delete, sender=JournalLine)
def prevent_delete_posted_line(sender, instance, **kwargs):
    if instance.is_posted:
        raise LedgerError("Cannot delete a line of a posted journal.", code="protected")
