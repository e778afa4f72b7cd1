from django.db import models

from .exceptions import NotFound


# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to a company
# -----------------------------------------
class TenantQuerySet(models.QuerySet):
    def for_company(self, company):          # every ledger lookup starts here
        return self.filter(company=company)

    def active(self, company):
        return self.filter(
                            company=company,  # enforce tenant scoping
                            is_active=True    # only fetch active records
                        )

    # Fetch one row of this company or raise NotFound.
    # A row that exists under another company is reported exactly like a
    # missing one, so ids never leak across tenants.
    def get_for_company(self, company, pk):
        try:
            return self.for_company(company).get(pk=pk)
        except (self.model.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"{self.model.__name__} {pk} not found")


# Attach TenantQuerySet to .objects
class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    pass
    # every model using TenantManager can call:
    # VendorBill.objects.for_company(company)
    # VendorBill.objects.select_for_update().get_for_company(company, bill_id)
