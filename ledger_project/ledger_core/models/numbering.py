from django.core.exceptions import ValidationError
from django.db import IntegrityError, models, transaction
from django.db.models import F
from django.utils import timezone

from ..managers import TenantManager
from .company import Company

# Document kinds that draw numbers from a series
SERIES_JOURNAL = "JE"
SERIES_REVERSAL = "REV"
SERIES_CLOSING = "CLOSING"
SERIES_BILL = "BILL"
SERIES_PAYMENT = "VPAY"


class NumberingSeriesManager(TenantManager):

    def next_code(self, company, kind):
        """
        Hand out the next document number of `kind` for `company`.

        The series row is locked for the duration of the surrounding
        transaction and the counter is bumped with an F() expression, so two
        concurrent callers can never receive the same number. A number is
        never handed out twice even if the caller's transaction rolls back
        after a later caller committed.
        """
        with transaction.atomic(using=self.db):
            series = self._lock_series(company, kind)
            code = series.format(series.current_number)
            self.filter(pk=series.pk).update(
                current_number=F("current_number") + 1,
                updated_at=timezone.now(),
            )
        return code

    def _lock_series(self, company, kind):
        try:
            return self.select_for_update().get(company=company, kind=kind)
        except self.model.DoesNotExist:
            pass

        from ..conf import ledger_setting

        # First use: create the default series. The inner atomic is a
        # savepoint, so losing the creation race does not break the caller's
        # transaction and we simply lock the row the winner created.
        try:
            with transaction.atomic(using=self.db):
                self.create(
                    company=company,
                    kind=kind,
                    prefix=f"{kind}-",
                    pad_length=ledger_setting("NUMBERING_PAD_LENGTH"),
                )
        except IntegrityError:
            pass
        return self.select_for_update().get(company=company, kind=kind)


class NumberingSeries(models.Model):
    """Per company counter for one document kind (BILL-000001, VPAY-000001...)."""

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    kind = models.CharField(max_length=20)
    prefix = models.CharField(max_length=20, blank=True, default="")
    suffix = models.CharField(max_length=20, blank=True, default="")
    # the number the NEXT document will get
    current_number = models.PositiveBigIntegerField(default=1)
    pad_length = models.PositiveSmallIntegerField(default=6)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(default=timezone.now)

    objects = NumberingSeriesManager()

    class Meta:
        verbose_name_plural = "numbering series"
        constraints = [
            models.UniqueConstraint(
                fields=["company", "kind"], name="uq_company_numbering_kind"
            ),
        ]

    def __str__(self):
        return f"{self.kind}: next {self.format(self.current_number)}"

    def format(self, number):
        return f"{self.prefix}{str(number).zfill(self.pad_length)}{self.suffix}"

    def clean(self):
        if self.pad_length < 1:
            raise ValidationError("pad_length must be at least 1")
        # counters only move forward, issued numbers are never reused
        if self.pk:
            orig = NumberingSeries.objects.filter(pk=self.pk).first()
            if orig and self.current_number < orig.current_number:
                raise ValidationError("A numbering series cannot be moved backwards.")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
