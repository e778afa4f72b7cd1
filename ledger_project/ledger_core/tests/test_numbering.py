import threading

from django.core.exceptions import ValidationError
from django.db import connection
from django.test import TestCase, TransactionTestCase

from ledger_core.models import Company, NumberingSeries


class NumberingSeriesTests(TestCase):

    def setUp(self):
        self.company = Company.objects.create(name="Numbers Inc", slug="numbers")

    def test_first_use_creates_default_series(self):
        code = NumberingSeries.objects.next_code(self.company, "JE")

        self.assertEqual(code, "JE-000001")
        series = NumberingSeries.objects.get(company=self.company, kind="JE")
        # the counter always points at the next number to hand out
        self.assertEqual(series.current_number, 2)

    def test_numbers_are_sequential_and_never_repeat(self):
        codes = [NumberingSeries.objects.next_code(self.company, "BILL") for _ in range(5)]

        self.assertEqual(codes, [f"BILL-00000{i}" for i in range(1, 6)])
        self.assertEqual(len(set(codes)), 5)

    def test_kinds_and_companies_have_their_own_counters(self):
        other = Company.objects.create(name="Other Inc", slug="other")

        NumberingSeries.objects.next_code(self.company, "JE")
        NumberingSeries.objects.next_code(self.company, "JE")

        self.assertEqual(NumberingSeries.objects.next_code(self.company, "VPAY"), "VPAY-000001")
        self.assertEqual(NumberingSeries.objects.next_code(other, "JE"), "JE-000001")
        self.assertEqual(NumberingSeries.objects.next_code(self.company, "JE"), "JE-000003")

    def test_configured_prefix_suffix_and_padding(self):
        NumberingSeries.objects.create(
            company=self.company, kind="BILL", prefix="B", suffix="/25",
            pad_length=4, current_number=7,
        )

        self.assertEqual(NumberingSeries.objects.next_code(self.company, "BILL"), "B0007/25")
        self.assertEqual(NumberingSeries.objects.next_code(self.company, "BILL"), "B0008/25")

    def test_number_wider_than_padding_is_not_truncated(self):
        NumberingSeries.objects.create(
            company=self.company, kind="JE", prefix="JE-", pad_length=2, current_number=123,
        )
        self.assertEqual(NumberingSeries.objects.next_code(self.company, "JE"), "JE-123")

    def test_series_cannot_move_backwards(self):
        NumberingSeries.objects.next_code(self.company, "JE")
        NumberingSeries.objects.next_code(self.company, "JE")
        series = NumberingSeries.objects.get(company=self.company, kind="JE")

        series.current_number = 1
        with self.assertRaises(ValidationError):
            series.save()

    def test_pad_length_must_be_positive(self):
        with self.assertRaises(ValidationError):
            NumberingSeries.objects.create(company=self.company, kind="X", pad_length=0)


class ConcurrentNumberingTests(TransactionTestCase):
    """Real commits, one connection per thread."""

    def setUp(self):
        if connection.vendor == "sqlite" and connection.is_in_memory_db():
            self.skipTest("in-memory sqlite cannot open a connection per thread")
        self.company = Company.objects.create(name="Busy Inc", slug="busy")
        NumberingSeries.objects.create(
            company=self.company, kind="VPAY", prefix="VPAY-", pad_length=6,
        )

    def test_parallel_callers_never_get_the_same_code(self):
        codes, errors = [], []
        start = threading.Barrier(4)

        def issue():
            try:
                start.wait()
                for _ in range(5):
                    codes.append(NumberingSeries.objects.next_code(self.company, "VPAY"))
            except Exception as exc:  # reported through the assertion below
                errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=issue) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertEqual(len(codes), 20)
        self.assertEqual(sorted(codes), [f"VPAY-{i:06d}" for i in range(1, 21)])
        series = NumberingSeries.objects.get(company=self.company, kind="VPAY")
        self.assertEqual(series.current_number, 21)
