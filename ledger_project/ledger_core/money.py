from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
# amount columns are DecimalField(max_digits=18, decimal_places=2)
MAX_AMOUNT = Decimal("1e16")


def money(value) -> Decimal:
    """Coerce int/str/float/Decimal to a cent-rounded Decimal."""
    if isinstance(value, Decimal):
        d = value
    else:
        # str() first so 0.1 does not become 0.1000000000000000055...
        try:
            d = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Not a monetary amount: {value!r}")
    if not d.is_finite() or abs(d) >= MAX_AMOUNT:
        raise ValueError(f"Not a monetary amount: {value!r}")
    d = d.quantize(CENT, rounding=ROUND_HALF_UP)
    # rounding can carry up to the bound
    if abs(d) >= MAX_AMOUNT:
        raise ValueError(f"Not a monetary amount: {value!r}")
    return d


def percent_of(amount, pct) -> Decimal:
    return money(Decimal(amount) * Decimal(pct) / Decimal("100"))
