from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def money(value) -> Decimal:
    """
    Normalise any numeric input to a 2dp Decimal (half-up).
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def dict_clean(d: dict):
    """
    Remove keys where value is None
    """
    return {k: v for k, v in d.items() if v is not None}
