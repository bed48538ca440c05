"""Integer minor-unit arithmetic helpers."""

from decimal import Decimal, ROUND_HALF_UP

HUNDRED = Decimal("100")


def round_minor(value: Decimal) -> int:
    """Round a Decimal amount to whole minor units, half up."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(amount: int, rate: Decimal) -> int:
    """Return ``rate`` percent of ``amount``, rounded once to minor units."""
    return round_minor(Decimal(amount) * rate / HUNDRED)


def percentage(part: int, whole: int) -> Decimal:
    """Return ``part`` as a percentage of ``whole`` with two decimals."""
    if whole == 0:
        return Decimal("0.00")
    return (Decimal(part) * HUNDRED / Decimal(whole)).quantize(
        Decimal("0.01"), rounding=ROUND_HALF_UP
    )


def prorate(total: int, numerator: int, denominator: int) -> int:
    """Return ``total * numerator / denominator`` rounded half up."""
    if denominator == 0:
        return 0
    return round_minor(Decimal(total) * Decimal(numerator) / Decimal(denominator))


def apportion(total: int, weights: list[int]) -> list[int]:
    """Split ``total`` across ``weights`` pro rata.

    The last share absorbs the rounding remainder so the shares always sum
    to ``total``.
    """
    if not weights:
        return []
    whole = sum(weights)
    shares = []
    allocated = 0
    for weight in weights[:-1]:
        share = prorate(total, weight, whole)
        shares.append(share)
        allocated += share
    shares.append(total - allocated)
    return shares
