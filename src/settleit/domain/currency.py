"""Currency normalization to the base currency."""

from decimal import Decimal

from settleit.domain.errors import UnsupportedCurrency, unsupported_currency
from settleit.utils.money import round_minor


class CurrencyNormalizer:
    """Converts minor-unit amounts into base currency minor units.

    The rate table maps a currency code to the number of base currency units
    one unit of that currency is worth. Both sides use two-decimal minor
    units, so conversion is a single multiply and one rounding.
    """

    def __init__(self, base_currency: str, rates: dict[str, Decimal]):
        self.base_currency = base_currency.upper()
        self.rates = {code.upper(): Decimal(rate) for code, rate in rates.items()}
        self.rates.setdefault(self.base_currency, Decimal("1"))

    def is_supported(self, currency: str) -> bool:
        return currency.upper() in self.rates

    def require_supported(self, currency: str) -> str:
        """Return the normalized currency code or raise UnsupportedCurrency."""
        code = currency.upper()
        if code not in self.rates:
            raise UnsupportedCurrency(unsupported_currency(currency))
        return code

    def to_base(self, amount: int, currency: str) -> int:
        """Convert ``amount`` minor units of ``currency`` to base minor units.

        Raises:
            UnsupportedCurrency: If the currency is not in the rate table
        """
        code = self.require_supported(currency)
        if code == self.base_currency:
            return amount
        return round_minor(Decimal(amount) * self.rates[code])
