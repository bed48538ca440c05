"""Fee and tax rule engine.

Rules are evaluated in ascending priority order. A rule applies when the
transaction category is in its ``applies_to`` set and the amount reaches its
threshold. Every charge is rounded once to minor units and zero charges are
never emitted as line items.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Union

from settleit.domain.entities import (
    Category,
    ChargeLine,
    ChargeType,
    ItemizedCharges,
    PaymentMethodFee,
    RuleKind,
    TaxRule,
)
from settleit.domain.errors import (
    ConfigurationError,
    UnsupportedPaymentMethod,
    ValidationError,
    unsupported_payment_method,
)
from settleit.utils.money import HUNDRED, percent_of, round_minor


@dataclass(frozen=True)
class ChargeContext:
    """Per-transaction facts beyond amount and category."""

    currency: str
    payment_method: Optional[str] = None


def coerce_category(category: Union[Category, str]) -> Category:
    """Return a Category, failing fast on unknown tags."""
    if isinstance(category, Category):
        return category
    try:
        return Category(category)
    except ValueError as e:
        allowed = ", ".join(c.value for c in Category)
        raise ValidationError(f"Unknown category '{category}' (allowed: {allowed})") from e


def validate_rule_table(rules: Iterable[TaxRule]) -> None:
    """Reject duplicate ids and same-priority rules competing for a category."""
    ordered = list(rules)
    seen: set[str] = set()
    for rule in ordered:
        if rule.id in seen:
            raise ConfigurationError(f"Duplicate tax rule id '{rule.id}'")
        seen.add(rule.id)

    for i, first in enumerate(ordered):
        for second in ordered[i + 1:]:
            if first.priority != second.priority:
                continue
            overlap = first.applies_to & second.applies_to
            if overlap:
                raise ConfigurationError(
                    f"Rules '{first.id}' and '{second.id}' share priority {first.priority} "
                    f"and both apply to: {', '.join(sorted(c.value for c in overlap))}"
                )


class FeeRuleEngine:
    """Evaluates the configured rule table against a transaction."""

    def __init__(
        self,
        rules: Iterable[TaxRule] = (),
        payment_methods: Iterable[PaymentMethodFee] = (),
    ):
        rules = tuple(rules)
        validate_rule_table(rules)
        self.rules = tuple(sorted(rules, key=lambda r: (r.priority, r.id)))
        self.payment_methods = tuple(payment_methods)

    def applicable_rules(self, amount: int, category: Union[Category, str]) -> list[TaxRule]:
        """Rules that apply to ``amount`` in ``category``, in evaluation order."""
        category = coerce_category(category)
        return [
            rule
            for rule in self.rules
            if category in rule.applies_to
            and (rule.threshold is None or amount >= rule.threshold)
        ]

    def rule_charge(self, rule: TaxRule, amount: int) -> int:
        """Compute the charge of a single rule for ``amount``."""
        if rule.kind == RuleKind.PERCENTAGE:
            return percent_of(amount, rule.rate)
        if rule.kind == RuleKind.FIXED:
            return round_minor(rule.rate)
        return self._tiered_charge(rule, amount)

    def _tiered_charge(self, rule: TaxRule, amount: int) -> int:
        total = Decimal("0")
        lower = 0
        for band in rule.bands:
            upper = amount if band.up_to is None else min(amount, band.up_to)
            if upper > lower:
                total += Decimal(upper - lower) * band.rate / HUNDRED
            if band.up_to is None or band.up_to >= amount:
                break
            lower = band.up_to
        return round_minor(total)

    def evaluate(
        self,
        amount: int,
        category: Union[Category, str],
        context: Optional[ChargeContext] = None,
    ) -> ItemizedCharges:
        """Produce itemized taxes and fees for a transaction.

        Args:
            amount: Transaction amount in minor units
            category: Category tag of the transaction
            context: Optional currency and payment method; when a payment
                method is given its processing fee is appended to the fees

        Raises:
            ValidationError: If the category is unknown or amount is negative
            UnsupportedPaymentMethod: If the method is not configured for the currency
        """
        if amount < 0:
            raise ValidationError("Amount must not be negative")

        taxes: list[ChargeLine] = []
        fees: list[ChargeLine] = []
        for rule in self.applicable_rules(amount, category):
            charge = self.rule_charge(rule, amount)
            if charge == 0:
                continue
            line = ChargeLine(
                rule_id=rule.id,
                name=rule.name,
                charge_type=rule.charge_type,
                kind=rule.kind,
                rate=rule.rate,
                amount=charge,
            )
            if rule.charge_type == ChargeType.TAX:
                taxes.append(line)
            else:
                fees.append(line)

        if context is not None and context.payment_method is not None:
            method = self.payment_method_config(context.payment_method, context.currency)
            fee = self.payment_method_fee(amount, context.payment_method, context.currency)
            if fee != 0:
                fees.append(
                    ChargeLine(
                        rule_id=f"method:{method.method}",
                        name=f"{method.method.replace('_', ' ').title()} Processing Fee",
                        charge_type=ChargeType.FEE,
                        kind=RuleKind.PERCENTAGE,
                        rate=method.fee_percentage,
                        amount=fee,
                    )
                )

        return ItemizedCharges(taxes=tuple(taxes), fees=tuple(fees))

    def payment_method_config(self, method: str, currency: str) -> PaymentMethodFee:
        """Find the fee schedule for ``method`` in ``currency``.

        Raises:
            UnsupportedPaymentMethod: If no schedule matches; never defaults
        """
        for config in self.payment_methods:
            if config.method == method and currency.upper() in config.currencies:
                return config
        raise UnsupportedPaymentMethod(unsupported_payment_method(method, currency))

    def payment_method_fee(self, amount: int, method: str, currency: str) -> int:
        """Percentage plus fixed fee, clamped to the method's envelope afterwards."""
        config = self.payment_method_config(method, currency)
        fee = percent_of(amount, config.fee_percentage) + config.fee_fixed
        if config.min_fee is not None:
            fee = max(fee, config.min_fee)
        if config.max_fee is not None:
            fee = min(fee, config.max_fee)
        return fee
