"""Engine configuration loading.

The rule table, currency rates, payment method fee schedules, payout fees
and payout policy are read from YAML into frozen dataclasses once, validated,
and then passed explicitly to every calculator. Amounts in YAML are minor
units; rates are percentages.

Failure modes:
    * Missing YAML file -> ``FileNotFoundError`` propagates.
    * Malformed YAML -> ``yaml.YAMLError`` propagates.
    * Missing keys, unknown category tags, ambiguous rule priorities
      -> ``ConfigurationError``.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional

import yaml

from settleit.domain.entities import (
    Category,
    ChargeType,
    PaymentMethodFee,
    PayoutFee,
    PayoutFrequency,
    PayoutPolicy,
    RuleKind,
    TaxBand,
    TaxRule,
    UserTypeRate,
)
from settleit.domain.errors import ConfigurationError
from settleit.domain.rules import validate_rule_table

CONFIG_ENV_VAR = "SETTLEIT_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "data" / "default_config.yaml"


@dataclass(frozen=True)
class ProviderSettings:
    """How the engine talks to external providers."""

    timeout_seconds: float = 30.0
    max_retries: int = 3
    retry_backoff_seconds: float = 0.5
    payment_adapter: str = "sandbox"
    payout_adapter: str = "sandbox"
    base_url: Optional[str] = None
    api_key: Optional[str] = None


@dataclass(frozen=True)
class RevenueShareSeed:
    """Revenue share configuration installed when none exists yet."""

    name: str
    platform_commission_percentage: Decimal
    platform_commission_fixed: int = 0
    minimum_commission: int = 0
    user_type_rates: tuple[UserTypeRate, ...] = ()
    description: Optional[str] = None


@dataclass(frozen=True)
class EngineConfig:
    """Complete, validated engine configuration."""

    base_currency: str
    currency_rates: dict[str, Decimal]
    tax_rules: tuple[TaxRule, ...] = ()
    payment_methods: tuple[PaymentMethodFee, ...] = ()
    payout_fees: dict[str, PayoutFee] = field(default_factory=dict)
    payout_policy: PayoutPolicy = PayoutPolicy()
    transaction_expiry_minutes: int = 30
    providers: ProviderSettings = ProviderSettings()
    revenue_share: Optional[RevenueShareSeed] = None
    categories: frozenset[Category] = frozenset(Category)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def resolve_config_path(path: Optional[str] = None) -> Path:
    """Resolve the configuration file path.

    Args:
        path: Explicit path. If None, checks SETTLEIT_CONFIG environment
            variable, then falls back to the bundled default configuration.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR)
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path)


def load_config(path: Optional[str] = None) -> EngineConfig:
    """Load and validate an engine configuration file."""
    return parse_config(load_yaml_file(resolve_config_path(path)))


def parse_config(data: dict[str, Any]) -> EngineConfig:
    """Parse an engine configuration from a dict."""
    base_currency = _require(data, "base_currency", "configuration").upper()

    currency_rates = {
        code.upper(): _decimal(rate, f"currency_rates.{code}")
        for code, rate in (data.get("currency_rates") or {}).items()
    }
    currency_rates.setdefault(base_currency, Decimal("1"))
    if currency_rates[base_currency] != Decimal("1"):
        raise ConfigurationError(f"Base currency {base_currency} must have rate 1")
    for code, rate in currency_rates.items():
        if rate <= 0:
            raise ConfigurationError(f"Currency rate for {code} must be positive")

    categories = frozenset(Category)
    if data.get("categories"):
        categories = frozenset(_category(tag, "categories") for tag in data["categories"])

    tax_rules = tuple(parse_rule(item, categories) for item in data.get("tax_rules") or [])
    validate_rule_table(tax_rules)

    payment_methods = tuple(
        parse_payment_method(item) for item in data.get("payment_methods") or []
    )
    for method in payment_methods:
        unknown = method.currencies - set(currency_rates)
        if unknown:
            raise ConfigurationError(
                f"Payment method '{method.method}' lists unsupported currencies: "
                f"{', '.join(sorted(unknown))}"
            )

    payout_fees = {
        method: parse_payout_fee(method, item)
        for method, item in (data.get("payout_fees") or {}).items()
    }

    transactions = data.get("transactions") or {}
    expiry_minutes = int(transactions.get("expiry_minutes", 30))
    if expiry_minutes <= 0:
        raise ConfigurationError("transactions.expiry_minutes must be positive")

    revenue_share = None
    if data.get("revenue_share"):
        revenue_share = parse_revenue_share(data["revenue_share"])

    return EngineConfig(
        base_currency=base_currency,
        currency_rates=currency_rates,
        tax_rules=tax_rules,
        payment_methods=payment_methods,
        payout_fees=payout_fees,
        payout_policy=parse_payout_policy(data.get("payout_policy") or {}),
        transaction_expiry_minutes=expiry_minutes,
        providers=parse_provider_settings(data.get("providers") or {}),
        revenue_share=revenue_share,
        categories=categories,
    )


def parse_rule(data: dict[str, Any], categories: frozenset[Category]) -> TaxRule:
    """Parse a tax or fee rule, validating its category tags."""
    rule_id = _require(data, "id", "tax rule")
    context = f"tax rule '{rule_id}'"
    kind = _enum(RuleKind, _require(data, "kind", context), f"{context} kind")

    applies_to = frozenset(_category(tag, context) for tag in data.get("applies_to") or [])
    if not applies_to:
        raise ConfigurationError(f"{context} must apply to at least one category")
    disabled = applies_to - categories
    if disabled:
        raise ConfigurationError(
            f"{context} applies to disabled categories: "
            f"{', '.join(sorted(c.value for c in disabled))}"
        )

    bands: tuple[TaxBand, ...] = ()
    if kind == RuleKind.TIERED:
        bands = tuple(
            TaxBand(
                up_to=int(band["up_to"]) if band.get("up_to") is not None else None,
                rate=_decimal(_require(band, "rate", f"{context} band"), f"{context} band rate"),
            )
            for band in data.get("bands") or []
        )
        _validate_bands(bands, context)
        rate = Decimal("0")
    else:
        rate = _decimal(_require(data, "rate", context), f"{context} rate")
        if rate < 0:
            raise ConfigurationError(f"{context} rate must not be negative")

    threshold = data.get("threshold")
    return TaxRule(
        id=rule_id,
        name=data.get("name", rule_id),
        kind=kind,
        rate=rate,
        applies_to=applies_to,
        priority=int(data.get("priority", 0)),
        charge_type=_enum(ChargeType, data.get("charge_type", "tax"), f"{context} charge_type"),
        threshold=int(threshold) if threshold is not None else None,
        bands=bands,
    )


def parse_payment_method(data: dict[str, Any]) -> PaymentMethodFee:
    """Parse a payment method fee schedule."""
    method = _require(data, "method", "payment method")
    context = f"payment method '{method}'"
    min_fee = data.get("min_fee")
    max_fee = data.get("max_fee")
    if min_fee is not None and max_fee is not None and int(min_fee) > int(max_fee):
        raise ConfigurationError(f"{context} min_fee exceeds max_fee")
    currencies = frozenset(code.upper() for code in data.get("currencies") or [])
    if not currencies:
        raise ConfigurationError(f"{context} must list at least one currency")
    return PaymentMethodFee(
        method=method,
        provider=data.get("provider", "sandbox"),
        fee_percentage=_decimal(data.get("fee_percentage", 0), f"{context} fee_percentage"),
        fee_fixed=int(data.get("fee_fixed", 0)),
        currencies=currencies,
        min_fee=int(min_fee) if min_fee is not None else None,
        max_fee=int(max_fee) if max_fee is not None else None,
    )


def parse_payout_fee(method: str, data: dict[str, Any]) -> PayoutFee:
    """Parse a payout rail fee."""
    return PayoutFee(
        method=method,
        percentage=_decimal(data.get("percentage", 0), f"payout fee '{method}'"),
        fixed=int(data.get("fixed", 0)),
    )


def parse_payout_policy(data: dict[str, Any]) -> PayoutPolicy:
    """Parse the automatic payout policy."""
    maximum = data.get("maximum_amount")
    policy = PayoutPolicy(
        auto_payout_enabled=bool(data.get("auto_payout_enabled", False)),
        payout_frequency=_enum(
            PayoutFrequency, data.get("payout_frequency", "weekly"), "payout_frequency"
        ),
        payout_day=int(data.get("payout_day", 0)),
        minimum_amount=int(data.get("minimum_amount", 0)),
        maximum_amount=int(maximum) if maximum is not None else None,
        holding_period_days=int(data.get("holding_period_days", 7)),
        max_retries=int(data.get("max_retries", 3)),
    )
    if policy.maximum_amount is not None and policy.maximum_amount < policy.minimum_amount:
        raise ConfigurationError("payout_policy.maximum_amount is below minimum_amount")
    if policy.holding_period_days < 0 or policy.max_retries < 0:
        raise ConfigurationError("payout_policy values must not be negative")
    if policy.payout_frequency == PayoutFrequency.WEEKLY and not 0 <= policy.payout_day <= 6:
        raise ConfigurationError("payout_policy.payout_day must be a weekday 0-6 for weekly payouts")
    if policy.payout_frequency == PayoutFrequency.MONTHLY and not 1 <= policy.payout_day <= 31:
        raise ConfigurationError("payout_policy.payout_day must be 1-31 for monthly payouts")
    return policy


def parse_provider_settings(data: dict[str, Any]) -> ProviderSettings:
    """Parse provider adapter settings."""
    settings = ProviderSettings(
        timeout_seconds=float(data.get("timeout_seconds", 30.0)),
        max_retries=int(data.get("max_retries", 3)),
        retry_backoff_seconds=float(data.get("retry_backoff_seconds", 0.5)),
        payment_adapter=data.get("payment", "sandbox"),
        payout_adapter=data.get("payout", "sandbox"),
        base_url=data.get("base_url"),
        api_key=data.get("api_key"),
    )
    for adapter in (settings.payment_adapter, settings.payout_adapter):
        if adapter not in ("sandbox", "http"):
            raise ConfigurationError(f"Unknown provider adapter '{adapter}'")
        if adapter == "http" and not settings.base_url:
            raise ConfigurationError("providers.base_url is required for the http adapter")
    return settings


def parse_revenue_share(data: dict[str, Any]) -> RevenueShareSeed:
    """Parse the seed revenue share configuration."""
    return RevenueShareSeed(
        name=data.get("name", "default"),
        description=data.get("description"),
        platform_commission_percentage=_decimal(
            _require(data, "platform_commission_percentage", "revenue_share"),
            "revenue_share.platform_commission_percentage",
        ),
        platform_commission_fixed=int(data.get("platform_commission_fixed", 0)),
        minimum_commission=int(data.get("minimum_commission", 0)),
        user_type_rates=tuple(
            UserTypeRate.from_dict(item) for item in data.get("user_type_rates") or []
        ),
    )


def _validate_bands(bands: tuple[TaxBand, ...], context: str) -> None:
    if not bands:
        raise ConfigurationError(f"{context} is tiered but has no bands")
    previous = 0
    for index, band in enumerate(bands):
        if band.up_to is None:
            if index != len(bands) - 1:
                raise ConfigurationError(f"{context} has an open band before the last band")
            continue
        if band.up_to <= previous:
            raise ConfigurationError(f"{context} band bounds must be increasing")
        previous = band.up_to


def _require(data: dict[str, Any], key: str, context: str) -> Any:
    if key not in data or data[key] is None:
        raise ConfigurationError(f"Missing '{key}' in {context}")
    return data[key]


def _decimal(value: Any, context: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ConfigurationError(f"Invalid number for {context}: {value!r}") from e


def _enum(enum_type, value: Any, context: str):
    try:
        return enum_type(value)
    except ValueError as e:
        allowed = ", ".join(member.value for member in enum_type)
        raise ConfigurationError(
            f"Unknown value {value!r} for {context} (allowed: {allowed})"
        ) from e


def _category(tag: Any, context: str) -> Category:
    return _enum(Category, tag, f"category in {context}")
