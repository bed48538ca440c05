"""Tests for engine configuration loading."""

from decimal import Decimal

import pytest
import yaml

from settleit.config import DEFAULT_CONFIG_PATH, load_config, parse_config
from settleit.domain.entities import Category, PayoutFrequency, RuleKind
from settleit.domain.errors import ConfigurationError


def test_parse_config(config_data):
    config = parse_config(config_data)

    assert config.base_currency == "NGN"
    assert config.currency_rates["USD"] == Decimal("1600")
    assert [rule.id for rule in config.tax_rules] == ["vat", "service_tax", "stamp_duty", "delivery_levy"]
    assert config.tax_rules[0].applies_to == frozenset({Category.PRODUCTS, Category.SERVICES})
    assert config.tax_rules[3].kind == RuleKind.TIERED
    assert config.tax_rules[3].bands[-1].up_to is None
    assert config.payout_fees["paypal"].percentage == Decimal("2.0")
    assert config.payout_policy.payout_frequency == PayoutFrequency.DAILY
    assert config.transaction_expiry_minutes == 30
    assert config.revenue_share.user_type_rates[0].minimum_commission == 5000


def test_bundled_default_configuration_loads(monkeypatch):
    monkeypatch.delenv("SETTLEIT_CONFIG", raising=False)
    config = load_config()

    assert config.base_currency == "NGN"
    assert config.providers.payment_adapter == "sandbox"
    assert {method.method for method in config.payment_methods} >= {"card", "bank_transfer"}


def test_load_config_from_environment(monkeypatch, config_file):
    monkeypatch.setenv("SETTLEIT_CONFIG", config_file)
    assert load_config().payout_policy.minimum_amount == 10000


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.yaml"))


def test_malformed_yaml(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("tax_rules: [unclosed", encoding="utf-8")
    with pytest.raises(yaml.YAMLError):
        load_config(str(path))


def test_missing_base_currency(config_data):
    del config_data["base_currency"]
    with pytest.raises(ConfigurationError, match="base_currency"):
        parse_config(config_data)


def test_base_currency_rate_must_be_one(config_data):
    config_data["currency_rates"]["NGN"] = 2
    with pytest.raises(ConfigurationError, match="rate 1"):
        parse_config(config_data)


def test_unknown_category_tag(config_data):
    config_data["tax_rules"][0]["applies_to"] = ["products", "weapons"]
    with pytest.raises(ConfigurationError, match="weapons"):
        parse_config(config_data)


def test_ambiguous_rule_priority(config_data):
    config_data["tax_rules"][1]["priority"] = 10
    with pytest.raises(ConfigurationError, match="share priority"):
        parse_config(config_data)


def test_fee_rule_sharing_priority_with_a_tax(config_data):
    config_data["tax_rules"][3]["applies_to"] = ["delivery", "products"]
    with pytest.raises(ConfigurationError, match="'vat' and 'delivery_levy'"):
        parse_config(config_data)


def test_disabled_category(config_data):
    config_data["categories"] = ["products", "services"]
    with pytest.raises(ConfigurationError, match="disabled categories"):
        parse_config(config_data)


def test_tiered_rule_needs_ordered_bands(config_data):
    config_data["tax_rules"][3]["bands"] = [{"up_to": 500000, "rate": 1}, {"up_to": 100, "rate": 1}]
    with pytest.raises(ConfigurationError, match="increasing"):
        parse_config(config_data)

    config_data["tax_rules"][3]["bands"] = [{"rate": 1}, {"up_to": 100, "rate": 1}]
    with pytest.raises(ConfigurationError, match="open band"):
        parse_config(config_data)


def test_payment_method_currency_must_be_supported(config_data):
    config_data["payment_methods"][0]["currencies"] = ["NGN", "JPY"]
    with pytest.raises(ConfigurationError, match="JPY"):
        parse_config(config_data)


def test_payment_method_fee_envelope(config_data):
    config_data["payment_methods"][2]["min_fee"] = 60000
    with pytest.raises(ConfigurationError, match="min_fee"):
        parse_config(config_data)


@pytest.mark.parametrize(
    "frequency,day",
    [("weekly", 7), ("weekly", -1), ("monthly", 0), ("monthly", 32)],
)
def test_payout_day_range(config_data, frequency, day):
    config_data["payout_policy"].update(payout_frequency=frequency, payout_day=day)
    with pytest.raises(ConfigurationError, match="payout_day"):
        parse_config(config_data)


def test_unknown_payout_frequency(config_data):
    config_data["payout_policy"]["payout_frequency"] = "hourly"
    with pytest.raises(ConfigurationError, match="hourly"):
        parse_config(config_data)


def test_http_adapter_requires_base_url(config_data):
    config_data["providers"]["payment"] = "http"
    with pytest.raises(ConfigurationError, match="base_url"):
        parse_config(config_data)

    config_data["providers"]["base_url"] = "https://gateway.example"
    assert parse_config(config_data).providers.payment_adapter == "http"


def test_default_config_path_is_packaged():
    assert DEFAULT_CONFIG_PATH.name == "default_config.yaml"
    assert DEFAULT_CONFIG_PATH.exists()
