"""Tests for versioned revenue share configurations."""

from decimal import Decimal

import pytest

from settleit.domain.entities import UserTypeRate
from settleit.domain.errors import ConfigurationError, ConflictError, NotFoundError, ValidationError
from settleit.domain.revenue_config import RevenueShareService


def test_seed_configuration_is_installed_once(revenue_service):
    config_id = revenue_service.ensure_seeded()

    config = revenue_service.get_config(config_id)
    assert config.name == "standard"
    assert config.version == 1
    assert config.is_default
    assert config.platform_commission_percentage == Decimal("2.5")
    assert config.rate_for("business").minimum_commission == 5000
    assert revenue_service.ensure_seeded() is None


def test_default_is_seeded_on_first_use(revenue_service):
    assert revenue_service.list_configs() == []
    assert revenue_service.resolve().name == "standard"
    assert len(revenue_service.list_configs()) == 1


def test_no_seed_and_no_default(temp_db):
    with pytest.raises(ConfigurationError):
        RevenueShareService(temp_db).resolve()


def test_same_name_creates_new_version(revenue_service):
    first = revenue_service.create_config("promo", Decimal("1.0"))
    second = revenue_service.create_config("promo", Decimal("1.5"), description="Holiday rate")

    assert revenue_service.get_config(first).version == 1
    assert revenue_service.get_config(second).version == 2
    assert [c.version for c in revenue_service.list_configs()] == [1, 2]


def test_revise_keeps_unchanged_terms(revenue_service):
    default_id = revenue_service.ensure_seeded()

    revised_id = revenue_service.revise_config(default_id, platform_commission_percentage=Decimal("3"))

    revised = revenue_service.get_config(revised_id)
    assert revised.version == 2
    assert revised.platform_commission_percentage == Decimal("3")
    assert revised.user_type_rates == revenue_service.get_config(default_id).user_type_rates
    assert not revised.is_default
    assert revenue_service.resolve().id == default_id

    promoted_id = revenue_service.revise_config(revised_id, minimum_commission=1000, make_default=True)
    assert revenue_service.resolve().id == promoted_id


def test_payments_keep_the_version_they_were_priced_with(revenue_service, transaction_service, completed_payment):
    default_id = revenue_service.ensure_seeded()
    before = completed_payment()

    new_id = revenue_service.revise_config(default_id, platform_commission_percentage=Decimal("5"), make_default=True)
    after = completed_payment()

    assert before.revenue_split.config_version == 1
    assert before.revenue_split.platform_commission.amount == 2500
    assert transaction_service.get_transaction(before.reference).revenue_split.config_id == default_id
    assert after.revenue_split.config_id == new_id
    assert after.revenue_split.platform_commission.amount == 5000


def test_explicit_configuration(revenue_service, transaction_service, payment_request):
    revenue_service.ensure_seeded()
    promo_id = revenue_service.create_config("promo", Decimal("1"), platform_commission_fixed=100)

    quote = transaction_service.quote(payment_request(revenue_config_id=promo_id))

    assert quote.split.platform_commission.amount == 1100
    assert quote.split.config_id == promo_id


def test_single_default(revenue_service):
    first = revenue_service.create_config("a", Decimal("1"), is_default=True)
    second = revenue_service.create_config("b", Decimal("2"), is_default=True)

    assert not revenue_service.get_config(first).is_default
    assert revenue_service.resolve().id == second

    revenue_service.set_default(first)
    assert [c.id for c in revenue_service.list_configs() if c.is_default] == [first]


def test_deactivation(revenue_service, transaction_service, payment_request):
    default_id = revenue_service.ensure_seeded()
    other_id = revenue_service.create_config("legacy", Decimal("4"))

    with pytest.raises(ConflictError):
        revenue_service.deactivate(default_id)

    revenue_service.deactivate(other_id)

    assert [c.id for c in revenue_service.list_configs()] == [default_id]
    assert len(revenue_service.list_configs(include_inactive=True)) == 2
    with pytest.raises(ConflictError):
        revenue_service.set_default(other_id)
    with pytest.raises(ConflictError):
        transaction_service.quote(payment_request(revenue_config_id=other_id))


@pytest.mark.parametrize(
    "kwargs",
    [
        {"name": " ", "platform_commission_percentage": Decimal("1")},
        {"name": "x", "platform_commission_percentage": Decimal("101")},
        {"name": "x", "platform_commission_percentage": Decimal("-1")},
        {"name": "x", "platform_commission_percentage": Decimal("1"), "minimum_commission": -5},
        {
            "name": "x",
            "platform_commission_percentage": Decimal("1"),
            "user_type_rates": (
                UserTypeRate(user_type="business", percentage=Decimal("1")),
                UserTypeRate(user_type="business", percentage=Decimal("2")),
            ),
        },
    ],
)
def test_invalid_terms(revenue_service, kwargs):
    with pytest.raises(ValidationError):
        revenue_service.create_config(**kwargs)


def test_missing_configuration(revenue_service):
    with pytest.raises(NotFoundError):
        revenue_service.get_config(42)
    with pytest.raises(NotFoundError):
        revenue_service.resolve(42)
