"""Revenue split calculator."""

from typing import Union

from settleit.domain.entities import (
    Category,
    RecipientType,
    RevenueShareConfig,
    RevenueSplitSnapshot,
    SellerContext,
    SplitItem,
)
from settleit.domain.errors import InvalidSplitConfiguration, ValidationError
from settleit.domain.rules import coerce_category
from settleit.utils.money import percent_of, percentage, prorate


class RevenueSplitCalculator:
    """Splits a payable amount between platform commission and seller payout."""

    def commission(self, amount: int, context: SellerContext, config: RevenueShareConfig) -> int:
        """Platform commission for ``amount``.

        A user-type override replaces the base percentage and fixed parts;
        the configuration minimum is applied last in both cases.
        """
        commission = percent_of(amount, config.platform_commission_percentage)
        commission += config.platform_commission_fixed

        override = config.rate_for(context.user_type)
        if override is not None:
            commission = max(
                percent_of(amount, override.percentage) + override.fixed,
                override.minimum_commission,
            )

        return max(commission, config.minimum_commission)

    def split(
        self,
        amount: int,
        category: Union[Category, str],
        context: SellerContext,
        config: RevenueShareConfig,
    ) -> RevenueSplitSnapshot:
        """Compute the revenue split snapshot.

        Raises:
            ValidationError: If amount is not positive or category unknown
            InvalidSplitConfiguration: If commission exceeds the amount
        """
        coerce_category(category)
        if amount <= 0:
            raise ValidationError("Amount must be greater than zero")

        commission = self.commission(amount, context, config)
        seller_amount = amount - commission
        if seller_amount < 0:
            raise InvalidSplitConfiguration(
                f"Commission {commission} exceeds payable amount {amount} "
                f"under revenue share configuration '{config.name}' v{config.version}"
            )

        return RevenueSplitSnapshot(
            platform_commission=SplitItem(
                name="Platform Commission",
                amount=commission,
                percentage=percentage(commission, amount),
                recipient_type=RecipientType.PLATFORM,
            ),
            seller_payout=SplitItem(
                name="Seller Payout",
                amount=seller_amount,
                percentage=percentage(seller_amount, amount),
                recipient_type=RecipientType.SELLER,
                recipient_id=context.seller_id,
            ),
            config_id=config.id,
            config_version=config.version,
        )


def reversal_amounts(
    snapshot: RevenueSplitSnapshot,
    original_amount: int,
    refunded_before: int,
    refunded_now: int,
) -> tuple[int, int]:
    """Seller and commission reversal for a refund, pro rata to the refunded fraction.

    Reversals are computed on cumulative refunded totals so partial refunds
    that add up to the full amount reverse exactly the original split.

    Returns:
        Tuple of (seller_reversal, commission_reversal)
    """
    seller = snapshot.seller_payout.amount
    commission = snapshot.platform_commission.amount
    after = refunded_before + refunded_now

    seller_reversal = prorate(seller, after, original_amount) - prorate(
        seller, refunded_before, original_amount
    )
    commission_reversal = prorate(commission, after, original_amount) - prorate(
        commission, refunded_before, original_amount
    )
    return seller_reversal, commission_reversal
