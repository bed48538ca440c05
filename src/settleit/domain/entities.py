"""Domain model entities for settleit.

These are pure data classes representing settlement concepts, independent of
database schema. Amounts are integers in minor currency units (kobo, cents);
rates and percentages are Decimals.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class Category(str, Enum):
    """Closed set of transaction category tags used by the rule engine."""

    PRODUCTS = "products"
    SERVICES = "services"
    FREELANCE = "freelance"
    CONTRACTS = "contracts"
    REAL_ESTATE = "real_estate"
    JOBS = "jobs"
    DELIVERY = "delivery"
    RENTALS = "rentals"


class TransactionType(str, Enum):
    PAYMENT = "payment"
    REFUND = "refund"
    PAYOUT = "payout"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_TRANSACTION_STATUSES


TERMINAL_TRANSACTION_STATUSES = frozenset(
    {
        TransactionStatus.COMPLETED,
        TransactionStatus.FAILED,
        TransactionStatus.CANCELLED,
        TransactionStatus.EXPIRED,
    }
)


class PayoutStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RefundStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ProviderStatus(str, Enum):
    """Outcome reported by an external provider."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class RuleKind(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    TIERED = "tiered"


class ChargeType(str, Enum):
    TAX = "tax"
    FEE = "fee"


class PayoutFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class RecipientType(str, Enum):
    PLATFORM = "platform"
    SELLER = "seller"


class LedgerEntryType(str, Enum):
    """Kinds of rows in the append-only seller balance ledger."""

    SETTLEMENT = "settlement"
    REFUND_REVERSAL = "refund_reversal"
    PAYOUT_DEBIT = "payout_debit"
    PAYOUT_COMPENSATION = "payout_compensation"
    CLAWBACK = "clawback"


class RevenueType(str, Enum):
    COMMISSION = "commission"
    COMMISSION_REVERSAL = "commission_reversal"


# Rule table


@dataclass(frozen=True)
class TaxBand:
    """One band of a tiered rule. ``up_to`` of None marks the open top band."""

    up_to: Optional[int]
    rate: Decimal


@dataclass(frozen=True)
class TaxRule:
    """Tax or fee rule evaluated by the rule engine."""

    id: str
    name: str
    kind: RuleKind
    rate: Decimal
    applies_to: frozenset[Category]
    priority: int
    charge_type: ChargeType = ChargeType.TAX
    threshold: Optional[int] = None
    bands: tuple[TaxBand, ...] = ()


@dataclass(frozen=True)
class PaymentMethodFee:
    """Processing fee schedule of one payment method."""

    method: str
    provider: str
    fee_percentage: Decimal
    fee_fixed: int
    currencies: frozenset[str]
    min_fee: Optional[int] = None
    max_fee: Optional[int] = None


@dataclass(frozen=True)
class PayoutFee:
    """Payout rail fee for one payout method."""

    method: str
    percentage: Decimal = Decimal("0")
    fixed: int = 0


@dataclass(frozen=True)
class PayoutPolicy:
    """Automatic payout policy."""

    auto_payout_enabled: bool = False
    payout_frequency: PayoutFrequency = PayoutFrequency.WEEKLY
    payout_day: int = 0
    minimum_amount: int = 0
    maximum_amount: Optional[int] = None
    holding_period_days: int = 7
    max_retries: int = 3


# Charges and splits


@dataclass(frozen=True)
class ChargeLine:
    """One itemized tax or fee."""

    rule_id: str
    name: str
    charge_type: ChargeType
    kind: RuleKind
    rate: Decimal
    amount: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "name": self.name,
            "charge_type": self.charge_type.value,
            "kind": self.kind.value,
            "rate": str(self.rate),
            "amount": self.amount,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChargeLine":
        return cls(
            rule_id=data["rule_id"],
            name=data["name"],
            charge_type=ChargeType(data["charge_type"]),
            kind=RuleKind(data["kind"]),
            rate=Decimal(data["rate"]),
            amount=int(data["amount"]),
        )


@dataclass(frozen=True)
class ItemizedCharges:
    """Taxes and fees produced by the rule engine for one transaction."""

    taxes: tuple[ChargeLine, ...] = ()
    fees: tuple[ChargeLine, ...] = ()

    @property
    def total_taxes(self) -> int:
        return sum(line.amount for line in self.taxes)

    @property
    def total_fees(self) -> int:
        return sum(line.amount for line in self.fees)

    @property
    def total(self) -> int:
        return self.total_taxes + self.total_fees

    def to_dict(self) -> dict[str, Any]:
        return {
            "taxes": [line.to_dict() for line in self.taxes],
            "fees": [line.to_dict() for line in self.fees],
        }

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "ItemizedCharges":
        if not data:
            return cls()
        return cls(
            taxes=tuple(ChargeLine.from_dict(d) for d in data.get("taxes", [])),
            fees=tuple(ChargeLine.from_dict(d) for d in data.get("fees", [])),
        )


@dataclass(frozen=True)
class FeeBreakdown:
    """Fee breakdown stored on a transaction.

    provider_fee is the payment method's processing charge, processing_fee the
    sum of fee rules from the rule table, platform_fee the platform commission.
    """

    provider_fee: int = 0
    platform_fee: int = 0
    processing_fee: int = 0

    @property
    def total(self) -> int:
        return self.provider_fee + self.platform_fee + self.processing_fee


@dataclass(frozen=True)
class SplitItem:
    """One party's share of a revenue split."""

    name: str
    amount: int
    percentage: Decimal
    recipient_type: RecipientType
    recipient_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "amount": self.amount,
            "percentage": str(self.percentage),
            "recipient_type": self.recipient_type.value,
            "recipient_id": self.recipient_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SplitItem":
        return cls(
            name=data["name"],
            amount=int(data["amount"]),
            percentage=Decimal(data["percentage"]),
            recipient_type=RecipientType(data["recipient_type"]),
            recipient_id=data.get("recipient_id"),
        )


@dataclass(frozen=True)
class RevenueSplitSnapshot:
    """Revenue split embedded in a transaction at initialization."""

    platform_commission: SplitItem
    seller_payout: SplitItem
    additional_fees: tuple[SplitItem, ...] = ()
    config_id: Optional[int] = None
    config_version: Optional[int] = None

    @property
    def total(self) -> int:
        return (
            self.platform_commission.amount
            + self.seller_payout.amount
            + sum(item.amount for item in self.additional_fees)
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform_commission": self.platform_commission.to_dict(),
            "seller_payout": self.seller_payout.to_dict(),
            "additional_fees": [item.to_dict() for item in self.additional_fees],
            "config_id": self.config_id,
            "config_version": self.config_version,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional["RevenueSplitSnapshot"]:
        if not data:
            return None
        return cls(
            platform_commission=SplitItem.from_dict(data["platform_commission"]),
            seller_payout=SplitItem.from_dict(data["seller_payout"]),
            additional_fees=tuple(
                SplitItem.from_dict(d) for d in data.get("additional_fees", [])
            ),
            config_id=data.get("config_id"),
            config_version=data.get("config_version"),
        )


@dataclass(frozen=True)
class UserTypeRate:
    """Commission override for one seller user type."""

    user_type: str
    percentage: Decimal
    fixed: int = 0
    minimum_commission: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_type": self.user_type,
            "percentage": str(self.percentage),
            "fixed": self.fixed,
            "minimum_commission": self.minimum_commission,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserTypeRate":
        return cls(
            user_type=data["user_type"],
            percentage=Decimal(str(data["percentage"])),
            fixed=int(data.get("fixed", 0)),
            minimum_commission=int(data.get("minimum_commission", 0)),
        )


@dataclass(frozen=True)
class RevenueShareConfig:
    """Versioned revenue share configuration."""

    id: int
    name: str
    version: int
    platform_commission_percentage: Decimal
    platform_commission_fixed: int
    minimum_commission: int
    user_type_rates: tuple[UserTypeRate, ...]
    is_default: bool
    is_active: bool
    created_at: datetime
    description: Optional[str] = None

    def rate_for(self, user_type: Optional[str]) -> Optional[UserTypeRate]:
        if user_type is None:
            return None
        for rate in self.user_type_rates:
            if rate.user_type == user_type:
                return rate
        return None


@dataclass(frozen=True)
class SellerContext:
    """Seller facts the split calculator needs."""

    seller_id: Optional[str] = None
    user_type: Optional[str] = None


# Records


@dataclass(frozen=True)
class Transaction:
    """Transaction domain entity."""

    id: int
    reference: str
    type: TransactionType
    status: TransactionStatus
    amount: int
    currency: str
    amount_in_base_currency: int
    payment_method: Optional[str]
    provider: Optional[str]
    category: Optional[Category]
    fees: FeeBreakdown
    tax_amount: int
    total_amount: int
    charges: ItemizedCharges
    payer_id: Optional[str]
    payee_id: Optional[str]
    order_id: Optional[str]
    revenue_split: Optional[RevenueSplitSnapshot]
    description: Optional[str]
    metadata: dict[str, Any]
    external_reference: Optional[str]
    provider_transaction_id: Optional[str]
    failure_reason: Optional[str]
    notes: tuple[str, ...]
    initiated_at: datetime
    completed_at: Optional[datetime]
    failed_at: Optional[datetime]
    expires_at: Optional[datetime]
    settled_at: Optional[datetime] = None
    parent_reference: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


@dataclass(frozen=True)
class SellerBalance:
    """Running ledger balance per seller and currency."""

    seller_id: str
    currency: str
    available_balance: int
    pending_balance: int
    updated_at: Optional[datetime]


@dataclass(frozen=True)
class BalanceEntry:
    """Row of the append-only seller balance ledger."""

    id: int
    seller_id: str
    currency: str
    entry_type: LedgerEntryType
    amount: int
    transaction_id: Optional[int]
    refund_id: Optional[int]
    payout_id: Optional[int]
    swept_amount: int
    created_at: datetime
    reversed_amount: int = 0

    @property
    def remaining(self) -> int:
        """Part of a settlement credit neither swept into a payout nor reversed by a refund."""
        return self.amount - self.swept_amount - self.reversed_amount


@dataclass(frozen=True)
class PlatformRevenue:
    """Platform commission or commission reversal record."""

    id: int
    transaction_id: int
    refund_id: Optional[int]
    revenue_type: RevenueType
    amount: int
    currency: str
    created_at: datetime


@dataclass(frozen=True)
class PayoutAccount:
    """Seller's payout destination for one currency."""

    seller_id: str
    currency: str
    method: str
    details: dict[str, Any]


@dataclass(frozen=True)
class PayoutItem:
    """Portion of a payout backed by one settlement credit."""

    id: int
    payout_id: int
    transaction_id: Optional[int]
    balance_entry_id: Optional[int]
    amount: int
    fee: int
    net_amount: int


@dataclass(frozen=True)
class Payout:
    """Payout batch to one seller."""

    id: int
    seller_id: str
    batch_id: str
    total_amount: int
    currency: str
    fees: int
    net_amount: int
    status: PayoutStatus
    method: str
    account: dict[str, Any]
    reference_number: str
    scheduled_for: Optional[datetime]
    processed_at: Optional[datetime]
    settled_at: Optional[datetime]
    failed_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    external_reference: Optional[str]
    failure_reason: Optional[str]
    retry_count: int
    max_retries: int
    notes: Optional[str]
    created_at: datetime
    items: tuple[PayoutItem, ...] = ()


@dataclass(frozen=True)
class Refund:
    """Refund against one completed transaction."""

    id: int
    transaction_id: int
    transaction_reference: str
    order_id: Optional[str]
    amount: int
    currency: str
    reason: str
    status: RefundStatus
    method: str
    reference_number: str
    external_reference: Optional[str]
    failure_reason: Optional[str]
    seller_reversal: int
    commission_reversal: int
    requested_at: datetime
    processed_at: Optional[datetime]
    completed_at: Optional[datetime]


# Requests


@dataclass(frozen=True)
class InitializePayment:
    """Input of a payment initialization."""

    amount: int
    currency: str
    payment_method: str
    payer_id: str
    category: Category
    payee_id: Optional[str] = None
    seller_user_type: Optional[str] = None
    order_id: Optional[str] = None
    description: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    revenue_config_id: Optional[int] = None


@dataclass(frozen=True)
class CreatePayout:
    """Input of a payout creation. A missing amount means the full balance."""

    seller_id: str
    currency: str
    account: PayoutAccount
    amount: Optional[int] = None
    notes: Optional[str] = None
    scheduled_for: Optional[datetime] = None


@dataclass(frozen=True)
class RequestRefund:
    """Input of a refund request. A missing amount means the full amount."""

    transaction_reference: str
    reason: str
    amount: Optional[int] = None
    method: str = "original_payment"


# Outputs


@dataclass(frozen=True)
class Quote:
    """Itemized outcome of a payment, computed without persisting anything."""

    amount: int
    currency: str
    amount_in_base_currency: int
    charges: ItemizedCharges
    fees: FeeBreakdown
    split: RevenueSplitSnapshot
    provider: str

    @property
    def payer_total(self) -> int:
        """Amount charged to the payer: taxes and fees are surcharges."""
        return self.amount + self.charges.total


@dataclass(frozen=True)
class NotificationEvent:
    """Payload handed to the notification collaborator."""

    entity_type: str
    entity_id: str
    status: str
    amount: int
    currency: str


@dataclass(frozen=True)
class PaymentMethodMetrics:
    transactions: int
    revenue: int
    average_value: int
    success_rate: Decimal
    fees: int


@dataclass(frozen=True)
class PaymentAnalytics:
    """Read-only aggregation over transactions in a period."""

    start_date: datetime
    end_date: datetime
    currency: Optional[str]
    total_transactions: int
    successful_transactions: int
    failed_transactions: int
    success_rate: Decimal
    total_revenue: int
    platform_revenue: int
    seller_revenue: int
    average_transaction_value: int
    total_refunds: int
    refund_rate: Decimal
    payment_method_breakdown: dict[str, PaymentMethodMetrics]
