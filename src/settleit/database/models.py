"""SQLAlchemy models for the settlement database."""

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

from settleit.domain.clock import utcnow

Base = declarative_base()


class Transaction(Base):
    """Payment, refund or payout money movement."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    reference = Column(String, unique=True, nullable=False)
    type = Column(String, nullable=False)
    status = Column(String, nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False)
    amount_in_base_currency = Column(BigInteger, nullable=False)
    payment_method = Column(String, nullable=True)
    provider = Column(String, nullable=True)
    category = Column(String, nullable=True)
    provider_fee = Column(BigInteger, default=0, nullable=False)
    platform_fee = Column(BigInteger, default=0, nullable=False)
    processing_fee = Column(BigInteger, default=0, nullable=False)
    tax_amount = Column(BigInteger, default=0, nullable=False)
    total_amount = Column(BigInteger, nullable=False)
    charges = Column(JSON, nullable=True)
    payer_id = Column(String, nullable=True, index=True)
    payee_id = Column(String, nullable=True, index=True)
    order_id = Column(String, nullable=True)
    revenue_split = Column(JSON, nullable=True)
    description = Column(String, nullable=True)
    extra_metadata = Column("metadata", JSON, nullable=True)
    external_reference = Column(String, nullable=True)
    provider_transaction_id = Column(String, nullable=True)
    failure_reason = Column(String, nullable=True)
    notes = Column(JSON, nullable=True)
    parent_reference = Column(String, nullable=True)
    initiated_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    completed_at = Column(DateTime, nullable=True)
    failed_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    settled_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    refunds = relationship("Refund", back_populates="transaction")


class Refund(Base):
    """Refund against a completed transaction."""

    __tablename__ = "refunds"

    id = Column(Integer, primary_key=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False, index=True)
    order_id = Column(String, nullable=True)
    amount = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False)
    reason = Column(String, nullable=False)
    status = Column(String, nullable=False)
    method = Column(String, nullable=False)
    reference_number = Column(String, unique=True, nullable=False)
    external_reference = Column(String, nullable=True)
    failure_reason = Column(String, nullable=True)
    seller_reversal = Column(BigInteger, default=0, nullable=False)
    commission_reversal = Column(BigInteger, default=0, nullable=False)
    requested_at = Column(DateTime, default=utcnow, nullable=False)
    processed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    transaction = relationship("Transaction", back_populates="refunds")


class SellerBalance(Base):
    """Running balance per seller and currency."""

    __tablename__ = "seller_balances"

    id = Column(Integer, primary_key=True)
    seller_id = Column(String, nullable=False)
    currency = Column(String(3), nullable=False)
    available_balance = Column(BigInteger, default=0, nullable=False)
    pending_balance = Column(BigInteger, default=0, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("seller_id", "currency", name="uq_seller_currency"),
        CheckConstraint("available_balance >= 0", name="ck_available_non_negative"),
        CheckConstraint("pending_balance >= 0", name="ck_pending_non_negative"),
    )


class BalanceEntry(Base):
    """Append-only seller ledger row.

    ``dedupe_key`` is unique so each financial effect is recorded once.
    """

    __tablename__ = "balance_entries"

    id = Column(Integer, primary_key=True)
    seller_id = Column(String, nullable=False)
    currency = Column(String(3), nullable=False)
    entry_type = Column(String, nullable=False)
    amount = Column(BigInteger, nullable=False)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=True)
    refund_id = Column(Integer, ForeignKey("refunds.id"), nullable=True)
    payout_id = Column(Integer, ForeignKey("payouts.id"), nullable=True)
    swept_amount = Column(BigInteger, default=0, nullable=False)
    reversed_amount = Column(BigInteger, default=0, nullable=False)
    dedupe_key = Column(String, unique=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class PlatformRevenue(Base):
    """Platform commission and commission reversals."""

    __tablename__ = "platform_revenue"

    id = Column(Integer, primary_key=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False)
    refund_id = Column(Integer, ForeignKey("refunds.id"), nullable=True)
    revenue_type = Column(String, nullable=False)
    amount = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False)
    dedupe_key = Column(String, unique=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Payout(Base):
    """Payout batch to one seller."""

    __tablename__ = "payouts"

    id = Column(Integer, primary_key=True)
    seller_id = Column(String, nullable=False, index=True)
    batch_id = Column(String, nullable=False)
    total_amount = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False)
    fees = Column(BigInteger, nullable=False)
    net_amount = Column(BigInteger, nullable=False)
    status = Column(String, nullable=False, index=True)
    method = Column(String, nullable=False)
    account = Column(JSON, nullable=True)
    reference_number = Column(String, unique=True, nullable=False)
    scheduled_for = Column(DateTime, nullable=True)
    processed_at = Column(DateTime, nullable=True)
    settled_at = Column(DateTime, nullable=True)
    failed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    external_reference = Column(String, nullable=True)
    failure_reason = Column(String, nullable=True)
    retry_count = Column(Integer, default=0, nullable=False)
    max_retries = Column(Integer, default=3, nullable=False)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    items = relationship(
        "PayoutItem", back_populates="payout", cascade="all, delete-orphan", order_by="PayoutItem.id"
    )


class PayoutItem(Base):
    """Portion of a payout backed by one settlement credit."""

    __tablename__ = "payout_items"

    id = Column(Integer, primary_key=True)
    payout_id = Column(Integer, ForeignKey("payouts.id"), nullable=False)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=True)
    balance_entry_id = Column(Integer, ForeignKey("balance_entries.id"), nullable=True)
    amount = Column(BigInteger, nullable=False)
    fee = Column(BigInteger, nullable=False)
    net_amount = Column(BigInteger, nullable=False)

    payout = relationship("Payout", back_populates="items")


class PayoutAccount(Base):
    """Seller payout destination per currency."""

    __tablename__ = "payout_accounts"

    id = Column(Integer, primary_key=True)
    seller_id = Column(String, nullable=False)
    currency = Column(String(3), nullable=False)
    method = Column(String, nullable=False)
    details = Column(JSON, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("seller_id", "currency", name="uq_payout_account"),)


class RevenueShareConfig(Base):
    """Versioned revenue share configuration."""

    __tablename__ = "revenue_share_configs"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    version = Column(Integer, nullable=False)
    description = Column(String, nullable=True)
    platform_commission_percentage = Column(Numeric(9, 4), nullable=False)
    platform_commission_fixed = Column(BigInteger, default=0, nullable=False)
    minimum_commission = Column(BigInteger, default=0, nullable=False)
    user_type_rates = Column(JSON, nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("name", "version", name="uq_config_version"),)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Sessions are thread-local; SQLite connections are shared across threads by the pool
        connect_args = {"check_same_thread": False, "timeout": 30}
    engine = create_engine(database_url, echo=False, connect_args=connect_args)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
