# models.py
# Role: SQLAlchemy ORM models for the SMS expense tracker domain.
#       Transactions parsed from bank SMS (or entered by hand), the learned
#       merchant dictionary, auto-discovered accounts, per-user categories,
#       and detected subscriptions.

from datetime import datetime

from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    Float,
    Numeric,
    Boolean,
    Text,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from db import Base

# Stored in accounts.last_4 when the SMS carried no account digits
GENERIC_LAST4 = "XXXX"

DIRECTIONS = ("debit", "credit")
FREQUENCIES = ("weekly", "monthly", "yearly")


class Category(Base):
    """
    Spending bucket with an optional monthly budget ceiling.

    Rows with owner_id NULL are the global defaults; every user gets a copy
    of them on first use (see app/services/onboarding.py).
    """

    __tablename__ = "categories"
    __table_args__ = (UniqueConstraint("name", "owner_id", name="uq_category_name_owner"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    icon = Column(String, nullable=False, default="tag")
    color = Column(String, nullable=False, default="#6366f1")

    # Monthly ceiling (None = no budget)
    budget_limit = Column(Float, nullable=True)

    owner_id = Column(Integer, nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Account(Base):
    """
    A bank/wallet account inferred from (SMS sender, last 4 digits).
    """

    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("bank_name", "last_4", "owner_id", name="uq_account_bank_last4_owner"),
        CheckConstraint("type IN ('debit', 'credit', 'wallet')", name="ck_account_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)

    # Sender id without its routing prefix, e.g. "HDFCBK" for "AD-HDFCBK"
    bank_name = Column(String, nullable=False)

    # Last four digits, or GENERIC_LAST4
    last_4 = Column(String(4), nullable=False)

    type = Column(String, nullable=False, default="debit")
    balance = Column(Float, nullable=False, default=0.0)
    owner_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Transaction(Base):
    """
    A single financial movement.

    `merchant` is the user-facing label and changes when the user names a
    merchant. `original_merchant` is the raw token seen at ingestion time and
    is never rewritten after insert; relabeling and subscription grouping key
    on it.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("direction IN ('debit', 'credit')", name="ck_transaction_direction"),
        Index("idx_transactions_owner_date", "owner_id", "date"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Always positive; the direction says which way the money went
    amount = Column(Numeric(12, 2), nullable=False)
    direction = Column(String(6), nullable=False)

    merchant = Column(String, nullable=False, index=True)
    original_merchant = Column(String, nullable=True)

    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    owner_id = Column(Integer, nullable=False, index=True)

    # Day the money moved
    date = Column(Date, nullable=False, index=True)

    # Originating SMS text (NULL for manual entries)
    raw_sms = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class MerchantMapping(Base):
    """
    One learned rule: raw SMS merchant token -> display name (+ category).
    Like a contact entry for a phone number.
    """

    __tablename__ = "merchant_mappings"
    __table_args__ = (UniqueConstraint("sms_name", "owner_id", name="uq_mapping_sms_name_owner"),)

    id = Column(Integer, primary_key=True, index=True)

    # Stored upper-case; compared case-insensitively
    sms_name = Column(String, nullable=False, index=True)
    display_name = Column(String, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    owner_id = Column(Integer, nullable=True)


class Subscription(Base):
    """
    A detected recurring payment. Replaced on every detection run.
    """

    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint("merchant", "owner_id", name="uq_subscription_merchant_owner"),
        CheckConstraint("frequency IN ('weekly', 'monthly', 'yearly')", name="ck_subscription_frequency"),
    )

    id = Column(Integer, primary_key=True, index=True)
    merchant = Column(String, nullable=False)
    original_merchant = Column(String, nullable=True)
    amount = Column(Float, nullable=False)
    frequency = Column(String(8), nullable=False)
    confidence = Column(Float, nullable=False, default=1.0)
    next_date = Column(Date, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    owner_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
