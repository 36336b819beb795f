"""
SQLAlchemy ORM models for database tables
"""

import enum
from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, DateTime, Numeric, Text, JSON, Enum, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DepositStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


# Statuses a deposit may still leave
OPEN_DEPOSIT_STATUSES = (DepositStatus.PENDING, DepositStatus.PROCESSING)


class TransactionType(str, enum.Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    SWAP = "SWAP"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"

    @property
    def is_credit(self) -> bool:
        return self in (TransactionType.DEPOSIT, TransactionType.TRANSFER_IN)


class UserModel(Base):
    """SQLAlchemy ORM model for users table"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    wallet_address = Column(String(42), nullable=False, unique=True)
    balance = Column(Numeric(15, 2), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    deposits = relationship("DepositModel", back_populates="user", cascade="all, delete-orphan")
    transactions = relationship("TransactionModel", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_users_balance_non_negative"),
    )

    def __repr__(self):
        return f"<User(id={self.id}, wallet_address='{self.wallet_address}', balance={self.balance})>"


class DepositModel(Base):
    """SQLAlchemy ORM model for deposits table"""

    __tablename__ = "deposits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    stripe_payment_intent_id = Column(String(255), nullable=False, unique=True)
    amount = Column(Numeric(15, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="usd")
    status = Column(Enum(DepositStatus, name="deposit_status"), nullable=False, default=DepositStatus.PENDING)
    stripe_client_secret = Column(Text, nullable=True)
    metadata_ = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("UserModel", back_populates="deposits")

    __table_args__ = (
        Index('idx_deposits_user_created', 'user_id', 'created_at'),
    )

    def __repr__(self):
        return f"<Deposit(id={self.id}, intent='{self.stripe_payment_intent_id}', status='{self.status}')>"


class TransactionModel(Base):
    """SQLAlchemy ORM model for transactions table (append-only ledger)"""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(Enum(TransactionType, name="transaction_type"), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    description = Column(Text, nullable=True)
    reference_id = Column(String(255), nullable=True)
    balance_after = Column(Numeric(15, 2), nullable=False)
    metadata_ = Column("metadata", JSON, nullable=True)
    btc_amount = Column(Numeric(20, 8), nullable=True)
    btc_price = Column(Numeric(15, 2), nullable=True)
    transaction_hash = Column(String(66), nullable=True)
    status = Column(String(20), nullable=True, default="COMPLETED")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    user = relationship("UserModel", back_populates="transactions")

    __table_args__ = (
        Index('idx_transactions_user_created', 'user_id', 'created_at'),
    )

    @property
    def signed_amount(self):
        return self.amount if TransactionType(self.type).is_credit else -self.amount

    def __repr__(self):
        return f"<Transaction(id={self.id}, type='{self.type}', amount={self.amount}, balance_after={self.balance_after})>"
