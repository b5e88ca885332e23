"""
Financial ledger models touched by the chancellor workflow.

The ledger belongs to the treasury area; sessions only read accounts and
append beneficence income transactions.
"""

import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Date, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import relationship

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin


class AccountType(enum.Enum):
    """Bank account or till type."""
    CHECKING = "checking"
    SAVINGS = "savings"
    CASH = "cash"
    INVESTMENT = "investment"


class TransactionType(enum.Enum):
    """Direction of a ledger transaction."""
    INCOME = "income"
    EXPENSE = "expense"


class Account(Base, GuidMixin):
    """Bank account or cash till (acc_xxx)."""

    __tablename__ = "accounts"

    GUID_PREFIX = "acc"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    account_type = Column(String(20), default=AccountType.CHECKING.value, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    transactions = relationship(
        "FinancialTransaction",
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, name='{self.name}', type={self.account_type})>"


class FinancialTransaction(Base, GuidMixin):
    """
    Ledger transaction (txn_xxx).

    Attributes:
        transaction_date: Date the amount was received or paid
        description: Human readable description
        category: Ledger category (e.g. "Beneficence Collection")
        transaction_type: income or expense
        amount: Positive amount
        account_id: FK to Account; nullable because the chancellor flow may
            post a collection before any account exists
    """

    __tablename__ = "financial_transactions"

    GUID_PREFIX = "txn"

    id = Column(Integer, primary_key=True, autoincrement=True)

    transaction_date = Column(Date, nullable=False, index=True)
    description = Column(String(255), nullable=False)
    category = Column(String(120), nullable=False, index=True)
    transaction_type = Column(String(20), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)

    account_id = Column(
        Integer,
        ForeignKey("accounts.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    account = relationship("Account", back_populates="transactions")

    def __repr__(self) -> str:
        return (
            f"<FinancialTransaction("
            f"id={self.id}, "
            f"category='{self.category}', "
            f"amount={self.amount}"
            f")>"
        )
