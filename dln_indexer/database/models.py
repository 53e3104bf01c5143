"""
SQLAlchemy models for order storage.

Two layers:
- staging_orders: raw rows as produced by the fetcher, one per (signature, order_index).
- silver_*: normalized orders with token and status lookup tables.

Amounts are stored as decimal strings so SQLite keeps every digit.
"""

from __future__ import annotations

import time
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

Base = declarative_base()


def _now() -> int:
    return int(time.time())


class DecimalString(TypeDecorator):
    """Exact Decimal stored as its string form."""

    impl = String(80)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> str | None:
        if value is None:
            return None
        return str(Decimal(value))

    def process_result_value(self, value: Any, dialect: Any) -> Decimal | None:
        if value is None:
            return None
        return Decimal(value)


class StagingOrder(Base):
    """
    Order as fetched. is_processed flips once the row has been promoted to silver.
    """

    __tablename__ = "staging_orders"
    __table_args__ = (UniqueConstraint("signature", "order_index", name="uq_staging_orders_signature_index"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    signature = Column(String(128), nullable=False, index=True)
    order_index = Column(Integer, nullable=False, default=0)
    order_id = Column(String(128), nullable=False, index=True)
    status = Column(String(16), nullable=False, index=True)
    token_key = Column(String(128), nullable=False)
    token_symbol = Column(String(128), nullable=False)
    amount = Column(DecimalString, nullable=False)
    percent_fee = Column(DecimalString, nullable=False)
    fixed_fee = Column(DecimalString, nullable=False)
    timestamp = Column(Integer, nullable=False, index=True)  # Unix seconds (block time)
    added_at = Column(Integer, nullable=False, default=_now)  # Unix seconds
    is_processed = Column(Boolean, nullable=False, default=False, index=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "signature": self.signature,
            "order_index": self.order_index,
            "order_id": self.order_id,
            "status": self.status,
            "token_key": self.token_key,
            "token_symbol": self.token_symbol,
            "amount": self.amount,
            "percent_fee": self.percent_fee,
            "fixed_fee": self.fixed_fee,
            "timestamp": self.timestamp,
            "added_at": self.added_at,
            "is_processed": self.is_processed,
        }


class SilverToken(Base):
    __tablename__ = "silver_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token_key = Column(String(128), unique=True, nullable=False, index=True)
    token_symbol = Column(String(128), nullable=False)
    added_at = Column(Integer, nullable=False, default=_now)


class SilverOrderStatus(Base):
    __tablename__ = "silver_order_status"

    id = Column(Integer, primary_key=True, autoincrement=True)
    status = Column(String(16), unique=True, nullable=False)


class SilverOrder(Base):
    """
    Normalized order. Token and status reference the lookup tables.
    """

    __tablename__ = "silver_orders"
    __table_args__ = (UniqueConstraint("signature", "order_index", name="uq_silver_orders_signature_index"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    signature = Column(String(128), nullable=False, index=True)
    order_index = Column(Integer, nullable=False, default=0)
    order_id = Column(String(128), nullable=False, index=True)
    amount = Column(DecimalString, nullable=False)
    percent_fee = Column(DecimalString, nullable=False)
    fixed_fee = Column(DecimalString, nullable=False)
    token_id = Column(Integer, ForeignKey("silver_tokens.id"), nullable=False, index=True)
    status_id = Column(Integer, ForeignKey("silver_order_status.id"), nullable=False, index=True)
    timestamp = Column(Integer, nullable=False, index=True)
    added_at = Column(Integer, nullable=False, default=_now)
