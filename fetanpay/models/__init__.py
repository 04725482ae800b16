"""
SQLAlchemy models for FetanPay billing.
"""
from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, Integer, Numeric, Text, TypeDecorator, Uuid
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timestamp stored as UTC and always returned timezone-aware."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class BillingCycle(str, enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class PlanStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ARCHIVED = "ARCHIVED"


class MerchantStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


def _enum_column(enum_cls, **kwargs) -> Column:
    return Column(Enum(enum_cls, native_enum=False, length=16), **kwargs)


class Plan(Base):
    __tablename__ = "plans"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False, unique=True)
    description = Column(Text)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    billing_cycle = _enum_column(BillingCycle, nullable=False, default=BillingCycle.MONTHLY)
    verification_limit = Column(Integer)
    api_limit = Column(Integer)
    limits = Column(JSON, default=dict)
    features = Column(JSON, default=list)
    status = _enum_column(PlanStatus, nullable=False, default=PlanStatus.ACTIVE)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    subscriptions = relationship("Subscription", back_populates="plan")


class Merchant(Base):
    __tablename__ = "merchants"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    status = _enum_column(MerchantStatus, nullable=False, default=MerchantStatus.PENDING)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    subscriptions = relationship("Subscription", back_populates="merchant")


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    merchant_id = Column(Uuid(as_uuid=True), ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False)
    plan_id = Column(Uuid(as_uuid=True), ForeignKey("plans.id"), nullable=False)
    status = _enum_column(SubscriptionStatus, nullable=False, default=SubscriptionStatus.ACTIVE)
    start_date = Column(UTCDateTime, nullable=False, default=utcnow)
    end_date = Column(UTCDateTime)
    next_billing_date = Column(UTCDateTime)
    monthly_price = Column(Numeric(12, 2), nullable=False, default=0)
    billing_cycle = _enum_column(BillingCycle, nullable=False, default=BillingCycle.MONTHLY)
    cancelled_at = Column(UTCDateTime)
    cancellation_reason = Column(Text)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow)

    plan = relationship("Plan", back_populates="subscriptions")
    merchant = relationship("Merchant", back_populates="subscriptions")
