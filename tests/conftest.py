import os
import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('APP_ENV', 'test')
os.environ.setdefault('SECRET_KEY', 'test-secret')
os.environ.setdefault('ADMIN_EMAIL', 'admin@fetanpay.et')
os.environ.setdefault('SCHEDULER_ENABLED', 'false')

from fetanpay.models import (  # noqa: E402
    Base,
    BillingCycle,
    Merchant,
    MerchantStatus,
    Plan,
    Subscription,
    SubscriptionStatus,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_plan(db):
    def _make(name='Pro', price='199', billing_cycle=BillingCycle.MONTHLY):
        plan = Plan(name=name, price=Decimal(price), billing_cycle=billing_cycle)
        db.add(plan)
        db.commit()
        return plan

    return _make


@pytest.fixture
def make_merchant(db):
    def _make(name='Abebe Coffee', created_at=None):
        merchant = Merchant(
            name=name,
            status=MerchantStatus.ACTIVE,
            created_at=created_at or utc(2024, 1, 1),
        )
        db.add(merchant)
        db.commit()
        return merchant

    return _make


@pytest.fixture
def make_subscription(db):
    def _make(merchant, plan, start_date=None, end_date=None, status=SubscriptionStatus.ACTIVE, **extra):
        subscription = Subscription(
            merchant_id=merchant.id if merchant is not None else extra.pop('merchant_id'),
            plan_id=plan.id if plan is not None else extra.pop('plan_id'),
            status=status,
            start_date=start_date or utc(2024, 3, 15),
            end_date=end_date,
            monthly_price=plan.price if plan is not None else Decimal('0'),
            billing_cycle=plan.billing_cycle if plan is not None else BillingCycle.MONTHLY,
            **extra,
        )
        db.add(subscription)
        db.commit()
        return subscription

    return _make
