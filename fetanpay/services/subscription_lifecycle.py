"""
Subscription lifecycle calculations.

Pure date arithmetic over plans and subscriptions: how long a trial lasts,
when a paid subscription ends and rebills, and which phase a subscription
is in at a given moment. Nothing here touches the database.

Calendar months and years use ``dateutil.relativedelta``, which clamps to the
last day of the target month: 2024-01-31 + 1 month is 2024-02-29 and
2024-02-29 + 1 year is 2025-02-28.
"""
from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from fetanpay.models import BillingCycle, Merchant, Plan, Subscription, SubscriptionStatus

FREE_PLAN_NAME = "Free"
DEFAULT_TRIAL_DAYS = 7
DEFAULT_NOTICE_DAYS = 2

_CYCLE_OFFSETS = {
    BillingCycle.DAILY: relativedelta(days=1),
    BillingCycle.WEEKLY: relativedelta(days=7),
    BillingCycle.MONTHLY: relativedelta(months=1),
    BillingCycle.YEARLY: relativedelta(years=1),
}


@dataclass(frozen=True)
class Trial:
    """Free plan: a fixed window anchored to merchant creation, never rebilled."""


@dataclass(frozen=True)
class Paid:
    billing_cycle: BillingCycle
    price: Decimal


@dataclass(frozen=True)
class Unpriced:
    """Zero-price plan that is not the Free plan, e.g. a promotional plan."""

    name: str


PlanTier = Union[Trial, Paid, Unpriced]


@dataclass(frozen=True)
class ExpirationDates:
    end_date: datetime
    next_billing_date: Optional[datetime]


class SubscriptionPhase(str, enum.Enum):
    TRIAL = "trial"
    ACTIVE = "active"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"


def resolve_tier(plan: Plan) -> PlanTier:
    if plan.name == FREE_PLAN_NAME:
        return Trial()
    price = Decimal(plan.price or 0)
    if price > 0:
        return Paid(billing_cycle=BillingCycle(plan.billing_cycle), price=price)
    return Unpriced(name=plan.name)


def add_billing_cycle(anchor: datetime, cycle: BillingCycle) -> datetime:
    """Advance ``anchor`` by one billing-cycle unit, keeping time of day and tzinfo."""
    try:
        offset = _CYCLE_OFFSETS[BillingCycle(cycle)]
    except (KeyError, ValueError):
        raise ValueError(f"Unsupported billing cycle: {cycle!r}")
    return anchor + offset


def compute_expiration(
    subscription: Subscription,
    plan: Plan,
    merchant: Merchant,
    trial_days: int = DEFAULT_TRIAL_DAYS,
) -> Optional[ExpirationDates]:
    """
    Work out ``end_date`` and ``next_billing_date`` for a subscription.

    Returns None when the plan has no expiration rule (zero price and not the
    Free plan); callers leave such subscriptions untouched.
    """
    tier = resolve_tier(plan)

    if isinstance(tier, Trial):
        return ExpirationDates(
            end_date=merchant.created_at + timedelta(days=trial_days),
            next_billing_date=None,
        )

    if isinstance(tier, Paid):
        renews_at = add_billing_cycle(subscription.start_date, tier.billing_cycle)
        return ExpirationDates(end_date=renews_at, next_billing_date=renews_at)

    return None


def classify(
    subscription: Subscription,
    plan: Plan,
    now: datetime,
    notice_days: int = DEFAULT_NOTICE_DAYS,
) -> SubscriptionPhase:
    if subscription.status in (SubscriptionStatus.EXPIRED, SubscriptionStatus.CANCELLED):
        return SubscriptionPhase.EXPIRED

    end_date = subscription.end_date
    if end_date is not None:
        if end_date <= now:
            return SubscriptionPhase.EXPIRED
        if end_date - now <= timedelta(days=notice_days):
            return SubscriptionPhase.EXPIRING_SOON

    if isinstance(resolve_tier(plan), Trial):
        return SubscriptionPhase.TRIAL
    return SubscriptionPhase.ACTIVE


def days_remaining(end_date: Optional[datetime], now: datetime) -> Optional[int]:
    if end_date is None:
        return None
    seconds = (end_date - now).total_seconds()
    return max(0, math.ceil(seconds / 86400))
