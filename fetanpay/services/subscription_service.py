"""Read-side helpers for a merchant's current subscription."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fetanpay.core.exceptions import RelationLoadError, SubscriptionNotFoundError
from fetanpay.models import Merchant, Plan, Subscription, SubscriptionStatus
from fetanpay.services.subscription_lifecycle import (
    DEFAULT_NOTICE_DAYS,
    Trial,
    classify,
    days_remaining,
    resolve_tier,
)


def get_active_subscription(db: Session, merchant_id: uuid.UUID) -> Subscription:
    subscription = (
        db.query(Subscription)
        .filter(
            Subscription.merchant_id == merchant_id,
            Subscription.status == SubscriptionStatus.ACTIVE,
        )
        .order_by(Subscription.start_date.desc())
        .first()
    )
    if subscription is None:
        raise SubscriptionNotFoundError(f"No active subscription for merchant {merchant_id}")
    return subscription


def describe_subscription(
    subscription: Subscription, now: datetime, notice_days: int = DEFAULT_NOTICE_DAYS
) -> Dict[str, Any]:
    plan = subscription.plan
    return {
        "id": str(subscription.id),
        "merchant_id": str(subscription.merchant_id),
        "plan_name": plan.name,
        "billing_cycle": subscription.billing_cycle,
        "status": subscription.status,
        "phase": classify(subscription, plan, now, notice_days=notice_days),
        "start_date": subscription.start_date,
        "end_date": subscription.end_date,
        "next_billing_date": subscription.next_billing_date,
        "days_remaining": days_remaining(subscription.end_date, now),
        "in_trial": (
            isinstance(resolve_tier(plan), Trial)
            and subscription.end_date is not None
            and subscription.status == SubscriptionStatus.ACTIVE
        ),
    }


def _load_relation(subscription: Subscription, relation: str, fields: tuple[str, ...]):
    subscription_id = subscription.id
    try:
        target = getattr(subscription, relation)
        if target is not None:
            # Touch the columns the calculator reads so undecodable rows fail here.
            for name in fields:
                getattr(target, name)
    except (SQLAlchemyError, LookupError, ValueError) as exc:
        raise RelationLoadError(subscription_id, relation, str(exc)) from exc
    if target is None:
        missing_id = getattr(subscription, f"{relation}_id")
        raise RelationLoadError(subscription_id, relation, f"{relation} {missing_id} not found")
    return target


def load_relations(subscription: Subscription) -> tuple[Plan, Merchant]:
    """Plan and merchant of a subscription, or RelationLoadError if either cannot be loaded."""
    plan = _load_relation(subscription, "plan", ("name", "price", "billing_cycle"))
    merchant = _load_relation(subscription, "merchant", ("name", "created_at"))
    return plan, merchant
