"""
Daily subscription expiry checks: warn ahead of expiration and mark lapsed
subscriptions as EXPIRED.
"""
from __future__ import annotations

from datetime import datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fetanpay.core.exceptions import AppError
from fetanpay.core.logger import get_logger
from fetanpay.models import Subscription, SubscriptionStatus, utcnow
from fetanpay.services import notification_service
from fetanpay.services.subscription_lifecycle import DEFAULT_NOTICE_DAYS, days_remaining
from fetanpay.services.subscription_service import load_relations

logger = get_logger(__name__)

DEFAULT_TIMEZONE = "Africa/Addis_Ababa"


def expiring_window(now: datetime, notice_days: int, tz_name: str = DEFAULT_TIMEZONE) -> tuple[datetime, datetime]:
    """Start and end of the local calendar day ``notice_days`` after ``now``."""
    tz = ZoneInfo(tz_name)
    target_day = now.astimezone(tz).date() + timedelta(days=notice_days)
    return (
        datetime.combine(target_day, time.min, tzinfo=tz),
        datetime.combine(target_day, time.max, tzinfo=tz),
    )


def check_expiring_subscriptions(
    db: Session,
    now: Optional[datetime] = None,
    notice_days: int = DEFAULT_NOTICE_DAYS,
    tz_name: str = DEFAULT_TIMEZONE,
) -> int:
    now = now or utcnow()
    window_start, window_end = expiring_window(now, notice_days, tz_name)
    logger.info("Checking for subscriptions expiring in %s days...", notice_days)

    subscriptions = (
        db.query(Subscription)
        .filter(
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.end_date >= window_start,
            Subscription.end_date <= window_end,
        )
        .all()
    )
    logger.info("Found %s subscriptions expiring in %s days", len(subscriptions), notice_days)

    subscription_ids = [s.id for s in subscriptions]
    notified = 0
    for subscription_id, subscription in zip(subscription_ids, subscriptions):
        try:
            plan, merchant = load_relations(subscription)
            notification_service.notify_subscription_expiring(
                merchant_id=str(subscription.merchant_id),
                merchant_name=merchant.name,
                plan_name=plan.name,
                expires_at=subscription.end_date,
                days_left=days_remaining(subscription.end_date, now),
            )
            notified += 1
        except (SQLAlchemyError, AppError) as exc:
            db.rollback()
            logger.error(
                "Failed to send expiring notification for subscription %s: %s",
                subscription_id,
                exc,
            )
    return notified


def expire_lapsed_subscriptions(db: Session, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    logger.info("Checking for expired subscriptions...")

    subscriptions = (
        db.query(Subscription)
        .filter(
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.end_date < now,
        )
        .all()
    )
    logger.info("Found %s expired subscriptions", len(subscriptions))

    subscription_ids = [s.id for s in subscriptions]
    expired = 0
    for subscription_id, subscription in zip(subscription_ids, subscriptions):
        try:
            subscription.status = SubscriptionStatus.EXPIRED
            subscription.updated_at = now
            db.commit()
            expired += 1
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Failed to process expired subscription %s: %s", subscription_id, exc)
            continue

        try:
            plan, merchant = load_relations(subscription)
            notification_service.notify_subscription_expired(
                merchant_id=str(subscription.merchant_id),
                merchant_name=merchant.name,
                plan_name=plan.name,
                expired_at=subscription.end_date,
            )
        except (SQLAlchemyError, AppError) as exc:
            db.rollback()
            logger.error("Failed to send expired notification for subscription %s: %s", subscription_id, exc)
    return expired
