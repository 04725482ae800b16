"""
Corrective pass that fills in missing subscription expiration dates.
Targets ACTIVE subscriptions whose end_date is NULL, so a corrected row is
never selected again.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fetanpay.core.exceptions import AppError
from fetanpay.core.logger import get_logger
from fetanpay.models import Subscription, SubscriptionStatus, utcnow
from fetanpay.services.subscription_lifecycle import DEFAULT_TRIAL_DAYS, compute_expiration
from fetanpay.services.subscription_service import load_relations

logger = get_logger(__name__)


@dataclass
class BackfillReport:
    found: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def find_subscriptions_missing_expiration(db: Session) -> list[Subscription]:
    return (
        db.query(Subscription)
        .filter(
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.end_date.is_(None),
        )
        .order_by(Subscription.created_at)
        .all()
    )


def backfill_expiration_dates(
    db: Session,
    now: Optional[datetime] = None,
    trial_days: int = DEFAULT_TRIAL_DAYS,
) -> BackfillReport:
    """
    Set end_date / next_billing_date on every ACTIVE subscription missing them.

    Each record is committed on its own; a record whose plan or merchant cannot
    be loaded, or whose write fails, is logged and skipped.
    """
    now = now or utcnow()
    report = BackfillReport()

    subscriptions = find_subscriptions_missing_expiration(db)
    report.found = len(subscriptions)
    logger.info("Found %s subscriptions to update", report.found)

    # Ids are captured up front; a rollback expires every loaded instance.
    subscription_ids = [s.id for s in subscriptions]

    for subscription_id, subscription in zip(subscription_ids, subscriptions):
        try:
            plan, merchant = load_relations(subscription)
            dates = compute_expiration(subscription, plan, merchant, trial_days=trial_days)

            if dates is None:
                report.skipped += 1
                logger.warning(
                    "No expiration rule for plan %s (price=%s) on subscription %s; left unchanged",
                    plan.name,
                    plan.price,
                    subscription_id,
                )
                continue

            subscription.end_date = dates.end_date
            subscription.next_billing_date = dates.next_billing_date
            subscription.updated_at = now
            db.commit()
            report.updated += 1

            logger.info(
                "Set %s plan expiration for merchant %s: expires %s, next billing %s",
                plan.name,
                merchant.id,
                dates.end_date.isoformat(),
                dates.next_billing_date.isoformat() if dates.next_billing_date else None,
            )
        except (SQLAlchemyError, AppError, LookupError, ValueError) as exc:
            db.rollback()
            report.failed += 1
            logger.error("Skipping subscription %s: %s", subscription_id, exc)

    logger.info(
        "Expiration backfill complete: found=%s updated=%s skipped=%s failed=%s",
        report.found,
        report.updated,
        report.skipped,
        report.failed,
    )
    return report
