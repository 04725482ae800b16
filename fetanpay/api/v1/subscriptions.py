"""
Subscription API Routes
Merchant subscription status and manual triggers for the billing jobs
"""
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from fetanpay.config import get_settings
from fetanpay.core.exceptions import SubscriptionNotFoundError
from fetanpay.database import get_db
from fetanpay.models import utcnow
from fetanpay.schemas.subscription import BackfillReportSchema, JobResultSchema, SubscriptionStatusSchema
from fetanpay.services.expiration_backfill import backfill_expiration_dates
from fetanpay.services.expiry_monitor import check_expiring_subscriptions, expire_lapsed_subscriptions
from fetanpay.services.subscription_service import describe_subscription, get_active_subscription

router = APIRouter()


@router.get("/merchants/{merchant_id}", response_model=SubscriptionStatusSchema)
async def get_merchant_subscription(merchant_id: uuid.UUID, db: Session = Depends(get_db)):
    """
    Current ACTIVE subscription for a merchant, with its lifecycle phase
    """
    try:
        subscription = get_active_subscription(db, merchant_id)
    except SubscriptionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return describe_subscription(
        subscription, utcnow(), notice_days=get_settings().expiry_notice_days
    )


@router.post("/jobs/fix-expiration", response_model=BackfillReportSchema)
async def run_fix_expiration(db: Session = Depends(get_db)):
    report = backfill_expiration_dates(db, trial_days=get_settings().trial_days)
    return report.as_dict()


@router.post("/jobs/check-expiring", response_model=JobResultSchema)
async def run_check_expiring(db: Session = Depends(get_db)):
    settings = get_settings()
    notified = check_expiring_subscriptions(
        db, notice_days=settings.expiry_notice_days, tz_name=settings.billing_timezone
    )
    return {"job": "check-expiring-subscriptions", "processed": notified}


@router.post("/jobs/check-expired", response_model=JobResultSchema)
async def run_check_expired(db: Session = Depends(get_db)):
    expired = expire_lapsed_subscriptions(db)
    return {"job": "check-expired-subscriptions", "processed": expired}
