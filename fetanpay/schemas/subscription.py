from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from fetanpay.models import BillingCycle, SubscriptionStatus
from fetanpay.services.subscription_lifecycle import SubscriptionPhase


class SubscriptionStatusSchema(BaseModel):
    id: str
    merchant_id: str
    plan_name: str
    billing_cycle: BillingCycle
    status: SubscriptionStatus
    phase: SubscriptionPhase
    start_date: datetime
    end_date: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None
    days_remaining: Optional[int] = None
    in_trial: bool


class BackfillReportSchema(BaseModel):
    found: int
    updated: int
    skipped: int
    failed: int


class JobResultSchema(BaseModel):
    job: str
    processed: int
