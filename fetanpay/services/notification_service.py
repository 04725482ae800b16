from __future__ import annotations

from datetime import datetime

from fetanpay.core.logger import get_logger

logger = get_logger(__name__)

MERCHANT_CHANNEL = 'merchant'
ADMIN_CHANNEL = 'admin'


def send_notification(channel: str, message: str, metadata: dict | None = None) -> dict:
    logger.info('Notification channel=%s message=%s metadata=%s', channel, message, metadata or {})
    return {'success': True, 'channel': channel}


def notify_subscription_expiring(
    merchant_id: str, merchant_name: str, plan_name: str, expires_at: datetime, days_left: int
) -> list[dict]:
    metadata = {
        'merchant_id': merchant_id,
        'plan_name': plan_name,
        'expiration_date': expires_at.isoformat(),
        'days_left': days_left,
    }
    return [
        send_notification(
            MERCHANT_CHANNEL,
            f'Your {plan_name} subscription expires in {days_left} day(s).',
            metadata,
        ),
        send_notification(
            ADMIN_CHANNEL,
            f'{merchant_name} {plan_name} subscription expires in {days_left} day(s).',
            metadata,
        ),
    ]


def notify_subscription_expired(
    merchant_id: str, merchant_name: str, plan_name: str, expired_at: datetime
) -> list[dict]:
    metadata = {
        'merchant_id': merchant_id,
        'plan_name': plan_name,
        'expired_date': expired_at.isoformat(),
    }
    return [
        send_notification(MERCHANT_CHANNEL, f'Your {plan_name} subscription has expired.', metadata),
        send_notification(ADMIN_CHANNEL, f'{merchant_name} {plan_name} subscription has expired.', metadata),
    ]
