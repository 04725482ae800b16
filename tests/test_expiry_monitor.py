from __future__ import annotations

import uuid
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from fetanpay.models import Subscription, SubscriptionStatus
from fetanpay.services import notification_service
from fetanpay.services.expiry_monitor import (
    check_expiring_subscriptions,
    expire_lapsed_subscriptions,
    expiring_window,
)

# 09:00 in Addis Ababa
NOW = datetime(2024, 3, 20, 6, 0, tzinfo=timezone.utc)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def test_expiring_window_covers_local_day_two_days_ahead():
    start, end = expiring_window(NOW, 2, 'Africa/Addis_Ababa')
    tz = ZoneInfo('Africa/Addis_Ababa')
    assert start == datetime(2024, 3, 22, 0, 0, tzinfo=tz)
    assert end == datetime(2024, 3, 22, 23, 59, 59, 999999, tzinfo=tz)
    assert start == utc(2024, 3, 21, 21, 0)


def test_check_expiring_notifies_only_subscriptions_in_window(db, make_plan, make_merchant, make_subscription, monkeypatch):
    calls = []
    monkeypatch.setattr(notification_service, 'notify_subscription_expiring', lambda **kw: calls.append(kw))

    pro = make_plan()
    merchant = make_merchant(name='Selam Shop')
    make_subscription(merchant, pro, end_date=utc(2024, 3, 22, 12, 0))
    make_subscription(merchant, pro, end_date=utc(2024, 3, 23, 12, 0))
    make_subscription(merchant, pro, end_date=utc(2024, 3, 21, 20, 0))
    make_subscription(merchant, pro, end_date=utc(2024, 3, 22, 12, 0), status=SubscriptionStatus.CANCELLED)

    notified = check_expiring_subscriptions(db, now=NOW, notice_days=2)

    assert notified == 1
    assert len(calls) == 1
    assert calls[0]['merchant_name'] == 'Selam Shop'
    assert calls[0]['plan_name'] == 'Pro'
    assert calls[0]['days_left'] == 3
    assert calls[0]['expires_at'] == utc(2024, 3, 22, 12, 0)


def test_check_expiring_returns_notification_payloads(db, make_plan, make_merchant, make_subscription):
    make_subscription(make_merchant(), make_plan(), end_date=utc(2024, 3, 22, 12, 0))
    assert check_expiring_subscriptions(db, now=NOW) == 1


def test_expire_lapsed_marks_expired_and_notifies(db, make_plan, make_merchant, make_subscription, monkeypatch):
    calls = []
    monkeypatch.setattr(notification_service, 'notify_subscription_expired', lambda **kw: calls.append(kw))

    pro = make_plan()
    merchant = make_merchant()
    lapsed = make_subscription(merchant, pro, end_date=utc(2024, 3, 19))
    current = make_subscription(merchant, pro, end_date=utc(2024, 4, 15))
    open_ended = make_subscription(merchant, pro, end_date=None)

    expired = expire_lapsed_subscriptions(db, now=NOW)

    assert expired == 1
    db.expire_all()
    assert db.get(Subscription, lapsed.id).status == SubscriptionStatus.EXPIRED
    assert db.get(Subscription, lapsed.id).updated_at == NOW
    assert db.get(Subscription, current.id).status == SubscriptionStatus.ACTIVE
    assert db.get(Subscription, open_ended.id).status == SubscriptionStatus.ACTIVE
    assert calls[0]['expired_at'] == utc(2024, 3, 19)


def test_expire_lapsed_is_idempotent(db, make_plan, make_merchant, make_subscription):
    make_subscription(make_merchant(), make_plan(), end_date=utc(2024, 3, 19))

    assert expire_lapsed_subscriptions(db, now=NOW) == 1
    assert expire_lapsed_subscriptions(db, now=NOW) == 0


def test_send_notification_reports_channel():
    result = notification_service.send_notification('admin', 'hello', {'merchant_id': 'm1'})
    assert result == {'success': True, 'channel': 'admin'}


def _count_rollbacks(db, monkeypatch):
    calls = []
    real_rollback = db.rollback

    def rollback():
        calls.append(1)
        real_rollback()

    monkeypatch.setattr(db, 'rollback', rollback)
    return calls


def test_check_expiring_rolls_back_and_continues_past_missing_merchant(db, make_plan, make_merchant, make_subscription, monkeypatch):
    sent = []
    monkeypatch.setattr(notification_service, 'notify_subscription_expiring', lambda **kw: sent.append(kw))
    pro = make_plan()
    make_subscription(None, pro, merchant_id=uuid.uuid4(), end_date=utc(2024, 3, 22, 10, 0), created_at=utc(2024, 1, 1))
    make_subscription(make_merchant(name='Selam Shop'), pro, end_date=utc(2024, 3, 22, 12, 0), created_at=utc(2024, 1, 2))
    rollbacks = _count_rollbacks(db, monkeypatch)

    notified = check_expiring_subscriptions(db, now=NOW, notice_days=2)

    assert notified == 1
    assert rollbacks == [1]
    assert [call['merchant_name'] for call in sent] == ['Selam Shop']


def test_expire_lapsed_still_expires_when_notification_lookup_fails(db, make_plan, make_merchant, make_subscription, monkeypatch):
    sent = []
    monkeypatch.setattr(notification_service, 'notify_subscription_expired', lambda **kw: sent.append(kw))
    pro = make_plan()
    orphan = make_subscription(None, pro, merchant_id=uuid.uuid4(), end_date=utc(2024, 3, 18))
    make_subscription(make_merchant(), pro, end_date=utc(2024, 3, 19))
    rollbacks = _count_rollbacks(db, monkeypatch)

    expired = expire_lapsed_subscriptions(db, now=NOW)

    assert expired == 2
    assert rollbacks == [1]
    assert len(sent) == 1
    db.expire_all()
    assert db.get(Subscription, orphan.id).status == SubscriptionStatus.EXPIRED
