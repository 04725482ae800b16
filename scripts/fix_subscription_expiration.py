"""
Back-fill end_date / next_billing_date on ACTIVE subscriptions that lack them.

Usage:
  python scripts/fix_subscription_expiration.py
"""
from __future__ import annotations

import logging
import sys

from fetanpay.config import get_settings
from fetanpay.core.exceptions import ConfigurationError
from fetanpay.core.logger import configure_logging
from fetanpay.database import dispose_engine, get_session_factory
from fetanpay.services.expiration_backfill import backfill_expiration_dates

logger = logging.getLogger("fix_subscription_expiration")


def main() -> int:
    settings = get_settings()
    configure_logging(settings.log_level)

    try:
        session_factory = get_session_factory()
    except ConfigurationError as exc:
        logger.error("Cannot start: %s", exc)
        return 1

    logger.info("Fixing subscription expiration dates...")
    db = session_factory()
    try:
        report = backfill_expiration_dates(db, trial_days=settings.trial_days)
        logger.info(
            "Subscription expiration fix completed: %s updated, %s skipped, %s failed",
            report.updated,
            report.skipped,
            report.failed,
        )
        return 0
    except Exception:
        logger.exception("Failed to fix subscription expiration")
        return 1
    finally:
        db.close()
        dispose_engine()


if __name__ == "__main__":
    sys.exit(main())
