"""
Expiry sweep: bulk-close campaigns (and recurring supports) whose end date has passed.
Each sweep is one conditional UPDATE, safe to run as often as needed; it never
touches funding columns, so it composes with concurrent payment settlement.
"""
import logging
import time
from datetime import datetime

from sqlalchemy import update

from models import db
from models.campaign import Campaign, STATUS_ACTIVE, STATUS_PAUSED, STATUS_COMPLETED
from models.subscription import Subscription

logger = logging.getLogger(__name__)


def close_expired_campaigns(now=None):
    """
    Mark every active/paused campaign with end_date < now as completed.

    Returns:
        int: number of campaigns closed by this run
    """
    now = now or datetime.utcnow()
    started = time.monotonic()
    try:
        result = db.session.execute(
            update(Campaign)
            .where(Campaign.status.in_([STATUS_ACTIVE, STATUS_PAUSED]), Campaign.end_date < now)
            .values(status=STATUS_COMPLETED, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    closed = result.rowcount or 0
    if closed:
        logger.info("Closed %d expired campaigns in %.1fms", closed, (time.monotonic() - started) * 1000)
    return closed


def expire_subscriptions(now=None):
    """Mark active/paused subscriptions past their end date as expired; returns count"""
    now = now or datetime.utcnow()
    try:
        result = db.session.execute(
            update(Subscription)
            .where(
                Subscription.status.in_(['active', 'paused']),
                Subscription.end_date.isnot(None),
                Subscription.end_date < now,
            )
            .values(status='expired', updated_at=now)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    expired = result.rowcount or 0
    if expired:
        logger.info("Expired %d subscriptions", expired)
    return expired


def sweep_before_read():
    """Lazy sweep run by list/detail reads; a failure must not break the read"""
    try:
        return close_expired_campaigns()
    except Exception as e:
        logger.error("Lazy expiry sweep failed: %s", e, exc_info=True)
        return 0
