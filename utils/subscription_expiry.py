"""
Expiry sweep: moves active subscriptions past their end date to expired.
Run periodically via `flask expire-subscriptions`.
"""
import logging
from datetime import datetime

from models import db
from models.subscription import Subscription

logger = logging.getLogger(__name__)


def lapsed_subscriptions(now):
    """Active subscriptions whose end date has passed."""
    return Subscription.query.filter(
        Subscription.status == 'active',
        Subscription.end_date < now
    )


def expire_lapsed(query, now):
    """
    Conditional UPDATE active -> expired over a lapsed_subscriptions() query.

    A row that another request moves out of 'active' (cancel, renewal) between
    scheduling and execution is left alone. Does not commit.
    """
    return query.update(
        {Subscription.status: 'expired', Subscription.updated_at: now},
        synchronize_session='fetch',
    )


def expire_subscriptions(now=None):
    """
    Expire every active subscription whose end date has passed.
    Returns the number of rows expired.
    """
    now = now or datetime.utcnow()
    try:
        count = expire_lapsed(lapsed_subscriptions(now), now)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.error("Subscription expiry sweep failed", exc_info=True)
        raise

    if count:
        logger.info("Expired %d subscriptions", count)
    return count
