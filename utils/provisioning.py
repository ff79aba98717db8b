"""
Subscription provisioning for successful payments.

provision() is idempotent: a transaction yields at most one subscription and a
user holds at most one active subscription per creator. The application checks
first; the unique constraints on the subscriptions table settle any race.

An active row whose end date has passed does not count as access: the expiry
sweep may simply not have reached it yet.
"""
import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from models import db
from models.subscription import Subscription
from utils.billing_period import compute_end_date
from utils.exceptions import ProvisioningConflict, StorageError
from utils.subscription_expiry import expire_lapsed, lapsed_subscriptions

logger = logging.getLogger(__name__)


def find_subscription_for_transaction(transaction):
    return Subscription.query.filter_by(transaction_id=transaction.id).first()


def find_active_subscription(user_id, creator_id, now=None):
    """Active subscription still inside its billing period, if any."""
    now = now or datetime.utcnow()
    return Subscription.query.filter(
        Subscription.user_id == user_id,
        Subscription.creator_id == creator_id,
        Subscription.status == 'active',
        Subscription.end_date >= now
    ).first()


def _existing_subscription(transaction, now):
    """Subscription that already satisfies this transaction, if any."""
    existing = find_subscription_for_transaction(transaction)
    if existing:
        return existing
    return find_active_subscription(transaction.user_id, transaction.plan.creator_id, now)


def _expire_stale(user_id, creator_id, now):
    """Retire lapsed active rows for the pair so the active-per-creator index admits a new one."""
    query = lapsed_subscriptions(now).filter(
        Subscription.user_id == user_id,
        Subscription.creator_id == creator_id
    )
    count = expire_lapsed(query, now)
    if count:
        logger.info(
            "Expired %d lapsed subscription(s) of user %s to creator %s before renewal",
            count, user_id, creator_id
        )
    return count


def _insert_subscription(transaction, amount, now):
    plan = transaction.plan
    subscription = Subscription(
        user_id=transaction.user_id,
        creator_id=plan.creator_id,
        plan_id=plan.id,
        transaction_id=transaction.id,
        status='active',
        start_date=now,
        end_date=compute_end_date(now, plan.interval),
        amount=amount if amount is not None else transaction.amount,
        is_auto_renew=True,
    )
    try:
        with db.session.begin_nested():
            db.session.add(subscription)
    except IntegrityError as e:
        raise ProvisioningConflict(
            f"Subscription for transaction {transaction.id} created concurrently",
            transaction_id=transaction.id,
        ) from e
    return subscription


def provision(transaction, amount=None, now=None):
    """
    Create the subscription a successful transaction pays for.

    Args:
        transaction: Transaction in a successful state, with its plan loaded
        amount: Amount the gateway actually captured; defaults to the transaction amount
        now: Start of the billing period (defaults to utcnow)

    Returns:
        tuple: (subscription, created) where created is False when an existing
        row was returned instead
    """
    now = now or datetime.utcnow()
    existing = _existing_subscription(transaction, now)
    if existing:
        if existing.transaction_id == transaction.id:
            logger.info("Subscription %s already exists for transaction %s", existing.id, transaction.id)
        else:
            logger.info(
                "User %s already has active subscription %s to creator %s; not creating another",
                transaction.user_id, existing.id, transaction.plan.creator_id
            )
        return existing, False

    _expire_stale(transaction.user_id, transaction.plan.creator_id, now)
    try:
        subscription = _insert_subscription(transaction, amount, now)
    except ProvisioningConflict as conflict:
        winner = _existing_subscription(transaction, now)
        if winner is None:
            raise StorageError(
                f"Subscription insert for transaction {transaction.id} violated a constraint "
                "but no existing subscription was found"
            ) from conflict
        logger.warning("%s; returning subscription %s", conflict.message, winner.id)
        return winner, False

    logger.info(
        "Subscription %s created for user %s -> creator %s (transaction %s, ends %s)",
        subscription.id, subscription.user_id, subscription.creator_id,
        transaction.id, subscription.end_date.isoformat()
    )
    return subscription, True
