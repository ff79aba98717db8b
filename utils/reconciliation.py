"""
Payment reconciliation: applies gateway-reported status to a transaction and
provisions the subscription exactly once.

Both entry points share reconcile():
- handle_notification(): gateway pushes a webhook
- check_status(): client polls and we pull status from the gateway
"""
import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.subscription import Subscription
from models.transaction import Transaction
from utils.exceptions import (
    BillingError,
    ForbiddenError,
    GatewayError,
    NotFoundError,
    SignatureError,
    StorageError,
)
from utils.notification_schema import (
    FRAUD_ACCEPT,
    SUCCESS_STATUSES,
    parse_gateway_time,
    parse_notification,
)
from utils.payment_gateway import GatewayMode
from utils.provisioning import find_subscription_for_transaction, provision
from utils.signature import compute_signature, verify_signature

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    transaction: Transaction
    subscription: Optional[Subscription] = None
    subscription_created: bool = False


def reconcile(transaction, gateway_status, fraud_status, raw_payload,
              payment_method=None, paid_at=None, amount=None):
    """
    Overwrite the transaction with the gateway's view and provision on success.

    The overwrite is unconditional so that replaying the same status is a no-op
    apart from the audit copy. Does not commit; the caller owns the unit of work.
    """
    previous = transaction.status
    transaction.status = gateway_status
    transaction.payment_method = payment_method
    transaction.payment_date = paid_at
    transaction.raw_response = json.dumps(raw_payload, sort_keys=True, default=str)

    if previous != gateway_status:
        logger.info("Transaction %s: %s -> %s", transaction.order_id, previous, gateway_status)

    result = ReconciliationResult(transaction=transaction)
    if gateway_status not in SUCCESS_STATUSES:
        return result

    if fraud_status != FRAUD_ACCEPT:
        logger.warning(
            "Transaction %s is %s but fraud status is %r; subscription not provisioned",
            transaction.order_id, gateway_status, fraud_status
        )
        return result

    result.subscription, result.subscription_created = provision(transaction, amount=amount)
    return result


def _check_signature(notification, server_key, lenient):
    if server_key and notification.signature_key:
        ok = verify_signature(
            notification.order_id,
            notification.status_code,
            notification.gross_amount,
            server_key,
            notification.signature_key,
        )
        if not ok:
            expected = compute_signature(
                notification.order_id, notification.status_code, notification.gross_amount, server_key
            )
            logger.error(
                "SECURITY: signature mismatch for order %s (expected %s..., received %s...)",
                notification.order_id, expected[:16], notification.signature_key[:16]
            )
            raise SignatureError('Invalid signature', order_id=notification.order_id)
        return

    reason = "no server key configured" if not server_key else "notification carries no signature"
    if not lenient:
        logger.error("SECURITY: rejecting notification for order %s: %s", notification.order_id, reason)
        raise SignatureError(f'Signature required: {reason}', order_id=notification.order_id)
    logger.warning(
        "WEBHOOK_SIGNATURE_LENIENT is on: skipping signature check for order %s (%s)",
        notification.order_id, reason
    )


def _lock_transaction(order_id):
    """Load the transaction row for update; concurrent deliveries for one order serialize here."""
    return (
        Transaction.query
        .filter_by(order_id=order_id)
        .with_for_update()
        .first()
    )


def _run_unit_of_work(work):
    """Run work() and commit, rolling back on any failure."""
    try:
        result = work()
        db.session.commit()
        return result
    except BillingError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Storage failure during reconciliation: %s", e, exc_info=True)
        raise StorageError('Failed to persist payment update') from e
    except Exception:
        db.session.rollback()
        raise


def handle_notification(payload, server_key=None, lenient=False):
    """
    Process a gateway payment notification.

    Args:
        payload: Decoded JSON body
        server_key: Gateway server key used as the signature secret
        lenient: Allow notifications whose signature cannot be checked

    Returns:
        ReconciliationResult

    Raises:
        ValidationError, SignatureError, NotFoundError, StorageError
    """
    notification = parse_notification(payload)
    _check_signature(notification, server_key, lenient)

    def work():
        transaction = _lock_transaction(notification.order_id)
        if transaction is None:
            logger.warning("Notification for unknown order %s rejected", notification.order_id)
            raise NotFoundError('Transaction not found', order_id=notification.order_id)

        return reconcile(
            transaction,
            notification.transaction_status,
            notification.fraud_status,
            notification.model_dump(exclude_none=True),
            payment_method=notification.payment_type,
            paid_at=notification.paid_at,
            amount=notification.amount,
        )

    return _run_unit_of_work(work)


def _gateway_amount(status):
    value = status.get('gross_amount')
    if value in (None, ''):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _gateway_paid_at(status):
    try:
        return parse_gateway_time(status.get('settlement_time') or status.get('transaction_time'))
    except ValueError:
        logger.warning("Unparseable payment time from gateway for %s", status.get('order_id'))
        return None


def _needs_reconcile(transaction, gateway_status):
    if not gateway_status:
        return False
    if gateway_status != transaction.status:
        return True
    return gateway_status in SUCCESS_STATUSES and find_subscription_for_transaction(transaction) is None


def check_status(order_id, gateway, user_id=None):
    """
    Return the best-known status of an order, pulling from the gateway first.

    A gateway failure leaves the stored transaction untouched.

    Raises:
        NotFoundError: unknown order id
        ForbiddenError: the order belongs to another user
        StorageError: the pulled update could not be persisted
    """
    transaction = Transaction.query.filter_by(order_id=order_id).first()
    if transaction is None:
        raise NotFoundError('Transaction not found', order_id=order_id)
    if user_id is not None and transaction.user_id != user_id:
        raise ForbiddenError('Access denied', order_id=order_id, user_id=user_id)

    if gateway is not None and gateway.mode is not GatewayMode.DISABLED:
        try:
            gateway_view = gateway.get_status(order_id)
        except GatewayError as e:
            logger.warning("Status check for %s failed, keeping stored state: %s", order_id, e.message)
            gateway_view = None

        if gateway_view and _needs_reconcile(transaction, gateway_view.get('transaction_status')):
            def work():
                locked = _lock_transaction(order_id)
                return reconcile(
                    locked,
                    gateway_view['transaction_status'],
                    gateway_view.get('fraud_status'),
                    gateway_view,
                    payment_method=gateway_view.get('payment_type'),
                    paid_at=_gateway_paid_at(gateway_view),
                    amount=_gateway_amount(gateway_view),
                )
            _run_unit_of_work(work)

    return status_summary(transaction)


def status_summary(transaction):
    """Client-facing view of a transaction and whether it has produced a subscription."""
    subscription = find_subscription_for_transaction(transaction)
    plan = transaction.plan
    return {
        'id': transaction.id,
        'orderId': transaction.order_id,
        'amount': float(transaction.amount) if transaction.amount is not None else None,
        'status': transaction.status,
        'creatorId': plan.creator_id if plan else transaction.creator_id,
        'creatorName': transaction.creator.name if transaction.creator else None,
        'planName': plan.name if plan else None,
        'planInterval': plan.interval if plan else None,
        'userId': transaction.user_id,
        'subscriptionCreated': subscription is not None,
        'subscriptionId': subscription.id if subscription else None,
        'createdAt': transaction.created_at.isoformat() if transaction.created_at else None,
        'paymentDate': transaction.payment_date.isoformat() if transaction.payment_date else None,
    }
