"""
Gateway webhook routes
"""
import json

from flask import Blueprint, request, jsonify, current_app
from models import db
from models.webhook_log import WebhookLog
from utils.exceptions import BillingError
from utils.reconciliation import handle_notification

webhooks_bp = Blueprint('webhooks', __name__, url_prefix='/api/midtrans')

EVENT_TYPE = 'midtrans.notification'


def _record_webhook(payload, status, error_message=None):
    """Audit the delivery in its own commit so rejected notifications are kept too."""
    order_id = payload.get('order_id') if isinstance(payload, dict) else None
    try:
        db.session.add(WebhookLog(
            event_type=EVENT_TYPE,
            order_id=str(order_id)[:64] if order_id else None,
            payload=json.dumps(payload, default=str) if payload is not None else None,
            status=status,
            error_message=error_message,
        ))
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to write webhook log: {str(e)}", exc_info=True)


def _send_confirmation(subscription):
    from utils.mail import mail_enabled, send_subscription_confirmation
    if not mail_enabled():
        current_app.logger.info(f"Mail not configured; skipping confirmation for subscription {subscription.id}")
        return
    try:
        send_subscription_confirmation(subscription)
    except Exception as e:
        current_app.logger.error(f"Failed to send confirmation for subscription {subscription.id}: {str(e)}", exc_info=True)
        # Don't fail the webhook if the email fails


@webhooks_bp.route('/notification', methods=['POST'])
def notification():
    """Payment notification pushed by the gateway"""
    payload = request.get_json(silent=True)
    if payload is None:
        _record_webhook(None, 'rejected', 'Body is not valid JSON')
        return jsonify({'success': False, 'message': 'Request body must be JSON'}), 400

    try:
        result = handle_notification(
            payload,
            server_key=current_app.config.get('MIDTRANS_SERVER_KEY'),
            lenient=current_app.config.get('WEBHOOK_SIGNATURE_LENIENT', False),
        )
    except BillingError as e:
        status = 'error' if e.status_code >= 500 else 'rejected'
        _record_webhook(payload, status, e.message)
        return jsonify(e.to_dict()), e.status_code
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Unexpected error processing notification: {str(e)}", exc_info=True)
        _record_webhook(payload, 'error', str(e))
        return jsonify({'success': False, 'message': 'Internal server error'}), 500

    transaction = result.transaction
    _record_webhook(payload, 'processed')

    if result.subscription_created:
        _send_confirmation(result.subscription)

    return jsonify({
        'success': True,
        'message': 'Notification processed successfully',
        'transactionId': transaction.id,
        'orderId': transaction.order_id,
        'status': transaction.status,
        'subscriptionId': result.subscription.id if result.subscription else None,
    })
