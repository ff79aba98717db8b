"""
User payment routes: checkout initialization and payment status polling
"""
from flask import request, Blueprint, jsonify, current_app
from flask_login import current_user
from models import db
from models.plan import SubscriptionPlan
from models.transaction import Transaction
from utils.auth_utils import api_login_required
from utils.exceptions import BillingError, GatewayError
from utils.payment_gateway import GatewayMode, generate_order_id
from utils.provisioning import find_active_subscription
from utils.reconciliation import check_status

payment_bp = Blueprint('user_payment', __name__, url_prefix='/api/subscriptions')

CHECKOUT_EXPIRY_HOURS = 24


def get_gateway():
    """Gateway client injected at app creation"""
    return current_app.extensions['payment_gateway']


def _checkout_params(transaction, plan, user):
    client_url = current_app.config.get('CLIENT_URL', 'http://localhost:3000')
    status_url = f"{client_url}/subscription/status"
    price = float(plan.price)
    return {
        'transaction_details': {
            'order_id': transaction.order_id,
            'gross_amount': price,
        },
        'customer_details': {
            'first_name': user.name,
            'email': user.email,
            'phone': user.phone or '',
        },
        'item_details': [
            {
                'id': str(plan.id),
                'price': price,
                'quantity': 1,
                'name': f"{plan.creator.name} - {plan.name}"[:50],
                'category': 'Subscription',
            }
        ],
        'callbacks': {
            'finish': status_url,
            'error': status_url,
            'pending': status_url,
        },
        'expiry': {
            'unit': 'hours',
            'duration': CHECKOUT_EXPIRY_HOURS,
        },
    }


@payment_bp.route('/initialize', methods=['POST'])
@api_login_required
def initialize():
    """Start a subscription purchase: pending transaction + gateway checkout"""
    data = request.get_json(silent=True) or {}
    plan_id = data.get('plan_id') or data.get('planId')
    try:
        plan_id = int(plan_id)
    except (TypeError, ValueError):
        return jsonify({'success': False, 'message': 'plan_id is required'}), 400

    plan = db.session.get(SubscriptionPlan, plan_id)
    if not plan or not plan.is_active:
        return jsonify({'success': False, 'message': 'Subscription plan not found'}), 404

    if plan.creator_id == current_user.id:
        return jsonify({'success': False, 'message': 'You cannot subscribe to your own plan'}), 400

    if find_active_subscription(current_user.id, plan.creator_id):
        return jsonify({'success': False, 'message': 'You are already subscribed to this creator'}), 400

    gateway = get_gateway()
    if gateway.mode is GatewayMode.DISABLED:
        return jsonify({'success': False, 'message': 'Payment service is not available'}), 503

    try:
        transaction = Transaction(
            order_id=generate_order_id(),
            user_id=current_user.id,
            creator_id=plan.creator_id,
            plan_id=plan.id,
            amount=plan.price,
            status='pending'
        )
        db.session.add(transaction)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create transaction: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to initialize subscription'}), 500

    try:
        payment = gateway.create_transaction(_checkout_params(transaction, plan, current_user))
    except GatewayError as e:
        current_app.logger.error(f"Gateway checkout failed for {transaction.order_id}: {e.message}")
        try:
            transaction.status = 'failed'
            db.session.commit()
        except Exception as store_error:
            db.session.rollback()
            current_app.logger.error(
                f"Failed to mark transaction {transaction.order_id} as failed: {str(store_error)}", exc_info=True
            )
        return jsonify({'success': False, 'message': f"Payment service error: {e.message}"}), e.status_code

    current_app.logger.info(f"Checkout {transaction.order_id} started for user {current_user.id} on plan {plan.id}")

    return jsonify({
        'success': True,
        'message': 'Payment initialized successfully',
        'data': {
            'transactionId': transaction.id,
            'orderId': transaction.order_id,
            'amount': float(transaction.amount),
            'planName': plan.name,
            'creatorName': plan.creator.name,
            'paymentToken': payment.get('token'),
            'redirectUrl': payment.get('redirect_url'),
            'clientKey': current_app.config.get('MIDTRANS_CLIENT_KEY'),
            'gatewayMode': gateway.mode.value,
        }
    })


@payment_bp.route('/payment-status/<order_id>')
@api_login_required
def payment_status(order_id):
    """Poll payment status; pulls from the gateway and reconciles if it moved"""
    try:
        summary = check_status(order_id, get_gateway(), user_id=current_user.id)
    except BillingError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({'success': True, 'transaction': summary})
