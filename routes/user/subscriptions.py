"""
User subscription routes
"""
from flask import Blueprint, jsonify, current_app
from flask_login import current_user
from models import db
from models.subscription import Subscription
from utils.auth_utils import api_login_required

subscriptions_bp = Blueprint('user_subscriptions', __name__, url_prefix='/api/subscriptions')

@subscriptions_bp.route('/my')
@api_login_required
def my_subscriptions():
    """Current user's subscriptions, newest first"""
    subscriptions = Subscription.query.filter_by(
        user_id=current_user.id
    ).order_by(Subscription.created_at.desc()).all()

    return jsonify({
        'success': True,
        'subscriptions': [s.to_dict() for s in subscriptions]
    })

@subscriptions_bp.route('/<int:subscription_id>/cancel', methods=['POST'])
@api_login_required
def cancel_subscription(subscription_id):
    """Cancel an active subscription - owner only, takes effect immediately"""
    subscription = db.session.get(Subscription, subscription_id)

    # SECURITY: users can only cancel their own subscriptions
    if not subscription or subscription.user_id != current_user.id:
        return jsonify({'success': False, 'message': 'Subscription not found'}), 404

    if subscription.status != 'active':
        return jsonify({
            'success': False,
            'message': f'Cannot cancel subscription with status: {subscription.status}'
        }), 400

    try:
        subscription.status = 'cancelled'
        subscription.is_auto_renew = False
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to cancel subscription {subscription_id}: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to cancel subscription'}), 500

    current_app.logger.info(f"Subscription {subscription_id} cancelled by user {current_user.id}")

    return jsonify({
        'success': True,
        'message': 'Subscription cancelled successfully',
        'subscription': subscription.to_dict()
    })
