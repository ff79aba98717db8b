"""
Routes package for the creator subscription billing service
"""
# Export blueprints for registration in app.py
from routes.auth import auth_bp
from routes.webhooks import webhooks_bp
from routes.user.payment import payment_bp as user_payment_bp
from routes.user.subscriptions import subscriptions_bp as user_subscriptions_bp

__all__ = [
    'auth_bp',
    'webhooks_bp',
    'user_payment_bp',
    'user_subscriptions_bp',
]
