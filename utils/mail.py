"""
Email utility functions
"""
from flask_mail import Mail, Message
from flask import current_app

mail = Mail()


def _ensure_mail_configured():
    if 'mail' not in current_app.extensions:
        raise RuntimeError("Mail extension not initialized. Check app configuration.")
    if not current_app.config.get('MAIL_SERVER'):
        raise RuntimeError("MAIL_SERVER not configured. Please set MAIL_SERVER environment variable.")


def mail_enabled():
    """True when an SMTP server is configured for this app."""
    return bool(current_app.config.get('MAIL_SERVER'))


def send_subscription_confirmation(subscription):
    """
    Tell a subscriber their payment went through and the subscription is active.

    Args:
        subscription: Newly provisioned Subscription (user, creator and plan loaded)

    Raises on SMTP/configuration failure; callers decide whether that matters.
    """
    _ensure_mail_configured()

    user = subscription.user
    creator_name = subscription.creator.name if subscription.creator else 'your creator'
    plan_name = subscription.plan.name if subscription.plan else 'Subscription'
    end_date = subscription.end_date.strftime('%Y-%m-%d') if subscription.end_date else 'N/A'

    subject = f"You're subscribed to {creator_name}"
    body = f"""
Hello {user.name},

Your payment was received and your subscription is now active.

Creator: {creator_name}
Plan: {plan_name}
Amount: {float(subscription.amount):,.2f}
Active until: {end_date}

The subscription renews automatically. You can cancel it at any time from your account.

Best regards,
CreatorHub Team
"""
    html = _subscription_confirmation_html(user.name, creator_name, plan_name, subscription.amount, end_date)
    msg = Message(
        subject=subject,
        recipients=[user.email],
        body=body,
        html=html,
    )
    try:
        mail.send(msg)
    except Exception as e:
        current_app.logger.error(f"SMTP error sending subscription confirmation to {user.email}: {str(e)}", exc_info=True)
        raise


def _subscription_confirmation_html(name, creator_name, plan_name, amount, end_date) -> str:
    """HTML template for subscription confirmation"""
    return f"""
    <!DOCTYPE html>
    <html>
    <head><meta charset="utf-8"><title>Subscription Active</title></head>
    <body style="font-family: system-ui, sans-serif; max-width: 600px; margin: 0 auto; padding: 24px;">
        <h2 style="color: #1a1a2e;">Your subscription is active</h2>
        <p>Hello {name},</p>
        <p>Your payment was received. Enjoy the content!</p>
        <table style="width: 100%; border-collapse: collapse; margin: 20px 0;">
            <tr><td style="padding: 8px; border-bottom: 1px solid #eee;"><strong>Creator:</strong></td><td style="padding: 8px; border-bottom: 1px solid #eee;">{creator_name}</td></tr>
            <tr><td style="padding: 8px; border-bottom: 1px solid #eee;"><strong>Plan:</strong></td><td style="padding: 8px; border-bottom: 1px solid #eee;">{plan_name}</td></tr>
            <tr><td style="padding: 8px; border-bottom: 1px solid #eee;"><strong>Amount:</strong></td><td style="padding: 8px; border-bottom: 1px solid #eee;">{float(amount):,.2f}</td></tr>
            <tr><td style="padding: 8px;"><strong>Active until:</strong></td><td style="padding: 8px;">{end_date}</td></tr>
        </table>
        <hr style="border: none; border-top: 1px solid #eee; margin: 24px 0;">
        <p style="font-size: 12px; color: #999;">Your subscription renews automatically. You can cancel it at any time from your account.</p>
    </body>
    </html>
    """
