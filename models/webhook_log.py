"""
Webhook log model definition
"""
from models import db
from datetime import datetime

class WebhookLog(db.Model):
    """Audit row for every inbound gateway notification"""
    __tablename__ = 'webhook_logs'

    id = db.Column(db.Integer, primary_key=True)
    event_type = db.Column(db.String(100), nullable=False)
    order_id = db.Column(db.String(64), index=True)
    payload = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False)  # processed, rejected, error
    error_message = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<WebhookLog {self.id}: {self.status}>'
