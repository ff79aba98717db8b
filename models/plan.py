"""
Subscription plan model definition
"""
from models import db
from datetime import datetime

PLAN_INTERVALS = ('monthly', 'yearly')

class SubscriptionPlan(db.Model):
    """Priced plan a creator offers to subscribers"""
    __tablename__ = 'subscription_plans'

    id = db.Column(db.Integer, primary_key=True)
    creator_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    interval = db.Column(db.String(20), nullable=False, default='monthly')  # monthly, yearly
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<SubscriptionPlan {self.name}>'
