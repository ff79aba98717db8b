"""
Transaction model definition
"""
from models import db
from datetime import datetime
from sqlalchemy.orm import validates

class Transaction(db.Model):
    """Payment attempt for a plan, correlated with the gateway by order_id"""
    __tablename__ = 'transactions'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    creator_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    plan_id = db.Column(db.Integer, db.ForeignKey('subscription_plans.id'), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    # pending, capture, settlement, deny, cancel, expire (gateway vocabulary), failed
    status = db.Column(db.String(50), nullable=False, default='pending')
    payment_method = db.Column(db.String(50))
    payment_date = db.Column(db.DateTime)
    raw_response = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = db.relationship('User', foreign_keys=[user_id], backref='transactions')
    creator = db.relationship('User', foreign_keys=[creator_id])
    plan = db.relationship('SubscriptionPlan', backref='transactions')
    subscription = db.relationship('Subscription', back_populates='transaction', uselist=False)

    @validates('order_id')
    def _validate_order_id(self, key, value):
        if self.order_id is not None and value != self.order_id:
            raise ValueError(f"order_id of transaction {self.id} is immutable")
        return value

    def __repr__(self):
        return f'<Transaction {self.order_id}>'
