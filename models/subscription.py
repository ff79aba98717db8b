"""
Subscription model definition
"""
from models import db
from datetime import datetime

class Subscription(db.Model):
    """Paid access of a user to a creator, provisioned from one transaction"""
    __tablename__ = 'subscriptions'
    __table_args__ = (
        # One active subscription per (user, creator); the last word on provisioning races.
        db.Index(
            'uq_active_subscription_per_creator',
            'user_id',
            'creator_id',
            unique=True,
            postgresql_where=db.text("status = 'active'"),
            sqlite_where=db.text("status = 'active'"),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    creator_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    plan_id = db.Column(db.Integer, db.ForeignKey('subscription_plans.id'), nullable=False)
    transaction_id = db.Column(db.Integer, db.ForeignKey('transactions.id'), unique=True, nullable=True)
    status = db.Column(db.String(20), nullable=False, default='pending')  # pending, active, cancelled, expired
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    is_auto_renew = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = db.relationship('User', foreign_keys=[user_id], backref='subscriptions')
    creator = db.relationship('User', foreign_keys=[creator_id])
    plan = db.relationship('SubscriptionPlan')
    transaction = db.relationship('Transaction', back_populates='subscription')

    def to_dict(self):
        """Convert subscription to dictionary for JSON responses"""
        return {
            'id': self.id,
            'status': self.status,
            'creatorId': self.creator_id,
            'creatorName': self.creator.name if self.creator else None,
            'planId': self.plan_id,
            'planName': self.plan.name if self.plan else None,
            'transactionId': self.transaction_id,
            'amount': float(self.amount) if self.amount is not None else None,
            'startDate': self.start_date.isoformat() if self.start_date else None,
            'endDate': self.end_date.isoformat() if self.end_date else None,
            'isAutoRenew': self.is_auto_renew,
        }

    def __repr__(self):
        return f'<Subscription {self.id}>'
