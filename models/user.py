"""
User model definition
"""
from models import db
from datetime import datetime
from flask_login import UserMixin

class User(UserMixin, db.Model):
    """Account for subscribers and creators"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='user')  # user, creator
    phone = db.Column(db.String(20))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    is_active = db.Column(db.Boolean, default=True)

    # Relationships
    plans = db.relationship('SubscriptionPlan', backref='creator', lazy=True)

    @property
    def is_creator(self):
        return self.role == 'creator'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
        }

    def __repr__(self):
        return f'<User {self.name}>'
