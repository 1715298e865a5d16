"""
Subscription model definition
"""
from models import db
from datetime import datetime

SUBSCRIPTION_FREQUENCIES = ('monthly', 'quarterly', 'yearly')


class Subscription(db.Model):
    """Recurring-support intent; realized payments, not this record, move campaign totals"""
    __tablename__ = 'subscriptions'
    __table_args__ = (
        db.Index('ix_subscriptions_subscriber_status', 'subscriber_id', 'status'),
    )

    id = db.Column(db.Integer, primary_key=True)
    subscriber_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    creator_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    campaign_id = db.Column(db.Integer, db.ForeignKey('campaigns.id'), nullable=True)

    gateway_subscription_id = db.Column(db.String(100), unique=True, nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    frequency = db.Column(db.String(20), default='monthly')  # monthly, quarterly, yearly
    status = db.Column(db.String(20), default='active')  # active, paused, cancelled, expired

    next_billing_date = db.Column(db.DateTime, nullable=True)
    start_date = db.Column(db.DateTime, default=datetime.utcnow)
    end_date = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    subscriber = db.relationship('User', foreign_keys=[subscriber_id], lazy=True)
    creator = db.relationship('User', foreign_keys=[creator_id], lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'campaign_id': self.campaign_id,
            'creator_id': self.creator_id,
            'amount': float(self.amount),
            'frequency': self.frequency,
            'status': self.status,
            'next_billing_date': self.next_billing_date.isoformat() if self.next_billing_date else None,
            'start_date': self.start_date.isoformat() if self.start_date else None,
        }

    def __repr__(self):
        return f'<Subscription {self.id}>'
