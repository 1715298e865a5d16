"""
Payment model definition
"""
from models import db
from datetime import datetime

PAYMENT_PENDING = 'pending'
PAYMENT_SUCCESS = 'success'
PAYMENT_FAILED = 'failed'
PAYMENT_REFUNDED = 'refunded'


class Payment(db.Model):
    """Single contribution; pending until the gateway callback settles it"""
    __tablename__ = 'payments'
    __table_args__ = (
        db.Index('ix_payments_campaign_status', 'campaign_id', 'status'),
    )

    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey('campaigns.id'), nullable=False)
    payer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120))
    message = db.Column(db.String(500))
    anonymous = db.Column(db.Boolean, default=False, nullable=False)
    hide_amount = db.Column(db.Boolean, default=False, nullable=False)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(3), default='INR')
    status = db.Column(db.String(20), default=PAYMENT_PENDING, nullable=False)  # pending, success, failed, refunded

    # Gateway order id doubles as the idempotency key
    gateway_order_id = db.Column(db.String(100), unique=True, nullable=False)
    gateway_payment_id = db.Column(db.String(100), nullable=True)
    failure_reason = db.Column(db.String(255), nullable=True)

    reward_tier_id = db.Column(db.Integer, db.ForeignKey('reward_tiers.id'), nullable=True)
    payment_type = db.Column(db.String(20), default='one-time')  # one-time, subscription
    subscription_id = db.Column(db.Integer, db.ForeignKey('subscriptions.id'), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    settled_at = db.Column(db.DateTime, nullable=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    payer = db.relationship('User', backref='payments', lazy=True)
    reward_tier = db.relationship('RewardTier', lazy=True)

    @property
    def display_name(self):
        return 'Someone' if self.anonymous else self.name

    def to_dict(self, include_private=False):
        """Public view hides anonymous names and hidden amounts; include_private is for the payer"""
        data = {
            'id': self.id,
            'campaign_id': self.campaign_id,
            'name': self.name if include_private else self.display_name,
            'amount': float(self.amount) if include_private or not self.hide_amount else None,
            'currency': self.currency,
            'status': self.status,
            'message': self.message,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'settled_at': self.settled_at.isoformat() if self.settled_at else None,
        }
        if include_private:
            data['order_id'] = self.gateway_order_id
            data['email'] = self.email
        return data

    def __repr__(self):
        return f'<Payment {self.id} {self.status}>'
