"""
Campaign, reward tier and milestone models
"""
from models import db
from datetime import datetime
import math

CAMPAIGN_CATEGORIES = (
    'technology', 'art', 'music', 'film', 'games', 'food', 'fashion',
    'education', 'health', 'environment', 'community', 'other',
)

# Campaign.status values
STATUS_DRAFT = 'draft'
STATUS_ACTIVE = 'active'
STATUS_PAUSED = 'paused'
STATUS_COMPLETED = 'completed'
STATUS_REJECTED = 'rejected'
STATUS_DELETED = 'deleted'

CAMPAIGN_STATUSES = (
    STATUS_DRAFT, STATUS_ACTIVE, STATUS_PAUSED,
    STATUS_COMPLETED, STATUS_REJECTED, STATUS_DELETED,
)

# Campaign.moderation_status values
MODERATION_PENDING = 'pending'
MODERATION_APPROVED = 'approved'
MODERATION_FLAGGED = 'flagged'
MODERATION_REJECTED = 'rejected'


class Campaign(db.Model):
    """Fundraising campaign with a goal and a running total"""
    __tablename__ = 'campaigns'
    __table_args__ = (
        db.Index('ix_campaigns_status_end_date', 'status', 'end_date'),
        db.Index('ix_campaigns_creator_status', 'creator_id', 'status'),
        db.Index('ix_campaigns_category_status', 'category', 'status'),
    )

    id = db.Column(db.Integer, primary_key=True)
    creator_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)

    title = db.Column(db.String(100), nullable=False)
    slug = db.Column(db.String(140), unique=True, nullable=False)
    category = db.Column(db.String(30), nullable=False, default='other')
    short_description = db.Column(db.String(200))
    story = db.Column(db.Text, nullable=False)
    cover_image = db.Column(db.String(500))
    ai_generated = db.Column(db.Boolean, default=False)

    goal_amount = db.Column(db.Numeric(12, 2), nullable=False)
    # Only ever moved by payment settlement and ledger reconciliation
    current_amount = db.Column(db.Numeric(12, 2), default=0, nullable=False)
    currency = db.Column(db.String(3), default='INR')

    start_date = db.Column(db.DateTime, default=datetime.utcnow)
    end_date = db.Column(db.DateTime, nullable=False)

    status = db.Column(db.String(20), default=STATUS_DRAFT, nullable=False)
    featured = db.Column(db.Boolean, default=False, nullable=False)
    verified = db.Column(db.Boolean, default=False)

    views_count = db.Column(db.Integer, default=0, nullable=False)
    supporters_count = db.Column(db.Integer, default=0, nullable=False)
    comments_count = db.Column(db.Integer, default=0, nullable=False)
    shares_count = db.Column(db.Integer, default=0, nullable=False)

    moderation_score = db.Column(db.Integer, nullable=True)
    moderation_status = db.Column(db.String(20), default=MODERATION_PENDING, nullable=False)
    moderation_reasons = db.Column(db.Text, nullable=True)

    published_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    rewards = db.relationship('RewardTier', backref='campaign', lazy=True,
                              order_by='RewardTier.amount', cascade='all, delete-orphan')
    milestones = db.relationship('Milestone', backref='campaign', lazy=True,
                                 order_by='Milestone.amount', cascade='all, delete-orphan')
    payments = db.relationship('Payment', backref='campaign', lazy='dynamic')

    @property
    def progress(self):
        """Funded percentage, capped at 100"""
        goal = float(self.goal_amount or 0)
        if goal <= 0:
            return 0
        return min(float(self.current_amount or 0) / goal * 100, 100)

    @property
    def is_expired(self):
        return bool(self.end_date) and datetime.utcnow() > self.end_date

    @property
    def days_remaining(self):
        if not self.end_date:
            return 0
        seconds = (self.end_date - datetime.utcnow()).total_seconds()
        return max(0, math.ceil(seconds / 86400))

    @property
    def is_publicly_listed(self):
        """Deleted, rejected and unpublished campaigns stay out of public listings"""
        return (
            self.status in (STATUS_ACTIVE, STATUS_PAUSED, STATUS_COMPLETED)
            and self.moderation_status != MODERATION_REJECTED
        )

    def to_dict(self, include_details=False):
        data = {
            'id': self.id,
            'title': self.title,
            'slug': self.slug,
            'category': self.category,
            'short_description': self.short_description,
            'cover_image': self.cover_image,
            'creator': self.creator.to_dict() if self.creator else None,
            'goal_amount': float(self.goal_amount or 0),
            'current_amount': float(self.current_amount or 0),
            'currency': self.currency,
            'progress': round(self.progress, 2),
            'status': self.status,
            'featured': bool(self.featured),
            'verified': bool(self.verified),
            'flagged': self.moderation_status == MODERATION_FLAGGED,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'days_remaining': self.days_remaining,
            'stats': {
                'views': self.views_count or 0,
                'supporters': self.supporters_count or 0,
                'comments': self.comments_count or 0,
                'shares': self.shares_count or 0,
            },
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_details:
            data.update({
                'story': self.story,
                'start_date': self.start_date.isoformat() if self.start_date else None,
                'published_at': self.published_at.isoformat() if self.published_at else None,
                'rewards': [reward.to_dict() for reward in self.rewards],
                'milestones': [milestone.to_dict() for milestone in self.milestones],
            })
        return data

    def __repr__(self):
        return f'<Campaign {self.id}: {self.slug}>'


class RewardTier(db.Model):
    """Perk offered to supporters contributing at least `amount`"""
    __tablename__ = 'reward_tiers'

    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey('campaigns.id'), nullable=False, index=True)
    title = db.Column(db.String(100), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    description = db.Column(db.Text)
    delivery_time = db.Column(db.String(50))
    limited_quantity = db.Column(db.Integer, nullable=True)
    claimed_count = db.Column(db.Integer, default=0, nullable=False)

    @property
    def is_sold_out(self):
        return self.limited_quantity is not None and (self.claimed_count or 0) >= self.limited_quantity

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'amount': float(self.amount),
            'description': self.description,
            'delivery_time': self.delivery_time,
            'limited_quantity': self.limited_quantity,
            'claimed_count': self.claimed_count or 0,
            'sold_out': self.is_sold_out,
        }


class Milestone(db.Model):
    """Funding milestone, marked completed once the running total reaches it"""
    __tablename__ = 'milestones'

    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey('campaigns.id'), nullable=False, index=True)
    title = db.Column(db.String(150), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    description = db.Column(db.Text)
    completed = db.Column(db.Boolean, default=False, nullable=False)
    completed_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'amount': float(self.amount),
            'description': self.description,
            'completed': bool(self.completed),
        }
