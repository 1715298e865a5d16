"""
Campaign view event model definition
"""
from models import db
from datetime import datetime

VIEW_SOURCES = ('direct', 'social', 'search', 'referral', 'email')
VIEW_DEVICES = ('mobile', 'desktop', 'tablet')


class CampaignView(db.Model):
    """One recorded visit to a campaign page; user_id is empty for anonymous visitors"""
    __tablename__ = 'campaign_views'
    __table_args__ = (
        db.Index('ix_campaign_views_campaign_viewed', 'campaign_id', 'viewed_at'),
    )

    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey('campaigns.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    source = db.Column(db.String(20), default='direct', nullable=False)
    device = db.Column(db.String(20), default='desktop', nullable=False)
    viewed_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<CampaignView campaign={self.campaign_id} user={self.user_id}>'
