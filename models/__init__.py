"""
Models package for the crowdfunding application
"""
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Import all models here to ensure they're registered
from models.user import User
from models.campaign import Campaign, RewardTier, Milestone
from models.payment import Payment
from models.subscription import Subscription
from models.notification import Notification
from models.report import Report
from models.campaign_update import CampaignUpdate
from models.comment import Comment
from models.campaign_view import CampaignView

__all__ = [
    'db',
    'User',
    'Campaign',
    'RewardTier',
    'Milestone',
    'Payment',
    'Subscription',
    'Notification',
    'Report',
    'CampaignUpdate',
    'Comment',
    'CampaignView',
]
