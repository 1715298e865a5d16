"""
Routes package for the crowdfunding API
"""
# Export blueprints for registration in app.py
from routes.auth import auth_bp
from routes.campaigns import campaigns_bp
from routes.payments import payments_bp, subscriptions_bp
from routes.notifications import notifications_bp
from routes.comments import comments_bp
from routes.analytics import analytics_bp
from routes.users import users_bp
from routes.ai import ai_bp
from routes.cron import cron_bp
from routes.admin.dashboard import admin_dashboard_bp
from routes.admin.moderation import admin_moderation_bp

__all__ = [
    'auth_bp',
    'campaigns_bp',
    'payments_bp',
    'subscriptions_bp',
    'notifications_bp',
    'comments_bp',
    'analytics_bp',
    'users_bp',
    'ai_bp',
    'cron_bp',
    'admin_dashboard_bp',
    'admin_moderation_bp',
]
