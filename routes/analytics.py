"""
Creator dashboard and per-campaign analytics routes
"""
from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from models import db
from models.campaign import Campaign, STATUS_DELETED
from utils.analytics import campaign_analytics, creator_overview
from utils.auth_utils import require_owner
from utils.errors import NotFoundError, ValidationError

analytics_bp = Blueprint('analytics', __name__, url_prefix='/api/analytics')

MAX_PERIOD_DAYS = 365


def _period_days():
    days = request.args.get('days', 30, type=int)
    if days < 1 or days > MAX_PERIOD_DAYS:
        raise ValidationError(f'Period must be between 1 and {MAX_PERIOD_DAYS} days')
    return days


@analytics_bp.route('/overview', methods=['GET'])
@login_required
def overview():
    """Creator dashboard: totals across the current user's campaigns"""
    return jsonify({'success': True, 'overview': creator_overview(current_user, days=_period_days())})


@analytics_bp.route('/campaigns/<int:campaign_id>', methods=['GET'])
@login_required
def campaign_stats(campaign_id):
    campaign = db.session.get(Campaign, campaign_id)
    if not campaign or campaign.status == STATUS_DELETED:
        raise NotFoundError('Campaign not found')
    require_owner(campaign, allow_admin=True)
    return jsonify({'success': True, 'analytics': campaign_analytics(campaign, days=_period_days())})
