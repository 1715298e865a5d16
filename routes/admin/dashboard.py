"""
Admin dashboard routes
"""
from datetime import datetime, timedelta

from flask import Blueprint, jsonify, request
from sqlalchemy import func

from models import db
from models.campaign import Campaign, STATUS_ACTIVE, STATUS_COMPLETED, STATUS_DRAFT
from models.payment import Payment, PAYMENT_SUCCESS, PAYMENT_PENDING, PAYMENT_FAILED
from models.subscription import Subscription
from models.user import User
from utils.auth_utils import admin_required
from utils.ledger import reconcile_campaign_totals
from utils.validators import parse_int, require_object

admin_dashboard_bp = Blueprint('admin_dashboard', __name__, url_prefix='/api/admin')


@admin_dashboard_bp.route('/dashboard', methods=['GET'])
@admin_required
def dashboard():
    """Platform summary figures"""
    # Timezone-safe: use UTC for all date comparisons
    today_start = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    week_start = today_start - timedelta(days=7)

    total_users = User.query.count()
    users_week = User.query.filter(User.created_at >= week_start).count()

    campaigns_by_status = dict(
        db.session.query(Campaign.status, func.count(Campaign.id)).group_by(Campaign.status).all()
    )

    # Raised: settled payments only
    total_raised = db.session.query(func.sum(Payment.amount)).filter(
        Payment.status == PAYMENT_SUCCESS
    ).scalar() or 0
    raised_today = db.session.query(func.sum(Payment.amount)).filter(
        Payment.status == PAYMENT_SUCCESS,
        Payment.settled_at >= today_start
    ).scalar() or 0
    raised_week = db.session.query(func.sum(Payment.amount)).filter(
        Payment.status == PAYMENT_SUCCESS,
        Payment.settled_at >= week_start
    ).scalar() or 0

    payments_by_status = dict(
        db.session.query(Payment.status, func.count(Payment.id)).group_by(Payment.status).all()
    )
    active_subscriptions = Subscription.query.filter_by(status='active').count()

    return jsonify({
        'success': True,
        'users': {'total': total_users, 'week': users_week},
        'campaigns': {
            'draft': campaigns_by_status.get(STATUS_DRAFT, 0),
            'active': campaigns_by_status.get(STATUS_ACTIVE, 0),
            'completed': campaigns_by_status.get(STATUS_COMPLETED, 0),
            'total': sum(campaigns_by_status.values()),
        },
        'raised': {
            'total': float(total_raised),
            'today': float(raised_today),
            'week': float(raised_week),
        },
        'payments': {
            'success': payments_by_status.get(PAYMENT_SUCCESS, 0),
            'pending': payments_by_status.get(PAYMENT_PENDING, 0),
            'failed': payments_by_status.get(PAYMENT_FAILED, 0),
        },
        'active_subscriptions': active_subscriptions,
    })


@admin_dashboard_bp.route('/reconcile', methods=['POST'])
@admin_required
def reconcile():
    """On-demand ledger reconciliation, optionally for one campaign"""
    data = require_object(request.get_json(silent=True) or {})
    corrections = reconcile_campaign_totals(parse_int(data.get('campaign_id'), 'Campaign'))
    return jsonify({'success': True, 'corrected': len(corrections), 'corrections': corrections})
