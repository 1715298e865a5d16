"""
Scheduled job entry points. Each is guarded by CRON_SECRET and safe to re-run.
"""
import time
from datetime import datetime, timedelta

from flask import Blueprint, jsonify, current_app
from sqlalchemy import func

from models import db
from models.campaign import Campaign, STATUS_ACTIVE
from models.payment import Payment, PAYMENT_SUCCESS
from models.user import User
from utils.ai_authoring import weekly_tips
from utils.auth_utils import cron_required
from utils.campaign_expiry import close_expired_campaigns, expire_subscriptions
from utils.campaign_updates import publish_due_updates
from utils.ledger import reconcile_campaign_totals
from utils.mail import send_weekly_summary

cron_bp = Blueprint('cron', __name__, url_prefix='/api/cron')


@cron_bp.route('/close-expired-campaigns', methods=['GET', 'POST'])
@cron_required
def close_expired():
    started = time.monotonic()
    now = datetime.utcnow()
    closed = close_expired_campaigns(now)
    expired_subscriptions = expire_subscriptions(now)
    return jsonify({
        'success': True,
        'closed': closed,
        'expired_subscriptions': expired_subscriptions,
        'duration_ms': round((time.monotonic() - started) * 1000, 1),
    })


@cron_bp.route('/publish-scheduled', methods=['GET', 'POST'])
@cron_required
def publish_scheduled():
    results = publish_due_updates()
    if results['failed']:
        current_app.logger.warning(f"Scheduled publication: {results['failed']} of {results['total']} updates failed")
    return jsonify({'success': True, **results})


def _weekly_summary(creator_id, since):
    row = db.session.query(
        func.count(Payment.id),
        func.coalesce(func.sum(Payment.amount), 0),
    ).join(Campaign, Payment.campaign_id == Campaign.id).filter(
        Campaign.creator_id == creator_id,
        Payment.status == PAYMENT_SUCCESS,
        Payment.settled_at >= since,
    ).one()
    active = Campaign.query.filter_by(creator_id=creator_id, status=STATUS_ACTIVE).count()
    return {'payments': row[0], 'amount': float(row[1] or 0), 'active_campaigns': active}


@cron_bp.route('/weekly-summary', methods=['GET', 'POST'])
@cron_required
def weekly_summary():
    """Email each creator with a live campaign a digest of the last 7 days"""
    since = datetime.utcnow() - timedelta(days=7)
    creator_ids = [
        row[0] for row in db.session.query(Campaign.creator_id)
        .filter(Campaign.status == STATUS_ACTIVE).distinct()
    ]

    results = {'creators': len(creator_ids), 'sent': 0, 'fallback_tips': 0, 'errors': []}
    for creator_id in creator_ids:
        creator = db.session.get(User, creator_id)
        if not creator or not creator.is_active:
            continue
        try:
            summary = _weekly_summary(creator_id, since)
            tips, used_fallback = weekly_tips(summary)
            if used_fallback:
                results['fallback_tips'] += 1
            if send_weekly_summary(creator, summary, tips):
                results['sent'] += 1
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Weekly summary failed for creator {creator_id}: {str(e)}", exc_info=True)
            results['errors'].append({'creator_id': creator_id})
    return jsonify({'success': True, **results})


@cron_bp.route('/reconcile-totals', methods=['GET', 'POST'])
@cron_required
def reconcile_totals():
    corrections = reconcile_campaign_totals()
    return jsonify({'success': True, 'corrected': len(corrections), 'corrections': corrections})
