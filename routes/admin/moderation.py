"""
Admin moderation routes: flagged campaign queue, decisions and user reports
"""
from datetime import datetime

from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user
from sqlalchemy import func

from models import db
from models.campaign import (
    Campaign, MODERATION_FLAGGED, MODERATION_APPROVED, MODERATION_REJECTED, STATUS_DELETED,
)
from models.report import Report
from utils.auth_utils import admin_required
from utils.errors import NotFoundError, ValidationError
from utils.moderation import resolve_flag
from utils.validators import clean_text, require_object

admin_moderation_bp = Blueprint('admin_moderation', __name__, url_prefix='/api/admin/moderation')

REPORT_RESOLUTIONS = ('reviewing', 'resolved', 'dismissed')


@admin_moderation_bp.route('/queue', methods=['GET'])
@admin_required
def moderation_queue():
    """Flagged live campaigns plus open user reports"""
    flagged = Campaign.query.filter(
        Campaign.moderation_status == MODERATION_FLAGGED,
        Campaign.status != STATUS_DELETED,
    ).order_by(Campaign.moderation_score.desc(), Campaign.id).all()

    reports = Report.query.filter(Report.status.in_(['pending', 'reviewing'])).order_by(
        Report.created_at.asc()
    ).limit(200).all()

    return jsonify({
        'success': True,
        'campaigns': [c.to_dict() for c in flagged],
        'reports': [r.to_dict() for r in reports],
    })


@admin_moderation_bp.route('/campaigns/<int:campaign_id>', methods=['POST'])
@admin_required
def decide_campaign(campaign_id):
    """Approve or reject a flagged campaign"""
    data = require_object(request.get_json(silent=True) or {})
    decision = data.get('decision')
    if decision not in ('approve', 'reject'):
        raise ValidationError("Decision must be 'approve' or 'reject'")

    campaign = db.session.get(Campaign, campaign_id)
    if not campaign or campaign.status == STATUS_DELETED:
        raise NotFoundError('Campaign not found')

    resolve_flag(campaign, approve=(decision == 'approve'))
    current_app.logger.info(f"Admin {current_user.id} moderated campaign {campaign.id}: {decision}")

    from utils.notifications import notify_moderation_result
    notify_moderation_result(campaign, 'approve' if decision == 'approve' else 'reject')
    return jsonify({'success': True, 'campaign': campaign.to_dict()})


@admin_moderation_bp.route('/reports/<int:report_id>', methods=['POST'])
@admin_required
def update_report(report_id):
    report = db.session.get(Report, report_id)
    if not report:
        raise NotFoundError('Report not found')
    data = require_object(request.get_json(silent=True) or {})
    status = data.get('status')
    if status not in REPORT_RESOLUTIONS:
        raise ValidationError('Invalid report status')

    report.status = status
    report.resolution = clean_text(data.get('resolution'), 'Resolution')
    if status in ('resolved', 'dismissed'):
        report.resolved_by = current_user.id
        report.resolved_at = datetime.utcnow()
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return jsonify({'success': True, 'report': report.to_dict()})


@admin_moderation_bp.route('/stats', methods=['GET'])
@admin_required
def moderation_stats():
    by_status = dict(
        db.session.query(Campaign.moderation_status, func.count(Campaign.id))
        .group_by(Campaign.moderation_status).all()
    )
    open_reports = Report.query.filter(Report.status.in_(['pending', 'reviewing'])).count()
    return jsonify({
        'success': True,
        'approved': by_status.get(MODERATION_APPROVED, 0),
        'flagged': by_status.get(MODERATION_FLAGGED, 0),
        'rejected': by_status.get(MODERATION_REJECTED, 0),
        'open_reports': open_reports,
    })
