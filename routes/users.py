"""
Public creator profiles and user reports
"""
from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from sqlalchemy import func

from models import db
from models.campaign import Campaign, STATUS_ACTIVE, STATUS_PAUSED, STATUS_COMPLETED, MODERATION_REJECTED
from models.user import User
from utils.errors import NotFoundError
from utils.moderation import submit_report
from utils.validators import require_object

users_bp = Blueprint('users', __name__, url_prefix='/api/users')


@users_bp.route('/<username>', methods=['GET'])
def profile(username):
    """Creator profile with their publicly listed campaigns"""
    user = User.query.filter(func.lower(User.username) == username.lower()).first()
    if not user or not user.is_active:
        raise NotFoundError('User not found')
    campaigns = Campaign.query.filter(
        Campaign.creator_id == user.id,
        Campaign.status.in_([STATUS_ACTIVE, STATUS_PAUSED, STATUS_COMPLETED]),
        Campaign.moderation_status != MODERATION_REJECTED,
    ).order_by(Campaign.created_at.desc(), Campaign.id.desc()).all()
    return jsonify({
        'success': True,
        'user': user.to_dict(),
        'campaigns': [c.to_dict() for c in campaigns],
    })


@users_bp.route('/<int:user_id>/report', methods=['POST'])
@login_required
def report_user(user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError('User not found')
    data = require_object(request.get_json(silent=True) or {})
    submit_report(user, current_user, data.get('reason'), data.get('description'))
    return jsonify({'success': True, 'message': 'Report submitted successfully. Our team will review it shortly.'}), 201
