"""
User notification routes
"""
from datetime import datetime

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from sqlalchemy import update

from models import db
from models.notification import Notification
from utils.errors import NotFoundError

notifications_bp = Blueprint('notifications', __name__, url_prefix='/api/notifications')


@notifications_bp.route('', methods=['GET'])
@login_required
def get_notifications():
    """Get notifications for the current user, newest first"""
    limit = min(max(request.args.get('limit', 50, type=int), 1), 100)
    unread_only = request.args.get('unread_only', 'false').lower() == 'true'

    query = Notification.query.filter_by(user_id=current_user.id)
    if unread_only:
        query = query.filter_by(read=False)
    notifications = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()
    unread_count = Notification.query.filter_by(user_id=current_user.id, read=False).count()

    return jsonify({
        'success': True,
        'notifications': [n.to_dict() for n in notifications],
        'unread_count': unread_count,
    })


@notifications_bp.route('/<int:notification_id>/read', methods=['POST'])
@login_required
def mark_as_read(notification_id):
    """Mark a notification as read"""
    notification = Notification.query.filter_by(id=notification_id, user_id=current_user.id).first()
    if not notification:
        raise NotFoundError('Notification not found')
    if not notification.read:
        notification.read = True
        notification.read_at = datetime.utcnow()
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
    return jsonify({'success': True, 'message': 'Notification marked as read'})


@notifications_bp.route('/read-all', methods=['POST'])
@login_required
def mark_all_as_read():
    try:
        count = db.session.execute(
            update(Notification)
            .where(Notification.user_id == current_user.id, Notification.read.is_(False))
            .values(read=True, read_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        ).rowcount
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return jsonify({'success': True, 'message': f'{count} notifications marked as read', 'count': count})
