"""
Comment routes: campaign threads plus per-comment delete, like, pin and report
"""
from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user

from models import db
from models.campaign import Campaign
from utils.comments import (
    add_comment, delete_comment, get_live_comment, like_comment, list_comments, toggle_pin,
)
from utils.errors import NotFoundError
from utils.moderation import submit_report
from utils.validators import require_object

comments_bp = Blueprint('comments', __name__, url_prefix='/api')


def _listed_campaign(campaign_id):
    campaign = db.session.get(Campaign, campaign_id)
    if not campaign or not campaign.is_publicly_listed:
        raise NotFoundError('Campaign not found')
    return campaign


@comments_bp.route('/campaigns/<int:campaign_id>/comments', methods=['GET'])
def get_comments(campaign_id):
    """Threaded comments; sort is newest, oldest or top"""
    campaign = _listed_campaign(campaign_id)
    threads = list_comments(campaign.id, request.args.get('sort', 'newest'))
    return jsonify({
        'success': True,
        'comments': [comment.to_dict(replies=replies) for comment, replies in threads],
        'count': campaign.comments_count or 0,
    })


@comments_bp.route('/campaigns/<int:campaign_id>/comments', methods=['POST'])
@login_required
def post_comment(campaign_id):
    campaign = _listed_campaign(campaign_id)
    data = require_object(request.get_json(silent=True) or {})
    comment = add_comment(campaign, current_user, data.get('content'), data.get('parent_id'))
    current_app.logger.info(f"Comment {comment.id} added to campaign {campaign.id} by user {current_user.id}")
    return jsonify({'success': True, 'comment': comment.to_dict()}), 201


@comments_bp.route('/comments/<int:comment_id>', methods=['DELETE'])
@login_required
def remove_comment(comment_id):
    comment = get_live_comment(comment_id)
    delete_comment(comment, current_user)
    return jsonify({'success': True, 'message': 'Comment deleted successfully'})


@comments_bp.route('/comments/<int:comment_id>/like', methods=['POST'])
@login_required
def like(comment_id):
    likes = like_comment(get_live_comment(comment_id))
    return jsonify({'success': True, 'likes': likes})


@comments_bp.route('/comments/<int:comment_id>/pin', methods=['POST'])
@login_required
def pin(comment_id):
    pinned = toggle_pin(get_live_comment(comment_id), current_user)
    return jsonify({'success': True, 'pinned': pinned})


@comments_bp.route('/comments/<int:comment_id>/report', methods=['POST'])
@login_required
def report_comment(comment_id):
    comment = get_live_comment(comment_id)
    data = require_object(request.get_json(silent=True) or {})
    submit_report(comment, current_user, data.get('reason'), data.get('description'))
    return jsonify({'success': True, 'message': 'Comment reported successfully. Our team will review it.'}), 201
