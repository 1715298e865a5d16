"""
AI helper routes for campaign authoring and content checks
"""
from flask import Blueprint, jsonify, request
from flask_login import login_required

from utils.ai_authoring import generate_milestones
from utils.moderation import classify_content
from utils.validators import clean_text, parse_amount, parse_int, require_object

ai_bp = Blueprint('ai', __name__, url_prefix='/api/ai')


@ai_bp.route('/generate-milestones', methods=['POST'])
@login_required
def suggest_milestones():
    """Milestone suggestions; falls back to fixed quarters when the provider is unavailable"""
    data = require_object(request.get_json(silent=True) or {})
    goal = parse_amount(data.get('goal') or data.get('goal_amount'), 'Goal amount')
    category = clean_text(data.get('category'), 'Category', max_length=30) or 'general'
    duration = parse_int(data.get('duration'), 'Duration', minimum=1) or 30

    milestones, used_fallback = generate_milestones(goal, category, duration)
    return jsonify({'success': True, 'milestones': milestones, 'fallback': used_fallback})


@ai_bp.route('/moderate', methods=['POST'])
@login_required
def moderate():
    data = require_object(request.get_json(silent=True) or {})
    result = classify_content(data.get('content'), data.get('type') or 'campaign')
    return jsonify({
        'success': True,
        'risk_score': result.risk_score,
        'action': result.action,
        'scores': result.scores,
        'reasons': result.reasons,
    })
