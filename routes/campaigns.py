"""
Campaign routes: discovery, detail, authoring, lifecycle, engagement counters and reports
"""
from datetime import datetime, timedelta

from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from sqlalchemy import update, or_

from models import db
from models.campaign import (
    Campaign, RewardTier, Milestone, CAMPAIGN_CATEGORIES,
    STATUS_DRAFT, STATUS_ACTIVE, STATUS_PAUSED, STATUS_COMPLETED, STATUS_DELETED, STATUS_REJECTED,
    MODERATION_REJECTED,
)
from models.campaign_update import CampaignUpdate
from models.payment import Payment, PAYMENT_SUCCESS
from utils.analytics import detect_device, record_view
from utils.auth_utils import require_owner
from utils.campaign_expiry import sweep_before_read
from utils.campaign_lifecycle import OWNER_STATUSES, change_status, slugify, soft_delete
from utils.campaign_updates import publish_update
from utils.errors import InvalidStatusTransition, NotFoundError, ValidationError
from utils.moderation import apply_moderation, campaign_text, classify_content, submit_report
from utils.trending import trending_campaigns
from utils.validators import (
    clean_text, parse_amount, parse_datetime, parse_int, require_fields, require_object,
)

campaigns_bp = Blueprint('campaigns', __name__, url_prefix='/api/campaigns')

LISTABLE_STATUSES = (STATUS_ACTIVE, STATUS_PAUSED, STATUS_COMPLETED)
EDITABLE_STATUSES = (STATUS_DRAFT, STATUS_ACTIVE, STATUS_PAUSED)
MAX_DURATION_DAYS = 365
MAX_PER_PAGE = 50


def _get_campaign(campaign_id):
    campaign = db.session.get(Campaign, campaign_id)
    if not campaign:
        raise NotFoundError('Campaign not found')
    return campaign


def _can_see_hidden(campaign):
    return current_user.is_authenticated and (current_user.is_admin or campaign.creator_id == current_user.id)


def _parse_end_date(data, now):
    if data.get('end_date'):
        end_date = parse_datetime(data.get('end_date'), 'End date')
    else:
        duration = parse_int(data.get('duration_days'), 'Duration', minimum=1) or 30
        if duration > MAX_DURATION_DAYS:
            raise ValidationError(f'Campaigns can run for at most {MAX_DURATION_DAYS} days')
        end_date = now + timedelta(days=duration)
    if end_date <= now:
        raise ValidationError('End date must be in the future')
    if end_date > now + timedelta(days=MAX_DURATION_DAYS):
        raise ValidationError(f'Campaigns can run for at most {MAX_DURATION_DAYS} days')
    return end_date


def _items(items, field_name):
    if items in (None, ''):
        return []
    if not isinstance(items, list):
        raise ValidationError(f'{field_name} must be a list')
    for item in items:
        require_object(item, f'Every entry in {field_name.lower()}')
    return items


def _build_rewards(items):
    rewards = []
    for item in _items(items, 'Rewards'):
        rewards.append(RewardTier(
            title=clean_text(item.get('title'), 'Reward title', max_length=100, required=True),
            amount=parse_amount(item.get('amount'), 'Reward amount'),
            description=clean_text(item.get('description'), 'Reward description') or None,
            delivery_time=clean_text(item.get('delivery_time'), 'Delivery time', max_length=50) or None,
            limited_quantity=parse_int(item.get('limited_quantity'), 'Limited quantity', minimum=1),
        ))
    return rewards


def _build_milestones(items, goal):
    milestones = []
    for item in _items(items, 'Milestones'):
        title = clean_text(item.get('title'), 'Milestone title', max_length=150, required=True)
        amount = parse_amount(item.get('amount'), 'Milestone amount')
        if amount > goal:
            raise ValidationError('Milestone amounts cannot exceed the goal')
        milestones.append(Milestone(
            title=title,
            amount=amount,
            description=clean_text(item.get('description'), 'Milestone description') or None,
        ))
    return milestones


@campaigns_bp.route('', methods=['GET'])
def list_campaigns():
    """Public campaign listing with filters and pagination"""
    sweep_before_read()

    category = request.args.get('category', '').strip()
    status_filter = request.args.get('status', '').strip()
    search_query = request.args.get('q', '').strip()
    sort_by = request.args.get('sort_by', 'newest')
    page = request.args.get('page', 1, type=int)
    per_page = min(max(request.args.get('per_page', 12, type=int), 1), MAX_PER_PAGE)

    query = Campaign.query.filter(
        Campaign.status.in_(LISTABLE_STATUSES),
        Campaign.moderation_status != MODERATION_REJECTED,
    )
    if category:
        if category not in CAMPAIGN_CATEGORIES:
            raise ValidationError('Unknown category')
        query = query.filter(Campaign.category == category)
    if status_filter:
        if status_filter not in LISTABLE_STATUSES:
            raise ValidationError('Unknown status filter')
        query = query.filter(Campaign.status == status_filter)
    if search_query:
        query = query.filter(or_(
            Campaign.title.ilike(f'%{search_query}%'),
            Campaign.short_description.ilike(f'%{search_query}%'),
        ))

    if sort_by == 'most_funded':
        query = query.order_by(Campaign.current_amount.desc(), Campaign.id)
    elif sort_by == 'ending_soon':
        query = query.order_by(Campaign.end_date.asc(), Campaign.id)
    else:
        query = query.order_by(Campaign.created_at.desc(), Campaign.id.desc())

    pagination = query.paginate(page=page, per_page=per_page, error_out=False)
    return jsonify({
        'success': True,
        'campaigns': [c.to_dict() for c in pagination.items],
        'page': pagination.page,
        'pages': pagination.pages,
        'total': pagination.total,
    })


@campaigns_bp.route('/trending', methods=['GET'])
def trending():
    """Top campaigns by trending score"""
    sweep_before_read()
    limit = request.args.get('limit', current_app.config['TRENDING_DEFAULT_LIMIT'], type=int)
    limit = min(max(limit, 1), current_app.config['TRENDING_MAX_LIMIT'])
    campaigns = trending_campaigns(limit)
    return jsonify({
        'success': True,
        'campaigns': [c.to_dict() for c in campaigns],
        'count': len(campaigns),
    })


@campaigns_bp.route('/<int:campaign_id>', methods=['GET'])
def campaign_detail(campaign_id):
    sweep_before_read()
    campaign = _get_campaign(campaign_id)
    if not campaign.is_publicly_listed and not _can_see_hidden(campaign):
        raise NotFoundError('Campaign not found')
    return jsonify({'success': True, 'campaign': campaign.to_dict(include_details=True)})


@campaigns_bp.route('', methods=['POST'])
@login_required
def create_campaign():
    """Create a draft campaign"""
    data = request.get_json(silent=True) or {}
    require_fields(data, 'title', 'story', 'goal_amount')

    title = clean_text(data['title'], 'Title', max_length=100, required=True)
    story = clean_text(data['story'], 'Story', required=True)
    category = data.get('category') or 'other'
    if category not in CAMPAIGN_CATEGORIES:
        raise ValidationError('Unknown category')
    short_description = clean_text(data.get('short_description'), 'Short description', max_length=200)
    cover_image = clean_text(data.get('cover_image'), 'Cover image', max_length=500)

    now = datetime.utcnow()
    goal = parse_amount(data.get('goal_amount'), 'Goal amount')
    campaign = Campaign(
        creator_id=current_user.id,
        title=title,
        slug=slugify(title),
        category=category,
        short_description=short_description or None,
        story=story,
        cover_image=cover_image or None,
        ai_generated=bool(data.get('ai_generated')),
        goal_amount=goal,
        current_amount=0,
        currency=data.get('currency') or current_app.config['DEFAULT_CURRENCY'],
        start_date=now,
        end_date=_parse_end_date(data, now),
        status=STATUS_DRAFT,
    )
    campaign.rewards = _build_rewards(data.get('rewards'))
    campaign.milestones = _build_milestones(data.get('milestones'), goal)

    db.session.add(campaign)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.error(f"Failed to create campaign for user {current_user.id}", exc_info=True)
        raise
    current_app.logger.info(f"Campaign {campaign.id} created as draft by user {current_user.id}")
    return jsonify({'success': True, 'message': 'Draft saved.', 'campaign': campaign.to_dict(include_details=True)}), 201


@campaigns_bp.route('/<int:campaign_id>', methods=['PUT'])
@login_required
def edit_campaign(campaign_id):
    """Owner edits of descriptive fields; funding columns are never editable"""
    campaign = _get_campaign(campaign_id)
    require_owner(campaign)
    if campaign.status not in EDITABLE_STATUSES:
        raise InvalidStatusTransition(f'A {campaign.status} campaign cannot be edited')

    data = require_object(request.get_json(silent=True) or {})
    if 'title' in data:
        campaign.title = clean_text(data['title'], 'Title', max_length=100, required=True)
    if 'short_description' in data:
        campaign.short_description = clean_text(
            data['short_description'], 'Short description', max_length=200) or None
    if 'story' in data:
        campaign.story = clean_text(data['story'], 'Story', required=True)
    if 'cover_image' in data:
        campaign.cover_image = clean_text(data['cover_image'], 'Cover image', max_length=500) or None
    if 'end_date' in data and campaign.status == STATUS_DRAFT:
        campaign.end_date = _parse_end_date(data, datetime.utcnow())

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return jsonify({'success': True, 'campaign': campaign.to_dict(include_details=True)})


@campaigns_bp.route('/<int:campaign_id>/publish', methods=['POST'])
@login_required
def publish_campaign(campaign_id):
    """Run content moderation on a draft and publish, flag or reject it"""
    campaign = _get_campaign(campaign_id)
    require_owner(campaign)
    if campaign.status != STATUS_DRAFT:
        raise InvalidStatusTransition('Only draft campaigns can be published')

    result = classify_content(campaign_text(campaign), 'campaign')
    action = apply_moderation(campaign, result.risk_score, result.reasons)

    messages = {
        'approve': 'Campaign published.',
        'review': 'Campaign published and queued for a manual review.',
        'reject': 'Campaign did not pass content review.',
    }
    return jsonify({
        'success': action != 'reject',
        'message': messages[action],
        'action': action,
        'campaign': campaign.to_dict(),
    }), (200 if action != 'reject' else 422)


@campaigns_bp.route('/<int:campaign_id>/status', methods=['PATCH'])
@login_required
def update_status(campaign_id):
    """Owner pause/resume/complete"""
    campaign = _get_campaign(campaign_id)
    require_owner(campaign)
    data = request.get_json(silent=True) or {}
    new_status = data.get('status')
    if new_status not in OWNER_STATUSES:
        raise ValidationError('Invalid status')
    if new_status == STATUS_ACTIVE and campaign.status == STATUS_DRAFT:
        raise InvalidStatusTransition('Drafts are published through content review')
    change_status(campaign, new_status)
    return jsonify({'success': True, 'campaign': campaign.to_dict()})


@campaigns_bp.route('/<int:campaign_id>', methods=['DELETE'])
@login_required
def delete_campaign(campaign_id):
    """Soft delete: the record stays, status becomes deleted"""
    campaign = _get_campaign(campaign_id)
    require_owner(campaign, allow_admin=True)
    soft_delete(campaign)
    current_app.logger.info(f"Campaign {campaign.id} deleted by user {current_user.id}")
    return jsonify({'success': True, 'message': 'Campaign deleted.'})


def _increment_counter(campaign_id, column_name):
    column = getattr(Campaign, column_name)
    changed = db.session.execute(
        update(Campaign)
        .where(Campaign.id == campaign_id, Campaign.status.notin_([STATUS_DELETED, STATUS_REJECTED]))
        .values({column_name: column + 1})
        .execution_options(synchronize_session=False)
    ).rowcount
    db.session.commit()
    if not changed:
        raise NotFoundError('Campaign not found')


@campaigns_bp.route('/<int:campaign_id>/view', methods=['POST'])
def track_view(campaign_id):
    """Count a page view and keep a view event for the creator's analytics"""
    _increment_counter(campaign_id, 'views_count')
    data = request.get_json(silent=True)
    source = data.get('source') if isinstance(data, dict) else None
    record_view(
        campaign_id,
        user_id=current_user.id if current_user.is_authenticated else None,
        source=source,
        device=detect_device(request.headers.get('User-Agent')),
    )
    return jsonify({'success': True})


@campaigns_bp.route('/<int:campaign_id>/share', methods=['POST'])
def track_share(campaign_id):
    _increment_counter(campaign_id, 'shares_count')
    return jsonify({'success': True})


@campaigns_bp.route('/<int:campaign_id>/report', methods=['POST'])
@login_required
def report_campaign(campaign_id):
    campaign = _get_campaign(campaign_id)
    if campaign.status == STATUS_DELETED:
        raise NotFoundError('Campaign not found')
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError('Invalid request body')
    require_object(data)
    submit_report(campaign, current_user, data.get('reason'), data.get('description'))
    return jsonify({'success': True, 'message': 'Report submitted successfully. Our team will review it shortly.'}), 201


@campaigns_bp.route('/<int:campaign_id>/supporters', methods=['GET'])
def list_supporters(campaign_id):
    campaign = _get_campaign(campaign_id)
    if not campaign.is_publicly_listed and not _can_see_hidden(campaign):
        raise NotFoundError('Campaign not found')
    payments = campaign.payments.filter(Payment.status == PAYMENT_SUCCESS).order_by(
        Payment.settled_at.desc(), Payment.id.desc()
    ).limit(100).all()
    return jsonify({'success': True, 'supporters': [p.to_dict() for p in payments]})


@campaigns_bp.route('/<int:campaign_id>/updates', methods=['POST'])
@login_required
def post_update(campaign_id):
    """Post a campaign update now, or schedule it for later"""
    campaign = _get_campaign(campaign_id)
    require_owner(campaign)
    if campaign.status in (STATUS_DRAFT, STATUS_DELETED, STATUS_REJECTED):
        raise InvalidStatusTransition('Updates can only be posted on published campaigns')

    data = request.get_json(silent=True) or {}
    require_fields(data, 'title', 'content')
    scheduled_for = parse_datetime(data['scheduled_for'], 'Scheduled time') if data.get('scheduled_for') else None
    now = datetime.utcnow()

    campaign_update = CampaignUpdate(
        campaign_id=campaign.id,
        title=clean_text(data['title'], 'Title', max_length=200, required=True),
        content=clean_text(data['content'], 'Content', required=True),
        status='scheduled' if scheduled_for and scheduled_for > now else 'draft',
        scheduled_for=scheduled_for,
    )
    db.session.add(campaign_update)
    db.session.commit()

    if campaign_update.status != 'scheduled':
        publish_update(campaign_update, now=now)
    return jsonify({'success': True, 'update': campaign_update.to_dict()}), 201
