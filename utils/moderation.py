"""
Content moderation: risk-score threshold policy, the publication gate for
draft campaigns, admin review of flagged campaigns, and user reports.

Scoring itself is delegated to the AI provider; this module owns only the
thresholds and the state changes they cause.
"""
import json
import logging
from collections import namedtuple
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from models import db
from models.campaign import (
    STATUS_DRAFT, STATUS_ACTIVE, STATUS_REJECTED,
    MODERATION_APPROVED, MODERATION_FLAGGED, MODERATION_REJECTED, MODERATION_PENDING,
)
from models.report import Report, REPORT_REASONS
from utils.ai_client import extract_json, generate_text
from utils.campaign_lifecycle import change_status
from utils.errors import (
    ConflictError, InvalidStatusTransition, UpstreamError, ValidationError,
)
from utils.validators import clean_text

logger = logging.getLogger(__name__)

ACTION_APPROVE = 'approve'
ACTION_REVIEW = 'review'
ACTION_REJECT = 'reject'

REVIEW_THRESHOLD = 50
REJECT_THRESHOLD = 90
CATEGORY_ALERT_THRESHOLD = 70

CATEGORY_WEIGHTS = {
    'inappropriate': 0.3,
    'spam': 0.2,
    'scam': 0.3,
    'prohibited': 0.2,
}
CATEGORY_REASONS = {
    'inappropriate': 'Inappropriate language detected',
    'spam': 'Spam patterns detected',
    'scam': 'Potential scam indicators',
    'prohibited': 'Prohibited content detected',
}

CONTENT_TYPES = ('campaign', 'comment', 'update', 'description')
MIN_CONTENT_LENGTH = 10
MAX_CONTENT_LENGTH = 50000
MAX_REPORT_DESCRIPTION = 1000

ModerationResult = namedtuple('ModerationResult', 'risk_score action scores reasons')


def clamp_score(value):
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, score))


def decide(score):
    """<50 approve, 50-89 review, >=90 reject"""
    score = clamp_score(score)
    if score >= REJECT_THRESHOLD:
        return ACTION_REJECT
    if score >= REVIEW_THRESHOLD:
        return ACTION_REVIEW
    return ACTION_APPROVE


def combine_scores(scores):
    return clamp_score(sum(CATEGORY_WEIGHTS[name] * scores.get(name, 0) for name in CATEGORY_WEIGHTS))


def _validate_content(content, content_type):
    if not content or not isinstance(content, str):
        raise ValidationError('Content is required')
    if len(content) < MIN_CONTENT_LENGTH:
        raise ValidationError('Content too short')
    if len(content) > MAX_CONTENT_LENGTH:
        raise ValidationError('Content too long')
    if content_type not in CONTENT_TYPES:
        raise ValidationError('Invalid content type')


def classify_content(content, content_type='campaign'):
    """
    Score text across moderation categories.

    Raises:
        ValidationError: content empty, too short/long, or unknown type
        UpstreamError: provider unavailable or response unreadable
    """
    _validate_content(content, content_type)
    prompt = (
        f"Rate this {content_type} text for a crowdfunding platform on a 0-100 risk scale "
        "for each category: inappropriate, spam, scam, prohibited. Respond only with JSON "
        "like {\"inappropriate\": 0, \"spam\": 0, \"scam\": 0, \"prohibited\": 0, \"reasons\": []}.\n\n"
        f"Text:\n{content}"
    )
    data = extract_json(generate_text(prompt, temperature=0.1, max_tokens=400), 'object')
    if data is None:
        raise UpstreamError("Moderation service returned an unreadable response")

    scores = {name: clamp_score(data.get(name, 0)) for name in CATEGORY_WEIGHTS}
    risk_score = combine_scores(scores)
    action = decide(risk_score)

    reasons = []
    if action == ACTION_REJECT:
        reasons.append('High risk score detected')
    elif action == ACTION_REVIEW:
        reasons.append('Moderate risk - requires human review')
    reasons.extend(CATEGORY_REASONS[name] for name, score in scores.items() if score > CATEGORY_ALERT_THRESHOLD)
    provider_reasons = data.get('reasons')
    if isinstance(provider_reasons, list):
        reasons.extend(r for r in provider_reasons if isinstance(r, str))

    if risk_score >= REVIEW_THRESHOLD:
        logger.warning("High-risk %s content: score=%d action=%s reasons=%s", content_type, risk_score, action, reasons)
    return ModerationResult(risk_score, action, scores, reasons)


def campaign_text(campaign):
    return "\n\n".join(part for part in (campaign.title, campaign.short_description, campaign.story) if part)


def apply_moderation(campaign, risk_score, reasons=None, now=None):
    """
    Publication gate for a draft campaign.

    approve -> active, visible; review -> active, visible, flagged for an admin;
    reject -> rejected, not listed.

    Returns:
        str: the action taken
    """
    from utils.notifications import notify_moderation_result

    if campaign.status != STATUS_DRAFT:
        raise InvalidStatusTransition("Only draft campaigns can be submitted for review")

    score = clamp_score(risk_score)
    action = decide(score)
    extra = {
        'moderation_score': score,
        'moderation_reasons': json.dumps(list(reasons or [])),
    }
    if action == ACTION_REJECT:
        extra['moderation_status'] = MODERATION_REJECTED
        change_status(campaign, STATUS_REJECTED, now=now, extra_values=extra)
    else:
        extra['moderation_status'] = MODERATION_APPROVED if action == ACTION_APPROVE else MODERATION_FLAGGED
        change_status(campaign, STATUS_ACTIVE, now=now, extra_values=extra)

    logger.info("Campaign %s moderated: score=%d action=%s", campaign.id, score, action)
    notify_moderation_result(campaign, action)
    return action


def resolve_flag(campaign, approve, now=None):
    """Admin decision on a flagged (or unreviewed) live campaign"""
    if campaign.moderation_status not in (MODERATION_FLAGGED, MODERATION_PENDING):
        raise InvalidStatusTransition("Campaign is not awaiting moderation")
    now = now or datetime.utcnow()
    if approve:
        campaign.moderation_status = MODERATION_APPROVED
        campaign.updated_at = now
        db.session.commit()
        return campaign
    return change_status(campaign, STATUS_REJECTED, moderator=True, now=now,
                         extra_values={'moderation_status': MODERATION_REJECTED})


def _report_target(target):
    """(target_type, target_id, owner_id) for a reportable object"""
    from models.comment import Comment
    from models.user import User

    if isinstance(target, Comment):
        return 'comment', target.id, target.user_id
    if isinstance(target, User):
        return 'user', target.id, target.id
    return 'campaign', target.id, target.creator_id


def submit_report(target, reporter, reason, description=''):
    """
    File a user report against a campaign, comment or user; one per reporter per target.

    Raises:
        ValidationError: bad reason/description or self-report
        ConflictError: reporter already reported this target
    """
    target_type, target_id, owner_id = _report_target(target)
    description = clean_text(description, 'Description', max_length=MAX_REPORT_DESCRIPTION)
    if reason not in REPORT_REASONS:
        raise ValidationError('Please select a valid reason for reporting')
    if reason == 'other' and len(description) < 10:
        raise ValidationError('Please provide a detailed description when selecting "Other"')
    if owner_id == reporter.id:
        raise ValidationError(f'You cannot report your own {target_type}')

    existing = Report.query.filter_by(target_type=target_type, target_id=target_id, reporter_id=reporter.id).first()
    if existing:
        raise ConflictError(f'You have already reported this {target_type}. Our team is reviewing it.')

    report = Report(
        target_type=target_type,
        target_id=target_id,
        reporter_id=reporter.id,
        reason=reason,
        description=description,
    )
    db.session.add(report)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost the race against a concurrent duplicate
        db.session.rollback()
        raise ConflictError(f'You have already reported this {target_type}.')
    logger.info("Report %s filed against %s %s", report.id, target_type, target_id)
    return report
