"""
Campaign status transitions.
Status only moves forward, except active <-> paused. Every change is a
conditional UPDATE on the status the caller saw, so an owner action racing
the expiry sweep cannot resurrect a completed campaign.
"""
import re
import uuid
from datetime import datetime

from sqlalchemy import update

from models import db
from models.campaign import (
    Campaign, STATUS_DRAFT, STATUS_ACTIVE, STATUS_PAUSED, STATUS_COMPLETED,
    STATUS_REJECTED, STATUS_DELETED,
)
from utils.errors import ConflictError, InvalidStatusTransition

ALLOWED_TRANSITIONS = {
    STATUS_DRAFT: {STATUS_ACTIVE, STATUS_REJECTED, STATUS_DELETED},
    STATUS_ACTIVE: {STATUS_PAUSED, STATUS_COMPLETED, STATUS_DELETED},
    STATUS_PAUSED: {STATUS_ACTIVE, STATUS_COMPLETED, STATUS_DELETED},
    STATUS_COMPLETED: {STATUS_DELETED},
    STATUS_REJECTED: {STATUS_DELETED},
    STATUS_DELETED: set(),
}

# Moderators may also pull a live campaign
MODERATOR_TRANSITIONS = {
    STATUS_ACTIVE: {STATUS_REJECTED},
    STATUS_PAUSED: {STATUS_REJECTED},
}

# Statuses an owner may request directly
OWNER_STATUSES = (STATUS_ACTIVE, STATUS_PAUSED, STATUS_COMPLETED)


def can_transition(current, new, moderator=False):
    if new in ALLOWED_TRANSITIONS.get(current, set()):
        return True
    return moderator and new in MODERATOR_TRANSITIONS.get(current, set())


def change_status(campaign, new_status, moderator=False, now=None, extra_values=None):
    """
    Move a campaign to `new_status`.

    Raises:
        InvalidStatusTransition: transition not allowed, or activating an ended campaign
        ConflictError: status changed concurrently since the campaign was loaded
    """
    now = now or datetime.utcnow()
    current = campaign.status
    if not can_transition(current, new_status, moderator=moderator):
        raise InvalidStatusTransition(f"Cannot change campaign status from {current} to {new_status}")
    if new_status == STATUS_ACTIVE and campaign.end_date and campaign.end_date < now:
        raise InvalidStatusTransition("Campaign end date has already passed")

    values = {'status': new_status, 'updated_at': now}
    if new_status == STATUS_ACTIVE and campaign.published_at is None:
        values['published_at'] = now
    if extra_values:
        values.update(extra_values)

    try:
        changed = db.session.execute(
            update(Campaign)
            .where(Campaign.id == campaign.id, Campaign.status == current)
            .values(**values)
            .execution_options(synchronize_session=False)
        ).rowcount
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    db.session.refresh(campaign)
    if not changed:
        raise ConflictError("Campaign status changed in the meantime. Please reload and try again.")
    return campaign


def soft_delete(campaign):
    return change_status(campaign, STATUS_DELETED)


def slugify(title):
    """URL slug from a title plus a short random suffix for uniqueness"""
    base = re.sub(r'[^a-z0-9]+', '-', (title or '').lower()).strip('-')[:120] or 'campaign'
    return f"{base}-{uuid.uuid4().hex[:6]}"
