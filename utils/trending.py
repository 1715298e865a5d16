"""
Trending ranking for discovery surfaces.
Scores are computed at read time and never persisted or serialized.
"""
from datetime import datetime

from models.campaign import Campaign, STATUS_ACTIVE, MODERATION_REJECTED

VIEWS_WEIGHT = 0.4
FUNDING_WEIGHT = 0.3
SUPPORTERS_WEIGHT = 0.2
FEATURED_WEIGHT = 0.1
FEATURED_BONUS = 100
SECONDS_PER_DAY = 86400


def campaign_age_days(campaign, now=None):
    """Days since creation, floored at 1 so same-day campaigns don't blow up the ratios"""
    now = now or datetime.utcnow()
    created = campaign.created_at or now
    return max(1.0, (now - created).total_seconds() / SECONDS_PER_DAY)


def trending_score(campaign, now=None):
    age = campaign_age_days(campaign, now)
    views = (campaign.views_count or 0) / age
    funding_velocity = float(campaign.current_amount or 0) / age
    supporters = (campaign.supporters_count or 0) / age
    featured = FEATURED_BONUS if campaign.featured else 0
    return (
        VIEWS_WEIGHT * views
        + FUNDING_WEIGHT * funding_velocity
        + SUPPORTERS_WEIGHT * supporters
        + FEATURED_WEIGHT * featured
    )


def rank_campaigns(campaigns, now=None):
    """Order by score descending; ties broken by campaign id ascending"""
    now = now or datetime.utcnow()
    return sorted(campaigns, key=lambda c: (-trending_score(c, now), c.id))


def trending_campaigns(limit, now=None):
    """Top `limit` active, unexpired, publicly listed campaigns"""
    now = now or datetime.utcnow()
    candidates = Campaign.query.filter(
        Campaign.status == STATUS_ACTIVE,
        Campaign.end_date >= now,
        Campaign.moderation_status != MODERATION_REJECTED,
    ).all()
    return rank_campaigns(candidates, now)[:limit]
