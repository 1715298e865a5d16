"""
Campaign analytics: view-event recording and the figures behind the creator
dashboard. View events are derived data; recording one never fails the
request that triggered it.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import func

from models import db
from models.campaign import Campaign, STATUS_ACTIVE, STATUS_DELETED
from models.campaign_view import CampaignView, VIEW_DEVICES, VIEW_SOURCES
from models.payment import Payment, PAYMENT_SUCCESS

logger = logging.getLogger(__name__)

# Upper bounds of the contribution size buckets; the last bucket is open-ended
CONTRIBUTION_RANGES = (
    ('0-500', Decimal('500')),
    ('500-1000', Decimal('1000')),
    ('1000-5000', Decimal('5000')),
    ('5000+', None),
)
TOP_SUPPORTERS = 10


def detect_device(user_agent):
    ua = (user_agent or '').lower()
    if 'ipad' in ua or 'tablet' in ua:
        return 'tablet'
    if 'mobile' in ua or 'android' in ua or 'iphone' in ua:
        return 'mobile'
    return 'desktop'


def record_view(campaign_id, user_id=None, source=None, device=None, now=None):
    """Store one view event; returns it, or None when it could not be stored"""
    try:
        view = CampaignView(
            campaign_id=campaign_id,
            user_id=user_id,
            source=source if source in VIEW_SOURCES else 'direct',
            device=device if device in VIEW_DEVICES else 'desktop',
            viewed_at=now or datetime.utcnow(),
        )
        db.session.add(view)
        db.session.commit()
        return view
    except Exception as e:
        db.session.rollback()
        logger.error("Failed to record view of campaign %s: %s", campaign_id, e, exc_info=True)
        return None


def _rate(part, whole):
    return round(part / whole * 100, 2) if whole else 0.0


def _contribution_ranges(amounts):
    counts = dict.fromkeys((label for label, _ in CONTRIBUTION_RANGES), 0)
    for amount in amounts:
        for label, upper in CONTRIBUTION_RANGES:
            if upper is None or amount <= upper:
                counts[label] += 1
                break
    return counts


def _top_supporters(payments):
    supporters = {}
    for payment in payments:
        key = f'user:{payment.payer_id}' if payment.payer_id else f'guest:{(payment.email or payment.name).lower()}'
        entry = supporters.setdefault(key, {'name': payment.display_name, 'amount': Decimal('0'), 'count': 0})
        entry['amount'] += payment.amount
        entry['count'] += 1
        if payment.anonymous:
            entry['name'] = payment.display_name
    ranked = sorted(supporters.values(), key=lambda s: (-s['amount'], s['name']))[:TOP_SUPPORTERS]
    return [{'name': s['name'], 'amount': float(s['amount']), 'count': s['count']} for s in ranked]


def campaign_analytics(campaign, days=30, now=None):
    """
    Figures for one campaign over the last `days` days plus lifetime totals.

    Returns:
        dict with totals, period, daily, sources, devices, contribution_ranges
        and top_supporters
    """
    now = now or datetime.utcnow()
    since = (now - timedelta(days=days - 1)).replace(hour=0, minute=0, second=0, microsecond=0)

    settled = Payment.query.filter(
        Payment.campaign_id == campaign.id,
        Payment.status == PAYMENT_SUCCESS,
    ).order_by(Payment.settled_at).all()
    period_payments = [p for p in settled if p.settled_at and p.settled_at >= since]

    view_times = [row[0] for row in db.session.query(CampaignView.viewed_at).filter(
        CampaignView.campaign_id == campaign.id,
        CampaignView.viewed_at >= since,
    )]
    unique_visitors = db.session.query(func.count(func.distinct(CampaignView.user_id))).filter(
        CampaignView.campaign_id == campaign.id,
        CampaignView.viewed_at >= since,
    ).scalar() or 0

    daily = {}
    for offset in range(days):
        day = (since + timedelta(days=offset)).date().isoformat()
        daily[day] = {'date': day, 'views': 0, 'contributions': 0, 'amount': 0.0}
    for viewed_at in view_times:
        bucket = daily.get(viewed_at.date().isoformat())
        if bucket:
            bucket['views'] += 1
    for payment in period_payments:
        bucket = daily.get(payment.settled_at.date().isoformat())
        if bucket:
            bucket['contributions'] += 1
            bucket['amount'] += float(payment.amount)

    def breakdown(column):
        return dict(
            db.session.query(column, func.count(CampaignView.id))
            .filter(CampaignView.campaign_id == campaign.id, CampaignView.viewed_at >= since)
            .group_by(column).all()
        )

    total_amount = sum((p.amount for p in settled), Decimal('0'))
    period_amount = sum((p.amount for p in period_payments), Decimal('0'))
    views = campaign.views_count or 0

    return {
        'campaign_id': campaign.id,
        'days': days,
        'totals': {
            'views': views,
            'shares': campaign.shares_count or 0,
            'comments': campaign.comments_count or 0,
            'supporters': campaign.supporters_count or 0,
            'contributions': len(settled),
            'amount': float(total_amount),
            'average_contribution': round(float(total_amount) / len(settled), 2) if settled else 0.0,
            'conversion_rate': _rate(len(settled), views),
            'progress': round(campaign.progress, 2),
        },
        'period': {
            'views': len(view_times),
            'unique_visitors': unique_visitors,
            'contributions': len(period_payments),
            'amount': float(period_amount),
            'conversion_rate': _rate(len(period_payments), len(view_times)),
        },
        'daily': list(daily.values()),
        'sources': breakdown(CampaignView.source),
        'devices': breakdown(CampaignView.device),
        'contribution_ranges': _contribution_ranges(p.amount for p in settled),
        'top_supporters': _top_supporters(settled),
    }


def creator_overview(user, days=30, now=None):
    """Dashboard summary across every campaign the user created, deleted ones excluded"""
    now = now or datetime.utcnow()
    since = now - timedelta(days=days)

    campaigns = Campaign.query.filter(
        Campaign.creator_id == user.id,
        Campaign.status != STATUS_DELETED,
    ).order_by(Campaign.created_at.desc(), Campaign.id.desc()).all()
    campaign_ids = [c.id for c in campaigns]

    period_count, period_amount = 0, 0
    period_views = 0
    if campaign_ids:
        period_count, period_amount = db.session.query(
            func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0),
        ).filter(
            Payment.campaign_id.in_(campaign_ids),
            Payment.status == PAYMENT_SUCCESS,
            Payment.settled_at >= since,
        ).one()
        period_views = CampaignView.query.filter(
            CampaignView.campaign_id.in_(campaign_ids),
            CampaignView.viewed_at >= since,
        ).count()

    by_status = {}
    for campaign in campaigns:
        by_status[campaign.status] = by_status.get(campaign.status, 0) + 1

    total_views = sum(c.views_count or 0 for c in campaigns)
    total_supporters = sum(c.supporters_count or 0 for c in campaigns)
    return {
        'days': days,
        'campaigns': {
            'total': len(campaigns),
            'active': by_status.get(STATUS_ACTIVE, 0),
            'by_status': by_status,
        },
        'totals': {
            'raised': float(sum((c.current_amount or 0 for c in campaigns), Decimal('0'))),
            'supporters': total_supporters,
            'views': total_views,
            'comments': sum(c.comments_count or 0 for c in campaigns),
            'conversion_rate': _rate(total_supporters, total_views),
        },
        'period': {
            'contributions': period_count,
            'amount': float(period_amount),
            'views': period_views,
        },
        'campaign_list': [{
            'id': c.id,
            'title': c.title,
            'status': c.status,
            'goal_amount': float(c.goal_amount or 0),
            'current_amount': float(c.current_amount or 0),
            'progress': round(c.progress, 2),
            'views': c.views_count or 0,
            'supporters': c.supporters_count or 0,
            'comments': c.comments_count or 0,
            'days_remaining': c.days_remaining,
        } for c in campaigns],
    }
