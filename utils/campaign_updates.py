"""
Campaign update publication: immediate posts and the scheduled-publication job.
"""
import logging
from datetime import datetime

from sqlalchemy import update

from models import db
from models.campaign_update import CampaignUpdate
from models.payment import Payment, PAYMENT_SUCCESS
from models.user import User

logger = logging.getLogger(__name__)


def campaign_supporters(campaign_id):
    """Registered users with at least one settled payment to the campaign"""
    payer_ids = db.session.query(Payment.payer_id).filter(
        Payment.campaign_id == campaign_id,
        Payment.status == PAYMENT_SUCCESS,
        Payment.payer_id.isnot(None),
    ).distinct()
    return User.query.filter(User.id.in_(payer_ids)).all()


def publish_update(campaign_update, now=None):
    """
    Publish one update and fan out notifications.
    Returns False if another worker already published it.
    """
    from utils.mail import send_update_emails
    from utils.notifications import notify_campaign_update

    now = now or datetime.utcnow()
    won = db.session.execute(
        update(CampaignUpdate)
        .where(CampaignUpdate.id == campaign_update.id, CampaignUpdate.status != 'published')
        .values(status='published', published_at=now)
        .execution_options(synchronize_session=False)
    ).rowcount == 1
    db.session.commit()
    if not won:
        return False

    db.session.refresh(campaign_update)
    campaign = campaign_update.campaign
    supporters = campaign_supporters(campaign.id)
    if supporters:
        notify_campaign_update([s.id for s in supporters], campaign, campaign_update)
        send_update_emails(supporters, campaign, campaign_update)
    return True


def publish_due_updates(now=None):
    """Publish every scheduled update whose time has come; one failure doesn't stop the rest"""
    now = now or datetime.utcnow()
    due = CampaignUpdate.query.filter(
        CampaignUpdate.status == 'scheduled',
        CampaignUpdate.scheduled_for <= now,
    ).order_by(CampaignUpdate.scheduled_for).all()

    results = {'total': len(due), 'published': 0, 'failed': 0, 'errors': []}
    for campaign_update in due:
        update_id = campaign_update.id
        try:
            if publish_update(campaign_update, now=now):
                results['published'] += 1
        except Exception as e:
            db.session.rollback()
            logger.error("Failed to publish update %s: %s", update_id, e, exc_info=True)
            results['failed'] += 1
            results['errors'].append({'update_id': update_id})
    return results
