"""
In-app notification helpers.
Notifications are derived, fire-and-forget records: a failure here is logged
and swallowed so it never fails the operation that triggered it.
"""
from models import db
from models.notification import Notification
from flask import current_app


def create_notification(user_id, notification_type, title, message, link=None,
                        campaign_id=None, payment_id=None):
    """
    Create a notification for a user

    Args:
        user_id: Recipient user id
        notification_type: 'payment', 'milestone', 'comment', 'update' or 'system'
        title: Notification title
        message: Notification message
        link: Optional relative URL to open
        campaign_id / payment_id: Optional related entities

    Returns:
        Notification object or None if creation failed
    """
    try:
        notification = Notification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            link=link,
            campaign_id=campaign_id,
            payment_id=payment_id,
            read=False,
        )
        db.session.add(notification)
        db.session.commit()
        return notification
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create notification for user {user_id}: {str(e)}", exc_info=True)
        return None


def notify_new_support(campaign, payment):
    """Tell the creator a contribution was settled"""
    message = (
        f"{payment.display_name} supported your campaign \"{campaign.title}\" "
        f"with {payment.currency} {float(payment.amount):,.2f}"
    )
    return create_notification(
        campaign.creator_id, 'payment', 'New Support Received!', message,
        link=f"/campaign/{campaign.slug}", campaign_id=campaign.id, payment_id=payment.id,
    )


def notify_milestone_reached(campaign, milestone):
    message = f"Your campaign \"{campaign.title}\" reached the milestone \"{milestone.title}\""
    return create_notification(
        campaign.creator_id, 'milestone', 'Milestone Reached', message,
        link=f"/campaign/{campaign.slug}", campaign_id=campaign.id,
    )


def notify_campaign_update(supporter_ids, campaign, update):
    """Notify every supporter of a newly published update; returns number created"""
    created = 0
    for user_id in supporter_ids:
        if create_notification(
            user_id, 'update', f"New update from {campaign.title}", update.title,
            link=f"/campaign/{campaign.slug}#updates", campaign_id=campaign.id,
        ):
            created += 1
    return created


def notify_moderation_result(campaign, action):
    """Tell the creator what moderation decided about their campaign"""
    titles = {
        'approve': ('Campaign Published', f"\"{campaign.title}\" passed review and is now live."),
        'review': ('Campaign Under Review', f"\"{campaign.title}\" is live and queued for a manual review."),
        'reject': ('Campaign Rejected', f"\"{campaign.title}\" did not pass content review."),
    }
    title, message = titles[action]
    return create_notification(
        campaign.creator_id, 'system', title, message,
        link=f"/campaign/{campaign.slug}", campaign_id=campaign.id,
    )


def notify_new_comment(campaign, comment):
    """Tell the creator someone commented, unless they wrote it"""
    if comment.user_id == campaign.creator_id:
        return None
    author = comment.author.name if comment.author else 'Someone'
    return create_notification(
        campaign.creator_id, 'comment', 'New Comment',
        f"{author} commented on \"{campaign.title}\"",
        link=f"/campaign/{campaign.slug}#comments", campaign_id=campaign.id,
    )
