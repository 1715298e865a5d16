"""
Campaign comments: posting, threaded listing, soft deletion, likes and pins.
Campaign.comments_count counts live comments and replies; it only moves through
in-database increments committed together with the comment row it describes.
"""
import logging
from datetime import datetime

from sqlalchemy import update

from models import db
from models.campaign import Campaign
from models.comment import Comment, DELETED_COMMENT_TEXT
from utils.errors import AuthorizationError, NotFoundError, ValidationError
from utils.validators import clean_text, parse_int

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 1000
COMMENT_SORTS = ('newest', 'oldest', 'top')


def get_live_comment(comment_id):
    comment = db.session.get(Comment, comment_id)
    if not comment or comment.deleted:
        raise NotFoundError('Comment not found')
    return comment


def add_comment(campaign, user, content, parent_id=None):
    """
    Post a comment, or a reply when parent_id is given. A reply to a reply is
    attached to the top-level comment so threads stay one level deep.
    """
    from utils.notifications import notify_new_comment

    if not campaign.is_publicly_listed:
        raise NotFoundError('Campaign not found')
    content = clean_text(content, 'Comment', max_length=MAX_COMMENT_LENGTH, required=True)

    parent_id = parse_int(parent_id, 'Parent comment')
    if parent_id:
        parent = db.session.get(Comment, parent_id)
        if not parent or parent.deleted or parent.campaign_id != campaign.id:
            raise ValidationError('The comment you are replying to is not available')
        parent_id = parent.parent_id or parent.id

    comment = Comment(campaign_id=campaign.id, user_id=user.id, parent_id=parent_id, content=content)
    db.session.add(comment)
    try:
        db.session.flush()
        db.session.execute(
            update(Campaign)
            .where(Campaign.id == campaign.id)
            .values(comments_count=Campaign.comments_count + 1)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.error("Failed to add comment on campaign %s for user %s", campaign.id, user.id, exc_info=True)
        raise

    notify_new_comment(campaign, comment)
    return comment


def list_comments(campaign_id, sort='newest'):
    """Live top-level comments (pinned first) with their live replies, oldest reply first"""
    if sort not in COMMENT_SORTS:
        raise ValidationError('Unknown sort order')

    query = Comment.query.filter(
        Comment.campaign_id == campaign_id,
        Comment.parent_id.is_(None),
        Comment.deleted.is_(False),
    )
    order = [Comment.pinned.desc()]
    if sort == 'oldest':
        order += [Comment.created_at.asc(), Comment.id.asc()]
    elif sort == 'top':
        order += [Comment.likes_count.desc(), Comment.created_at.desc(), Comment.id.desc()]
    else:
        order += [Comment.created_at.desc(), Comment.id.desc()]
    top_level = query.order_by(*order).all()

    replies = {}
    if top_level:
        for reply in Comment.query.filter(
            Comment.parent_id.in_([c.id for c in top_level]),
            Comment.deleted.is_(False),
        ).order_by(Comment.created_at.asc(), Comment.id.asc()):
            replies.setdefault(reply.parent_id, []).append(reply)
    return [(comment, replies.get(comment.id, [])) for comment in top_level]


def delete_comment(comment, user):
    """
    Soft delete by the author, the campaign creator or an admin.
    Returns False when the comment was already deleted.
    """
    campaign = db.session.get(Campaign, comment.campaign_id)
    allowed = user.is_admin or comment.user_id == user.id or (campaign and campaign.creator_id == user.id)
    if not allowed:
        raise AuthorizationError('You do not have permission to delete this comment')

    try:
        deleted = db.session.execute(
            update(Comment)
            .where(Comment.id == comment.id, Comment.deleted.is_(False))
            .values(deleted=True, pinned=False, content=DELETED_COMMENT_TEXT, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        ).rowcount == 1
        if deleted:
            db.session.execute(
                update(Campaign)
                .where(Campaign.id == comment.campaign_id, Campaign.comments_count > 0)
                .values(comments_count=Campaign.comments_count - 1)
                .execution_options(synchronize_session=False)
            )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    db.session.refresh(comment)
    return deleted


def like_comment(comment):
    db.session.execute(
        update(Comment)
        .where(Comment.id == comment.id)
        .values(likes_count=Comment.likes_count + 1)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    db.session.refresh(comment)
    return comment.likes_count


def toggle_pin(comment, user):
    """Campaign creator pins one top-level comment at a time; pinning it again unpins"""
    campaign = db.session.get(Campaign, comment.campaign_id)
    if not campaign or campaign.creator_id != user.id:
        raise AuthorizationError('Only the campaign creator can pin comments')
    if comment.parent_id is not None:
        raise ValidationError('Replies cannot be pinned')

    pin = not comment.pinned
    try:
        db.session.execute(
            update(Comment)
            .where(Comment.campaign_id == campaign.id, Comment.pinned.is_(True), Comment.id != comment.id)
            .values(pinned=False)
            .execution_options(synchronize_session=False)
        )
        comment.pinned = pin
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return pin
