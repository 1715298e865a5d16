"""
Contribution checkout and recurring support.
A checkout creates a gateway order first and only then a pending Payment keyed
by the order id; settlement lives in utils.ledger.
"""
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import update

from models import db
from models.campaign import Campaign, RewardTier, STATUS_ACTIVE
from models.payment import Payment, PAYMENT_PENDING, PAYMENT_FAILED
from models.subscription import Subscription, SUBSCRIPTION_FREQUENCIES
from utils import payment_gateway
from utils.errors import (
    AuthorizationError, ConflictError, NotFoundError, PaymentNotFound, ValidationError,
)
from utils.validators import clean_text, parse_amount, parse_int, require_object, validate_email

FREQUENCY_MONTHS = {'monthly': 1, 'quarterly': 3, 'yearly': 12}

SUBSCRIPTION_TRANSITIONS = {
    'pause': ('active', 'paused', 'pause_subscription'),
    'resume': ('paused', 'active', 'resume_subscription'),
    'cancel': (None, 'cancelled', 'cancel_subscription'),
}


def _load_fundable_campaign(campaign_id):
    campaign_id = parse_int(campaign_id, 'Campaign')
    campaign = db.session.get(Campaign, campaign_id) if campaign_id else None
    if not campaign:
        raise NotFoundError('Campaign not found')
    if campaign.status != STATUS_ACTIVE or campaign.is_expired:
        raise ValidationError('This campaign is not accepting contributions')
    return campaign


def create_contribution(data, payer=None):
    """
    Start a one-time contribution.

    Args:
        data: dict with campaign_id, amount, name, email, message, reward_tier_id,
              anonymous, hide_amount
        payer: logged-in User or None

    Returns:
        (payment, order) where order is the gateway order dict
    """
    require_object(data)
    amount = parse_amount(data.get('amount'), minimum=current_app.config['MIN_CONTRIBUTION_AMOUNT'])
    campaign = _load_fundable_campaign(data.get('campaign_id'))

    name = clean_text(data.get('name') or (payer.name if payer else None), 'Name', max_length=100, required=True)
    email = clean_text(data.get('email') or (payer.email if payer else None), 'Email', max_length=120).lower() or None
    if email and not validate_email(email):
        raise ValidationError('Please enter a valid email address')
    message = clean_text(data.get('message'), 'Message', max_length=500)

    reward_tier = None
    reward_tier_id = parse_int(data.get('reward_tier_id'), 'Reward tier')
    if reward_tier_id:
        reward_tier = RewardTier.query.filter_by(id=reward_tier_id, campaign_id=campaign.id).first()
        if not reward_tier:
            raise ValidationError('Invalid reward tier')
        if amount < reward_tier.amount:
            raise ValidationError(f'This reward requires a contribution of at least {float(reward_tier.amount):.2f}')
        if reward_tier.is_sold_out:
            raise ValidationError('This reward is sold out')

    currency = campaign.currency or current_app.config['DEFAULT_CURRENCY']
    order = payment_gateway.create_order(amount, currency=currency, notes={
        'campaign': str(campaign.id),
        'creator': campaign.creator.username if campaign.creator else '',
    })

    payment = Payment(
        campaign_id=campaign.id,
        payer_id=payer.id if payer else None,
        name=name,
        email=email,
        message=message,
        anonymous=bool(data.get('anonymous')),
        hide_amount=bool(data.get('hide_amount')),
        amount=amount,
        currency=currency,
        status=PAYMENT_PENDING,
        gateway_order_id=order['id'],
        reward_tier_id=reward_tier.id if reward_tier else None,
        payment_type='one-time',
    )
    db.session.add(payment)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.error(f"Failed to record payment for gateway order {order.get('id')}", exc_info=True)
        raise
    current_app.logger.info(f"Payment {payment.id} created for campaign {campaign.id} (order {payment.gateway_order_id})")
    return payment, order


def mark_payment_failed(order_id, reason=None):
    """
    Record a failed checkout. Only pending payments move; a settled payment is
    never downgraded.

    Returns:
        (payment, changed)
    """
    payment = Payment.query.filter_by(gateway_order_id=order_id).first() if order_id else None
    if not payment:
        raise PaymentNotFound()
    now = datetime.utcnow()
    try:
        changed = db.session.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == PAYMENT_PENDING)
            .values(status=PAYMENT_FAILED, failure_reason=str(reason or '')[:255] or None, updated_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount == 1
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    db.session.refresh(payment)
    if changed:
        current_app.logger.info(f"Payment {payment.id} (order {order_id}) marked failed: {reason}")
    return payment, changed


def add_months(start, months):
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    # Clamp day to the target month's length
    next_month_first = datetime(year + (month // 12), month % 12 + 1, 1)
    last_day = (next_month_first - timedelta(days=1)).day
    return start.replace(year=year, month=month, day=min(start.day, last_day))


def create_recurring_support(data, subscriber):
    """
    Start recurring support for a campaign. The subscription itself never moves
    campaign totals; each realized charge settles as its own payment.
    """
    amount = parse_amount(data.get('amount'), minimum=current_app.config['MIN_CONTRIBUTION_AMOUNT'])
    frequency = data.get('frequency') or 'monthly'
    if frequency not in SUBSCRIPTION_FREQUENCIES:
        raise ValidationError('Invalid frequency')
    campaign = _load_fundable_campaign(data.get('campaign_id'))
    if campaign.creator_id == subscriber.id:
        raise ValidationError('You cannot subscribe to your own campaign')

    notes = {
        'campaign': str(campaign.id),
        'creator': str(campaign.creator_id),
        'subscriber': str(subscriber.id),
        'frequency': frequency,
    }
    plan = payment_gateway.create_plan(amount, frequency, f"Support for {campaign.title}",
                                       currency=campaign.currency or 'INR', notes=notes)
    gateway_subscription = payment_gateway.create_subscription(plan['id'], notes=notes)

    now = datetime.utcnow()
    subscription = Subscription(
        subscriber_id=subscriber.id,
        creator_id=campaign.creator_id,
        campaign_id=campaign.id,
        gateway_subscription_id=gateway_subscription['id'],
        amount=amount,
        frequency=frequency,
        status='active',
        start_date=now,
        next_billing_date=add_months(now, FREQUENCY_MONTHS[frequency]),
    )
    db.session.add(subscription)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return subscription


def change_subscription_status(subscription_id, action, user):
    """Pause, resume or cancel the caller's subscription, gateway first"""
    if action not in SUBSCRIPTION_TRANSITIONS:
        raise ValidationError('Invalid action')
    subscription = db.session.get(Subscription, subscription_id)
    if not subscription:
        raise NotFoundError('Subscription not found')
    if subscription.subscriber_id != user.id:
        raise AuthorizationError('You can only manage your own subscriptions')

    required, target, gateway_call_name = SUBSCRIPTION_TRANSITIONS[action]
    allowed_from = [required] if required else ['active', 'paused']
    if subscription.status not in allowed_from:
        raise ConflictError(f"Subscription is {subscription.status} and cannot be {target}")

    getattr(payment_gateway, gateway_call_name)(subscription.gateway_subscription_id)

    now = datetime.utcnow()
    values = {'status': target, 'updated_at': now}
    if target == 'cancelled':
        values['end_date'] = now
    try:
        changed = db.session.execute(
            update(Subscription)
            .where(Subscription.id == subscription.id, Subscription.status.in_(allowed_from))
            .values(**values)
            .execution_options(synchronize_session=False)
        ).rowcount
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    db.session.refresh(subscription)
    if not changed:
        raise ConflictError('Subscription changed in the meantime. Please reload and try again.')
    return subscription
