"""
Funding ledger: payment settlement and campaign total reconciliation.

Settlement credits a payment to its campaign at most once. The payment's own
status column is the latch: a conditional UPDATE pending -> success either
wins (one row) or loses (zero rows), so concurrent or replayed confirmations
can never double-credit. Campaign and creator totals only move through
in-database increments.
"""
import time
from collections import namedtuple
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func, or_, select, update

from models import db
from models.campaign import Campaign, Milestone, RewardTier
from models.payment import Payment, PAYMENT_PENDING, PAYMENT_SUCCESS
from models.user import User
from utils.errors import ConflictError, InvalidSignature, PaymentNotFound
from utils.payment_gateway import verify_signature

SettlementResult = namedtuple('SettlementResult', 'payment campaign already_settled')


def settle_payment(order_id, payment_id, signature):
    """
    Finalize a gateway confirmation and credit the campaign exactly once.

    Args:
        order_id: Gateway order id (idempotency key of the Payment)
        payment_id: Gateway payment id
        signature: Hex HMAC over 'order_id|payment_id'

    Returns:
        SettlementResult

    Raises:
        InvalidSignature: signature mismatch, nothing written
        PaymentNotFound: no payment for this order id
        ConflictError: payment already failed or refunded
    """
    started = time.monotonic()
    if not verify_signature(order_id, payment_id, signature):
        current_app.logger.warning(f"Rejected payment confirmation with invalid signature (order {order_id})")
        raise InvalidSignature()

    payment = Payment.query.filter_by(gateway_order_id=order_id).first()
    if not payment:
        raise PaymentNotFound()

    payment_pk = payment.id
    campaign_id = payment.campaign_id
    amount = payment.amount
    now = datetime.utcnow()

    # Latch and campaign credit commit together
    try:
        latched = db.session.execute(
            update(Payment)
            .where(Payment.id == payment_pk, Payment.status == PAYMENT_PENDING)
            .values(status=PAYMENT_SUCCESS, gateway_payment_id=payment_id,
                    settled_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount == 1
        if latched:
            db.session.execute(
                update(Campaign)
                .where(Campaign.id == campaign_id)
                .values(current_amount=Campaign.current_amount + amount,
                        supporters_count=Campaign.supporters_count + 1)
                .execution_options(synchronize_session=False)
            )
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.error(f"Settlement of payment {payment_pk} (order {order_id}) failed", exc_info=True)
        raise

    payment = db.session.get(Payment, payment_pk)
    campaign = db.session.get(Campaign, campaign_id)

    if not latched:
        if payment.status == PAYMENT_SUCCESS:
            if payment.gateway_payment_id != payment_id:
                current_app.logger.warning(
                    f"Order {order_id} confirmed again with a different payment id "
                    f"({payment_id} vs {payment.gateway_payment_id}); not credited"
                )
            current_app.logger.info(f"Payment {payment_pk} (order {order_id}) already settled; skipping credit")
            return SettlementResult(payment, campaign, True)
        raise ConflictError(f"Payment is already {payment.status}")

    if campaign is not None:
        _best_effort('creator totals', payment_pk, _credit_creator, campaign.creator_id, amount)
        from utils.notifications import notify_new_support
        _best_effort('creator notification', payment_pk, notify_new_support, campaign, payment)
        if payment.reward_tier_id:
            _best_effort('reward claim', payment_pk, _claim_reward, payment.reward_tier_id, campaign_id)
        _best_effort('milestones', payment_pk, complete_reached_milestones, campaign)
        from utils.mail import send_contribution_receipt
        _best_effort('receipt email', payment_pk, send_contribution_receipt, payment, campaign)

    elapsed_ms = (time.monotonic() - started) * 1000
    current_app.logger.info(
        f"Payment {payment_pk} (order {order_id}) settled: campaign {campaign_id} +{amount} in {elapsed_ms:.1f}ms"
    )
    return SettlementResult(payment, campaign, False)


def _best_effort(step, payment_pk, fn, *args):
    """Run a post-credit side effect; failures are logged, never rolled into the ledger"""
    try:
        return fn(*args)
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Settlement step '{step}' failed for payment {payment_pk}: {str(e)}", exc_info=True)
        return None


def _credit_creator(creator_id, amount):
    db.session.execute(
        update(User)
        .where(User.id == creator_id)
        .values(total_raised=User.total_raised + amount,
                total_supporters=User.total_supporters + 1)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()


def _claim_reward(reward_tier_id, campaign_id):
    """Claim one unit of a reward tier; a limited tier never goes past its limit"""
    claimed = db.session.execute(
        update(RewardTier)
        .where(
            RewardTier.id == reward_tier_id,
            RewardTier.campaign_id == campaign_id,
            or_(RewardTier.limited_quantity.is_(None), RewardTier.claimed_count < RewardTier.limited_quantity),
        )
        .values(claimed_count=RewardTier.claimed_count + 1)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.session.commit()
    if not claimed:
        current_app.logger.warning(
            f"Reward tier {reward_tier_id} on campaign {campaign_id} is oversold; contribution settled without a claim"
        )
    return bool(claimed)


def complete_reached_milestones(campaign):
    """Mark milestones at or below the running total as completed; returns the newly completed ones"""
    from utils.notifications import notify_milestone_reached

    db.session.refresh(campaign)
    reached = Milestone.query.filter(
        Milestone.campaign_id == campaign.id,
        Milestone.completed.is_(False),
        Milestone.amount <= campaign.current_amount,
    ).all()
    newly_completed = []
    now = datetime.utcnow()
    for milestone in reached:
        won = db.session.execute(
            update(Milestone)
            .where(Milestone.id == milestone.id, Milestone.completed.is_(False))
            .values(completed=True, completed_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount == 1
        db.session.commit()
        if won:
            newly_completed.append(milestone)
            notify_milestone_reached(campaign, milestone)
    return newly_completed


def _ledger_amount_subquery():
    return (
        select(func.coalesce(func.sum(Payment.amount), 0))
        .where(Payment.campaign_id == Campaign.id, Payment.status == PAYMENT_SUCCESS)
        .scalar_subquery()
    )


def _ledger_count_subquery():
    return (
        select(func.count(Payment.id))
        .where(Payment.campaign_id == Campaign.id, Payment.status == PAYMENT_SUCCESS)
        .scalar_subquery()
    )


def _money(value):
    return Decimal(str(value or 0)).quantize(Decimal('0.01'))


def reconcile_campaign_totals(campaign_id=None):
    """
    Recompute denormalized campaign totals from settled payments and repair drift.

    Drift is detected in Python, but each repair is a single UPDATE whose new
    values are computed by the database from the payment table, so a
    settlement committing in between is never overwritten.

    Returns:
        list of dicts describing each corrected campaign
    """
    ledger = {
        row.campaign_id: (_money(row.amount), row.supporters)
        for row in db.session.query(
            Payment.campaign_id,
            func.coalesce(func.sum(Payment.amount), 0).label('amount'),
            func.count(Payment.id).label('supporters'),
        ).filter(Payment.status == PAYMENT_SUCCESS).group_by(Payment.campaign_id)
    }

    query = Campaign.query
    if campaign_id is not None:
        query = query.filter(Campaign.id == campaign_id)

    corrections = []
    for campaign in query.order_by(Campaign.id).all():
        expected_amount, expected_supporters = ledger.get(campaign.id, (_money(0), 0))
        current_amount = _money(campaign.current_amount)
        current_supporters = campaign.supporters_count or 0
        if current_amount == expected_amount and current_supporters == expected_supporters:
            continue

        db.session.execute(
            update(Campaign)
            .where(Campaign.id == campaign.id)
            .values(current_amount=_ledger_amount_subquery(),
                    supporters_count=_ledger_count_subquery())
            .execution_options(synchronize_session=False)
        )
        corrections.append({
            'campaign_id': campaign.id,
            'amount_before': float(current_amount),
            'amount_after': float(expected_amount),
            'supporters_before': current_supporters,
            'supporters_after': expected_supporters,
        })

    db.session.commit()
    for correction in corrections:
        current_app.logger.warning(
            f"Ledger drift corrected on campaign {correction['campaign_id']}: "
            f"amount {correction['amount_before']} -> {correction['amount_after']}, "
            f"supporters {correction['supporters_before']} -> {correction['supporters_after']}"
        )
    return corrections
