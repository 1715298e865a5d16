"""
Payment routes: checkout, confirmation, failure reporting and recurring support
"""
from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user

from models.payment import Payment
from models.subscription import Subscription
from utils.contributions import (
    change_subscription_status, create_contribution, create_recurring_support, mark_payment_failed,
)
from utils.errors import ValidationError
from utils.ledger import settle_payment
from utils.validators import require_object

payments_bp = Blueprint('payments', __name__, url_prefix='/api/payments')
subscriptions_bp = Blueprint('subscriptions', __name__, url_prefix='/api/subscriptions')


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError('Invalid request body')
    return require_object(data)


@payments_bp.route('/create', methods=['POST'])
def create_payment():
    """Open a gateway order and a pending payment for it"""
    data = _json_body()
    payer = current_user if current_user.is_authenticated else None
    payment, order = create_contribution(data, payer=payer)
    return jsonify({
        'success': True,
        'order': {
            'id': order['id'],
            'amount': order.get('amount'),
            'currency': order.get('currency', payment.currency),
        },
        'key_id': current_app.config.get('PAYMENT_GATEWAY_KEY_ID'),
        'payment': payment.to_dict(include_private=True),
    }), 201


@payments_bp.route('/verify', methods=['POST'])
def verify_payment():
    """Confirm a gateway payment; safe to call any number of times"""
    data = _json_body()
    order_id = data.get('order_id') or data.get('razorpay_order_id')
    payment_id = data.get('payment_id') or data.get('razorpay_payment_id')
    signature = data.get('signature') or data.get('razorpay_signature')
    if not all(isinstance(v, str) and v for v in (order_id, payment_id, signature)):
        raise ValidationError('Missing payment details')

    result = settle_payment(order_id, payment_id, signature)
    return jsonify({
        'success': True,
        'message': 'Payment already verified.' if result.already_settled else 'Payment verified successfully.',
        'already_settled': result.already_settled,
        'payment': result.payment.to_dict(include_private=True),
        'campaign': result.campaign.to_dict() if result.campaign else None,
    })


@payments_bp.route('/failed', methods=['POST'])
def payment_failed():
    data = _json_body()
    order_id = data.get('order_id') or data.get('razorpay_order_id')
    if not isinstance(order_id, str) or not order_id:
        raise ValidationError('Order id is required')
    payment, changed = mark_payment_failed(order_id, data.get('reason') or data.get('error_description'))
    return jsonify({'success': True, 'changed': changed, 'status': payment.status})


@payments_bp.route('/mine', methods=['GET'])
@login_required
def my_payments():
    payments = Payment.query.filter_by(payer_id=current_user.id).order_by(Payment.created_at.desc()).limit(100).all()
    return jsonify({'success': True, 'payments': [p.to_dict(include_private=True) for p in payments]})


@payments_bp.route('/subscription', methods=['POST'])
@login_required
def create_subscription():
    """Start recurring support for a campaign"""
    subscription = create_recurring_support(_json_body(), current_user)
    current_app.logger.info(f"Subscription {subscription.id} created by user {current_user.id}")
    return jsonify({
        'success': True,
        'subscription': subscription.to_dict(),
        'key_id': current_app.config.get('PAYMENT_GATEWAY_KEY_ID'),
    }), 201


@subscriptions_bp.route('', methods=['GET'])
@login_required
def list_subscriptions():
    subscriptions = Subscription.query.filter_by(subscriber_id=current_user.id).order_by(
        Subscription.created_at.desc()
    ).all()
    return jsonify({'success': True, 'subscriptions': [s.to_dict() for s in subscriptions]})


@subscriptions_bp.route('/<int:subscription_id>/<action>', methods=['POST'])
@login_required
def manage_subscription(subscription_id, action):
    """Pause, resume or cancel"""
    subscription = change_subscription_status(subscription_id, action, current_user)
    return jsonify({'success': True, 'subscription': subscription.to_dict()})
