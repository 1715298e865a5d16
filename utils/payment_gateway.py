"""
Payment gateway client: orders, recurring plans/subscriptions and the
HMAC signature scheme used to authenticate checkout confirmations.
"""
import base64
import hashlib
import hmac
import json
import logging
import urllib.error
import urllib.request
import uuid
from datetime import datetime
from decimal import Decimal

from flask import current_app

from utils.errors import UpstreamError

logger = logging.getLogger(__name__)

# Gateway plan period/interval per subscription frequency
FREQUENCY_PERIODS = {
    'monthly': ('monthly', 1),
    'quarterly': ('monthly', 3),
    'yearly': ('yearly', 1),
}
# 10 years of monthly charges
MAX_SUBSCRIPTION_CYCLES = 120


def generate_receipt_reference():
    """Generate unique receipt reference for a gateway order"""
    return f"RCPT-{uuid.uuid4().hex[:12].upper()}-{datetime.utcnow().strftime('%Y%m%d')}"


def to_minor_units(amount):
    """Gateway amounts are integers in the smallest currency unit (paise)"""
    return int((Decimal(str(amount)) * 100).to_integral_value())


def generate_signature(order_id, payment_id, secret):
    """Hex HMAC-SHA256 over 'order_id|payment_id' with the shared secret"""
    payload = f"{order_id}|{payment_id}"
    return hmac.new(secret.encode('utf-8'), payload.encode('utf-8'), hashlib.sha256).hexdigest()


def verify_signature(order_id, payment_id, signature, secret=None):
    """Constant-time check of a checkout confirmation signature"""
    if not order_id or not payment_id or not signature or not isinstance(signature, str):
        return False
    secret = secret or current_app.config.get('PAYMENT_GATEWAY_SECRET')
    if not secret:
        logger.error("PAYMENT_GATEWAY_SECRET is not configured; rejecting signature")
        return False
    expected = generate_signature(order_id, payment_id, secret)
    return hmac.compare_digest(expected, signature)


def _gateway_request(method, path, payload=None):
    """Authenticated JSON call to the gateway REST API"""
    key_id = current_app.config.get('PAYMENT_GATEWAY_KEY_ID')
    secret = current_app.config.get('PAYMENT_GATEWAY_SECRET')
    if not key_id or not secret:
        raise UpstreamError("Payment gateway credentials are not configured")

    url = current_app.config['PAYMENT_GATEWAY_BASE_URL'].rstrip('/') + path
    data = json.dumps(payload).encode('utf-8') if payload is not None else None
    req = urllib.request.Request(url, data=data, method=method)
    token = base64.b64encode(f"{key_id}:{secret}".encode('utf-8')).decode('ascii')
    req.add_header('Authorization', f'Basic {token}')
    req.add_header('Content-Type', 'application/json')

    timeout = current_app.config.get('PAYMENT_GATEWAY_TIMEOUT_SECONDS', 15)
    try:
        with urllib.request.urlopen(req, timeout=timeout) as r:
            return json.loads(r.read().decode('utf-8'))
    except urllib.error.HTTPError as e:
        body = e.read().decode('utf-8', errors='replace')
        logger.error("Payment gateway %s %s failed: status=%s body=%s", method, path, e.code, body[:500])
        raise UpstreamError("Payment gateway rejected the request") from e
    except (urllib.error.URLError, TimeoutError, ValueError) as e:
        logger.error("Payment gateway %s %s unreachable: %s", method, path, e)
        raise UpstreamError("Payment gateway is unavailable. Please try again later.") from e


def create_order(amount, currency='INR', receipt=None, notes=None):
    """
    Create a checkout order.

    Returns:
        dict: gateway order ({'id', 'amount', 'currency', ...})
    """
    return _gateway_request('POST', '/orders', {
        'amount': to_minor_units(amount),
        'currency': currency,
        'receipt': receipt or generate_receipt_reference(),
        'notes': notes or {},
    })


def create_plan(amount, frequency, item_name, currency='INR', notes=None):
    """Create a recurring billing plan for the given frequency"""
    period, interval = FREQUENCY_PERIODS[frequency]
    return _gateway_request('POST', '/plans', {
        'period': period,
        'interval': interval,
        'item': {
            'name': item_name,
            'amount': to_minor_units(amount),
            'currency': currency,
            'description': f"{frequency.title()} support for {item_name}",
        },
        'notes': notes or {},
    })


def create_subscription(plan_id, notes=None, total_count=MAX_SUBSCRIPTION_CYCLES):
    return _gateway_request('POST', '/subscriptions', {
        'plan_id': plan_id,
        'customer_notify': 1,
        'quantity': 1,
        'total_count': total_count,
        'notes': notes or {},
    })


def pause_subscription(gateway_subscription_id):
    return _gateway_request('POST', f'/subscriptions/{gateway_subscription_id}/pause', {'pause_at': 'now'})


def resume_subscription(gateway_subscription_id):
    return _gateway_request('POST', f'/subscriptions/{gateway_subscription_id}/resume', {'resume_at': 'now'})


def cancel_subscription(gateway_subscription_id):
    return _gateway_request('POST', f'/subscriptions/{gateway_subscription_id}/cancel', {'cancel_at_cycle_end': 0})
