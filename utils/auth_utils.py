"""
Authorization helpers: admin-only routes, owner checks and the shared secret
guarding time-triggered entry points.
"""
import hmac
from functools import wraps

from flask import current_app, request
from flask_login import current_user

from utils.errors import AuthenticationError, AuthorizationError


def admin_required(f):
    """Decorator to require a logged-in, active admin"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            raise AuthenticationError('Please log in to continue.')
        if not current_user.is_admin:
            raise AuthorizationError('Admin privileges required.')
        return f(*args, **kwargs)
    return decorated_function


def require_owner(campaign, user=None, allow_admin=False):
    """Raise AuthorizationError unless `user` created `campaign`"""
    user = user or current_user
    if not user or not user.is_authenticated:
        raise AuthenticationError('Please log in to continue.')
    if campaign.creator_id == user.id:
        return
    if allow_admin and user.is_admin:
        return
    raise AuthorizationError('You do not own this campaign.')


def _presented_cron_secret():
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header[len('Bearer '):].strip()
    return request.args.get('secret', '')


def cron_authorized():
    """True if the request carries the configured CRON_SECRET (header or query)"""
    expected = current_app.config.get('CRON_SECRET')
    if not expected:
        current_app.logger.error("CRON_SECRET is not configured; rejecting scheduled job call")
        return False
    presented = _presented_cron_secret()
    return bool(presented) and hmac.compare_digest(presented.encode('utf-8'), expected.encode('utf-8'))


def cron_required(f):
    """Decorator for scheduled-job endpoints"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not cron_authorized():
            raise AuthenticationError('Unauthorized')
        return f(*args, **kwargs)
    return decorated_function
