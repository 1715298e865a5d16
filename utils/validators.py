"""
Input validation helpers shared by the API routes
"""
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from utils.errors import ValidationError

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[a-zA-Z]{2,}$')
USERNAME_RE = re.compile(r'^[a-zA-Z0-9_]{3,50}$')

# Largest values the Numeric(12, 2) money columns and Integer columns hold
MAX_AMOUNT = Decimal('9999999999.99')
MAX_INTEGER = 2147483647


def validate_email(email):
    """True if email looks deliverable"""
    return isinstance(email, str) and bool(EMAIL_RE.match(email))


def validate_password(password):
    """Returns (is_valid, error_message)"""
    if not isinstance(password, str) or len(password) < 8:
        return False, 'Password must be at least 8 characters long.'
    if not any(c.isdigit() for c in password) or not any(c.isalpha() for c in password):
        return False, 'Password must contain both letters and numbers.'
    return True, None


def validate_username(username):
    return isinstance(username, str) and bool(USERNAME_RE.match(username))


def parse_amount(value, field_name='Amount', minimum=None):
    """Parse a positive money amount; raises ValidationError"""
    if value is None or value == '':
        raise ValidationError(f'{field_name} is required')
    if isinstance(value, bool) or not isinstance(value, (str, int, float, Decimal)):
        raise ValidationError(f'{field_name} must be a number')
    try:
        amount = Decimal(str(value))
        if not amount.is_finite() or amount <= 0:
            raise ValidationError(f'{field_name} must be greater than zero')
        if amount > MAX_AMOUNT:
            raise ValidationError(f'{field_name} cannot exceed {MAX_AMOUNT}')
        amount = amount.quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError):
        raise ValidationError(f'{field_name} must be a number')
    if minimum is not None and amount < Decimal(str(minimum)):
        raise ValidationError(f'Minimum {field_name.lower()} is {minimum}')
    return amount


def parse_int(value, field_name, minimum=None):
    """Parse an optional whole number; None and '' stay None"""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError(f'{field_name} must be a whole number')
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f'{field_name} must be a whole number')
    if minimum is not None and number < minimum:
        raise ValidationError(f'{field_name} must be at least {minimum}')
    if abs(number) > MAX_INTEGER:
        raise ValidationError(f'{field_name} is out of range')
    return number


def clean_text(value, field_name, max_length=None, required=False):
    """Strip a text field; rejects non-string input"""
    if value is None:
        value = ''
    if not isinstance(value, str):
        raise ValidationError(f'{field_name} must be text')
    value = value.strip()
    if required and not value:
        raise ValidationError(f'{field_name} is required')
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f'{field_name} must be {max_length} characters or less')
    return value


def require_object(data, field_name='Request body'):
    if not isinstance(data, dict):
        raise ValidationError(f'{field_name} must be a JSON object')
    return data


def parse_datetime(value, field_name='Date'):
    """Parse an ISO-8601 date or datetime string (naive UTC)"""
    if not value:
        raise ValidationError(f'{field_name} is required')
    if not isinstance(value, str):
        raise ValidationError(f'{field_name} must be an ISO-8601 date')
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError(f'{field_name} must be an ISO-8601 date')
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def require_fields(data, *fields):
    require_object(data)
    missing = [f for f in fields if data.get(f) in (None, '')]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
