"""
Authentication routes: signup, login, logout (JSON API)
"""
from flask import Blueprint, jsonify, request, current_app
from flask_login import login_user, logout_user, login_required, current_user
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from models import db
from models.user import User
from utils.errors import ConflictError, ValidationError
from utils.validators import clean_text, require_object, validate_email, validate_password, validate_username

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/signup', methods=['POST'])
def signup():
    """Create an account and log it in"""
    data = require_object(request.get_json(silent=True) or request.form.to_dict())
    name = clean_text(data.get('name'), 'Name', max_length=100, required=True)
    username = clean_text(data.get('username'), 'Username').lower()
    email = clean_text(data.get('email'), 'Email').lower()
    password = data.get('password') or ''

    if not validate_username(username):
        raise ValidationError('Username must be 3-50 letters, numbers or underscores.')
    if not validate_email(email):
        raise ValidationError('Please enter a valid email address.')
    is_valid, pwd_error = validate_password(password)
    if not is_valid:
        raise ValidationError(pwd_error)

    if User.query.filter(func.lower(User.email) == email).first():
        raise ConflictError('Email address already registered.')
    if User.query.filter(func.lower(User.username) == username).first():
        raise ConflictError('Username already taken.')

    user = User(name=name, username=username, email=email)
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        # Concurrent signup with the same email/username
        db.session.rollback()
        raise ConflictError('An account with these details already exists.')

    login_user(user, remember=True)
    current_app.logger.info(f"New user registered: {user.id} ({user.username})")
    return jsonify({'success': True, 'message': 'Account created.', 'user': user.to_dict(private=True)}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    """Log in with email or username"""
    data = require_object(request.get_json(silent=True) or request.form.to_dict())
    identifier = clean_text(data.get('identifier') or data.get('email'), 'Email or username').lower()
    password = data.get('password') or ''
    if not identifier or not isinstance(password, str) or not password:
        raise ValidationError('Please enter both email/username and password.')

    if '@' in identifier:
        user = User.query.filter(func.lower(User.email) == identifier).first()
    else:
        user = User.query.filter(func.lower(User.username) == identifier).first()

    if not user or not user.check_password(password):
        return jsonify({'success': False, 'message': 'Invalid credentials.'}), 401
    if not user.is_active:
        return jsonify({'success': False, 'message': 'Your account is inactive. Please contact support.'}), 403

    login_user(user, remember=True)
    return jsonify({'success': True, 'message': f'Welcome back, {user.name}!', 'user': user.to_dict(private=True)})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True, 'message': 'You have been logged out.'})


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({'success': True, 'user': current_user.to_dict(private=True)})
