import itertools
import os
from datetime import datetime, timedelta
from decimal import Decimal

# Module-level app in app.py must not reach for a real database
os.environ.setdefault('DATABASE_URL', 'sqlite://')

import pytest

from app import create_app
from config import TestingConfig
from models import db
from models.campaign import Campaign, RewardTier, Milestone, MODERATION_APPROVED
from models.payment import Payment, PAYMENT_PENDING
from models.user import User
from utils.campaign_lifecycle import slugify
from utils.payment_gateway import generate_signature

PASSWORD = 'password123'


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = itertools.count(1)

    def _make(name=None, is_admin=False, is_active=True):
        n = next(counter)
        user = User(
            name=name or f'User {n}',
            username=f'user{n}',
            email=f'user{n}@example.com',
            is_admin=is_admin,
            is_active=is_active,
        )
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def make_campaign(app, make_user):
    def _make(creator=None, status='active', goal=10000, current=0, supporters=0,
              end_date=None, created_at=None, rewards=(), milestones=(), **fields):
        now = datetime.utcnow()
        title = fields.pop('title', 'Community garden')
        campaign = Campaign(
            creator_id=(creator or make_user()).id,
            title=title,
            slug=slugify(title),
            category=fields.pop('category', 'community'),
            story=fields.pop('story', 'We are building a garden for the whole neighbourhood to share.'),
            goal_amount=Decimal(str(goal)),
            current_amount=Decimal(str(current)),
            supporters_count=supporters,
            end_date=end_date or now + timedelta(days=30),
            status=status,
            moderation_status=fields.pop('moderation_status', MODERATION_APPROVED),
            created_at=created_at or now,
            **fields
        )
        campaign.rewards = [
            RewardTier(title=name, amount=Decimal(str(amount)), limited_quantity=limit)
            for name, amount, limit in rewards
        ]
        campaign.milestones = [
            Milestone(title=name, amount=Decimal(str(amount))) for name, amount in milestones
        ]
        db.session.add(campaign)
        db.session.commit()
        return campaign
    return _make


@pytest.fixture
def make_payment(app):
    counter = itertools.count(1)

    def _make(campaign, amount, status=PAYMENT_PENDING, payer=None, reward_tier=None, **fields):
        n = next(counter)
        payment = Payment(
            campaign_id=campaign.id,
            payer_id=payer.id if payer else None,
            name=payer.name if payer else f'Supporter {n}',
            email=fields.pop('email', payer.email if payer else f'supporter{n}@example.com'),
            amount=Decimal(str(amount)),
            currency='INR',
            status=status,
            gateway_order_id=fields.pop('gateway_order_id', f'order_test_{n}'),
            reward_tier_id=reward_tier.id if reward_tier else None,
            **fields
        )
        db.session.add(payment)
        db.session.commit()
        return payment
    return _make


@pytest.fixture
def sign():
    def _sign(order_id, payment_id):
        return generate_signature(order_id, payment_id, TestingConfig.PAYMENT_GATEWAY_SECRET)
    return _sign


@pytest.fixture
def login(client):
    def _login(user):
        response = client.post('/api/auth/login', json={'identifier': user.username, 'password': PASSWORD})
        assert response.status_code == 200
        return response
    return _login


@pytest.fixture
def cron_headers():
    return {'Authorization': f'Bearer {TestingConfig.CRON_SECRET}'}
