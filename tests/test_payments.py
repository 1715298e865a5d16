from datetime import datetime
from decimal import Decimal

import pytest

from models.payment import Payment, PAYMENT_SUCCESS
from models.subscription import Subscription
from models import db
from utils.contributions import add_months
from utils.errors import UpstreamError
from utils.payment_gateway import generate_signature, to_minor_units, verify_signature


@pytest.fixture
def gateway(monkeypatch):
    """Stand-in for the gateway REST API; records every call"""
    calls = []

    def fake_request(method, path, payload=None):
        calls.append((method, path, payload))
        if path == '/orders':
            return {'id': f'order_{len(calls)}', 'amount': payload['amount'], 'currency': payload['currency']}
        if path == '/plans':
            return {'id': 'plan_1'}
        if path == '/subscriptions':
            return {'id': 'sub_1', 'status': 'created'}
        return {'id': path.split('/')[2], 'status': 'ok'}

    monkeypatch.setattr('utils.payment_gateway._gateway_request', fake_request)
    return calls


def test_signature_roundtrip(app):
    signature = generate_signature('order_1', 'pay_1', 'gateway-test-secret')
    assert verify_signature('order_1', 'pay_1', signature)
    assert not verify_signature('order_1', 'pay_2', signature)
    assert not verify_signature('order_1', 'pay_1', signature.upper())
    assert not verify_signature('order_1', 'pay_1', None)


def test_signature_rejected_without_secret(app):
    signature = generate_signature('order_1', 'pay_1', 'gateway-test-secret')
    app.config['PAYMENT_GATEWAY_SECRET'] = None
    assert not verify_signature('order_1', 'pay_1', signature)


def test_minor_units():
    assert to_minor_units(Decimal('25.50')) == 2550
    assert to_minor_units('10') == 1000


def test_add_months_clamps_day():
    assert add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)
    assert add_months(datetime(2024, 11, 15), 3) == datetime(2025, 2, 15)
    assert add_months(datetime(2024, 3, 10), 12) == datetime(2025, 3, 10)


def test_checkout_creates_pending_payment(client, make_campaign, gateway):
    campaign = make_campaign()

    response = client.post('/api/payments/create', json={
        'campaign_id': campaign.id, 'amount': '2500', 'name': 'Asha', 'email': 'asha@example.com',
    })

    assert response.status_code == 201
    body = response.get_json()
    assert body['order']['amount'] == 250000
    assert body['key_id'] == 'rzp_test_key'
    payment = Payment.query.one()
    assert payment.status == 'pending'
    assert payment.gateway_order_id == body['order']['id']
    assert float(campaign.current_amount) == 0.0


@pytest.mark.parametrize('amount', ['5', '0', 'abc', None, '1e30', '10000000000', 'NaN', True, [100]])
def test_checkout_rejects_bad_amounts(client, make_campaign, gateway, amount):
    campaign = make_campaign()
    response = client.post('/api/payments/create', json={'campaign_id': campaign.id, 'amount': amount, 'name': 'A'})
    assert response.status_code == 400
    assert gateway == []


@pytest.mark.parametrize('fields', [
    {'name': 123},
    {'name': 'A', 'email': ['a@example.com']},
    {'name': 'A', 'email': 'not-an-email'},
    {'name': 'A', 'message': {'text': 'hi'}},
    {'name': 'A', 'reward_tier_id': 'lots'},
])
def test_checkout_rejects_mistyped_fields(client, make_campaign, gateway, fields):
    campaign = make_campaign()
    response = client.post('/api/payments/create', json=dict({'campaign_id': campaign.id, 'amount': 100}, **fields))
    assert response.status_code == 400
    assert response.get_json()['success'] is False
    assert gateway == []


def test_non_object_bodies_are_rejected(client, gateway):
    assert client.post('/api/payments/create', json=[1, 2]).status_code == 400
    assert client.post('/api/payments/verify', json={'order_id': 5, 'payment_id': 'p', 'signature': 's'}).status_code == 400
    assert client.post('/api/payments/failed', json='order_abc').status_code == 400


def test_checkout_rejects_closed_campaign(client, make_campaign, gateway):
    campaign = make_campaign(status='completed')
    response = client.post('/api/payments/create', json={'campaign_id': campaign.id, 'amount': 100, 'name': 'A'})
    assert response.status_code == 400
    assert gateway == []


def test_checkout_enforces_reward_minimum(client, make_campaign, gateway):
    campaign = make_campaign(rewards=[('Tote bag', 1000, None)])
    response = client.post('/api/payments/create', json={
        'campaign_id': campaign.id, 'amount': 500, 'name': 'A', 'reward_tier_id': campaign.rewards[0].id,
    })
    assert response.status_code == 400


def test_gateway_outage_leaves_no_payment(client, make_campaign, monkeypatch):
    campaign = make_campaign()

    def down(method, path, payload=None):
        raise UpstreamError('Payment gateway is unavailable. Please try again later.')
    monkeypatch.setattr('utils.payment_gateway._gateway_request', down)

    response = client.post('/api/payments/create', json={'campaign_id': campaign.id, 'amount': 100, 'name': 'A'})

    assert response.status_code == 502
    assert Payment.query.count() == 0


def test_verify_endpoint_is_idempotent(client, make_campaign, make_payment, sign):
    campaign = make_campaign(current=10000)
    make_payment(campaign, 2500, gateway_order_id='order_abc')
    payload = {'order_id': 'order_abc', 'payment_id': 'pay_1', 'signature': sign('order_abc', 'pay_1')}

    first = client.post('/api/payments/verify', json=payload)
    second = client.post('/api/payments/verify', json=payload)

    assert first.status_code == 200
    assert first.get_json()['already_settled'] is False
    assert second.status_code == 200
    assert second.get_json()['already_settled'] is True
    assert second.get_json()['campaign']['current_amount'] == 12500.0


def test_verify_endpoint_rejects_bad_signature(client, make_campaign, make_payment):
    campaign = make_campaign()
    make_payment(campaign, 2500, gateway_order_id='order_abc')

    response = client.post('/api/payments/verify', json={
        'order_id': 'order_abc', 'payment_id': 'pay_1', 'signature': 'deadbeef',
    })

    assert response.status_code == 400
    assert response.get_json() == {'success': False, 'message': 'Invalid payment signature'}


def test_verify_endpoint_unknown_order(client, sign):
    response = client.post('/api/payments/verify', json={
        'order_id': 'order_nope', 'payment_id': 'pay_1', 'signature': sign('order_nope', 'pay_1'),
    })
    assert response.status_code == 404


def test_failed_payment_cannot_be_settled_later(client, make_campaign, make_payment, sign):
    campaign = make_campaign()
    payment = make_payment(campaign, 2500, gateway_order_id='order_abc')

    failed = client.post('/api/payments/failed', json={'order_id': 'order_abc', 'reason': 'card declined'})
    verify = client.post('/api/payments/verify', json={
        'order_id': 'order_abc', 'payment_id': 'pay_1', 'signature': sign('order_abc', 'pay_1'),
    })

    assert failed.get_json()['changed'] is True
    assert payment.failure_reason == 'card declined'
    assert verify.status_code == 409
    assert float(campaign.current_amount) == 0.0


def test_settled_payment_is_never_marked_failed(client, make_campaign, make_payment):
    campaign = make_campaign()
    make_payment(campaign, 2500, status=PAYMENT_SUCCESS, gateway_order_id='order_abc')

    response = client.post('/api/payments/failed', json={'order_id': 'order_abc'})

    assert response.get_json()['changed'] is False
    assert response.get_json()['status'] == 'success'


def test_my_payments(client, login, make_user, make_campaign, make_payment):
    payer = make_user()
    campaign = make_campaign()
    make_payment(campaign, 300, payer=payer, anonymous=True)
    make_payment(campaign, 400)
    login(payer)

    payments = client.get('/api/payments/mine').get_json()['payments']

    assert len(payments) == 1
    assert payments[0]['name'] == payer.name
    assert payments[0]['amount'] == 300.0


def test_recurring_support_lifecycle(client, login, make_user, make_campaign, gateway):
    campaign = make_campaign()
    supporter = make_user()
    login(supporter)

    created = client.post('/api/payments/subscription', json={
        'campaign_id': campaign.id, 'amount': 200, 'frequency': 'quarterly',
    })
    assert created.status_code == 201
    subscription = Subscription.query.one()
    assert subscription.gateway_subscription_id == 'sub_1'
    assert subscription.status == 'active'
    plan_payload = gateway[0][2]
    assert plan_payload['period'] == 'monthly' and plan_payload['interval'] == 3
    # Recurring intent never moves campaign totals
    assert float(campaign.current_amount) == 0.0

    assert client.post(f'/api/subscriptions/{subscription.id}/resume').status_code == 409
    assert client.post(f'/api/subscriptions/{subscription.id}/pause').status_code == 200
    assert subscription.status == 'paused'
    assert client.post(f'/api/subscriptions/{subscription.id}/resume').status_code == 200
    assert client.post(f'/api/subscriptions/{subscription.id}/cancel').status_code == 200
    assert subscription.status == 'cancelled'
    assert subscription.end_date is not None
    assert client.post(f'/api/subscriptions/{subscription.id}/pause').status_code == 409
    assert client.post(f'/api/subscriptions/{subscription.id}/refund').status_code == 400

    listed = client.get('/api/subscriptions').get_json()['subscriptions']
    assert [s['id'] for s in listed] == [subscription.id]


def test_subscription_belongs_to_subscriber(client, login, make_user, make_campaign, gateway):
    campaign = make_campaign()
    owner = make_user()
    subscription = Subscription(subscriber_id=owner.id, creator_id=campaign.creator_id, campaign_id=campaign.id,
                                gateway_subscription_id='sub_owned', amount=100, status='active')
    db.session.add(subscription)
    db.session.commit()
    login(make_user())

    response = client.post(f'/api/subscriptions/{subscription.id}/cancel')

    assert response.status_code == 403
    assert subscription.status == 'active'


def test_cannot_subscribe_to_own_campaign(client, login, make_campaign, gateway):
    campaign = make_campaign()
    login(campaign.creator)

    response = client.post('/api/payments/subscription', json={'campaign_id': campaign.id, 'amount': 200})

    assert response.status_code == 400
    assert gateway == []
