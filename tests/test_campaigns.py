import re
from datetime import datetime, timedelta

import pytest
from sqlalchemy import update

from models import db
from models.campaign import Campaign
from models.campaign_update import CampaignUpdate
from models.notification import Notification
from models.payment import PAYMENT_SUCCESS
from utils.campaign_lifecycle import can_transition, change_status, slugify
from utils.errors import ConflictError, InvalidStatusTransition


@pytest.mark.parametrize('current, new, allowed', [
    ('draft', 'active', True),
    ('active', 'paused', True),
    ('paused', 'active', True),
    ('active', 'completed', True),
    ('completed', 'active', False),
    ('completed', 'paused', False),
    ('deleted', 'active', False),
    ('rejected', 'active', False),
    ('active', 'rejected', False),
])
def test_transition_table(current, new, allowed):
    assert can_transition(current, new) is allowed


def test_moderators_may_pull_live_campaigns():
    assert can_transition('active', 'rejected', moderator=True)
    assert not can_transition('completed', 'rejected', moderator=True)


def test_completed_campaign_cannot_be_reopened(make_campaign):
    campaign = make_campaign(status='completed')
    with pytest.raises(InvalidStatusTransition):
        change_status(campaign, 'active')


def test_ended_campaign_cannot_be_resumed(make_campaign):
    campaign = make_campaign(status='paused', end_date=datetime.utcnow() - timedelta(minutes=1))
    with pytest.raises(InvalidStatusTransition):
        change_status(campaign, 'active')


def test_stale_status_is_a_conflict(make_campaign):
    campaign = make_campaign(status='active')
    # Another worker completes the campaign after we loaded it
    db.session.execute(
        update(Campaign).where(Campaign.id == campaign.id).values(status='completed')
        .execution_options(synchronize_session=False)
    )

    with pytest.raises(ConflictError):
        change_status(campaign, 'paused')
    assert campaign.status == 'completed'


def test_slugify():
    slug = slugify('Save the  Local Library!')
    assert re.fullmatch(r'save-the-local-library-[0-9a-f]{6}', slug)
    assert slugify('!!!').startswith('campaign-')


def test_create_draft_with_rewards_and_milestones(client, login, make_user):
    login(make_user())

    response = client.post('/api/campaigns', json={
        'title': 'Solar panels for the school',
        'category': 'education',
        'story': 'Our school wants to run on sunshine.',
        'goal_amount': '50000',
        'duration_days': 45,
        'rewards': [{'title': 'Thank-you card', 'amount': 250, 'limited_quantity': 100}],
        'milestones': [{'title': 'First panel', 'amount': 12500}, {'title': 'Inverter', 'amount': 30000}],
    })

    assert response.status_code == 201
    data = response.get_json()['campaign']
    assert data['status'] == 'draft'
    assert data['current_amount'] == 0
    assert data['slug'].startswith('solar-panels-for-the-school-')
    assert [r['title'] for r in data['rewards']] == ['Thank-you card']
    assert [m['amount'] for m in data['milestones']] == [12500.0, 30000.0]


@pytest.mark.parametrize('payload', [
    {'title': 'No goal', 'story': 'text'},
    {'title': 'Bad goal', 'story': 'text', 'goal_amount': '-5'},
    {'title': 'Past end', 'story': 'text', 'goal_amount': 100, 'end_date': '2001-01-01T00:00:00Z'},
    {'title': 'Big milestone', 'story': 'text', 'goal_amount': 100, 'milestones': [{'title': 'x', 'amount': 500}]},
    {'title': 'Odd category', 'story': 'text', 'goal_amount': 100, 'category': 'lottery'},
    {'title': 'Huge goal', 'story': 'text', 'goal_amount': '1e30'},
    {'title': 123, 'story': 'text', 'goal_amount': 100},
    {'title': 'Bare rewards', 'story': 'text', 'goal_amount': 100, 'rewards': ['not-a-dict']},
    {'title': 'Reward map', 'story': 'text', 'goal_amount': 100, 'rewards': {'title': 'x'}},
    {'title': 'Vague limit', 'story': 'text', 'goal_amount': 100,
     'rewards': [{'title': 'Mug', 'amount': 10, 'limited_quantity': 'lots'}]},
    {'title': 'Nameless reward', 'story': 'text', 'goal_amount': 100, 'rewards': [{'title': 5, 'amount': 10}]},
])
def test_create_validation(client, login, make_user, payload):
    login(make_user())
    response = client.post('/api/campaigns', json=payload)
    assert response.status_code == 400
    assert response.get_json()['success'] is False


def test_create_requires_login(client):
    response = client.post('/api/campaigns', json={'title': 'x', 'story': 'y', 'goal_amount': 100})
    assert response.status_code == 401


def test_drafts_are_hidden_from_the_public(client, login, make_campaign):
    draft = make_campaign(status='draft', moderation_status='pending')

    assert client.get(f'/api/campaigns/{draft.id}').status_code == 404
    assert draft.id not in [c['id'] for c in client.get('/api/campaigns').get_json()['campaigns']]

    login(draft.creator)
    assert client.get(f'/api/campaigns/{draft.id}').status_code == 200


def test_listing_filters(client, make_campaign):
    garden = make_campaign(title='Rooftop garden', category='environment')
    make_campaign(title='Chess club', category='community')

    by_category = client.get('/api/campaigns?category=environment').get_json()['campaigns']
    by_search = client.get('/api/campaigns?q=rooftop').get_json()['campaigns']

    assert [c['id'] for c in by_category] == [garden.id]
    assert [c['id'] for c in by_search] == [garden.id]
    assert client.get('/api/campaigns?category=lottery').status_code == 400


def test_owner_pauses_and_resumes(client, login, make_campaign):
    campaign = make_campaign()
    login(campaign.creator)

    assert client.patch(f'/api/campaigns/{campaign.id}/status', json={'status': 'paused'}).status_code == 200
    assert campaign.status == 'paused'
    assert client.patch(f'/api/campaigns/{campaign.id}/status', json={'status': 'active'}).status_code == 200
    assert campaign.status == 'active'


def test_status_change_requires_owner(client, login, make_user, make_campaign):
    campaign = make_campaign()
    login(make_user())

    response = client.patch(f'/api/campaigns/{campaign.id}/status', json={'status': 'paused'})

    assert response.status_code == 403
    assert campaign.status == 'active'


def test_draft_cannot_skip_review(client, login, make_campaign):
    campaign = make_campaign(status='draft', moderation_status='pending')
    login(campaign.creator)

    response = client.patch(f'/api/campaigns/{campaign.id}/status', json={'status': 'active'})

    assert response.status_code == 400
    assert campaign.status == 'draft'


def test_soft_delete(client, login, make_campaign):
    campaign = make_campaign()
    login(campaign.creator)

    assert client.delete(f'/api/campaigns/{campaign.id}').status_code == 200
    assert db.session.get(Campaign, campaign.id).status == 'deleted'

    client.post('/api/auth/logout')
    assert client.get(f'/api/campaigns/{campaign.id}').status_code == 404


def test_edit_never_touches_funding(client, login, make_campaign):
    campaign = make_campaign(current=700)
    login(campaign.creator)

    response = client.put(f'/api/campaigns/{campaign.id}', json={
        'title': 'Bigger garden',
        'current_amount': 999999,
    })

    assert response.status_code == 200
    assert campaign.title == 'Bigger garden'
    assert float(campaign.current_amount) == 700.0


@pytest.mark.parametrize('payload', [{'story': 123}, {'title': ''}, {'short_description': ['x']}, ['story']])
def test_edit_rejects_mistyped_fields(client, login, make_campaign, payload):
    campaign = make_campaign()
    login(campaign.creator)

    response = client.put(f'/api/campaigns/{campaign.id}', json=payload)

    assert response.status_code == 400
    assert campaign.title == 'Community garden'


def test_view_and_share_counters(client, make_campaign):
    campaign = make_campaign()

    client.post(f'/api/campaigns/{campaign.id}/view')
    client.post(f'/api/campaigns/{campaign.id}/view')
    client.post(f'/api/campaigns/{campaign.id}/share')

    assert campaign.views_count == 2
    assert campaign.shares_count == 1
    assert client.post('/api/campaigns/9999/view').status_code == 404


def test_supporters_list_hides_private_details(client, make_campaign, make_payment):
    campaign = make_campaign()
    make_payment(campaign, 500, status=PAYMENT_SUCCESS, anonymous=True, hide_amount=True)
    make_payment(campaign, 800)

    supporters = client.get(f'/api/campaigns/{campaign.id}/supporters').get_json()['supporters']

    assert len(supporters) == 1
    assert supporters[0]['name'] == 'Someone'
    assert supporters[0]['amount'] is None
    assert 'order_id' not in supporters[0]


def test_update_is_published_to_supporters(client, login, make_user, make_campaign, make_payment):
    campaign = make_campaign()
    supporter = make_user()
    make_payment(campaign, 500, status=PAYMENT_SUCCESS, payer=supporter)
    login(campaign.creator)

    response = client.post(f'/api/campaigns/{campaign.id}/updates', json={
        'title': 'First beds planted',
        'content': 'Thanks to you, the first six beds are in.',
    })

    assert response.status_code == 201
    assert CampaignUpdate.query.one().status == 'published'
    notification = Notification.query.filter_by(user_id=supporter.id, type='update').one()
    assert notification.message == 'First beds planted'


def test_scheduled_update_waits(client, login, make_campaign):
    campaign = make_campaign()
    login(campaign.creator)
    later = (datetime.utcnow() + timedelta(days=1)).isoformat()

    response = client.post(f'/api/campaigns/{campaign.id}/updates', json={
        'title': 'Harvest day', 'content': 'See you there.', 'scheduled_for': later,
    })

    assert response.status_code == 201
    assert response.get_json()['update']['status'] == 'scheduled'
