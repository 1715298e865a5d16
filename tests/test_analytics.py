from datetime import datetime, timedelta

import pytest

from models import db
from models.campaign import Campaign
from models.campaign_view import CampaignView
from models.payment import PAYMENT_SUCCESS
from utils.analytics import detect_device, record_view

IPHONE = 'Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Mobile/15E148'


@pytest.mark.parametrize('user_agent,device', [
    (IPHONE, 'mobile'),
    ('Mozilla/5.0 (Linux; Android 14; Pixel 8)', 'mobile'),
    ('Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X)', 'tablet'),
    ('Mozilla/5.0 (Windows NT 10.0; Win64; x64)', 'desktop'),
    (None, 'desktop'),
])
def test_detect_device(user_agent, device):
    assert detect_device(user_agent) == device


def test_view_is_counted_and_recorded(client, login, make_user, make_campaign):
    campaign = make_campaign()

    response = client.post(f'/api/campaigns/{campaign.id}/view', json={'source': 'social'},
                           headers={'User-Agent': IPHONE})

    assert response.status_code == 200
    assert db.session.get(Campaign, campaign.id).views_count == 1
    view = CampaignView.query.one()
    assert (view.campaign_id, view.user_id, view.source, view.device) == (campaign.id, None, 'social', 'mobile')

    visitor = make_user()
    login(visitor)
    client.post(f'/api/campaigns/{campaign.id}/view', json={'source': 'carrier-pigeon'})
    latest = CampaignView.query.order_by(CampaignView.id.desc()).first()
    assert (latest.user_id, latest.source) == (visitor.id, 'direct')


def test_view_survives_a_failed_event_write(client, make_campaign, monkeypatch):
    campaign = make_campaign()

    def broken(**kwargs):
        raise RuntimeError('campaign_views is unavailable')
    monkeypatch.setattr('utils.analytics.CampaignView', broken)

    response = client.post(f'/api/campaigns/{campaign.id}/view')

    assert response.status_code == 200
    assert db.session.get(Campaign, campaign.id).views_count == 1
    assert CampaignView.query.count() == 0


def test_view_of_unknown_campaign_records_nothing(client):
    assert client.post('/api/campaigns/9999/view').status_code == 404
    assert CampaignView.query.count() == 0


def test_campaign_analytics(client, login, make_user, make_campaign, make_payment):
    now = datetime.utcnow()
    campaign = make_campaign(current=7800, supporters=3, views_count=10)
    visitor, backer = make_user(), make_user(name='Big Backer')
    make_payment(campaign, 300, status=PAYMENT_SUCCESS, payer=visitor, settled_at=now)
    make_payment(campaign, 6000, status=PAYMENT_SUCCESS, payer=backer, settled_at=now)
    make_payment(campaign, 1500, status=PAYMENT_SUCCESS, settled_at=now - timedelta(days=40))
    make_payment(campaign, 900)
    record_view(campaign.id, user_id=visitor.id, source='social', device='mobile')
    record_view(campaign.id, user_id=visitor.id, source='search', device='desktop')
    record_view(campaign.id, source='nonsense')
    record_view(campaign.id, now=now - timedelta(days=40))
    login(campaign.creator)

    response = client.get(f'/api/analytics/campaigns/{campaign.id}')

    assert response.status_code == 200
    stats = response.get_json()['analytics']
    assert stats['totals']['contributions'] == 3
    assert stats['totals']['amount'] == 7800.0
    assert stats['totals']['average_contribution'] == 2600.0
    assert stats['totals']['conversion_rate'] == 30.0
    assert stats['totals']['progress'] == 78.0
    assert stats['period'] == {
        'views': 3,
        'unique_visitors': 1,
        'contributions': 2,
        'amount': 6300.0,
        'conversion_rate': 66.67,
    }
    assert len(stats['daily']) == 30
    assert sum(day['views'] for day in stats['daily']) == 3
    assert stats['daily'][-1]['contributions'] == 2
    assert stats['sources'] == {'social': 1, 'search': 1, 'direct': 1}
    assert stats['devices'] == {'mobile': 1, 'desktop': 2}
    assert stats['contribution_ranges'] == {'0-500': 1, '500-1000': 0, '1000-5000': 1, '5000+': 1}
    assert stats['top_supporters'][0] == {'name': 'Big Backer', 'amount': 6000.0, 'count': 1}


def test_campaign_analytics_access(client, login, make_user, make_campaign):
    campaign = make_campaign()
    deleted = make_campaign(creator=campaign.creator, status='deleted')
    url = f'/api/analytics/campaigns/{campaign.id}'

    assert client.get(url).status_code == 401

    login(make_user())
    assert client.get(url).status_code == 403
    client.post('/api/auth/logout')

    login(make_user(is_admin=True))
    assert client.get(url).status_code == 200
    client.post('/api/auth/logout')

    login(campaign.creator)
    assert client.get(f'/api/analytics/campaigns/{deleted.id}').status_code == 404
    assert client.get(f'{url}?days=0').status_code == 400
    assert client.get(f'{url}?days=366').status_code == 400
    assert len(client.get(f'{url}?days=7').get_json()['analytics']['daily']) == 7


def test_creator_overview(client, login, make_user, make_campaign, make_payment):
    creator = make_user()
    live = make_campaign(creator=creator, current=1000, supporters=2, views_count=20, comments_count=3)
    make_campaign(creator=creator, status='completed', current=500, supporters=1, views_count=10)
    make_campaign(creator=creator, status='deleted', current=9999, supporters=50, views_count=500)
    someone_else = make_campaign(current=4000, supporters=4, views_count=40)
    make_payment(live, 400, status=PAYMENT_SUCCESS, settled_at=datetime.utcnow())
    make_payment(someone_else, 4000, status=PAYMENT_SUCCESS, settled_at=datetime.utcnow())
    record_view(live.id)
    record_view(someone_else.id)
    login(creator)

    overview = client.get('/api/analytics/overview').get_json()['overview']

    assert overview['campaigns'] == {'total': 2, 'active': 1, 'by_status': {'active': 1, 'completed': 1}}
    assert overview['totals'] == {
        'raised': 1500.0,
        'supporters': 3,
        'views': 30,
        'comments': 3,
        'conversion_rate': 10.0,
    }
    assert overview['period'] == {'contributions': 1, 'amount': 400.0, 'views': 1}
    assert sorted(c['status'] for c in overview['campaign_list']) == ['active', 'completed']


def test_overview_requires_login(client):
    assert client.get('/api/analytics/overview').status_code == 401
