from datetime import datetime, timedelta

import pytest

from models import db
from models.campaign_update import CampaignUpdate
from models.notification import Notification
from models.payment import PAYMENT_SUCCESS
from utils.errors import UpstreamError

JOBS = [
    '/api/cron/close-expired-campaigns',
    '/api/cron/publish-scheduled',
    '/api/cron/weekly-summary',
    '/api/cron/reconcile-totals',
]


@pytest.mark.parametrize('path', JOBS)
def test_jobs_require_the_secret(client, path):
    assert client.get(path).status_code == 401
    assert client.post(path, headers={'Authorization': 'Bearer wrong'}).status_code == 401
    assert client.get(f'{path}?secret=wrong').status_code == 401


@pytest.mark.parametrize('path', JOBS)
def test_jobs_accept_header_or_query_secret(client, cron_headers, path):
    assert client.post(path, headers=cron_headers).status_code == 200
    assert client.get(f'{path}?secret=cron-test-secret').status_code == 200


def test_unconfigured_secret_rejects_everyone(app, client, cron_headers):
    app.config['CRON_SECRET'] = None
    assert client.post(JOBS[0], headers=cron_headers).status_code == 401


def test_close_expired_job(client, cron_headers, make_campaign):
    now = datetime.utcnow()
    make_campaign(end_date=now - timedelta(days=1))
    make_campaign(end_date=now + timedelta(days=1))

    first = client.post('/api/cron/close-expired-campaigns', headers=cron_headers).get_json()
    second = client.post('/api/cron/close-expired-campaigns', headers=cron_headers).get_json()

    assert first['closed'] == 1
    assert second['closed'] == 0


def test_publish_scheduled_job(client, cron_headers, make_user, make_campaign, make_payment):
    campaign = make_campaign()
    supporter = make_user()
    make_payment(campaign, 500, status=PAYMENT_SUCCESS, payer=supporter)
    now = datetime.utcnow()
    due = CampaignUpdate(campaign_id=campaign.id, title='Due', content='Now.', status='scheduled',
                         scheduled_for=now - timedelta(minutes=1))
    later = CampaignUpdate(campaign_id=campaign.id, title='Later', content='Soon.', status='scheduled',
                           scheduled_for=now + timedelta(days=1))
    db.session.add_all([due, later])
    db.session.commit()

    body = client.post('/api/cron/publish-scheduled', headers=cron_headers).get_json()

    assert body['published'] == 1
    assert due.status == 'published'
    assert later.status == 'scheduled'
    assert Notification.query.filter_by(user_id=supporter.id, type='update').count() == 1

    again = client.post('/api/cron/publish-scheduled', headers=cron_headers).get_json()
    assert again['total'] == 0


def test_weekly_summary_falls_back_to_default_tips(app, client, cron_headers, make_campaign, make_payment,
                                                   monkeypatch):
    from utils.mail import mail

    campaign = make_campaign()
    make_payment(campaign, 1500, status=PAYMENT_SUCCESS, settled_at=datetime.utcnow())

    def down(*args, **kwargs):
        raise UpstreamError('AI service is unavailable. Please try again later.')
    monkeypatch.setattr('utils.ai_authoring.generate_text', down)

    with mail.record_messages() as outbox:
        body = client.post('/api/cron/weekly-summary', headers=cron_headers).get_json()

    assert body['creators'] == 1
    assert body['sent'] == 1
    assert body['fallback_tips'] == 1
    assert outbox[0].recipients == [campaign.creator.email]
    assert '1,500.00' in outbox[0].body
    assert 'Post an update to thank recent supporters' in outbox[0].body


def test_reconcile_job_reports_corrections(client, cron_headers, make_campaign):
    make_campaign(current=50)

    body = client.post('/api/cron/reconcile-totals', headers=cron_headers).get_json()

    assert body['corrected'] == 1
    assert body['corrections'][0]['amount_after'] == 0.0


def test_job_failures_report_only_identifiers(client, cron_headers, make_campaign, monkeypatch):
    campaign = make_campaign()
    due = CampaignUpdate(campaign_id=campaign.id, title='Due', content='Now.', status='scheduled',
                         scheduled_for=datetime.utcnow() - timedelta(minutes=1))
    db.session.add(due)
    db.session.commit()

    def broken(*args, **kwargs):
        raise RuntimeError('connection to server at "db.internal" failed: password authentication failed')
    monkeypatch.setattr('utils.campaign_updates.publish_update', broken)
    monkeypatch.setattr('routes.cron._weekly_summary', broken)

    published = client.post('/api/cron/publish-scheduled', headers=cron_headers)
    summary = client.post('/api/cron/weekly-summary', headers=cron_headers)

    assert published.get_json()['errors'] == [{'update_id': due.id}]
    assert summary.get_json()['errors'] == [{'creator_id': campaign.creator_id}]
    assert 'db.internal' not in published.get_data(as_text=True)
    assert 'db.internal' not in summary.get_data(as_text=True)
