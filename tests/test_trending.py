from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from utils.trending import campaign_age_days, rank_campaigns, trending_campaigns, trending_score

NOW = datetime(2026, 3, 1, 12, 0, 0)


def _campaign(id=1, days_old=2, views=0, amount=0, supporters=0, featured=False):
    return SimpleNamespace(
        id=id,
        created_at=NOW - timedelta(days=days_old),
        views_count=views,
        current_amount=amount,
        supporters_count=supporters,
        featured=featured,
    )


def test_score_weights_per_day_rates():
    campaign = _campaign(days_old=2, views=100, amount=1000, supporters=10)
    # 0.4 * 50 + 0.3 * 500 + 0.2 * 5
    assert trending_score(campaign, NOW) == pytest.approx(171.0)


def test_age_is_floored_at_one_day():
    fresh = _campaign(days_old=0, views=10)
    assert campaign_age_days(fresh, NOW) == 1.0
    assert trending_score(fresh, NOW) == pytest.approx(4.0)


def test_featured_adds_fixed_bonus():
    plain = _campaign()
    featured = _campaign(featured=True)
    assert trending_score(featured, NOW) - trending_score(plain, NOW) == pytest.approx(10.0)


def test_score_grows_with_each_signal():
    base = trending_score(_campaign(views=10, amount=100, supporters=1), NOW)
    assert trending_score(_campaign(views=11, amount=100, supporters=1), NOW) > base
    assert trending_score(_campaign(views=10, amount=101, supporters=1), NOW) > base
    assert trending_score(_campaign(views=10, amount=100, supporters=2), NOW) > base


def test_older_campaign_with_same_totals_ranks_lower():
    young = _campaign(id=1, days_old=1, views=100)
    old = _campaign(id=2, days_old=10, views=100)
    assert rank_campaigns([old, young], NOW) == [young, old]


def test_ties_break_by_id():
    a = _campaign(id=7, views=5)
    b = _campaign(id=3, views=5)
    assert [c.id for c in rank_campaigns([a, b], NOW)] == [3, 7]


def test_trending_only_lists_live_campaigns(make_campaign):
    now = datetime.utcnow()
    live = make_campaign(views_count=50)
    make_campaign(status='draft', views_count=500)
    make_campaign(status='paused', views_count=500)
    make_campaign(end_date=now - timedelta(hours=1), views_count=500)
    make_campaign(moderation_status='rejected', views_count=500)

    assert trending_campaigns(10, now) == [live]


def test_trending_respects_limit_and_order(make_campaign):
    low = make_campaign(views_count=1)
    high = make_campaign(views_count=100)
    mid = make_campaign(views_count=10)

    assert trending_campaigns(2) == [high, mid]
    assert low not in trending_campaigns(2)


def test_trending_endpoint_clamps_limit(client, make_campaign):
    for _ in range(3):
        make_campaign()

    response = client.get('/api/campaigns/trending?limit=500')
    assert response.status_code == 200
    assert response.get_json()['count'] == 3

    response = client.get('/api/campaigns/trending?limit=0')
    assert response.get_json()['count'] == 1
