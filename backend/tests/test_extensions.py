import pytest

from adfatigue.services.extensions import (
    InstagramMetrics,
    analyze_video_funnel,
    build_extensions,
    instagram_metrics,
    value_score,
    video_fatigue_score,
)


def test_no_video_samples(series):
    samples = series(5, impressions=1000)
    assert analyze_video_funnel(samples) is None
    assert build_extensions(samples).video_fatigue_score is None


def test_video_funnel_and_score(series):
    samples = series(
        7,
        impressions=1000,
        video_plays=1000,
        video_p25_watched=600,
        video_p50_watched=400,
        video_p75_watched=200,
        video_p95_watched=[300, 300, 300, 200, 150, 100, 50],
        video_thruplay=[80, 80, 80, 60, 50, 40, 30],
    )
    funnel = analyze_video_funnel(samples)
    assert funnel.p25 == pytest.approx(60.0)
    assert funnel.p95 == pytest.approx(5.0)
    assert funnel.dropoff_point == 25
    assert funnel.thruplay_rate == pytest.approx(3.0)
    # baseline p95 share 0.30, recent (all 7 days) share 0.20
    assert funnel.engagement_decay == pytest.approx(1 / 3)
    # completion 40 + decay 20 + thruplay 30
    assert video_fatigue_score(funnel) == 90


def test_value_score_ladders():
    strong = InstagramMetrics(impressions=10000, saves=300, shares=60, comments=100, likes=400, profile_visits=100, follows=15)
    assert value_score(strong) == 65
    assert value_score(InstagramMetrics()) == 0
    modest = InstagramMetrics(impressions=10000, saves=60, profile_visits=100, follows=2)
    # save rate 0.006 -> 10, follow rate 0.02 -> 4, engagement 0.006 -> 0
    assert value_score(modest) == 14


def test_build_extensions_with_instagram(series):
    ext = build_extensions(series(3), InstagramMetrics(impressions=10000, saves=300))
    assert ext.value_score == 25 + 5  # save rate 0.03, engagement 0.03
    assert ext.video_fatigue_score is None


def test_instagram_metrics_from_samples(series):
    samples = series(4, impressions=2500, reach=2000, ig_saves=[80, 70, None, 50], ig_profile_visits=[None, 40, None, 60], ig_follows=[None, 4, None, 6])
    ig = instagram_metrics(samples)
    # day 3 carries no Instagram counters
    assert ig.impressions == 7500
    assert ig.saves == 200
    assert ig.profile_visits == 100
    assert ig.follows == 10
    # save rate 0.0267 -> 25, follow rate 0.1 -> 15, engagement 0.0267 -> 5
    assert build_extensions(samples).value_score == 45
    assert instagram_metrics(series(2, impressions=100)) is None
