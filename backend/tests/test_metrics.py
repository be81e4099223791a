from datetime import date

import pytest

from adfatigue.services.metrics import (
    NO_NEGATIVE_FEEDBACK,
    MetricSample,
    calculate_cpm_increase_rate,
    calculate_ctr_decline_rate,
    calculate_first_time_ratio,
    calculate_negative_feedback,
    derive_metrics,
    detect_algorithm_penalty,
)


def test_first_time_ratio_needs_two_days(series):
    assert calculate_first_time_ratio(series(1, reach=1000, impressions=1000)) == 1.0
    assert calculate_first_time_ratio([]) == 1.0


def test_first_time_ratio_from_new_reach(series):
    samples = series(2, reach=[1000, 1500], impressions=1000)
    assert calculate_first_time_ratio(samples) == pytest.approx(0.5)


def test_first_time_ratio_clamped(series):
    assert calculate_first_time_ratio(series(2, reach=[1500, 1000], impressions=1000)) == 0.0
    # zero impressions divides by 1, then clamps to 1
    assert calculate_first_time_ratio(series(2, reach=[0, 500], impressions=0)) == 1.0


def test_ctr_decline_rate(series):
    samples = series(6, ctr=[2.0, 2.0, 2.0, 1.0, 1.0, 1.0])
    assert calculate_ctr_decline_rate(samples) == pytest.approx(0.5)


def test_ctr_decline_rate_never_negative(series):
    assert calculate_ctr_decline_rate(series(6, ctr=[1.0, 1.0, 1.0, 2.0, 2.0, 2.0])) == 0.0


def test_ctr_decline_rate_short_or_zero_baseline(series):
    assert calculate_ctr_decline_rate(series(3, ctr=[3.0, 2.0, 1.0])) == 0.0
    assert calculate_ctr_decline_rate(series(5, ctr=[0.0, 0.0, 0.0, 1.0, 1.0])) == 0.0


def test_cpm_increase_rate(series):
    samples = series(6, cpm=[10.0, 10.0, 10.0, 15.0, 15.0, 15.0])
    assert calculate_cpm_increase_rate(samples) == pytest.approx(0.5)
    assert calculate_cpm_increase_rate(series(6, cpm=[15.0, 15.0, 15.0, 10.0, 10.0, 10.0])) == 0.0


def test_rates_use_date_order(series):
    samples = series(6, ctr=[2.0, 2.0, 2.0, 1.0, 1.0, 1.0])
    assert calculate_ctr_decline_rate(list(reversed(samples))) == pytest.approx(0.5)


@pytest.mark.parametrize(
    "cpm_increase,ctr_decline,detected,severity",
    [
        (0.6, 0.2, True, "high"),
        (0.4, 0.2, True, "medium"),
        (0.25, 0.2, True, "low"),
        (0.6, 0.05, False, "none"),
        (0.2, 0.5, False, "none"),
    ],
)
def test_algorithm_penalty_severity(cpm_increase, ctr_decline, detected, severity):
    penalty = detect_algorithm_penalty(None, cpm_increase, ctr_decline)
    assert penalty.penalty_detected is detected
    assert penalty.severity == severity


def test_algorithm_penalty_delivery_rate():
    latest = MetricSample(date=date(2026, 3, 1), impressions=3000, reach=1000)
    assert detect_algorithm_penalty(latest, 0.0, 0.0).delivery_rate == pytest.approx(3.0)
    zero_reach = MetricSample(date=date(2026, 3, 1), impressions=3000, reach=0)
    assert detect_algorithm_penalty(zero_reach, 0.0, 0.0).delivery_rate == 0.0


def test_negative_feedback_tiers():
    day = date(2026, 3, 1)
    critical = calculate_negative_feedback(
        MetricSample(date=day, impressions=10000, hide_clicks=20, report_spam_clicks=10, unlike_clicks=5)
    )
    assert critical.total_negative_actions == 35
    assert critical.negative_rate == pytest.approx(0.0035)
    assert critical.user_sentiment == "negative"

    neutral = calculate_negative_feedback(MetricSample(date=day, impressions=10000, hide_clicks=15))
    assert neutral.user_sentiment == "neutral"

    positive = calculate_negative_feedback(MetricSample(date=day, impressions=10000))
    assert positive.negative_rate == 0.0
    assert positive.user_sentiment == "positive"


def test_negative_feedback_missing_sample_or_impressions():
    assert calculate_negative_feedback(None) == NO_NEGATIVE_FEEDBACK
    fb = calculate_negative_feedback(MetricSample(date=date(2026, 3, 1), impressions=0, hide_clicks=2))
    assert fb.negative_rate == 2.0


def test_derive_metrics_sorts_and_uses_latest_day(series):
    samples = series(
        6,
        frequency=[1.0, 1.5, 2.0, 2.5, 3.0, 4.2],
        ctr=[2.0, 2.0, 2.0, 1.0, 1.0, 1.0],
        cpm=10.0,
        reach=[100, 200, 300, 400, 500, 600],
        impressions=1000,
    )
    derived = derive_metrics(list(reversed(samples)))
    assert derived.frequency == 4.2
    assert derived.ctr_decline_rate == pytest.approx(0.5)
    assert derived.cpm_increase_rate == 0.0
    assert derived.first_time_ratio == pytest.approx(0.1)
    assert derived.reach == 600
    assert derived.algorithm_penalty.penalty_detected is False


def test_derive_metrics_latest_override(series):
    samples = series(4, impressions=1000)
    latest = MetricSample(date=date(2026, 4, 1), impressions=1000, hide_clicks=5)
    derived = derive_metrics(samples, latest=latest)
    assert derived.negative_rate == pytest.approx(0.005)
    assert derived.negative_feedback.hide_clicks == 5
