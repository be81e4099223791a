import pytest

from adfatigue.services.extensions import ScoreExtensions
from adfatigue.services.metrics import DerivedMetrics, detect_algorithm_penalty
from adfatigue.services.rules import (
    ALGORITHM_PENALTY_PREFIX,
    NEGATIVE_FEEDBACK_PREFIX,
    RECOMMENDED_ACTIONS,
    AnalysisError,
    FatigueAnalysis,
    FatigueScore,
    algorithm_fatigue_score,
    analyze_samples,
    audience_fatigue_score,
    classify_level,
    composite_score,
    compute_fatigue_score,
    creative_fatigue_score,
    primary_issue,
    recommended_action_text,
    round_half_up,
)
from adfatigue.services.thresholds import ThresholdContext


def make_metrics(
    frequency=1.0,
    first_time_ratio=1.0,
    ctr_decline_rate=0.0,
    cpm_increase_rate=0.0,
    negative_rate=0.0,
) -> DerivedMetrics:
    return DerivedMetrics(
        frequency=frequency,
        first_time_ratio=first_time_ratio,
        ctr_decline_rate=ctr_decline_rate,
        cpm_increase_rate=cpm_increase_rate,
        negative_rate=negative_rate,
        algorithm_penalty=detect_algorithm_penalty(None, cpm_increase_rate, ctr_decline_rate),
    )


# --- Factor scorers ---
@pytest.mark.parametrize(
    "rate,expected",
    [(0.0, 0), (0.149, 0), (0.15, 40), (0.2499, 40), (0.25, 70), (0.399, 70), (0.40, 100), (0.9, 100)],
)
def test_creative_score_bands(rate, expected):
    assert creative_fatigue_score(rate) == expected


@pytest.mark.parametrize("rate,expected", [(0.19, 0), (0.20, 40), (0.35, 70), (0.50, 100)])
def test_algorithm_score_bands(rate, expected):
    assert algorithm_fatigue_score(rate) == expected


@pytest.mark.parametrize(
    "frequency,ratio,expected",
    [
        (2.0, 0.9, 0),
        (2.5, 0.5, 40),
        (3.0, 0.4, 70),
        (3.5, 0.9, 50),
        (3.5, 0.3, 100),
        (9.0, 0.0, 100),
    ],
)
def test_audience_score_bands(frequency, ratio, expected):
    assert audience_fatigue_score(frequency, ratio) == expected


# --- Level / primary issue ---
@pytest.mark.parametrize(
    "total,level",
    [(0, "healthy"), (29, "healthy"), (30, "caution"), (49, "caution"), (50, "warning"), (69, "warning"), (70, "critical"), (100, "critical")],
)
def test_classify_level(total, level):
    assert classify_level(total) == level


def test_classify_level_monotonic():
    order = ["healthy", "caution", "warning", "critical"]
    ranks = [order.index(classify_level(t)) for t in range(0, 101)]
    assert ranks == sorted(ranks)


def test_primary_issue_tie_break():
    assert primary_issue({"audience": 50, "creative": 50, "algorithm": 10}) == "audience"
    assert primary_issue({"audience": 10, "creative": 50, "algorithm": 50}) == "creative"
    assert primary_issue({"audience": 0, "creative": 0, "algorithm": 0}) == "audience"
    assert primary_issue({"audience": 0, "creative": 10, "algorithm": 40}) == "algorithm"


def test_round_half_up():
    assert round_half_up(38.5) == 39
    assert round_half_up(38.49) == 38
    assert round_half_up(0.5) == 1


# --- Composite ---
def test_composite_weights_and_rounding():
    score = composite_score(make_metrics(frequency=3.0, ctr_decline_rate=0.25))
    assert score.breakdown == {"audience": 35, "creative": 70, "algorithm": 0}
    # 35*0.40 + 70*0.35 = 38.5
    assert score.total == 39
    assert score.status == "caution"
    assert score.primary_issue == "creative"


def test_composite_all_critical():
    score = composite_score(
        make_metrics(frequency=3.5, first_time_ratio=0.3, ctr_decline_rate=0.45, cpm_increase_rate=0.6)
    )
    assert score.total == 100
    assert score.status == "critical"
    assert score.primary_issue == "audience"


def test_negative_feedback_bump():
    assert composite_score(make_metrics(frequency=3.0, negative_rate=0.004)).audience == 65
    assert composite_score(make_metrics(frequency=3.0, negative_rate=0.002)).audience == 50
    assert composite_score(make_metrics(frequency=3.5, first_time_ratio=0.3, negative_rate=0.004)).audience == 100


@pytest.mark.parametrize("cpm_increase,expected", [(0.6, 100), (0.4, 95), (0.25, 50)])
def test_penalty_bump(cpm_increase, expected):
    score = composite_score(make_metrics(cpm_increase_rate=cpm_increase, ctr_decline_rate=0.2))
    assert score.algorithm == expected
    assert score.creative == 40


def test_video_floor():
    metrics = make_metrics(ctr_decline_rate=0.25)
    assert composite_score(metrics, extensions=ScoreExtensions(video_fatigue_score=80)).creative == 80
    assert composite_score(metrics, extensions=ScoreExtensions(video_fatigue_score=30)).creative == 70
    assert composite_score(metrics).creative == 70


def test_value_discount():
    metrics = make_metrics(frequency=3.0, ctr_decline_rate=0.25)
    discounted = composite_score(metrics, extensions=ScoreExtensions(value_score=25))
    assert discounted.creative == 45
    assert discounted.audience == 23  # 35 - 12.5
    untouched = composite_score(metrics, extensions=ScoreExtensions(value_score=20))
    assert untouched.breakdown == {"audience": 35, "creative": 70, "algorithm": 0}
    floored = composite_score(make_metrics(), extensions=ScoreExtensions(value_score=65))
    assert floored.audience == 0 and floored.creative == 0


@pytest.mark.parametrize("frequency", [0.0, 2.5, 3.0, 9.0])
@pytest.mark.parametrize("ctr_decline", [0.0, 0.2, 0.5])
@pytest.mark.parametrize("negative_rate", [0.0, 0.01])
def test_scores_stay_in_range(frequency, ctr_decline, negative_rate):
    score = composite_score(
        make_metrics(frequency=frequency, first_time_ratio=0.1, ctr_decline_rate=ctr_decline,
                     cpm_increase_rate=0.9, negative_rate=negative_rate),
        extensions=ScoreExtensions(video_fatigue_score=100, value_score=10),
    )
    for value in (score.total, score.audience, score.creative, score.algorithm):
        assert 0 <= value <= 100


# --- Recommended action ---
def test_recommended_action_text():
    healthy = FatigueScore(10, 10, 10, 10, "audience", "healthy")
    assert recommended_action_text(healthy) == RECOMMENDED_ACTIONS["healthy"]
    critical = FatigueScore(80, 50, 100, 80, "creative", "critical")
    assert recommended_action_text(critical) == RECOMMENDED_ACTIONS["creative"]["critical"]


def test_recommended_action_urgent_prefixes():
    score = FatigueScore(80, 100, 40, 100, "audience", "critical")
    metrics = make_metrics(negative_rate=0.005, cpm_increase_rate=0.6, ctr_decline_rate=0.2)
    text = recommended_action_text(score, metrics)
    assert text.startswith(ALGORITHM_PENALTY_PREFIX)
    assert NEGATIVE_FEEDBACK_PREFIX in text
    assert text.endswith(RECOMMENDED_ACTIONS["audience"]["critical"])


# --- Entry points ---
def test_no_data():
    result = compute_fatigue_score([])
    assert isinstance(result, AnalysisError)
    assert result.error == "no_data"
    assert result.data_points == 0


def test_insufficient_data(series):
    result = compute_fatigue_score(series(2, ctr=2.0))
    assert isinstance(result, AnalysisError)
    assert result.error == "insufficient_data"
    assert result.data_points == 2


def test_compute_fatigue_score(series):
    samples = series(6, ctr=[2.0, 2.0, 2.0, 1.0, 1.0, 1.0], cpm=10.0, frequency=1.5,
                     reach=[1000, 2000, 3000, 4000, 5000, 6000], impressions=1500)
    score = compute_fatigue_score(samples)
    assert isinstance(score, FatigueScore)
    assert score.creative == 100
    assert score.audience == 0
    assert score.total == 35
    assert score.status == "caution"


def test_analyze_samples_uses_context(series):
    samples = series(5, frequency=3.6, ctr=2.0, cpm=10.0,
                     reach=[1000, 1600, 2200, 2800, 3400], impressions=1000)
    default = analyze_samples(samples)
    saas = analyze_samples(samples, context=ThresholdContext(industry="b2b_saas"))
    assert isinstance(default, FatigueAnalysis)
    assert default.score.audience == 50
    assert saas.score.audience == 20
    assert default.data_range_start == samples[0].date
    assert default.data_range_end == samples[-1].date
    assert default.as_dict()["fatigue_score"]["breakdown"]["audience"] == 50
