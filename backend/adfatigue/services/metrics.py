"""Metric derivation: daily samples -> comparative fatigue signals.

All functions here are pure. They sort their input by date before doing any
trend math and never raise on numeric edge cases (zero baselines, zero reach,
zero impressions all yield 0 rather than an exception).
"""
from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

BASELINE_DAYS = 3
RECENT_DAYS = 3

# Negative feedback rate tiers
NEGATIVE_RATE_CRITICAL = 0.003
NEGATIVE_RATE_WARNING = 0.001

# Algorithm penalty detection
PENALTY_CPM_INCREASE = 0.20
PENALTY_CTR_DECLINE = 0.10
PENALTY_HIGH_CPM = 0.50
PENALTY_MEDIUM_CPM = 0.35

INSTAGRAM_FIELDS = ("ig_saves", "ig_shares", "ig_comments", "ig_likes", "ig_profile_visits", "ig_follows")


@dataclass(frozen=True)
class MetricSample:
    """One day of raw performance for one ad."""

    date: date
    impressions: int = 0
    clicks: int = 0
    reach: int = 0
    frequency: float = 0.0
    ctr: float = 0.0
    cpm: float = 0.0
    spend: float = 0.0
    hide_clicks: Optional[int] = None
    report_spam_clicks: Optional[int] = None
    unlike_clicks: Optional[int] = None
    video_plays: Optional[int] = None
    video_p25_watched: Optional[int] = None
    video_p50_watched: Optional[int] = None
    video_p75_watched: Optional[int] = None
    video_p95_watched: Optional[int] = None
    video_p100_watched: Optional[int] = None
    video_thruplay: Optional[int] = None
    video_avg_watch_time: Optional[float] = None
    # Instagram placements
    ig_saves: Optional[int] = None
    ig_shares: Optional[int] = None
    ig_comments: Optional[int] = None
    ig_likes: Optional[int] = None
    ig_profile_visits: Optional[int] = None
    ig_follows: Optional[int] = None

    @property
    def has_video(self) -> bool:
        return self.video_plays is not None

    @property
    def has_instagram(self) -> bool:
        return any(getattr(self, f) is not None for f in INSTAGRAM_FIELDS)


@dataclass(frozen=True)
class AlgorithmPenalty:
    cpm_increase_rate: float
    delivery_rate: float
    penalty_detected: bool
    severity: str  # none, low, medium, high

    def as_dict(self) -> dict:
        return {
            "cpm_increase_rate": self.cpm_increase_rate,
            "delivery_rate": self.delivery_rate,
            "penalty_detected": self.penalty_detected,
            "severity": self.severity,
        }


@dataclass(frozen=True)
class NegativeFeedback:
    hide_clicks: int
    report_spam_clicks: int
    unlike_clicks: int
    total_negative_actions: int
    negative_rate: float
    user_sentiment: str  # positive, neutral, negative


NO_NEGATIVE_FEEDBACK = NegativeFeedback(0, 0, 0, 0, 0.0, "positive")


@dataclass(frozen=True)
class DerivedMetrics:
    frequency: float
    first_time_ratio: float
    ctr_decline_rate: float
    cpm_increase_rate: float
    negative_rate: float
    algorithm_penalty: AlgorithmPenalty
    negative_feedback: NegativeFeedback = NO_NEGATIVE_FEEDBACK
    reach: int = 0
    impressions: int = 0
    ctr: float = 0.0
    cpm: float = 0.0

    def as_dict(self) -> dict:
        return {
            "frequency": self.frequency,
            "first_time_ratio": self.first_time_ratio,
            "ctr_decline_rate": self.ctr_decline_rate,
            "cpm_increase_rate": self.cpm_increase_rate,
            "negative_rate": self.negative_rate,
            "user_sentiment": self.negative_feedback.user_sentiment,
            "algorithm_penalty": self.algorithm_penalty.as_dict(),
            "reach": self.reach,
            "impressions": self.impressions,
            "ctr": self.ctr,
            "cpm": self.cpm,
        }


def sort_samples(samples: Sequence[MetricSample]) -> list[MetricSample]:
    return sorted(samples, key=lambda s: s.date)


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def calculate_first_time_ratio(samples: Sequence[MetricSample]) -> float:
    """Share of today's impressions that reached new people (last two days)."""
    if len(samples) < 2:
        return 1.0
    ordered = sort_samples(samples)
    today, yesterday = ordered[-1], ordered[-2]
    daily_new_reach = max(0, (today.reach or 0) - (yesterday.reach or 0))
    ratio = daily_new_reach / max(today.impressions or 0, 1)
    return max(0.0, min(1.0, ratio))


def _baseline_and_recent(samples: Sequence[MetricSample], field: str) -> tuple[float, float]:
    ordered = sort_samples(samples)
    baseline = _mean([getattr(s, field) or 0 for s in ordered[:BASELINE_DAYS]])
    recent = _mean([getattr(s, field) or 0 for s in ordered[-RECENT_DAYS:]])
    return baseline, recent


def calculate_ctr_decline_rate(samples: Sequence[MetricSample]) -> float:
    """(baseline - recent) / baseline over first/last 3 days, clamped to >= 0."""
    if len(samples) < BASELINE_DAYS + 1:
        return 0.0
    baseline, recent = _baseline_and_recent(samples, "ctr")
    if baseline == 0:
        return 0.0
    return max(0.0, (baseline - recent) / baseline)


def calculate_cpm_increase_rate(samples: Sequence[MetricSample]) -> float:
    """(recent - baseline) / baseline over first/last 3 days, clamped to >= 0."""
    if len(samples) < BASELINE_DAYS + 1:
        return 0.0
    baseline, recent = _baseline_and_recent(samples, "cpm")
    if baseline == 0:
        return 0.0
    return max(0.0, (recent - baseline) / baseline)


def detect_algorithm_penalty(
    latest: Optional[MetricSample],
    cpm_increase_rate: float,
    ctr_decline_rate: float,
) -> AlgorithmPenalty:
    delivery_rate = 0.0
    if latest is not None and latest.reach:
        delivery_rate = latest.impressions / latest.reach

    penalty_detected = cpm_increase_rate > PENALTY_CPM_INCREASE and ctr_decline_rate > PENALTY_CTR_DECLINE
    severity = "none"
    if penalty_detected:
        if cpm_increase_rate > PENALTY_HIGH_CPM:
            severity = "high"
        elif cpm_increase_rate > PENALTY_MEDIUM_CPM:
            severity = "medium"
        else:
            severity = "low"
    return AlgorithmPenalty(
        cpm_increase_rate=cpm_increase_rate,
        delivery_rate=delivery_rate,
        penalty_detected=penalty_detected,
        severity=severity,
    )


def calculate_negative_feedback(sample: Optional[MetricSample]) -> NegativeFeedback:
    if sample is None:
        return NO_NEGATIVE_FEEDBACK
    hide = int(sample.hide_clicks or 0)
    spam = int(sample.report_spam_clicks or 0)
    unlike = int(sample.unlike_clicks or 0)
    total = hide + spam + unlike
    rate = total / (sample.impressions or 1)

    sentiment = "positive"
    if rate > NEGATIVE_RATE_CRITICAL:
        sentiment = "negative"
    elif rate > NEGATIVE_RATE_WARNING:
        sentiment = "neutral"
    return NegativeFeedback(
        hide_clicks=hide,
        report_spam_clicks=spam,
        unlike_clicks=unlike,
        total_negative_actions=total,
        negative_rate=rate,
        user_sentiment=sentiment,
    )


def derive_metrics(
    samples: Sequence[MetricSample],
    latest: Optional[MetricSample] = None,
) -> DerivedMetrics:
    """
    Compute every comparative signal for one ad.
    `latest` overrides the sample used for negative feedback / delivery rate
    (the store may return a fresher row than the lookback window holds).
    Callers must check the minimum sample count first.
    """
    ordered = sort_samples(samples)
    last = ordered[-1] if ordered else None
    latest = latest or last

    ctr_decline = calculate_ctr_decline_rate(ordered)
    cpm_increase = calculate_cpm_increase_rate(ordered)
    negative = calculate_negative_feedback(latest)
    return DerivedMetrics(
        frequency=(last.frequency or 0.0) if last else 0.0,
        first_time_ratio=calculate_first_time_ratio(ordered),
        ctr_decline_rate=ctr_decline,
        cpm_increase_rate=cpm_increase,
        negative_rate=negative.negative_rate,
        algorithm_penalty=detect_algorithm_penalty(latest, cpm_increase, ctr_decline),
        negative_feedback=negative,
        reach=(last.reach or 0) if last else 0,
        impressions=(last.impressions or 0) if last else 0,
        ctr=(last.ctr or 0.0) if last else 0.0,
        cpm=(last.cpm or 0.0) if last else 0.0,
    )
