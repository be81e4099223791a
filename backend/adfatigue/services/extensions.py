"""Optional score inputs: video-funnel fatigue and high-value content discount."""
from dataclasses import dataclass
from typing import Optional, Sequence

from adfatigue.services.metrics import MetricSample, sort_samples

VALUE_SCORE_CAP = 65


@dataclass(frozen=True)
class ScoreExtensions:
    """Extra inputs for the composite scorer. None means neutral (no adjustment)."""

    video_fatigue_score: Optional[int] = None
    value_score: Optional[int] = None


NO_EXTENSIONS = ScoreExtensions()


# --- Video ---
@dataclass(frozen=True)
class VideoFunnel:
    avg_watch_time: float
    p25: float  # % of plays reaching 25%
    p50: float
    p75: float
    p95: float
    thruplay_rate: float  # % of impressions
    dropoff_point: int  # funnel step with the largest loss
    engagement_decay: float
    retention_score: float


def _avg(samples: Sequence[MetricSample], field: str) -> float:
    if not samples:
        return 0.0
    return sum(getattr(s, field) or 0 for s in samples) / len(samples)


def analyze_video_funnel(samples: Sequence[MetricSample]) -> Optional[VideoFunnel]:
    """Funnel for the latest day plus decay of p95 completion vs. the first 3 days."""
    video = sort_samples([s for s in samples if s.has_video])
    if not video:
        return None

    baseline = video[:3]
    recent = video[-7:]
    current = video[-1]
    plays = current.video_plays or 1

    p25 = (current.video_p25_watched or 0) / plays * 100
    p50 = (current.video_p50_watched or 0) / plays * 100
    p75 = (current.video_p75_watched or 0) / plays * 100
    p95 = (current.video_p95_watched or 0) / plays * 100

    dropoffs = [(25, 100 - p25), (50, p25 - p50), (75, p50 - p75), (95, p75 - p95)]
    dropoff_point = max(dropoffs, key=lambda d: d[1])[0]

    baseline_plays = _avg(baseline, "video_plays")
    recent_plays = _avg(recent, "video_plays")
    baseline_p95 = _avg(baseline, "video_p95_watched") / baseline_plays if baseline_plays else 0.0
    recent_p95 = _avg(recent, "video_p95_watched") / recent_plays if recent_plays else 0.0
    engagement_decay = max(0.0, (baseline_p95 - recent_p95) / baseline_p95) if baseline_p95 > 0 else 0.0

    thruplay_rate = (current.video_thruplay or 0) / current.impressions * 100 if current.impressions else 0.0

    retention = 100 - engagement_decay * 50 - max(0.0, 30 - p95)
    return VideoFunnel(
        avg_watch_time=current.video_avg_watch_time or 0.0,
        p25=p25,
        p50=p50,
        p75=p75,
        p95=p95,
        thruplay_rate=thruplay_rate,
        dropoff_point=dropoff_point,
        engagement_decay=engagement_decay,
        retention_score=max(0.0, min(100.0, retention)),
    )


def video_fatigue_score(funnel: VideoFunnel) -> int:
    score = 0

    # Completion (40)
    if funnel.p95 < 10:
        score += 40
    elif funnel.p95 < 20:
        score += 30
    elif funnel.p95 < 30:
        score += 20
    elif funnel.p95 < 40:
        score += 10

    # Engagement decay (30)
    if funnel.engagement_decay > 0.5:
        score += 30
    elif funnel.engagement_decay > 0.3:
        score += 20
    elif funnel.engagement_decay > 0.15:
        score += 10

    # ThruPlay (30)
    if funnel.thruplay_rate < 5:
        score += 30
    elif funnel.thruplay_rate < 10:
        score += 20
    elif funnel.thruplay_rate < 15:
        score += 10

    return min(100, score)


# --- Content value (Instagram) ---
@dataclass(frozen=True)
class InstagramMetrics:
    impressions: int = 0
    reach: int = 0
    saves: int = 0
    shares: int = 0
    comments: int = 0
    likes: int = 0
    profile_visits: int = 0
    follows: int = 0


SAVE_RATE_POINTS = [(0.02, 25), (0.015, 20), (0.01, 15), (0.005, 10), (0.003, 5)]
FOLLOW_RATE_POINTS = [(0.1, 20), (0.07, 15), (0.05, 12), (0.03, 8), (0.01, 4)]
SHARE_RATE_POINTS = [(0.005, 10), (0.003, 7), (0.001, 4)]
ENGAGEMENT_RATE_POINTS = [(0.05, 10), (0.03, 7), (0.02, 5), (0.01, 3)]


def _points(rate: float, ladder: list[tuple[float, int]]) -> int:
    for cut, pts in ladder:
        if rate > cut:
            return pts
    return 0


def value_score(metrics: InstagramMetrics) -> int:
    """Saves, follows, shares and engagement folded into a 0-65 value score."""
    impressions = metrics.impressions or 1
    profile_visits = metrics.profile_visits or 1

    save_rate = metrics.saves / impressions
    follow_rate = metrics.follows / profile_visits
    share_rate = metrics.shares / impressions
    engagement_rate = (metrics.saves + metrics.shares + metrics.comments + metrics.likes) / impressions

    score = (
        _points(save_rate, SAVE_RATE_POINTS)
        + _points(follow_rate, FOLLOW_RATE_POINTS)
        + _points(share_rate, SHARE_RATE_POINTS)
        + _points(engagement_rate, ENGAGEMENT_RATE_POINTS)
    )
    return min(VALUE_SCORE_CAP, score)


def instagram_metrics(samples: Sequence[MetricSample]) -> Optional[InstagramMetrics]:
    """Sum Instagram counters over the days that carry them. None when no day does."""
    ig_days = [s for s in samples if s.has_instagram]
    if not ig_days:
        return None
    return InstagramMetrics(
        impressions=sum(s.impressions or 0 for s in ig_days),
        reach=sum(s.reach or 0 for s in ig_days),
        saves=sum(s.ig_saves or 0 for s in ig_days),
        shares=sum(s.ig_shares or 0 for s in ig_days),
        comments=sum(s.ig_comments or 0 for s in ig_days),
        likes=sum(s.ig_likes or 0 for s in ig_days),
        profile_visits=sum(s.ig_profile_visits or 0 for s in ig_days),
        follows=sum(s.ig_follows or 0 for s in ig_days),
    )


def build_extensions(
    samples: Sequence[MetricSample],
    instagram: Optional[InstagramMetrics] = None,
) -> ScoreExtensions:
    """Video score from the samples; value score from `instagram` or else the samples' Instagram counters."""
    funnel = analyze_video_funnel(samples)
    instagram = instagram or instagram_metrics(samples)
    return ScoreExtensions(
        video_fatigue_score=video_fatigue_score(funnel) if funnel else None,
        value_score=value_score(instagram) if instagram else None,
    )
