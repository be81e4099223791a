"""Deterministic rule engine: factor scorers, composite score, level and recommended action."""
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Optional, Sequence, Union

from adfatigue.services.extensions import NO_EXTENSIONS, ScoreExtensions
from adfatigue.services.metrics import (
    NEGATIVE_RATE_CRITICAL,
    NEGATIVE_RATE_WARNING,
    DerivedMetrics,
    MetricSample,
    derive_metrics,
    sort_samples,
)
from adfatigue.services.thresholds import (
    DEFAULT_CATALOG,
    ThresholdCatalog,
    ThresholdContext,
    adjust_catalog,
)

# Tie-break order for primary issue: first wins
FACTORS = ("audience", "creative", "algorithm")

SCORE_WEIGHTS = {
    "audience": 0.40,
    "creative": 0.35,
    "algorithm": 0.25,
}

# Upper bounds of each band. Note the indirection: the "warning" bound gates the
# critical level, "caution" gates warning and "healthy" gates caution.
FATIGUE_LEVEL_THRESHOLDS = {
    "healthy": 30,
    "caution": 50,
    "warning": 70,
    "critical": 100,
}

# Points for (critical, warning, safe); below safe scores 0
AUDIENCE_TERM_POINTS = (50, 35, 20)
FACTOR_POINTS = (100, 70, 40)

NEGATIVE_FEEDBACK_BUMP = {"critical": 30, "warning": 15}
PENALTY_BUMP = {"high": 40, "medium": 25, "low": 10}
HIGH_VALUE_MIN = 20


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_ladder(value: float, ladder: list[tuple[Callable[[float], bool], int]]) -> int:
    """First matching (predicate, points) wins; no match scores 0."""
    for predicate, points in ladder:
        if predicate(value):
            return points
    return 0


# --- Factor scorers ---
def audience_fatigue_score(
    frequency: float,
    first_time_ratio: float,
    catalog: ThresholdCatalog = DEFAULT_CATALOG,
) -> int:
    score = score_ladder(frequency, catalog.frequency.ladder(AUDIENCE_TERM_POINTS))
    score += score_ladder(first_time_ratio, catalog.first_time_ratio.ladder(AUDIENCE_TERM_POINTS))
    return min(100, score)


def creative_fatigue_score(ctr_decline_rate: float, catalog: ThresholdCatalog = DEFAULT_CATALOG) -> int:
    return score_ladder(ctr_decline_rate, catalog.ctr_decline.ladder(FACTOR_POINTS))


def algorithm_fatigue_score(cpm_increase_rate: float, catalog: ThresholdCatalog = DEFAULT_CATALOG) -> int:
    return score_ladder(cpm_increase_rate, catalog.cpm_increase.ladder(FACTOR_POINTS))


# --- Composite ---
@dataclass(frozen=True)
class FatigueScore:
    total: int
    audience: int
    creative: int
    algorithm: int
    primary_issue: str
    status: str

    @property
    def breakdown(self) -> dict[str, int]:
        return {"audience": self.audience, "creative": self.creative, "algorithm": self.algorithm}

    def as_dict(self) -> dict:
        return {
            "total": self.total,
            "breakdown": self.breakdown,
            "primary_issue": self.primary_issue,
            "status": self.status,
        }


def classify_level(total: float) -> str:
    if total >= FATIGUE_LEVEL_THRESHOLDS["warning"]:
        return "critical"
    if total >= FATIGUE_LEVEL_THRESHOLDS["caution"]:
        return "warning"
    if total >= FATIGUE_LEVEL_THRESHOLDS["healthy"]:
        return "caution"
    return "healthy"


def primary_issue(breakdown: dict[str, float]) -> str:
    best = FACTORS[0]
    for factor in FACTORS[1:]:
        if breakdown[factor] > breakdown[best]:
            best = factor
    return best


def weighted_total(audience: float, creative: float, algorithm: float) -> int:
    return round_half_up(
        audience * SCORE_WEIGHTS["audience"]
        + creative * SCORE_WEIGHTS["creative"]
        + algorithm * SCORE_WEIGHTS["algorithm"]
    )


def composite_score(
    metrics: DerivedMetrics,
    catalog: ThresholdCatalog = DEFAULT_CATALOG,
    extensions: ScoreExtensions = NO_EXTENSIONS,
) -> FatigueScore:
    audience = audience_fatigue_score(metrics.frequency, metrics.first_time_ratio, catalog)
    creative = creative_fatigue_score(metrics.ctr_decline_rate, catalog)
    algorithm = algorithm_fatigue_score(metrics.cpm_increase_rate, catalog)

    if metrics.negative_rate > NEGATIVE_RATE_CRITICAL:
        audience = min(100, audience + NEGATIVE_FEEDBACK_BUMP["critical"])
    elif metrics.negative_rate > NEGATIVE_RATE_WARNING:
        audience = min(100, audience + NEGATIVE_FEEDBACK_BUMP["warning"])

    penalty = metrics.algorithm_penalty
    if penalty.penalty_detected:
        algorithm = min(100, algorithm + PENALTY_BUMP.get(penalty.severity, 0))

    if extensions.video_fatigue_score is not None:
        creative = max(creative, extensions.video_fatigue_score)

    value = extensions.value_score
    if value is not None and value > HIGH_VALUE_MIN:
        creative = max(0, creative - value)
        audience = max(0, round_half_up(audience - value * 0.5))

    total = weighted_total(audience, creative, algorithm)
    breakdown = {"audience": audience, "creative": creative, "algorithm": algorithm}
    return FatigueScore(
        total=total,
        audience=audience,
        creative=creative,
        algorithm=algorithm,
        primary_issue=primary_issue(breakdown),
        status=classify_level(total),
    )


# --- Recommended action ---
RECOMMENDED_ACTIONS = {
    "audience": {
        "critical": "Audience saturation is severe. Add new targeting segments or pause the campaign.",
        "warning": "The audience shows signs of fatigue. Consider setting a frequency cap.",
        "caution": "Watch delivery frequency to this audience and monitor the trend.",
    },
    "creative": {
        "critical": "Creative effectiveness has dropped sharply. Replacing the creative is strongly recommended.",
        "warning": "Creative performance is trending down. Try new variations in an A/B test.",
        "caution": "The creative shows mild fatigue. Consider adding variations.",
    },
    "algorithm": {
        "critical": "Delivery efficiency has deteriorated. Review the bid strategy or rebuild the campaign.",
        "warning": "CPM is trending up. Consider optimising budget allocation.",
        "caution": "Delivery efficiency is slipping slightly. Consider adjusting bids.",
    },
    "healthy": "Performance is healthy. Continue the current strategy.",
}

NEGATIVE_FEEDBACK_PREFIX = (
    "URGENT: negative feedback rate is above the 0.3% danger level. "
    "Pause the ad immediately and review the content. "
)
ALGORITHM_PENALTY_PREFIX = (
    "WARNING: a severe delivery penalty was detected. "
    "Rebuilding the campaign is strongly recommended. "
)


def recommended_action_text(score: FatigueScore, metrics: Optional[DerivedMetrics] = None) -> str:
    if score.status == "healthy":
        text = RECOMMENDED_ACTIONS["healthy"]
    else:
        text = RECOMMENDED_ACTIONS[score.primary_issue][score.status]

    if metrics is not None:
        if metrics.negative_rate > NEGATIVE_RATE_CRITICAL:
            text = NEGATIVE_FEEDBACK_PREFIX + text
        penalty = metrics.algorithm_penalty
        if penalty.penalty_detected and penalty.severity == "high":
            text = ALGORITHM_PENALTY_PREFIX + text
    return text


# --- Entry points ---
@dataclass(frozen=True)
class AnalysisError:
    error: str  # no_data, insufficient_data
    message: str
    data_points: int

    def as_dict(self) -> dict:
        return {"error": self.error, "message": self.message, "data_points": self.data_points}


@dataclass
class FatigueAnalysis:
    score: FatigueScore
    metrics: DerivedMetrics
    recommended_action: str
    data_range_start: Optional[date] = None
    data_range_end: Optional[date] = None
    extensions: ScoreExtensions = field(default=NO_EXTENSIONS)

    def as_dict(self) -> dict:
        return {
            "fatigue_score": self.score.as_dict(),
            "metrics": self.metrics.as_dict(),
            "recommended_action": self.recommended_action,
            "data_range_start": self.data_range_start.isoformat() if self.data_range_start else None,
            "data_range_end": self.data_range_end.isoformat() if self.data_range_end else None,
        }


def check_sample_count(samples: Sequence[MetricSample], min_data_points: int = 3) -> Optional[AnalysisError]:
    if not samples:
        return AnalysisError("no_data", "No data found for the requested period.", 0)
    if len(samples) < min_data_points:
        return AnalysisError(
            "insufficient_data",
            f"Fatigue analysis needs at least {min_data_points} days of data.",
            len(samples),
        )
    return None


def analyze_samples(
    samples: Sequence[MetricSample],
    context: Optional[ThresholdContext] = None,
    extensions: ScoreExtensions = NO_EXTENSIONS,
    latest: Optional[MetricSample] = None,
    min_data_points: int = 3,
    base_catalog: ThresholdCatalog = DEFAULT_CATALOG,
) -> Union[FatigueAnalysis, AnalysisError]:
    """Full per-ad analysis: derived metrics, composite score and recommended action."""
    error = check_sample_count(samples, min_data_points)
    if error:
        return error

    catalog = base_catalog
    if context is not None:
        catalog, _ = adjust_catalog(base_catalog, context)

    ordered = sort_samples(samples)
    metrics = derive_metrics(ordered, latest=latest)
    score = composite_score(metrics, catalog, extensions)
    return FatigueAnalysis(
        score=score,
        metrics=metrics,
        recommended_action=recommended_action_text(score, metrics),
        data_range_start=ordered[0].date,
        data_range_end=ordered[-1].date,
        extensions=extensions,
    )


def compute_fatigue_score(
    samples: Sequence[MetricSample],
    context: Optional[ThresholdContext] = None,
    extensions: ScoreExtensions = NO_EXTENSIONS,
) -> Union[FatigueScore, AnalysisError]:
    result = analyze_samples(samples, context=context, extensions=extensions)
    if isinstance(result, AnalysisError):
        return result
    return result.score
