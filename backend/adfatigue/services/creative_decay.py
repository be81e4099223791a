"""Creative-level decay analysis: CTR trend, frequency saturation, decay from peak and end-of-life."""
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional, Sequence

from adfatigue.services.rules import round_half_up

logger = logging.getLogger(__name__)

MIN_DATA_POINTS = 3
MIN_CTR = 0.5  # minimum viable CTR (%)
MAX_PROJECTION_DAYS = 3650

# recommended_action bands
FATIGUE_LOW = 30
FATIGUE_MEDIUM = 50
FATIGUE_HIGH = 70

TREND_WEIGHT = 0.5
SATURATION_WEIGHT = 0.2
DECAY_WEIGHT = 0.3


@dataclass(frozen=True)
class CreativeSample:
    date: date
    ctr: float
    frequency: float = 1.0
    impressions: int = 0
    clicks: int = 0
    spend: float = 0.0


@dataclass
class CreativeFatigueAnalysis:
    creative_id: Optional[str]
    fatigue_score: int
    fatigue_level: str  # healthy, warning, critical
    recommended_action: str  # continue, refresh, pause, replace
    ctr_trend: float
    frequency_saturation: int
    decay_rate: float
    peak_performance_date: Optional[date] = None
    days_since_peak: Optional[int] = None
    predicted_end_of_life: Optional[date] = None
    days_until_end_of_life: Optional[int] = None
    message: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "creative_id": self.creative_id,
            "fatigue_score": self.fatigue_score,
            "fatigue_level": self.fatigue_level,
            "recommended_action": self.recommended_action,
            "ctr_trend": self.ctr_trend,
            "frequency_saturation": self.frequency_saturation,
            "decay_rate": self.decay_rate,
            "peak_performance_date": self.peak_performance_date.isoformat() if self.peak_performance_date else None,
            "days_since_peak": self.days_since_peak,
            "predicted_end_of_life": self.predicted_end_of_life.isoformat() if self.predicted_end_of_life else None,
            "days_until_end_of_life": self.days_until_end_of_life,
            "message": self.message,
        }


def _empty(creative_id: Optional[str], message: str) -> CreativeFatigueAnalysis:
    return CreativeFatigueAnalysis(
        creative_id=creative_id,
        fatigue_score=0,
        fatigue_level="healthy",
        recommended_action="continue",
        ctr_trend=0.0,
        frequency_saturation=0,
        decay_rate=0.0,
        message=message,
    )


def ctr_trend(samples: Sequence[CreativeSample]) -> float:
    """OLS slope of CTR against day index, as % of mean CTR per step."""
    n = len(samples)
    if n < 2:
        return 0.0
    sum_x = sum_y = sum_xy = sum_x2 = 0.0
    for i, s in enumerate(samples):
        sum_x += i
        sum_y += s.ctr
        sum_xy += i * s.ctr
        sum_x2 += i * i
    denom = n * sum_x2 - sum_x * sum_x
    if denom == 0:
        return 0.0
    slope = (n * sum_xy - sum_x * sum_y) / denom
    avg_ctr = sum_y / n
    return slope / avg_ctr * 100 if avg_ctr > 0 else 0.0


def frequency_saturation(frequency: float) -> float:
    saturation = 100 / (1 + math.exp(-1.5 * (frequency - 3)))
    return min(100.0, max(0.0, saturation))


def decay_from_peak(samples: Sequence[CreativeSample]) -> tuple[float, Optional[int], Optional[int]]:
    """Returns (decay_rate, peak_index, days_since_peak). Earliest peak wins on ties."""
    peak_index, peak_ctr = 0, 0.0
    for i, s in enumerate(samples):
        if s.ctr > peak_ctr:
            peak_ctr, peak_index = s.ctr, i

    last = len(samples) - 1
    if peak_index == last or peak_ctr <= 0:
        return 0.0, None, None

    days_since_peak = last - peak_index
    total_decay = (peak_ctr - samples[-1].ctr) / peak_ctr * 100
    return max(0.0, total_decay / days_since_peak), peak_index, days_since_peak


def creative_score(trend: float, saturation: float, decay_rate: float) -> float:
    trend_score = max(0.0, min(100.0, -trend * 30))
    decay_score = min(100.0, decay_rate * 5)
    score = trend_score * TREND_WEIGHT + saturation * SATURATION_WEIGHT + decay_score * DECAY_WEIGHT
    return min(100.0, max(0.0, score))


def creative_action(score: float, saturation: float) -> str:
    if score < FATIGUE_LOW:
        return "continue"
    if score < FATIGUE_MEDIUM:
        return "refresh"
    if score < FATIGUE_HIGH:
        return "pause" if saturation > 60 else "refresh"
    # Heavily saturated audiences get a refresh before a full replacement
    if saturation > 80:
        return "refresh"
    return "replace"


def creative_level(score: float) -> str:
    if score < 30:
        return "healthy"
    if score < 60:
        return "warning"
    return "critical"


def predict_end_of_life(
    samples: Sequence[CreativeSample], decay_rate: float
) -> tuple[Optional[date], Optional[int]]:
    if len(samples) < MIN_DATA_POINTS or decay_rate <= 0:
        return None, None
    current = samples[-1]
    if current.ctr <= MIN_CTR:
        return current.date, 0
    days = (current.ctr - MIN_CTR) / current.ctr * 100 / decay_rate
    if days > MAX_PROJECTION_DAYS:
        return None, None
    days = math.ceil(days)
    return current.date + timedelta(days=days), days


def compute_creative_fatigue(
    samples: Sequence[CreativeSample],
    creative_id: Optional[str] = None,
) -> CreativeFatigueAnalysis:
    if not samples:
        return _empty(creative_id, "No data available")
    if len(samples) < MIN_DATA_POINTS:
        return _empty(creative_id, "insufficient data for analysis")

    ordered = sorted(samples, key=lambda s: s.date)
    trend = ctr_trend(ordered)
    saturation = frequency_saturation(ordered[-1].frequency)
    decay_rate, peak_index, days_since_peak = decay_from_peak(ordered)
    score = creative_score(trend, saturation, decay_rate)
    end_of_life, days_left = predict_end_of_life(ordered, decay_rate)

    logger.debug("Creative %s: score=%.1f trend=%.2f saturation=%.1f", creative_id, score, trend, saturation)
    return CreativeFatigueAnalysis(
        creative_id=creative_id,
        fatigue_score=round_half_up(score),
        fatigue_level=creative_level(score),
        recommended_action=creative_action(score, saturation),
        ctr_trend=trend,
        frequency_saturation=round_half_up(saturation),
        decay_rate=decay_rate,
        peak_performance_date=ordered[peak_index].date if peak_index is not None else None,
        days_since_peak=days_since_peak,
        predicted_end_of_life=end_of_life,
        days_until_end_of_life=days_left,
    )


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def _number(value: Any, default: float) -> float:
    try:
        return float(value) or default
    except (TypeError, ValueError):
        return default


def samples_from_insights(insights: Sequence[dict]) -> list[CreativeSample]:
    """Convert raw insight rows (date_start or dateStart keys) into sorted creative samples."""
    out = []
    for row in insights:
        day = _parse_date(row.get("date_start") or row.get("dateStart"))
        if day is None or row.get("ctr") is None or not row.get("impressions"):
            continue
        out.append(
            CreativeSample(
                date=day,
                ctr=_number(row.get("ctr"), 0.0),
                frequency=_number(row.get("frequency"), 1.0),
                impressions=int(_number(row.get("impressions"), 0)),
                clicks=int(_number(row.get("clicks"), 0)),
                spend=_number(row.get("spend"), 0.0),
            )
        )
    return sorted(out, key=lambda s: s.date)
