"""Account-level summaries over stored fatigue records."""
from typing import Any, Sequence

from adfatigue.models import FatigueScoreRecord
from adfatigue.services.rules import FACTORS, primary_issue

LEVELS = ("healthy", "caution", "warning", "critical")


def fatigue_type_summary(records: Sequence[FatigueScoreRecord]) -> dict[str, Any]:
    type_breakdown = {factor: 0 for factor in FACTORS}
    level_breakdown = {level: 0 for level in LEVELS}

    for r in records:
        issue = primary_issue({"audience": r.audience_score, "creative": r.creative_score, "algorithm": r.algorithm_score})
        type_breakdown[issue] += 1
        level_breakdown[r.fatigue_level] = level_breakdown.get(r.fatigue_level, 0) + 1

    return {
        "total": len(records),
        "type_breakdown": type_breakdown,
        "level_breakdown": level_breakdown,
        "critical_ads": [
            {
                "ad_id": r.ad_id,
                "ad_name": r.ad_name,
                "total_score": r.total_score,
                "recommended_action": r.recommended_action,
            }
            for r in records
            if r.fatigue_level == "critical"
        ],
    }


def recommended_actions(records: Sequence[FatigueScoreRecord], min_score: int = 50) -> list[dict[str, Any]]:
    """Ads at or above min_score, with what to do about them."""
    return [
        {
            "ad_id": r.ad_id,
            "ad_name": r.ad_name,
            "campaign_id": r.campaign_id,
            "fatigue_level": r.fatigue_level,
            "total_score": r.total_score,
            "breakdown": {"audience": r.audience_score, "creative": r.creative_score, "algorithm": r.algorithm_score},
            "recommended_action": r.recommended_action,
            "metrics": {
                "frequency": r.frequency,
                "first_time_ratio": r.first_time_ratio,
                "ctr_decline_rate": r.ctr_decline_rate,
                "cpm_increase_rate": r.cpm_increase_rate,
            },
        }
        for r in records
        if r.total_score >= min_score
    ]
