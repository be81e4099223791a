"""Threshold catalog: contextual adjustment, industry guidance and rationale."""
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from adfatigue.config import get_settings
from adfatigue.services.thresholds import (
    DEFAULT_CATALOG,
    ThresholdContext,
    get_contextual_thresholds,
    industry_recommendations,
    interpret_threshold,
    recommended_metric_actions,
)

router = APIRouter(prefix="/thresholds", tags=["thresholds"])


@router.get("/contextual")
def contextual_thresholds(
    industry: Optional[str] = Query(None),
    product_price: Optional[float] = Query(None, gt=0),
    campaign_goal: Optional[str] = Query(None),
    season: Optional[str] = Query(None),
):
    """Thresholds adjusted for a business context, with the audit trail of every rule applied."""
    settings = get_settings()
    context = ThresholdContext(
        industry=industry or settings.default_industry,
        product_price=product_price or settings.default_product_price,
        campaign_goal=campaign_goal or settings.default_campaign_goal,
        season=season or settings.default_season,
    )
    return get_contextual_thresholds(context).as_dict()


@router.get("/industries/{industry}")
def industry_guidance(industry: str):
    """Frequency band, budget split and refresh cadence for an industry."""
    return {"industry": industry, **industry_recommendations(industry)}


@router.get("/rationale/{metric}")
def threshold_rationale(metric: str, status: Optional[str] = Query(None, pattern="^(safe|warning|critical)$")):
    thresholds = DEFAULT_CATALOG.get(metric)
    if thresholds is None:
        raise HTTPException(status_code=404, detail="Unknown metric")
    statuses = [status] if status else ["safe", "warning", "critical"]
    return {
        "metric": metric,
        "thresholds": thresholds.as_dict(),
        "tiers": {
            s: {
                "rationale": interpret_threshold(metric, s),
                "actions": recommended_metric_actions(metric, s),
            }
            for s in statuses
        },
    }
