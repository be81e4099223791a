"""On-demand fatigue analysis and stored fatigue records."""
from dataclasses import replace
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from adfatigue.config import get_settings
from adfatigue.schemas import FatigueRecordResponse
from adfatigue.services.alerts import evaluate_urgent_alerts
from adfatigue.services.extensions import build_extensions
from adfatigue.services.reporting import fatigue_type_summary, recommended_actions
from adfatigue.services.rules import AnalysisError, analyze_samples
from adfatigue.services.store import FatigueStore, get_store, record_to_dict

router = APIRouter(prefix="/fatigue", tags=["fatigue"])


@router.get("", response_model=list[FatigueRecordResponse])
def list_fatigue_records(
    account_id: Optional[str] = Query(None),
    ad_id: Optional[str] = Query(None),
    campaign_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    store: FatigueStore = Depends(get_store),
):
    """Stored analysis records, highest total score first."""
    records = store.list_records(account_id=account_id, ad_id=ad_id, campaign_id=campaign_id, limit=limit)
    return [record_to_dict(r) for r in records]


@router.get("/summary")
def get_fatigue_summary(
    account_id: str = Query(..., description="Account ID"),
    limit: int = Query(100, ge=1, le=500),
    store: FatigueStore = Depends(get_store),
):
    """Counts by primary issue and level, plus the critical ads."""
    if not store.get_account(account_id):
        raise HTTPException(status_code=404, detail="Account not found")
    return fatigue_type_summary(store.list_records(account_id=account_id, limit=limit))


@router.get("/recommended")
def get_recommended_actions(
    account_id: str = Query(..., description="Account ID"),
    min_score: Optional[int] = Query(None, ge=0, le=100),
    store: FatigueStore = Depends(get_store),
):
    """Ads at or above min_score with their recommended action."""
    if not store.get_account(account_id):
        raise HTTPException(status_code=404, detail="Account not found")
    if min_score is None:
        min_score = get_settings().min_score_for_alert
    return recommended_actions(store.list_records(account_id=account_id), min_score=min_score)


@router.get("/ads/{ad_id}")
def analyze_ad(
    ad_id: str,
    account_id: Optional[str] = Query(None),
    industry: Optional[str] = Query(None),
    product_price: Optional[float] = Query(None, gt=0),
    campaign_goal: Optional[str] = Query(None),
    season: Optional[str] = Query(None),
    save: bool = Query(False, description="Persist the record and any urgent alerts"),
    store: FatigueStore = Depends(get_store),
):
    """Analyze one ad now. Short data yields a structured error body, not an HTTP error."""
    settings = get_settings()
    info = store.get_ad_info(ad_id)
    account_id = account_id or info["account_id"]
    samples = store.fetch_samples(account_id, ad_id, settings.lookback_days)
    if not samples and info["account_id"] is None:
        raise HTTPException(status_code=404, detail="Ad not found")

    context = store.get_context(account_id)
    overrides = {
        k: v
        for k, v in {
            "industry": industry,
            "product_price": product_price,
            "campaign_goal": campaign_goal,
            "season": season,
        }.items()
        if v is not None
    }
    context = replace(context, **overrides)

    result = analyze_samples(
        samples,
        context=context,
        extensions=build_extensions(samples),
        latest=store.fetch_latest_sample(account_id, ad_id),
        min_data_points=settings.min_data_points,
    )
    if isinstance(result, AnalysisError):
        return {"ad_id": ad_id, **result.as_dict()}

    alerts = evaluate_urgent_alerts(result.metrics, ad_id, account_id)
    if save:
        if not account_id:
            raise HTTPException(status_code=400, detail="account_id is required to save")
        store.save_analysis(account_id, ad_id, result, alert_triggered=bool(alerts))
        store.save_alerts(alerts)

    return {
        "ad_id": ad_id,
        "account_id": account_id,
        "context": context.as_dict(),
        **result.as_dict(),
        "alerts": [a.as_dict() for a in alerts],
    }
