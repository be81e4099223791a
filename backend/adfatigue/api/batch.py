"""Trigger batch fatigue analysis."""
from fastapi import APIRouter, Depends, HTTPException, Query

from adfatigue.schemas import BatchAnalyzeRequest
from adfatigue.services.pipeline import batch_analyze_ads, run_batch_analysis
from adfatigue.services.store import FatigueStore, get_store

router = APIRouter(prefix="/batch", tags=["batch"])


@router.post("/run")
async def run_account_batch(
    account_id: str = Query(..., description="Account ID"),
    store: FatigueStore = Depends(get_store),
):
    """Analyze every active ad of the account, persist records and alerts."""
    if not store.get_account(account_id):
        raise HTTPException(status_code=404, detail="Account not found")
    return await run_batch_analysis(account_id, store=store)


@router.post("/analyze")
async def analyze_ads(body: BatchAnalyzeRequest, store: FatigueStore = Depends(get_store)):
    """Analyze the given ads without persisting anything."""
    return await batch_analyze_ads(body.ad_ids, store=store, account_id=body.account_id)
