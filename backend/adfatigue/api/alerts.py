"""Fatigue alerts."""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from adfatigue.schemas import AlertResponse
from adfatigue.services.store import FatigueStore, get_store

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("", response_model=list[AlertResponse])
def list_alerts(
    account_id: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    store: FatigueStore = Depends(get_store),
):
    """Most recent alerts first."""
    return [AlertResponse.model_validate(a) for a in store.list_alerts(account_id=account_id, limit=limit)]
