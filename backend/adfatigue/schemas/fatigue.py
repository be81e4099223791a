from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class FatigueScoreSchema(BaseModel):
    total: int
    breakdown: dict[str, int]
    primary_issue: str
    status: str


class FatigueRecordResponse(BaseModel):
    account_id: str
    ad_id: str
    ad_name: Optional[str] = None
    campaign_id: Optional[str] = None
    creative_id: Optional[str] = None
    fatigue_score: FatigueScoreSchema
    metrics: dict[str, Any]
    recommended_action: str
    alert_triggered: bool
    data_range_start: Optional[date] = None
    data_range_end: Optional[date] = None
    calculated_at: Optional[datetime] = None


class AlertResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    account_id: str
    ad_id: str
    ad_name: Optional[str] = None
    campaign_id: Optional[str] = None
    alert_level: str
    alert_type: str
    action: Optional[str] = None
    trigger_metrics: Optional[dict[str, Any]] = None
    notification_sent: bool
    created_at: datetime


class CreativeSampleIn(BaseModel):
    date: date
    ctr: float
    frequency: float = 1.0
    impressions: int = 0
    clicks: int = 0
    spend: float = 0.0


class BatchAnalyzeRequest(BaseModel):
    ad_ids: list[str] = Field(..., min_length=1)
    account_id: Optional[str] = None
