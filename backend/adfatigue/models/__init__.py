"""SQLAlchemy models - import all so Base.metadata creates tables."""
from adfatigue.database import Base
from adfatigue.models.account import Account
from adfatigue.models.ad import Ad
from adfatigue.models.ad_insight import AdInsight
from adfatigue.models.fatigue_score import FatigueScoreRecord
from adfatigue.models.fatigue_trend import FatigueTrend
from adfatigue.models.fatigue_alert import FatigueAlert
from adfatigue.models.job_log import ScheduledJobLog

__all__ = [
    "Base",
    "Account",
    "Ad",
    "AdInsight",
    "FatigueScoreRecord",
    "FatigueTrend",
    "FatigueAlert",
    "ScheduledJobLog",
]
